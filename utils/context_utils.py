"""
Context Resolution Utilities

This module derives the per-request RequestContext from the credential store.

Resolution never raises:
1. No token -> every identity field empty (anonymous-tolerant endpoints)
2. Malformed token -> claims treated as absent
3. Expired token -> identity fields kept, bearer token omitted

Operations that require a field (e.g. company id) check it themselves.
"""

import logging
from typing import Optional, Protocol, runtime_checkable

from fastapi import Request

from middleware.jwt_auth import decode_token_claims, extract_bearer_token, is_claims_expired
from models.request_context import RequestContext
from services.credential_store import CredentialStore, InMemoryCredentialStore

logger = logging.getLogger(__name__)


@runtime_checkable
class ContextProvider(Protocol):
    def resolve(self) -> RequestContext:
        ...


class TokenContextResolver:
    """
    Default resolver: tenant code, user id and company id from the token claims.

    Args:
        store: Credential store holding the current access token
        origin: Optional origin sent with server-side calls
    """

    def __init__(self, store: CredentialStore, origin: Optional[str] = None):
        self.store = store
        self.origin = origin

    def resolve(self) -> RequestContext:
        token = self.store.get_access_token()
        if not token:
            return RequestContext(origin=self.origin)

        claims = decode_token_claims(token)
        if claims is None:
            logger.debug("Stored token could not be decoded; resolving empty context")
            return RequestContext(origin=self.origin)

        return RequestContext(
            tenant_code=claims.tenant_code,
            access_token=None if is_claims_expired(claims) else token,
            origin=self.origin,
            company_id=claims.company_id,
            user_id=claims.user_id,
            elastic_code=self._elastic_code(claims),
        )

    def _elastic_code(self, claims) -> Optional[str]:
        return None


class SearchContextResolver(TokenContextResolver):
    """Also carries the tenant's search index prefix (`elasticCode` claim)."""

    def _elastic_code(self, claims) -> Optional[str]:
        return claims.elastic_code


def get_request_store(request: Request) -> InMemoryCredentialStore:
    """
    Credential store for one incoming HTTP request.

    The token comes from the request's `Authorization: Bearer` header; a
    missing or malformed header yields an empty store.
    """
    token = extract_bearer_token(request.headers.get("Authorization"))
    if token is None:
        logger.debug(f"No bearer token on request: path={request.url.path}")
    return InMemoryCredentialStore(token)
