"""Credential stores holding the current access token.

Everything above this layer only reads the token. Claims are decoded on
demand from whatever token the store currently holds, so a refreshed token is
picked up by the next read.
"""
import logging
from http.cookiejar import CookieJar
from typing import Iterable, Optional, Protocol, runtime_checkable

import httpx

from middleware.jwt_auth import decode_token_claims
from models.identity_claims import IdentityClaims

logger = logging.getLogger(__name__)

ACCESS_TOKEN_COOKIES = ("access_token_client", "access_token")
REFRESH_TOKEN_COOKIE = "refresh_token"


@runtime_checkable
class CredentialStore(Protocol):
    def get_access_token(self) -> Optional[str]:
        ...


@runtime_checkable
class ClearableCredentialStore(CredentialStore, Protocol):
    """A store whose credentials can be discarded (on unrecoverable auth failure)."""

    def clear(self) -> None:
        ...


def get_claims(store: CredentialStore) -> Optional[IdentityClaims]:
    """Decode the claims of the store's current token (None when absent or malformed)."""
    return decode_token_claims(store.get_access_token())


class InMemoryCredentialStore:
    """Token held in process memory (server-side calls, tests)."""

    def __init__(self, token: Optional[str] = None):
        self._token = token

    def get_access_token(self) -> Optional[str]:
        return self._token

    def set_token(self, token: Optional[str]) -> None:
        self._token = token or None

    def clear(self) -> None:
        self._token = None


class CookieCredentialStore:
    """
    Token read from the cookie jar shared by every backend client.

    httpx clients given the same CookieJar write response cookies straight
    into it, so a cookie-based refresh rotates the token seen here without
    any token being parsed from a response body.
    """

    def __init__(
        self,
        jar: Optional[CookieJar] = None,
        cookie_names: Iterable[str] = ACCESS_TOKEN_COOKIES,
    ):
        self.jar = jar if jar is not None else CookieJar()
        self.cookies = httpx.Cookies(self.jar)
        self.cookie_names = tuple(cookie_names)

    def get_access_token(self) -> Optional[str]:
        for name in self.cookie_names:
            try:
                value = self.cookies.get(name)
            except httpx.CookieConflict:
                logger.warning(f"Multiple cookies named {name}; ignoring")
                continue
            if value:
                return value
        return None

    def set_token(self, token: str, name: Optional[str] = None) -> None:
        self.cookies.set(name or self.cookie_names[0], token)

    def clear(self) -> None:
        for name in (*self.cookie_names, REFRESH_TOKEN_COOKIE):
            self.cookies.delete(name)
