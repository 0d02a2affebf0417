"""
Access Token Claims Module

This module decodes the storefront access token on the client side to read the
identity claims used for header injection and context resolution.

Claims Contract:
- iss: string - Tenant code, sent as the x-tenant header
- sub: string - Subject
- exp: number - Expiration timestamp
- userId: number - Current user identifier
- companyId: number - Current company identifier
- tenantId: string (optional) - Backend tenant identifier
- elasticCode: string (optional) - Search index prefix for the tenant
- anonymous: bool (optional) - Guest token

Security:
- Signature is NOT verified here; the backend hosts verify every token
- Decoding never raises; a malformed token yields None
- Never logs full tokens
"""

import logging
import time
from typing import Any, Optional

import jwt
from jwt.exceptions import PyJWTError

from models.identity_claims import IdentityClaims

logger = logging.getLogger(__name__)

# Tokens expiring within this window are due for a proactive refresh
NEAR_EXPIRY_WINDOW_SECONDS = 120


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value)
    return None


def _as_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, str):
        return value or None
    return str(value)


def decode_token_claims(token: Optional[str]) -> Optional[IdentityClaims]:
    """
    Decode an access token's payload without verifying its signature.

    Args:
        token: The JWT string (without 'Bearer ' prefix)

    Returns:
        IdentityClaims, or None when the token is missing or malformed
        (wrong segment count, invalid encoding, unparsable payload)
    """
    if not token or not isinstance(token, str):
        return None

    if len(token.split(".")) != 3:
        logger.debug("Token rejected: expected 3 segments")
        return None

    try:
        payload = jwt.decode(token, options={"verify_signature": False})
    except PyJWTError as e:
        logger.debug(f"Token payload could not be decoded: {type(e).__name__}")
        return None
    except (ValueError, TypeError) as e:
        logger.debug(f"Token payload is not valid JSON: {type(e).__name__}")
        return None

    if not isinstance(payload, dict):
        return None

    return IdentityClaims(
        subject=_as_str(payload.get("sub")),
        tenant_code=_as_str(payload.get("iss")),
        expires_at=_as_int(payload.get("exp")),
        user_id=_as_int(payload.get("userId", payload.get("id"))),
        company_id=_as_int(payload.get("companyId")),
        tenant_id=_as_str(payload.get("tenantId")),
        elastic_code=_as_str(payload.get("elasticCode")),
        anonymous=bool(payload.get("anonymous", False)),
    )


def is_claims_expired(claims: IdentityClaims, now: Optional[float] = None) -> bool:
    """A token without an exp claim never expires."""
    if claims.expires_at is None:
        return False
    current = time.time() if now is None else now
    return claims.expires_at < int(current)


def is_token_expired(token: Optional[str], now: Optional[float] = None) -> bool:
    """
    Check whether a token is expired.

    Missing and malformed tokens count as expired.
    """
    claims = decode_token_claims(token)
    if claims is None:
        return True
    return is_claims_expired(claims, now)


def is_token_near_expiry(
    token: Optional[str],
    window_seconds: int = NEAR_EXPIRY_WINDOW_SECONDS,
    now: Optional[float] = None,
) -> bool:
    """
    Check whether a token expires within the given window.

    Malformed tokens are due for refresh; missing tokens and anonymous
    tokens are not.
    """
    if not token:
        return False
    claims = decode_token_claims(token)
    if claims is None:
        return True
    if claims.anonymous or claims.expires_at is None:
        return False
    current = time.time() if now is None else now
    return claims.expires_at - int(current) < window_seconds


def extract_bearer_token(authorization_header: Optional[str]) -> Optional[str]:
    """
    Extract the token from an Authorization header.

    Args:
        authorization_header: The full Authorization header value

    Returns:
        The token string, or None if header is missing/malformed
    """
    if not authorization_header:
        return None

    if not authorization_header.startswith("Bearer "):
        return None

    token = authorization_header[7:]  # Remove "Bearer " prefix

    if not token or not token.strip():
        return None

    return token.strip()


def token_preview(token: Optional[str]) -> str:
    """First 8 characters of a token, for logs."""
    if not token:
        return "None"
    return f"{token[:8]}..."
