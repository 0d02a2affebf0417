"""Identity claims decoded from a bearer token."""
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class IdentityClaims:
    """
    Claims read from an access token payload.

    The token is decoded without signature verification; these values are
    hints for header injection, never an authorization decision.

    Attributes:
        subject: The `sub` claim
        tenant_code: The `iss` claim
        expires_at: Unix timestamp from `exp` (None when absent)
        user_id: The `userId` claim
        company_id: The `companyId` claim
        tenant_id: The `tenantId` claim
        elastic_code: The `elasticCode` claim
        anonymous: True for guest tokens
    """
    subject: Optional[str] = None
    tenant_code: Optional[str] = None
    expires_at: Optional[int] = None
    user_id: Optional[int] = None
    company_id: Optional[int] = None
    tenant_id: Optional[str] = None
    elastic_code: Optional[str] = None
    anonymous: bool = False
