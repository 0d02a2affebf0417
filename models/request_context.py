"""
Request Context Data Model

This module defines the RequestContext dataclass carrying the identity and
auth values attached to one outgoing backend call.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class RequestContext:
    """
    Context information resolved from the credential store or supplied by a caller.

    A missing field means "do not send the corresponding header", never an error.

    Attributes:
        tenant_code: Tenant identifier derived from the token issuer claim
        access_token: Raw bearer token
        origin: Origin header value for server-side calls
        company_id: Company the current user belongs to
        user_id: Current user identifier
        elastic_code: Search index prefix for the tenant (not sent as a header)
        is_mobile: Optional client hint sent as x-is-mobile
        module: Optional module name sent as x-module
        credential_store: Store the call authenticates from instead of the
            shared clients' own store (e.g. an incoming caller's token)
    """
    tenant_code: Optional[str] = None
    access_token: Optional[str] = None
    origin: Optional[str] = None
    company_id: Optional[int] = None
    user_id: Optional[int] = None
    elastic_code: Optional[str] = None
    is_mobile: Optional[bool] = None
    module: Optional[str] = None
    credential_store: Any = field(default=None, compare=False, repr=False)

    def to_headers(self) -> Dict[str, str]:
        """Build the request headers for every populated field."""
        headers: Dict[str, str] = {}
        if self.access_token:
            headers["Authorization"] = f"Bearer {self.access_token}"
        if self.company_id:
            headers["x-company-id"] = str(self.company_id)
        if self.is_mobile is not None:
            headers["x-is-mobile"] = "true" if self.is_mobile else "false"
        if self.module:
            headers["x-module"] = self.module
        if self.user_id:
            headers["x-user-id"] = str(self.user_id)
        if self.origin:
            headers["origin"] = self.origin
        if self.tenant_code:
            headers["x-tenant"] = self.tenant_code
        return headers
