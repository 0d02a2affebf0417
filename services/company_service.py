"""Company and profile endpoints on the core-commerce and auth hosts."""
import logging
from typing import Any, Dict, Optional

from models.api_errors import ContextError
from services.base_service import BaseService
from services.client_factory import AUTH, CORE_COMMERCE

logger = logging.getLogger(__name__)


class CompanyService(BaseService):
    default_client_name = CORE_COMMERCE

    async def get_company(self, company_id: int) -> Any:
        return await self.call(f"/companys/{company_id}", method="GET")

    async def get_current_company(self) -> Any:
        """
        Fetch the company of the current user.

        Raises:
            ContextError: The resolved context carries no company id
        """
        context = self.resolve_context()
        if not context.company_id:
            raise ContextError("Current company id is not available in the request context")
        return await self.call_with(f"/companys/{context.company_id}", context=context, method="GET")

    async def update_company_profile(self, company_id: int, payload: Dict[str, Any]) -> Any:
        return await self.call(f"/companys/{company_id}", payload, method="PUT")

    async def get_profile(self) -> Optional[Any]:
        """Current user's profile from the auth host; None when it cannot be fetched."""
        return await self.call_with_safe("/user/me", method="GET", client=AUTH)
