"""
User Preference Service

Per-module preferences (order and quote listing filters, column layouts)
stored by the user-preference microservice.
"""
import logging
from typing import Any, Dict, Optional
from urllib.parse import urlencode

from models.api_errors import ContextError
from models.request_context import RequestContext
from services.base_service import BaseService
from services.client_factory import PREFERENCE

logger = logging.getLogger(__name__)


class UserPreferenceService(BaseService):
    default_client_name = PREFERENCE

    def _require_user(self, context: RequestContext) -> int:
        if not context.user_id:
            raise ContextError("Current user id is not available in the request context")
        return context.user_id

    async def get_preferences(self, module: str, is_mobile: bool = False) -> Optional[Any]:
        """
        Preferences of the current user for `module`.

        Returns None when there is no signed-in user or the lookup fails.
        """
        context = self.resolve_context()
        if not context.user_id:
            logger.debug(f"Skipping preference lookup without a user: module={module}")
            return None
        query = urlencode({
            "userId": context.user_id,
            "module": module,
            "tenantCode": context.tenant_code or "",
            "isMobile": "true" if is_mobile else "false",
        })
        return await self.call_safe(f"/preferences/find?{query}", method="GET")

    async def save_preferences(
        self,
        module: str,
        preferences: Dict[str, Any],
        is_mobile: bool = False,
    ) -> Any:
        """
        Create or replace the current user's preferences for `module`.

        Raises:
            ContextError: No user id in the resolved context
            ApiError: The preference service rejected the request
        """
        context = self.resolve_context()
        payload = {
            "userId": self._require_user(context),
            "companyId": context.company_id,
            "module": module,
            "isMobile": is_mobile,
            "preferences": preferences,
        }
        return await self.call("/preferences", payload, method="POST")
