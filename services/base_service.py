"""
Service Base

Every concrete service subclasses BaseService, names its default backend
client, and formats endpoints and payloads for one of four call primitives:

    call / call_with            raise ApiError on any failure
    call_safe / call_with_safe  return None on any failure

`call` and `call_safe` resolve the request context through the service's
ContextProvider; `call_with` and `call_with_safe` accept an explicit context,
method and destination client.
"""

import logging
from typing import Any, Optional, Type, TypeVar, Union

import httpx
from pydantic import BaseModel, ValidationError

from middleware.auth_interceptor import CREDENTIAL_STORE_EXTENSION
from models.api_errors import DecodeError, NetworkError
from models.request_context import RequestContext
from services.client_factory import CORE_COMMERCE, ApiClients
from services.registry import ServiceRegistry, get_service_registry
from utils.context_utils import ContextProvider, TokenContextResolver

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

SUPPORTED_METHODS = ("GET", "POST", "PUT", "DELETE")
ClientRef = Union[str, httpx.AsyncClient]


class BaseService:
    """
    Base class for backend services.

    Attributes:
        default_client_name: Name of the ApiClients entry calls go to by default
        context_resolver_class: Resolver built when no ContextProvider is injected
    """

    default_client_name: str = CORE_COMMERCE
    context_resolver_class = TokenContextResolver

    def __init__(self, clients: ApiClients, context_provider: Optional[ContextProvider] = None):
        self.clients = clients
        self.context_provider = context_provider or self.context_resolver_class(clients.store)

    @classmethod
    def get_instance(cls, registry: Optional[ServiceRegistry] = None):
        """Return the registry's instance of this service, creating it on first access."""
        if registry is None:
            registry = get_service_registry()
        return registry.get(cls)

    @property
    def default_client(self) -> httpx.AsyncClient:
        return self.clients.get(self.default_client_name)

    def resolve_context(self) -> RequestContext:
        return self.context_provider.resolve()

    async def call(self, endpoint: str, data: Any = None, method: str = "POST") -> Any:
        return await self._call_api(endpoint, data, self.resolve_context(), method, self.default_client)

    async def call_safe(self, endpoint: str, data: Any = None, method: str = "POST") -> Any:
        try:
            return await self.call(endpoint, data, method)
        except Exception as e:
            self._log_suppressed(endpoint, method, e)
            return None

    async def call_with(
        self,
        endpoint: str,
        data: Any = None,
        *,
        context: Optional[RequestContext] = None,
        method: str = "POST",
        client: Optional[ClientRef] = None,
    ) -> Any:
        if context is None:
            context = self.resolve_context()
        return await self._call_api(endpoint, data, context, method, self._resolve_client(client))

    async def call_with_safe(
        self,
        endpoint: str,
        data: Any = None,
        *,
        context: Optional[RequestContext] = None,
        method: str = "POST",
        client: Optional[ClientRef] = None,
    ) -> Any:
        try:
            return await self.call_with(endpoint, data, context=context, method=method, client=client)
        except Exception as e:
            self._log_suppressed(endpoint, method, e)
            return None

    def _resolve_client(self, client: Optional[ClientRef]) -> httpx.AsyncClient:
        if client is None:
            return self.default_client
        if isinstance(client, str):
            return self.clients.get(client)
        return client

    async def _call_api(
        self,
        endpoint: str,
        data: Any,
        context: RequestContext,
        method: str,
        client: httpx.AsyncClient,
    ) -> Any:
        method = method.upper()
        if method not in SUPPORTED_METHODS:
            raise ValueError(f"Unsupported HTTP method: {method}")

        headers = context.to_headers()
        extensions = None
        if context.credential_store is not None:
            extensions = {CREDENTIAL_STORE_EXTENSION: context.credential_store}
        try:
            # GET and DELETE never carry a body
            if method in ("GET", "DELETE"):
                response = await client.request(method, endpoint, headers=headers, extensions=extensions)
            else:
                response = await client.request(
                    method, endpoint, json=data, headers=headers, extensions=extensions
                )
        except httpx.TimeoutException as e:
            raise NetworkError(f"Request timed out: {method} {endpoint}") from e
        except httpx.TransportError as e:
            raise NetworkError(f"Network error: {method} {endpoint}: {e}") from e

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise DecodeError(
                f"Response is not valid JSON: {method} {endpoint}",
                response.status_code,
                response.text,
            ) from e

    def _decode(self, payload: Any, model: Type[M]) -> M:
        """Validate a response payload against its declared shape."""
        try:
            return model.model_validate(payload)
        except ValidationError as e:
            raise DecodeError(
                f"Unexpected {model.__name__} response: {e.error_count()} validation error(s)",
                data=payload,
            ) from e

    def _log_suppressed(self, endpoint: str, method: str, error: Exception) -> None:
        logger.warning(
            f"Suppressed API failure: service={type(self).__name__}, "
            f"method={method}, endpoint={endpoint}, error={error!r}"
        )
