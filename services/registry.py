"""Service instance registry.

Holds one instance per concrete service type, created lazily on first access
and kept for the registry's lifetime. The registry owns the ApiClients (and
the optional search cache) every service is built from; the process-wide
registry is reached through `get_service_registry()`.
"""
import logging
from typing import Dict, Optional, Type, TypeVar

from services.client_factory import ApiClients
from services.search_cache import SearchCache
from utils.api_config import get_api_config

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Global registry instance (initialized lazily)
_registry: "ServiceRegistry | None" = None


def service_key(service_cls: type) -> str:
    """Stable identifier of a service type."""
    return f"{service_cls.__module__}.{service_cls.__qualname__}"


class ServiceRegistry:
    """
    Write-once-per-key map from service type to instance.

    Services with a `from_registry` classmethod build themselves from the
    registry (to reach the cache or other services); all others are
    constructed with the shared ApiClients.
    """

    def __init__(
        self,
        clients: ApiClients,
        cache: Optional[SearchCache] = None,
        facet_max_concurrency: int = 1,
    ):
        self.clients = clients
        self.cache = cache
        self.facet_max_concurrency = facet_max_concurrency
        self._instances: Dict[str, object] = {}

    def get(self, service_cls: Type[T]) -> T:
        """Return the instance for `service_cls`, constructing it on first access only."""
        key = service_key(service_cls)
        instance = self._instances.get(key)
        if instance is None:
            factory = getattr(service_cls, "from_registry", None)
            instance = factory(self) if factory is not None else service_cls(self.clients)
            self._instances[key] = instance
            logger.debug(f"Created service instance: service={key}")
        return instance

    def __contains__(self, service_cls: type) -> bool:
        return service_key(service_cls) in self._instances

    def __len__(self) -> int:
        return len(self._instances)

    async def aclose(self) -> None:
        await self.clients.aclose()
        if self.cache is not None:
            await self.cache.close()


def get_service_registry() -> ServiceRegistry:
    """Get or create the process-wide registry from environment configuration."""
    global _registry

    if _registry is None:
        config = get_api_config()
        cache = None
        if config.redis_url:
            cache = SearchCache.from_url(
                config.redis_url,
                config.search_cache_ttl_seconds,
                config.aggregation_cache_ttl_seconds,
            )
        _registry = ServiceRegistry(
            ApiClients.from_config(config),
            cache=cache,
            facet_max_concurrency=config.facet_max_concurrency,
        )
        logger.info(f"Service registry created: cache_enabled={cache is not None}")

    return _registry


def set_service_registry(registry: Optional[ServiceRegistry]) -> None:
    """Install a registry (composition root, tests); None resets to lazy creation."""
    global _registry
    _registry = registry


async def close_service_registry() -> None:
    """Close the process-wide registry's clients."""
    global _registry

    if _registry is not None:
        await _registry.aclose()
        _registry = None
        logger.info("Service registry closed")
