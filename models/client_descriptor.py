"""Client descriptor for one backend host."""
from dataclasses import dataclass

DEFAULT_TIMEOUT_MS = 30000


@dataclass(frozen=True)
class ClientDescriptor:
    """
    Fixed configuration of the HTTP client for one backend host.

    Attributes:
        name: Registry key of the client (e.g. "search", "core_commerce")
        base_url: Base URL every relative endpoint is resolved against
        timeout_ms: Request timeout in milliseconds
        include_credentials: Share the cookie jar with the other clients
    """
    name: str
    base_url: str
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    include_credentials: bool = True

    @property
    def timeout_seconds(self) -> float:
        return self.timeout_ms / 1000.0
