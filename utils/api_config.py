"""
API Configuration

Backend hosts and client settings read from environment variables.
`load_dotenv()` is called once by the application entry point; this module
only reads `os.environ`.
"""

import os
from dataclasses import dataclass
from typing import Optional


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"Environment variable {name} must be an integer, got {raw!r}")


@dataclass(frozen=True)
class ApiConfig:
    auth_url: str
    home_page_url: str
    catalog_url: str
    core_commerce_url: str
    discount_url: str
    search_url: str
    api_base_url: str
    preference_url: str
    refresh_url: str
    login_url: str
    timeout_ms: int = 30000
    redis_url: Optional[str] = None
    search_cache_ttl_seconds: int = 300
    aggregation_cache_ttl_seconds: int = 1800
    facet_max_concurrency: int = 1


def get_api_config() -> ApiConfig:
    """Build the configuration from the current environment."""
    return ApiConfig(
        auth_url=os.getenv("AUTH_URL", "https://api.myapptino.com/auth/"),
        home_page_url=os.getenv("HOME_PAGE_URL", "https://api.myapptino.com/homepagepublic/"),
        catalog_url=os.getenv("CATALOG_URL", "https://api.myapptino.com/catalog"),
        core_commerce_url=os.getenv("CORECOMMERCE_URL", "https://api.myapptino.com/corecommerce"),
        discount_url=os.getenv("DISCOUNT_URL", "https://api.myapptino.com/discounts/"),
        search_url=os.getenv("OPENSEARCH_URL", "https://api.myapptino.com/opensearch/invocations"),
        api_base_url=os.getenv("API_BASE_URL", "https://api.myapptino.com"),
        preference_url=os.getenv("PREFERENCE_URL", "http://localhost:3000/api/userpreference"),
        refresh_url=os.getenv("AUTH_REFRESH_URL", "http://localhost:3000/api/auth/refresh"),
        login_url=os.getenv("LOGIN_URL", "/login"),
        timeout_ms=_env_int("API_TIMEOUT_MS", 30000),
        redis_url=os.getenv("REDIS_URL") or None,
        search_cache_ttl_seconds=_env_int("SEARCH_CACHE_TTL_SECONDS", 300),
        aggregation_cache_ttl_seconds=_env_int("AGGREGATION_CACHE_TTL_SECONDS", 1800),
        facet_max_concurrency=max(1, _env_int("FACET_MAX_CONCURRENCY", 1)),
    )
