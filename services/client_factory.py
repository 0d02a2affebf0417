"""
Client Factory

One httpx.AsyncClient per backend host, each bound to a base URL and a fixed
timeout, sharing one cookie jar and one AuthInterceptor.
"""
import logging
from http.cookiejar import CookieJar
from typing import Callable, Dict, Iterable, Optional

import httpx

from middleware.auth_interceptor import AuthInterceptor
from models.client_descriptor import ClientDescriptor
from services.credential_store import ClearableCredentialStore, CookieCredentialStore
from services.token_refresh import HttpTokenRefresher, LoginRedirectHandler
from utils.api_config import ApiConfig

logger = logging.getLogger(__name__)

AUTH = "auth"
HOME_PAGE = "home_page"
CATALOG = "catalog"
CORE_COMMERCE = "core_commerce"
DISCOUNT = "discount"
SEARCH = "search"
API = "api"
PREFERENCE = "preference"


def create_client(
    descriptor: ClientDescriptor,
    interceptor: AuthInterceptor,
    jar: Optional[CookieJar] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> httpx.AsyncClient:
    """
    Create the client for one backend host.

    Clients with `include_credentials` share `jar`, so cookies set by any host
    (including the refresh endpoint) are visible to all of them.
    """
    cookies = jar if descriptor.include_credentials and jar is not None else None
    client = httpx.AsyncClient(
        base_url=descriptor.base_url,
        timeout=descriptor.timeout_seconds,
        headers={"Content-Type": "application/json"},
        cookies=cookies,
        auth=interceptor,
        transport=transport,
    )
    logger.info(
        f"Created API client: name={descriptor.name}, base_url={descriptor.base_url}, "
        f"timeout_ms={descriptor.timeout_ms}"
    )
    return client


def descriptors_from_config(config: ApiConfig) -> Iterable[ClientDescriptor]:
    urls = {
        AUTH: config.auth_url,
        HOME_PAGE: config.home_page_url,
        CATALOG: config.catalog_url,
        CORE_COMMERCE: config.core_commerce_url,
        DISCOUNT: config.discount_url,
        SEARCH: config.search_url,
        API: config.api_base_url,
        PREFERENCE: config.preference_url,
    }
    return [
        ClientDescriptor(name=name, base_url=url, timeout_ms=config.timeout_ms)
        for name, url in urls.items()
    ]


class ApiClients:
    """
    The set of backend clients, created once and shared by every service.

    Attributes:
        store: Credential store the interceptor reads tokens from
        interceptor: The AuthInterceptor attached to every client
        jar: Cookie jar shared by every client and the refresher
    """

    def __init__(
        self,
        descriptors: Iterable[ClientDescriptor],
        interceptor: AuthInterceptor,
        jar: Optional[CookieJar] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.interceptor = interceptor
        self.store = interceptor.store
        self.jar = jar
        self._clients: Dict[str, httpx.AsyncClient] = {}
        for descriptor in descriptors:
            if descriptor.name in self._clients:
                raise ValueError(f"Duplicate client name: {descriptor.name}")
            self._clients[descriptor.name] = create_client(descriptor, interceptor, jar, transport)

    @classmethod
    def from_config(
        cls,
        config: ApiConfig,
        store: Optional[ClearableCredentialStore] = None,
        jar: Optional[CookieJar] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        redirect: Optional[Callable[[str], None]] = None,
    ) -> "ApiClients":
        """
        Wire the clients, interceptor and refresh collaborators from configuration.

        Without an explicit store the access token is read from the shared
        cookie jar.
        """
        jar = jar if jar is not None else CookieJar()
        if store is None:
            store = CookieCredentialStore(jar)
        refresher = HttpTokenRefresher(config.refresh_url, jar, config.timeout_ms, transport)
        interceptor = AuthInterceptor(
            store,
            refresher=refresher,
            failure_handler=LoginRedirectHandler(config.login_url, store, redirect),
            cookies=httpx.Cookies(jar),
        )
        return cls(descriptors_from_config(config), interceptor, jar, transport)

    def get(self, name: str) -> httpx.AsyncClient:
        try:
            return self._clients[name]
        except KeyError:
            raise KeyError(f"Unknown API client: {name}")

    def __getitem__(self, name: str) -> httpx.AsyncClient:
        return self.get(name)

    def __contains__(self, name: str) -> bool:
        return name in self._clients

    @property
    def names(self):
        return list(self._clients)

    async def aclose(self) -> None:
        for client in self._clients.values():
            await client.aclose()
