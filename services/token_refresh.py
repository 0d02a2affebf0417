"""
Token Refresh Collaborators

The refresh endpoint rotates the access token cookie; nothing is parsed from
the response body. Success is judged solely by the response status.
"""
import logging
from http.cookiejar import CookieJar
from typing import Callable, Optional, Protocol

import httpx

from models.client_descriptor import DEFAULT_TIMEOUT_MS
from services.credential_store import ClearableCredentialStore

logger = logging.getLogger(__name__)


class TokenRefresher(Protocol):
    async def refresh(self) -> bool:
        ...


class AuthFailureHandler(Protocol):
    def on_auth_failure(self) -> None:
        ...


class HttpTokenRefresher:
    """
    POSTs (no body) to the refresh endpoint with the shared cookie jar.

    Set-Cookie headers on the response land in the same jar the credential
    store reads from.
    """

    def __init__(
        self,
        refresh_url: str,
        jar: Optional[CookieJar] = None,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.refresh_url = refresh_url
        self.jar = jar if jar is not None else CookieJar()
        self.timeout = timeout_ms / 1000.0
        self._transport = transport

    async def refresh(self) -> bool:
        try:
            async with httpx.AsyncClient(
                cookies=self.jar,
                timeout=self.timeout,
                transport=self._transport,
            ) as client:
                response = await client.post(self.refresh_url)
        except httpx.HTTPError as e:
            logger.warning(f"Token refresh request failed: url={self.refresh_url}, error={e}")
            return False

        if not response.is_success:
            logger.warning(f"Token refresh rejected: status={response.status_code}")
            return False

        logger.info("Token refresh succeeded")
        return True


class LoginRedirectHandler:
    """
    Clears the stored credentials and sends the user to the login entry point.

    `redirect` receives the login URL; without one the redirect is only logged
    (server-side execution has no browser to navigate).
    """

    def __init__(
        self,
        login_url: str,
        store: Optional[ClearableCredentialStore] = None,
        redirect: Optional[Callable[[str], None]] = None,
    ):
        self.login_url = login_url
        self.store = store
        self.redirect = redirect

    def on_auth_failure(self) -> None:
        if self.store is not None:
            self.store.clear()
        logger.warning(f"Authentication could not be recovered: redirecting to {self.login_url}")
        if self.redirect is not None:
            self.redirect(self.login_url)
