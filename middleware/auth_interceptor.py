"""
Auth Interceptor

Request side: inject `Authorization: Bearer <token>` and `x-tenant` from the
credential store unless the caller already set them. A stored token about to
expire is refreshed once before the request is sent.

A request may name its own credential store through the `credential_store`
extension (an incoming caller's token). Such a request never sees the shared
store's token or cookies and is not refreshed: a 401 is final.

Response side: a 401 triggers at most one refresh-and-resend per logical
request; every other failure is normalized into an ApiError and raised.
"""

import logging
from typing import AsyncGenerator, Generator, Optional

import httpx

from middleware.jwt_auth import decode_token_claims, is_claims_expired, is_token_near_expiry, token_preview
from models.api_errors import AuthError, error_from_response
from services.credential_store import CredentialStore
from services.token_refresh import AuthFailureHandler, TokenRefresher

logger = logging.getLogger(__name__)

# A logical request is refreshed and resent at most this many times
MAX_AUTH_RETRIES = 1

# httpx request extension holding a per-request CredentialStore
CREDENTIAL_STORE_EXTENSION = "credential_store"


class AuthInterceptor(httpx.Auth):
    """
    httpx auth flow shared by every backend client.

    The retry counter lives in the local scope of one `async_auth_flow` run,
    so it never leaks across requests and no request object is marked.
    """

    def __init__(
        self,
        store: CredentialStore,
        refresher: Optional[TokenRefresher] = None,
        failure_handler: Optional[AuthFailureHandler] = None,
        cookies: Optional[httpx.Cookies] = None,
        max_retries: int = MAX_AUTH_RETRIES,
    ):
        self.store = store
        self.refresher = refresher
        self.failure_handler = failure_handler
        self.cookies = cookies
        self.max_retries = max_retries

    def store_for(self, request: httpx.Request) -> CredentialStore:
        """The request's own credential store, else the shared one."""
        store = request.extensions.get(CREDENTIAL_STORE_EXTENSION)
        return store if store is not None else self.store

    def inject_headers(self, request: httpx.Request) -> None:
        """Attach bearer token and tenant headers without overwriting caller values."""
        if "Authorization" in request.headers:
            return

        token = self.store_for(request).get_access_token()
        if not token:
            return

        claims = decode_token_claims(token)
        if claims is None or is_claims_expired(claims):
            logger.debug(f"Stored token not injected (malformed or expired): token={token_preview(token)}")
            return

        request.headers["Authorization"] = f"Bearer {token}"
        if claims.tenant_code and "x-tenant" not in request.headers:
            request.headers["x-tenant"] = claims.tenant_code
        logger.debug(f"Injected auth headers: url={request.url}, tenant={claims.tenant_code}")

    def sync_auth_flow(self, request: httpx.Request) -> Generator[httpx.Request, httpx.Response, None]:
        raise RuntimeError("AuthInterceptor is only usable with httpx.AsyncClient")

    async def async_auth_flow(
        self, request: httpx.Request
    ) -> AsyncGenerator[httpx.Request, httpx.Response]:
        caller_scoped = self.store_for(request) is not self.store
        if caller_scoped:
            # Cookies in the shared jar belong to the shared identity
            request.headers.pop("Cookie", None)
        elif "Authorization" not in request.headers:
            await self._refresh_near_expiry(request)

        self.inject_headers(request)
        attempt = 0
        response = yield request
        await response.aread()

        if response.status_code == 401 and caller_scoped:
            logger.info(f"Received 401 for request-scoped credentials, not refreshing: url={request.url}")
            raise AuthError("Session expired. Please log in again.", 401, _safe_json(response))

        while response.status_code == 401 and attempt < self.max_retries:
            attempt += 1
            logger.info(f"Received 401, refreshing token: url={request.url}, attempt={attempt}")

            if not await self._refresh():
                self._handle_auth_failure()
                raise AuthError("Session expired. Please log in again.", 401, _safe_json(response))

            request = self._rebuild(request)
            response = yield request
            await response.aread()

        if response.is_error:
            error = error_from_response(response)
            logger.debug(f"Request failed: url={request.url}, status={error.status}, attempt={attempt}")
            raise error

    async def _refresh(self) -> bool:
        if self.refresher is None:
            return False
        try:
            return bool(await self.refresher.refresh())
        except Exception as e:
            logger.error(f"Token refresher raised: error={e}", exc_info=True)
            return False

    async def _refresh_near_expiry(self, request: httpx.Request) -> None:
        """Refresh a stored token that expires within the window; failure only logs."""
        if self.refresher is None:
            return
        token = self.store.get_access_token()
        if not is_token_near_expiry(token):
            return

        logger.info(f"Stored token near expiry, refreshing before send: url={request.url}")
        if not await self._refresh():
            logger.warning(f"Proactive token refresh failed: token={token_preview(token)}")
            return
        if self.cookies is not None:
            # Cookie header was built from the jar before the refresh rotated it
            request.headers.pop("Cookie", None)
            self.cookies.set_cookie_header(request)

    def _handle_auth_failure(self) -> None:
        if self.failure_handler is not None:
            self.failure_handler.on_auth_failure()

    def _rebuild(self, request: httpx.Request) -> httpx.Request:
        """
        Copy the original request for the resend.

        Authorization and Cookie are dropped and recomputed from the refreshed
        credentials.
        """
        headers = httpx.Headers(request.headers)
        headers.pop("Authorization", None)
        headers.pop("Cookie", None)

        retry = httpx.Request(
            request.method,
            request.url,
            headers=headers,
            content=request.content,
            extensions=dict(request.extensions),
        )
        if self.cookies is not None:
            self.cookies.set_cookie_header(retry)
        self.inject_headers(retry)
        return retry


def _safe_json(response: httpx.Response):
    try:
        return response.json()
    except ValueError:
        return None
