"""Shared fixtures: signed test tokens and ApiClients backed by httpx.MockTransport."""
import time

import httpx
import jwt as pyjwt
import pytest

from middleware.auth_interceptor import AuthInterceptor
from models.client_descriptor import ClientDescriptor
from services.client_factory import AUTH, CATALOG, CORE_COMMERCE, PREFERENCE, SEARCH, ApiClients
from services.credential_store import InMemoryCredentialStore

TEST_SECRET = "test-secret-that-is-at-least-32-characters-long"

TEST_DESCRIPTORS = [
    ClientDescriptor(name=AUTH, base_url="https://auth.test"),
    ClientDescriptor(name=CATALOG, base_url="https://catalog.test"),
    ClientDescriptor(name=CORE_COMMERCE, base_url="https://commerce.test"),
    ClientDescriptor(name=SEARCH, base_url="https://search.test/invocations"),
    ClientDescriptor(name=PREFERENCE, base_url="https://preference.test"),
]


def generate_test_token(exp_offset=300, **claims) -> str:
    """Signed JWT with sensible defaults; exp_offset=None omits `exp`."""
    payload = {"sub": "user-1", "iss": "tenantA", "userId": 7, "companyId": 9}
    if exp_offset is not None:
        payload["exp"] = int(time.time()) + exp_offset
    payload.update(claims)
    return pyjwt.encode(payload, TEST_SECRET, algorithm="HS256")


class FakeRefresher:
    """Refresher that optionally swaps the store's token and records calls."""

    def __init__(self, store=None, new_token=None, succeed=True):
        self.store = store
        self.new_token = new_token
        self.succeed = succeed
        self.calls = 0

    async def refresh(self) -> bool:
        self.calls += 1
        if self.succeed and self.store is not None and self.new_token:
            self.store.set_token(self.new_token)
        return self.succeed


class RecordingFailureHandler:
    def __init__(self):
        self.calls = 0

    def on_auth_failure(self) -> None:
        self.calls += 1


@pytest.fixture
def make_token():
    return generate_test_token


@pytest.fixture
def build_clients():
    """Factory: ApiClients whose every request is answered by `handler`."""
    created = []

    def _build(handler, token=None, store=None, refresher=None, failure_handler=None):
        store = store if store is not None else InMemoryCredentialStore(token)
        interceptor = AuthInterceptor(store, refresher=refresher, failure_handler=failure_handler)
        clients = ApiClients(TEST_DESCRIPTORS, interceptor, transport=httpx.MockTransport(handler))
        created.append(clients)
        return clients

    return _build


@pytest.fixture
def fake_refresher():
    return FakeRefresher


@pytest.fixture
def failure_handler():
    return RecordingFailureHandler()
