"""Tests for the search HTTP routes using FastAPI's TestClient."""
import json

import httpx
import pytest
from fastapi.testclient import TestClient

from main import app
from routers.search import get_registry, product_identifier
from services.credential_store import InMemoryCredentialStore
from services.registry import ServiceRegistry


class SearchHost:
    def __init__(self, status=200, body=None):
        self.status = status
        self.body = body
        self.requests = []

    def __call__(self, request):
        self.requests.append(request)
        return httpx.Response(self.status, json=self.body)


@pytest.fixture
def client_for(build_clients):
    def _client(host, **client_options):
        registry = ServiceRegistry(build_clients(host, **client_options))
        app.dependency_overrides[get_registry] = lambda: registry
        return TestClient(app)

    yield _client
    app.dependency_overrides.clear()


class TestProductIdentifier:
    def test_numeric_ids_are_padded(self):
        assert product_identifier("12390") == "Prod0000012390"

    def test_index_names_pass_through(self):
        assert product_identifier("Prod0000012390") == "Prod0000012390"


class TestProductRoute:
    def test_product_found(self, client_for, make_token):
        host = SearchHost(body={"body": {"found": True, "_source": {"product_name": "Drill"}}})
        client = client_for(host)
        token = make_token(iss="TenantA")

        response = client.get("/api/opensearch/products/12390", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 200
        assert response.json() == {"success": True, "data": {"product_name": "Drill"}}
        assert "s-maxage=3600" in response.headers["cache-control"]
        envelope = json.loads(host.requests[0].content)
        assert envelope == {"index": "tenantapgandproducts", "queryType": "get", "body": "Prod0000012390"}
        assert host.requests[0].headers["Authorization"] == f"Bearer {token}"
        assert host.requests[0].headers["x-tenant"] == "TenantA"

    def test_index_query_parameter_wins(self, client_for):
        host = SearchHost(body={"body": {"found": True, "_source": {}}})
        client = client_for(host)

        response = client.get("/api/opensearch/products/Prod0000000007?index=customindex")

        assert response.status_code == 200
        assert json.loads(host.requests[0].content)["index"] == "customindex"

    def test_tenant_header_gives_default_index(self, client_for):
        host = SearchHost(body={"body": {"found": True, "_source": {}}})
        client = client_for(host)

        client.get("/api/opensearch/products/7", headers={"x-tenant": "ACME"})

        assert json.loads(host.requests[0].content)["index"] == "acmepgandproducts"

    def test_missing_index_is_400(self, client_for):
        host = SearchHost()
        client = client_for(host)

        response = client.get("/api/opensearch/products/7")

        assert response.status_code == 400
        assert host.requests == []

    def test_not_found_is_404(self, client_for):
        client = client_for(SearchHost(body={"body": {"found": False}}))

        response = client.get("/api/opensearch/products/7?index=idx")

        assert response.status_code == 404
        assert response.json()["productId"] == "7"

    def test_backend_error_status_is_propagated(self, client_for):
        client = client_for(SearchHost(status=503, body={"message": "unavailable"}))

        response = client.get("/api/opensearch/products/7?index=idx")

        assert response.status_code == 503
        assert response.json()["success"] is False
        assert "unavailable" in response.json()["error"]


class TestSmartFilterRoute:
    def test_static_facets_only(self, client_for):
        aggregations = {
            "matching": {"doc_count": 3},
            "brand_filter_context": {"brands": {"buckets": [{"key": "Acme", "doc_count": 3}]}},
        }
        client = client_for(SearchHost(body={"body": {"hits": {"total": 0, "hits": []}, "aggregations": aggregations}}))

        response = client.post("/api/smart-filters", json={"index": "idx", "active_filters": {"brand": "Acme"}})

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["total_hits"] == 3
        assert body["brands"] == [{"value": "Acme", "count": 3}]
        assert body["facets"] == {}
        assert body["partial_failures"] == []

    def test_discovery_failure_is_error_response(self, client_for):
        client = client_for(SearchHost(status=500, body={"message": "boom"}))

        response = client.post("/api/smart-filters", json={"index": "idx"})

        assert response.status_code == 500
        assert response.json() == {"success": False, "error": "boom"}

    def test_invalid_body_is_422(self, client_for):
        client = client_for(SearchHost())

        response = client.post("/api/smart-filters", json={"index": ""})

        assert response.status_code == 422


class ScriptedHost:
    """Answers with `responses` in order, then 200 with an empty product."""

    def __init__(self, responses):
        self.responses = list(responses)
        self.requests = []

    def __call__(self, request):
        self.requests.append(request)
        if self.responses:
            status, body = self.responses.pop(0)
        else:
            status, body = 200, {"body": {"found": True, "_source": {}}}
        return httpx.Response(status, json=body)


class TestCallerIdentity:
    def test_expired_caller_token_sends_no_authorization(self, client_for, make_token):
        host = ScriptedHost([])
        client = client_for(host, token=make_token(sub="server", iss="ServerTenant"))
        caller = make_token(sub="caller", iss="TenantA", exp_offset=-60)

        response = client.get("/api/opensearch/products/7?index=idx", headers={"Authorization": f"Bearer {caller}"})

        assert response.status_code == 200
        assert "authorization" not in host.requests[0].headers
        assert host.requests[0].headers["x-tenant"] == "TenantA"

    def test_caller_401_is_not_retried_with_server_credentials(self, client_for, make_token, fake_refresher):
        server_store = InMemoryCredentialStore(make_token(sub="server", iss="ServerTenant"))
        refresher = fake_refresher(server_store, make_token(sub="rotated"))
        host = ScriptedHost([(401, {"message": "token revoked"})])
        client = client_for(host, store=server_store, refresher=refresher)
        caller = make_token(sub="caller", iss="TenantA")

        response = client.get("/api/opensearch/products/7?index=idx", headers={"Authorization": f"Bearer {caller}"})

        assert response.status_code == 401
        assert response.json()["success"] is False
        assert len(host.requests) == 1
        assert host.requests[0].headers["authorization"] == f"Bearer {caller}"
        assert refresher.calls == 0

    def test_anonymous_smart_filters_never_carry_server_token(self, client_for, make_token):
        host = ScriptedHost([(200, {"body": {"hits": {"total": 0, "hits": []}, "aggregations": {}}})])
        client = client_for(host, token=make_token(sub="server"))

        response = client.post("/api/smart-filters", json={"index": "idx"})

        assert response.status_code == 200
        assert "authorization" not in host.requests[0].headers


def test_health():
    assert TestClient(app).get("/health").json() == {"status": "ok"}
