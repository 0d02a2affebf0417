"""Tests for the service base call primitives and the service registry."""
import json
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from models.api_errors import ApiError, DecodeError, NetworkError, ServerError
from models.request_context import RequestContext
from services.base_service import BaseService
from services.company_service import CompanyService
from services.facet_service import FacetAggregationService
from services.registry import ServiceRegistry, service_key
from services.search_service import SearchService
from services.user_preference_service import UserPreferenceService


class OrdersService(BaseService):
    async def list_orders(self):
        return await self.call("/orders", method="GET")

    async def list_orders_safe(self):
        return await self.call_safe("/orders", method="GET")


def _json_handler(seen, status=200, body=None):
    def handler(request):
        seen.append(request)
        return httpx.Response(status, json={"ok": True} if body is None else body)
    return handler


class TestServiceRegistry:
    @pytest.mark.parametrize(
        "service_cls",
        [OrdersService, CompanyService, UserPreferenceService, SearchService, FacetAggregationService],
    )
    def test_get_instance_returns_same_object(self, service_cls, build_clients):
        registry = ServiceRegistry(build_clients(lambda r: httpx.Response(200)))

        first = service_cls.get_instance(registry)
        second = service_cls.get_instance(registry)

        assert first is second
        assert isinstance(first, service_cls)

    def test_instances_are_per_subclass(self, build_clients):
        registry = ServiceRegistry(build_clients(lambda r: httpx.Response(200)))

        assert OrdersService.get_instance(registry) is not CompanyService.get_instance(registry)
        assert len(registry) == 2

    def test_facet_service_shares_registered_search_service(self, build_clients):
        registry = ServiceRegistry(build_clients(lambda r: httpx.Response(200)), facet_max_concurrency=4)

        facets = FacetAggregationService.get_instance(registry)

        assert facets.search_service is SearchService.get_instance(registry)
        assert facets.max_concurrency == 4

    def test_key_is_module_qualified(self):
        assert service_key(OrdersService) == f"{__name__}.OrdersService"

    def test_default_registry_is_used(self, build_clients):
        registry = ServiceRegistry(build_clients(lambda r: httpx.Response(200)))
        with patch("services.base_service.get_service_registry", return_value=registry):
            assert OrdersService.get_instance() is registry.get(OrdersService)


class TestCallPrimitives:
    @pytest.mark.asyncio
    async def test_call_uses_default_client_and_resolved_context(self, build_clients, make_token):
        seen = []
        token = make_token(iss="tenantA", userId=7, companyId=9)
        service = OrdersService(build_clients(_json_handler(seen), token=token))

        result = await service.list_orders()

        assert result == {"ok": True}
        request = seen[0]
        assert request.url.host == "commerce.test"
        assert request.method == "GET"
        assert request.content == b""
        assert request.headers["Authorization"] == f"Bearer {token}"
        assert request.headers["x-tenant"] == "tenantA"
        assert request.headers["x-user-id"] == "7"
        assert request.headers["x-company-id"] == "9"

    @pytest.mark.asyncio
    async def test_post_sends_json_body(self, build_clients):
        seen = []
        service = OrdersService(build_clients(_json_handler(seen)))

        await service.call("/orders", {"sku": "A1"})

        assert seen[0].method == "POST"
        assert json.loads(seen[0].content) == {"sku": "A1"}
        assert seen[0].headers["Content-Type"] == "application/json"

    @pytest.mark.asyncio
    async def test_call_with_overrides_context_method_and_client(self, build_clients, make_token):
        seen = []
        service = OrdersService(build_clients(_json_handler(seen), token=make_token(iss="tenantA")))
        context = RequestContext(tenant_code="tenantB", access_token="server-token", origin="https://shop.test")

        await service.call_with("/users/me", context=context, method="PUT", client="auth")

        request = seen[0]
        assert request.url.host == "auth.test"
        assert request.method == "PUT"
        assert request.headers["Authorization"] == "Bearer server-token"
        assert request.headers["x-tenant"] == "tenantB"
        assert request.headers["origin"] == "https://shop.test"

    @pytest.mark.asyncio
    async def test_call_raises_normalized_error(self, build_clients):
        service = OrdersService(build_clients(_json_handler([], status=500, body={"message": "down"})))

        with pytest.raises(ServerError) as exc_info:
            await service.list_orders()

        assert exc_info.value.message == "down"

    @pytest.mark.asyncio
    async def test_transport_failure_is_network_error(self, build_clients):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        service = OrdersService(build_clients(handler))

        with pytest.raises(NetworkError) as exc_info:
            await service.list_orders()
        assert exc_info.value.status == 0

    @pytest.mark.asyncio
    async def test_timeout_is_network_error(self, build_clients):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        service = OrdersService(build_clients(handler))

        with pytest.raises(NetworkError):
            await service.list_orders()

    @pytest.mark.asyncio
    async def test_invalid_json_is_decode_error(self, build_clients):
        service = OrdersService(build_clients(lambda r: httpx.Response(200, text="<html>")))

        with pytest.raises(DecodeError):
            await service.list_orders()

    @pytest.mark.asyncio
    async def test_empty_body_returns_none(self, build_clients):
        service = OrdersService(build_clients(lambda r: httpx.Response(204)))

        assert await service.list_orders() is None

    @pytest.mark.asyncio
    async def test_unsupported_method_raises(self, build_clients):
        service = OrdersService(build_clients(_json_handler([])))

        with pytest.raises(ValueError):
            await service.call("/orders", method="PATCH")


class TestSafePrimitives:
    @pytest.mark.asyncio
    async def test_call_safe_returns_none_on_api_error(self, build_clients):
        service = OrdersService(build_clients(_json_handler([], status=500)))

        assert await service.list_orders_safe() is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", [
        ApiError("boom"),
        NetworkError("offline"),
        RuntimeError("unexpected"),
        KeyError("missing"),
        ValueError("bad value"),
    ])
    async def test_call_safe_swallows_any_exception(self, build_clients, error):
        service = OrdersService(build_clients(_json_handler([])))

        with patch.object(OrdersService, "_call_api", AsyncMock(side_effect=error)):
            assert await service.call_safe("/orders") is None
            assert await service.call_with_safe("/orders", method="GET") is None

    @pytest.mark.asyncio
    async def test_call_safe_survives_context_resolution_failure(self, build_clients):
        class BrokenProvider:
            def resolve(self):
                raise RuntimeError("store unavailable")

        service = OrdersService(build_clients(_json_handler([])), context_provider=BrokenProvider())

        assert await service.call_safe("/orders") is None

    @pytest.mark.asyncio
    async def test_call_safe_returns_payload_on_success(self, build_clients):
        service = OrdersService(build_clients(_json_handler([], body={"orders": []})))

        assert await service.list_orders_safe() == {"orders": []}
