"""Tests for the company and user-preference services."""
import json

import httpx
import pytest

from models.api_errors import ClientError, ContextError
from services.company_service import CompanyService
from services.user_preference_service import UserPreferenceService


def _recording(seen, status=200, body=None):
    def handler(request):
        seen.append(request)
        return httpx.Response(status, json={"id": 9} if body is None else body)
    return handler


class TestCompanyService:
    @pytest.mark.asyncio
    async def test_current_company_uses_company_claim(self, build_clients, make_token):
        seen = []
        service = CompanyService(build_clients(_recording(seen), token=make_token()))

        result = await service.get_current_company()

        assert result == {"id": 9}
        assert str(seen[0].url) == "https://commerce.test/companys/9"
        assert seen[0].method == "GET"

    @pytest.mark.asyncio
    async def test_current_company_without_claim_raises(self, build_clients, make_token):
        seen = []
        token = make_token(companyId=None)
        service = CompanyService(build_clients(_recording(seen), token=token))

        with pytest.raises(ContextError):
            await service.get_current_company()
        assert seen == []

    @pytest.mark.asyncio
    async def test_update_profile_puts_payload(self, build_clients, make_token):
        seen = []
        service = CompanyService(build_clients(_recording(seen), token=make_token()))

        await service.update_company_profile(9, {"name": "Acme"})

        assert seen[0].method == "PUT"
        assert json.loads(seen[0].content) == {"name": "Acme"}

    @pytest.mark.asyncio
    async def test_profile_comes_from_auth_host(self, build_clients, make_token):
        seen = []
        service = CompanyService(build_clients(_recording(seen, body={"email": "a@b.test"}), token=make_token()))

        assert await service.get_profile() == {"email": "a@b.test"}
        assert seen[0].url.host == "auth.test"

    @pytest.mark.asyncio
    async def test_profile_failure_is_suppressed(self, build_clients, make_token):
        service = CompanyService(build_clients(_recording([], status=503), token=make_token()))

        assert await service.get_profile() is None


class TestUserPreferenceService:
    @pytest.mark.asyncio
    async def test_lookup_without_user_makes_no_request(self, build_clients):
        seen = []
        service = UserPreferenceService(build_clients(_recording(seen)))

        assert await service.get_preferences("orders") is None
        assert seen == []

    @pytest.mark.asyncio
    async def test_lookup_query_string(self, build_clients, make_token):
        seen = []
        service = UserPreferenceService(build_clients(_recording(seen, body={"columns": []}), token=make_token()))

        result = await service.get_preferences("orders", is_mobile=True)

        assert result == {"columns": []}
        assert seen[0].url.path == "/preferences/find"
        assert dict(seen[0].url.params) == {
            "userId": "7",
            "module": "orders",
            "tenantCode": "tenantA",
            "isMobile": "true",
        }

    @pytest.mark.asyncio
    async def test_lookup_failure_returns_none(self, build_clients, make_token):
        service = UserPreferenceService(build_clients(_recording([], status=500), token=make_token()))

        assert await service.get_preferences("orders") is None

    @pytest.mark.asyncio
    async def test_save_posts_identity_and_preferences(self, build_clients, make_token):
        seen = []
        service = UserPreferenceService(build_clients(_recording(seen), token=make_token()))

        await service.save_preferences("quotes", {"pageSize": 50})

        assert seen[0].method == "POST"
        assert str(seen[0].url) == "https://preference.test/preferences"
        assert json.loads(seen[0].content) == {
            "userId": 7,
            "companyId": 9,
            "module": "quotes",
            "isMobile": False,
            "preferences": {"pageSize": 50},
        }

    @pytest.mark.asyncio
    async def test_save_without_user_raises(self, build_clients):
        service = UserPreferenceService(build_clients(_recording([])))

        with pytest.raises(ContextError):
            await service.save_preferences("quotes", {})

    @pytest.mark.asyncio
    async def test_save_rejection_propagates(self, build_clients, make_token):
        service = UserPreferenceService(
            build_clients(_recording([], status=422, body={"message": "bad module"}), token=make_token())
        )

        with pytest.raises(ClientError) as exc_info:
            await service.save_preferences("quotes", {})
        assert exc_info.value.message == "bad module"
