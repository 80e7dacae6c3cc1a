"""DialerClient against a patched ``httpx.AsyncClient.post``."""

from unittest.mock import AsyncMock, patch

import httpx
import pytest

from leadcrm.core.exceptions import ExternalServiceError
from leadcrm.services.dialer_client import DialerClient, normalize_phone

BASE_URL = "https://dialer.test/api"


def _response(status_code: int = 200, json=None, path: str = "/playbook/create") -> httpx.Response:
    return httpx.Response(
        status_code,
        json=json if json is not None else {},
        request=httpx.Request("POST", f"{BASE_URL}{path}"),
    )


@pytest.fixture
def client() -> DialerClient:
    return DialerClient(
        base_url=BASE_URL + "/",
        api_key="secret-key",
        timeout=5,
        module_id="contacts-module",
        company_tag="LeadCRM",
    )


def test_normalize_phone():
    assert normalize_phone(" +6591234567 ") == "6591234567"
    assert normalize_phone("6591234567") == "6591234567"


class TestPlaybooks:
    @pytest.mark.asyncio
    async def test_create_playbook_posts_phone_rules(self, client):
        with patch("httpx.AsyncClient.post", new_callable=AsyncMock) as post:
            post.return_value = _response(
                json={"data": {"createPlaybook": {"_id": "pb-1", "name": "Agent 1"}}}
            )
            playbook = await client.create_playbook("Agent 1", ["+6591234567", "6598765432"])

        assert playbook["_id"] == "pb-1"
        url = post.call_args.args[0]
        assert url == f"{BASE_URL}/playbook/create"
        assert post.call_args.kwargs["headers"] == {"apikey": "secret-key"}
        rules = post.call_args.kwargs["json"]["variables"]["payload"]["rules"]
        phones, company = rules["filters"]["and"]
        assert [c["value"] for c in phones["or"]] == ["6591234567", "6598765432"]
        assert company == {"key": "company", "condition": "IS", "value": "LeadCRM"}

    @pytest.mark.asyncio
    async def test_create_playbook_without_id(self, client):
        with patch("httpx.AsyncClient.post", new_callable=AsyncMock) as post:
            post.return_value = _response(json={"data": {"createPlaybook": None}})
            with pytest.raises(ExternalServiceError):
                await client.create_playbook("Agent 1")

    @pytest.mark.asyncio
    async def test_start_and_stop(self, client):
        with patch("httpx.AsyncClient.post", new_callable=AsyncMock) as post:
            post.return_value = _response(json={"data": {"startPlaybook": True}})
            assert await client.start_playbook("pb-1") is True
            assert await client.stop_playbook("pb-1") is True

        paths = [call.args[0] for call in post.call_args_list]
        assert paths == [f"{BASE_URL}/playbook/start", f"{BASE_URL}/playbook/stop"]


class TestContacts:
    @pytest.mark.asyncio
    async def test_create_contact(self, client):
        with patch("httpx.AsyncClient.post", new_callable=AsyncMock) as post:
            post.return_value = _response(json={"data": {"createContact": {"_id": "c-1"}}})
            contact = await client.create_contact("Tan", "LeadCRM", "+6591234567", "Facebook")

        assert contact == {"_id": "c-1"}
        variables = post.call_args.kwargs["json"]["variables"]
        assert variables["module"] == "contacts-module"
        assert {"key": "phoneNumber", "value": "6591234567"} in variables["properties"]

    @pytest.mark.asyncio
    async def test_create_contact_without_id(self, client):
        with patch("httpx.AsyncClient.post", new_callable=AsyncMock) as post:
            post.return_value = _response(json={"data": {"createContact": {}}})
            with pytest.raises(ExternalServiceError, match="No contact ID"):
                await client.create_contact("Tan", "LeadCRM", "+6591234567", "Facebook")

    @pytest.mark.asyncio
    async def test_delete_nothing_skips_the_call(self, client):
        with patch("httpx.AsyncClient.post", new_callable=AsyncMock) as post:
            assert await client.delete_contacts([]) is None
        post.assert_not_called()


class TestFailures:
    @pytest.mark.asyncio
    async def test_graphql_errors(self, client):
        with patch("httpx.AsyncClient.post", new_callable=AsyncMock) as post:
            post.return_value = _response(json={"errors": [{"message": "Playbook not found"}]})
            with pytest.raises(ExternalServiceError, match="Playbook not found"):
                await client.get_playbook("pb-404")

    @pytest.mark.asyncio
    async def test_http_error_status(self, client):
        with patch("httpx.AsyncClient.post", new_callable=AsyncMock) as post:
            post.return_value = _response(500, json={"message": "boom"})
            with pytest.raises(ExternalServiceError, match="500"):
                await client.start_playbook("pb-1")

    @pytest.mark.asyncio
    async def test_timeout(self, client):
        with patch("httpx.AsyncClient.post", new_callable=AsyncMock) as post:
            post.side_effect = httpx.ReadTimeout("timed out")
            with pytest.raises(ExternalServiceError, match="timed out"):
                await client.stop_playbook("pb-1")

    @pytest.mark.asyncio
    async def test_unreachable(self, client):
        with patch("httpx.AsyncClient.post", new_callable=AsyncMock) as post:
            post.side_effect = httpx.ConnectError("refused")
            with pytest.raises(ExternalServiceError, match="unavailable"):
                await client.stop_playbook("pb-1")

    @pytest.mark.asyncio
    async def test_not_configured(self):
        client = DialerClient(base_url="", api_key="")
        with patch("httpx.AsyncClient.post", new_callable=AsyncMock) as post:
            with pytest.raises(ExternalServiceError, match="not configured"):
                await client.start_playbook("pb-1")
        post.assert_not_called()
