"""Tests for the Lark Base API client."""

from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from ontsugi_crm.clients.larkbase import (
    FEISHU_API_BASE,
    LARK_API_BASE,
    LarkBaseClient,
    LarkRecord,
)
from ontsugi_crm.errors import ErrorCode, RemoteApiError, RequestFailedError


@pytest.fixture
def client():
    """Create a LarkBaseClient instance."""
    return LarkBaseClient(
        app_id="cli_app",
        app_secret="secret",
        base_id="bascnBase",
        table_id="tblTable",
    )


def authenticated(client):
    client._access_token = "t-cached"
    client._token_expires_at = datetime.now(UTC) + timedelta(hours=1)
    return client


class TestLarkBaseClientInit:
    """Tests for LarkBaseClient initialization."""

    def test_init_with_explicit_params(self, client):
        """Test initialization with explicit parameters."""
        assert client._app_id == "cli_app"
        assert client._app_secret == "secret"
        assert client.base_id == "bascnBase"
        assert client.table_id == "tblTable"
        assert client.api_base == LARK_API_BASE

    def test_init_from_settings(self):
        """Test that missing parameters fall back to settings."""
        client = LarkBaseClient()

        assert client._app_id == "cli_test_app"
        assert client.table_id == "tblTestTable"

    def test_china_region_uses_feishu(self):
        """Test that the china region talks to open.feishu.cn."""
        client = LarkBaseClient(app_id="a", app_secret="b", region="china")

        assert client.api_base == FEISHU_API_BASE

    def test_records_path(self, client):
        """Test the records endpoint path."""
        assert client._records_path == "/bitable/v1/apps/bascnBase/tables/tblTable/records"


class TestAuthentication:
    """Tests for tenant token handling."""

    @pytest.mark.asyncio
    async def test_fetch_tenant_token(self, client, token_response):
        """Test that a token is fetched and cached with its expiry."""
        with patch.object(client, "_get_client") as mock_get:
            mock_http = AsyncMock()
            mock_http.post = AsyncMock(return_value=token_response)
            mock_get.return_value = mock_http

            token = await client.fetch_tenant_token()

            assert token == "t-test-token"
            assert client._access_token == "t-test-token"
            assert client._token_expires_at > datetime.now(UTC) + timedelta(hours=1)
            _, kwargs = mock_http.post.call_args
            assert kwargs["json"] == {"app_id": "cli_app", "app_secret": "secret"}

    @pytest.mark.asyncio
    async def test_cached_token_is_reused(self, client):
        """Test that a fresh token does not trigger a refresh."""
        authenticated(client)

        with patch.object(client, "fetch_tenant_token", AsyncMock()) as mock_fetch:
            token = await client._ensure_authenticated()

            assert token == "t-cached"
            mock_fetch.assert_not_called()

    @pytest.mark.asyncio
    async def test_token_inside_safety_margin_is_refreshed(self, client):
        """Test that a token expiring within 60 seconds is refreshed."""
        client._access_token = "t-old"
        client._token_expires_at = datetime.now(UTC) + timedelta(seconds=30)

        with patch.object(
            client, "fetch_tenant_token", AsyncMock(return_value="t-new")
        ) as mock_fetch:
            token = await client._ensure_authenticated()

            assert token == "t-new"
            mock_fetch.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_token_error_code(self, client, response_factory):
        """Test that a non-zero code from the token endpoint raises."""
        with patch.object(client, "_get_client") as mock_get:
            mock_http = AsyncMock()
            mock_http.post = AsyncMock(
                return_value=response_factory({"code": 10003, "msg": "invalid param"})
            )
            mock_get.return_value = mock_http

            with pytest.raises(RemoteApiError) as exc_info:
                await client.fetch_tenant_token()

            assert exc_info.value.details["lark_code"] == 10003
            assert "invalid param" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_token_http_error(self, client, response_factory):
        """Test that an HTTP error status from the token endpoint raises."""
        with patch.object(client, "_get_client") as mock_get:
            mock_http = AsyncMock()
            mock_http.post = AsyncMock(return_value=response_factory({}, status_code=500))
            mock_get.return_value = mock_http

            with pytest.raises(RemoteApiError) as exc_info:
                await client.fetch_tenant_token()

            assert exc_info.value.status_code == 500


class TestRequests:
    """Tests for record endpoint requests."""

    @pytest.mark.asyncio
    async def test_list_records(self, client, response_factory):
        """Test listing one page of records."""
        authenticated(client)
        payload = {
            "code": 0,
            "msg": "success",
            "data": {
                "items": [
                    {"record_id": "rec1", "fields": {"案件名": "A"}, "created_time": 1},
                    {"record_id": "rec2", "fields": {"案件名": "B"}},
                ],
                "total": 5,
                "has_more": True,
                "page_token": "next-token",
            },
        }

        with patch.object(client, "_get_client") as mock_get:
            mock_http = AsyncMock()
            mock_http.request = AsyncMock(return_value=response_factory(payload))
            mock_get.return_value = mock_http

            page = await client.list_records(page_size=2)

            assert [r.record_id for r in page.items] == ["rec1", "rec2"]
            assert page.items[0].fields == {"案件名": "A"}
            assert page.items[0].created_time == 1
            assert page.total == 5
            assert page.has_more is True
            assert page.page_token == "next-token"

            _, kwargs = mock_http.request.call_args
            assert kwargs["method"] == "GET"
            assert kwargs["params"] == {"page_size": 2}
            assert kwargs["headers"]["Authorization"] == "Bearer t-cached"

    @pytest.mark.asyncio
    async def test_list_records_clamps_page_size(self, client, response_factory):
        """Test that page size is capped at 500."""
        authenticated(client)

        with patch.object(client, "_get_client") as mock_get:
            mock_http = AsyncMock()
            mock_http.request = AsyncMock(
                return_value=response_factory({"code": 0, "data": {"items": []}})
            )
            mock_get.return_value = mock_http

            await client.list_records(page_size=1000)

            _, kwargs = mock_http.request.call_args
            assert kwargs["params"]["page_size"] == 500

    @pytest.mark.asyncio
    async def test_iter_all_records_follows_page_tokens(self, client):
        """Test that iteration walks every page."""
        from ontsugi_crm.clients.larkbase import RecordPage

        pages = [
            RecordPage(items=[LarkRecord("rec1")], total=3, has_more=True, page_token="p2"),
            RecordPage(items=[LarkRecord("rec2"), LarkRecord("rec3")], total=3, has_more=False),
        ]

        with patch.object(client, "list_records", AsyncMock(side_effect=pages)) as mock_list:
            ids = [record.record_id async for record in client.iter_all_records()]

            assert ids == ["rec1", "rec2", "rec3"]
            assert mock_list.await_args_list[1].kwargs["page_token"] == "p2"

    @pytest.mark.asyncio
    async def test_update_record_uses_put(self, client, response_factory):
        """Test that updates are sent as PUT with a fields body."""
        authenticated(client)
        payload = {"code": 0, "data": {"record": {"record_id": "rec1", "fields": {"請求済": True}}}}

        with patch.object(client, "_get_client") as mock_get:
            mock_http = AsyncMock()
            mock_http.request = AsyncMock(return_value=response_factory(payload))
            mock_get.return_value = mock_http

            record = await client.update_record("rec1", {"請求済": True})

            assert record.record_id == "rec1"
            _, kwargs = mock_http.request.call_args
            assert kwargs["method"] == "PUT"
            assert kwargs["url"].endswith("/records/rec1")
            assert kwargs["json"] == {"fields": {"請求済": True}}

    @pytest.mark.asyncio
    async def test_batch_create_records(self, client, response_factory):
        """Test that batch creation wraps each fields mapping."""
        authenticated(client)
        payload = {"code": 0, "data": {"records": [{"record_id": "r1"}, {"record_id": "r2"}]}}

        with patch.object(client, "_get_client") as mock_get:
            mock_http = AsyncMock()
            mock_http.request = AsyncMock(return_value=response_factory(payload))
            mock_get.return_value = mock_http

            records = await client.batch_create_records([{"案件名": "A"}, {"案件名": "B"}])

            assert [r.record_id for r in records] == ["r1", "r2"]
            _, kwargs = mock_http.request.call_args
            assert kwargs["url"].endswith("/records/batch_create")
            assert kwargs["json"] == {
                "records": [{"fields": {"案件名": "A"}}, {"fields": {"案件名": "B"}}]
            }

    @pytest.mark.asyncio
    async def test_batch_update_and_delete(self, client, response_factory):
        """Test batch update pairs and batch delete ids."""
        authenticated(client)

        with patch.object(client, "_get_client") as mock_get:
            mock_http = AsyncMock()
            mock_http.request = AsyncMock(
                return_value=response_factory(
                    {"code": 0, "data": {"records": [{"record_id": "r1"}]}}
                )
            )
            mock_get.return_value = mock_http

            updated = await client.batch_update_records([("r1", {"請求済": True})])
            await client.batch_delete_records(["r2", "r3"])

            assert [r.record_id for r in updated] == ["r1"]
            update_call, delete_call = mock_http.request.call_args_list
            assert update_call.kwargs["url"].endswith("/records/batch_update")
            assert update_call.kwargs["json"] == {
                "records": [{"record_id": "r1", "fields": {"請求済": True}}]
            }
            assert delete_call.kwargs["url"].endswith("/records/batch_delete")
            assert delete_call.kwargs["json"] == {"records": ["r2", "r3"]}

    @pytest.mark.asyncio
    async def test_remote_error_code(self, client, response_factory):
        """Test that a non-zero envelope code raises RemoteApiError."""
        authenticated(client)

        with patch.object(client, "_get_client") as mock_get:
            mock_http = AsyncMock()
            mock_http.request = AsyncMock(
                return_value=response_factory(
                    {"code": 1254043, "msg": "RecordIdNotFound"}, status_code=200
                )
            )
            mock_get.return_value = mock_http

            with pytest.raises(RemoteApiError) as exc_info:
                await client.get_record("missing")

            assert exc_info.value.code == ErrorCode.REMOTE_API_ERROR
            assert exc_info.value.details == {"lark_code": 1254043}
            assert exc_info.value.status_code == 200

    @pytest.mark.asyncio
    async def test_non_json_error_body(self, client):
        """Test that a non-JSON body raises RemoteApiError with the status."""
        authenticated(client)
        response = MagicMock()
        response.status_code = 502
        response.content = b"<html>Bad Gateway</html>"
        response.text = "<html>Bad Gateway</html>"
        response.json.side_effect = ValueError("not json")

        with patch.object(client, "_get_client") as mock_get:
            mock_http = AsyncMock()
            mock_http.request = AsyncMock(return_value=response)
            mock_get.return_value = mock_http

            with pytest.raises(RemoteApiError) as exc_info:
                await client.delete_record("rec1")

            assert exc_info.value.status_code == 502
            assert "Bad Gateway" in exc_info.value.details["raw"]

    @pytest.mark.asyncio
    async def test_transport_error(self, client):
        """Test that transport failures raise RequestFailedError without retrying."""
        authenticated(client)

        with patch.object(client, "_get_client") as mock_get:
            mock_http = AsyncMock()
            mock_http.request = AsyncMock(side_effect=httpx.ConnectError("refused"))
            mock_get.return_value = mock_http

            with pytest.raises(RequestFailedError) as exc_info:
                await client.get_record("rec1")

            assert exc_info.value.code == ErrorCode.REQUEST_FAILED
            assert mock_http.request.await_count == 1


class TestContextManager:
    """Tests for client lifecycle."""

    @pytest.mark.asyncio
    async def test_close_releases_http_client(self, client, mock_httpx_client):
        """Test that leaving the context closes the HTTP client."""
        client._client = mock_httpx_client

        async with client:
            pass

        mock_httpx_client.aclose.assert_awaited_once()
        assert client._client is None
