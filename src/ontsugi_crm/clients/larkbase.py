"""Lark Base (Bitable) API client with cached tenant access token."""

import asyncio
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any, Literal, cast

import httpx
import structlog

from ontsugi_crm.config import get_settings
from ontsugi_crm.errors import LarkBaseError, RemoteApiError, RequestFailedError

logger = structlog.get_logger(__name__)

LARK_API_BASE = "https://open.larksuite.com/open-apis"
FEISHU_API_BASE = "https://open.feishu.cn/open-apis"

# Refresh the tenant token this long before Lark says it expires
TOKEN_SAFETY_MARGIN = timedelta(seconds=60)

MAX_PAGE_SIZE = 500


@dataclass
class LarkRecord:
    """A raw Lark Base record."""

    record_id: str
    fields: dict[str, Any] = field(default_factory=dict)
    created_time: int | None = None  # epoch milliseconds
    last_modified_time: int | None = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "LarkRecord":
        fields = data.get("fields")
        return cls(
            record_id=str(data.get("record_id") or data.get("id") or ""),
            fields=fields if isinstance(fields, dict) else {},
            created_time=data.get("created_time"),
            last_modified_time=data.get("last_modified_time"),
        )


@dataclass
class RecordPage:
    """One page of records from the list endpoint."""

    items: list[LarkRecord]
    total: int
    has_more: bool
    page_token: str | None = None


class LarkBaseClient:
    """Async client for one Lark Base table."""

    def __init__(
        self,
        app_id: str | None = None,
        app_secret: str | None = None,
        base_id: str | None = None,
        table_id: str | None = None,
        region: Literal["global", "china"] | None = None,
        timeout: float | None = None,
    ):
        settings = get_settings()
        self._app_id = app_id or settings.lark_app_id
        self._app_secret = app_secret or settings.lark_app_secret.get_secret_value()
        self.base_id = base_id or settings.lark_base_id
        self.table_id = table_id or settings.lark_table_id
        self.region = region or settings.lark_region
        self.api_base = FEISHU_API_BASE if self.region == "china" else LARK_API_BASE
        self._timeout = timeout or settings.lark_timeout

        self._access_token: str | None = None
        self._token_expires_at: datetime | None = None

        self._client: httpx.AsyncClient | None = None
        self._lock = asyncio.Lock()

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.api_base,
                timeout=httpx.Timeout(self._timeout),
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "LarkBaseClient":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    @property
    def _records_path(self) -> str:
        return f"/bitable/v1/apps/{self.base_id}/tables/{self.table_id}/records"

    # === Authentication ===

    async def fetch_tenant_token(self) -> str:
        """Request a fresh tenant access token."""
        client = await self._get_client()
        try:
            response = await client.post(
                "/auth/v3/tenant_access_token/internal",
                json={"app_id": self._app_id, "app_secret": self._app_secret},
            )
        except httpx.RequestError as e:
            raise RequestFailedError(f"Token request failed: {e}") from e

        if response.status_code >= 400:
            raise RemoteApiError(
                f"Failed to get access token: {response.status_code}",
                status_code=response.status_code,
            )

        data = self._parse_json(response)
        if data.get("code", 0) != 0 or "tenant_access_token" not in data:
            raise RemoteApiError(
                str(data.get("msg") or "Failed to get access token"),
                status_code=response.status_code,
                details={"lark_code": data.get("code")},
            )

        self._access_token = str(data["tenant_access_token"])
        expires_in = int(data.get("expire", 0))
        self._token_expires_at = datetime.now(UTC) + timedelta(seconds=expires_in)
        logger.debug("tenant_token_refreshed", expires_in=expires_in)
        return self._access_token

    async def _ensure_authenticated(self) -> str:
        """Return a valid access token, refreshing it when stale."""
        async with self._lock:
            if (
                self._access_token is None
                or self._token_expires_at is None
                or datetime.now(UTC) + TOKEN_SAFETY_MARGIN >= self._token_expires_at
            ):
                return await self.fetch_tenant_token()
            return self._access_token

    # === Generic Request Methods ===

    @staticmethod
    def _parse_json(response: httpx.Response) -> dict[str, Any]:
        try:
            data_raw = response.json() if response.content else {}
        except ValueError as e:
            raise RemoteApiError(
                f"API error: {response.status_code}",
                status_code=response.status_code,
                details={"raw": response.text[:500] if response.text else "empty response"},
            ) from e
        if not isinstance(data_raw, dict):
            raise RemoteApiError(
                "Invalid response format", status_code=response.status_code
            )
        return cast(dict[str, Any], data_raw)

    async def _request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Make an authenticated API request and unwrap the ``data`` envelope."""
        token = await self._ensure_authenticated()
        client = await self._get_client()

        try:
            response = await client.request(
                method=method,
                url=path,
                params=params,
                json=json,
                headers={
                    "Authorization": f"Bearer {token}",
                    "Content-Type": "application/json; charset=utf-8",
                },
            )
        except httpx.RequestError as e:
            logger.warning("lark_request_failed", method=method, path=path, error=str(e))
            raise RequestFailedError(f"Request failed: {e}") from e

        data = self._parse_json(response)
        code = data.get("code", 0 if response.status_code < 400 else -1)
        if code != 0:
            logger.warning(
                "lark_api_error",
                method=method,
                path=path,
                status=response.status_code,
                lark_code=code,
            )
            raise RemoteApiError(
                str(data.get("msg") or f"API error: {response.status_code}"),
                status_code=response.status_code,
                details={"lark_code": code},
            )

        payload = data.get("data")
        return payload if isinstance(payload, dict) else {}

    # === Record Endpoints ===

    async def list_records(
        self, page_size: int = 20, page_token: str | None = None
    ) -> RecordPage:
        """List one page of records."""
        params: dict[str, Any] = {"page_size": min(max(page_size, 1), MAX_PAGE_SIZE)}
        if page_token:
            params["page_token"] = page_token

        data = await self._request("GET", self._records_path, params=params)
        items = [LarkRecord.from_api(item) for item in data.get("items") or []]
        return RecordPage(
            items=items,
            total=int(data.get("total", len(items))),
            has_more=bool(data.get("has_more", False)),
            page_token=data.get("page_token"),
        )

    async def iter_all_records(
        self, page_size: int = MAX_PAGE_SIZE
    ) -> AsyncIterator[LarkRecord]:
        """Yield every record, following page tokens."""
        page_token: str | None = None
        while True:
            page = await self.list_records(page_size=page_size, page_token=page_token)
            for record in page.items:
                yield record
            if not page.has_more or not page.page_token:
                break
            page_token = page.page_token

    async def get_record(self, record_id: str) -> LarkRecord:
        """Get record by ID."""
        data = await self._request("GET", f"{self._records_path}/{record_id}")
        return LarkRecord.from_api(data.get("record") or {})

    async def create_record(self, fields: dict[str, Any]) -> LarkRecord:
        """Create a new record."""
        data = await self._request("POST", self._records_path, json={"fields": fields})
        return LarkRecord.from_api(data.get("record") or {})

    async def update_record(self, record_id: str, fields: dict[str, Any]) -> LarkRecord:
        """Update fields of a record."""
        data = await self._request(
            "PUT", f"{self._records_path}/{record_id}", json={"fields": fields}
        )
        return LarkRecord.from_api(data.get("record") or {})

    async def delete_record(self, record_id: str) -> None:
        """Delete a record."""
        await self._request("DELETE", f"{self._records_path}/{record_id}")

    async def batch_create_records(
        self, records: list[dict[str, Any]]
    ) -> list[LarkRecord]:
        """Create several records; each entry is a fields mapping."""
        data = await self._request(
            "POST",
            f"{self._records_path}/batch_create",
            json={"records": [{"fields": fields} for fields in records]},
        )
        return [LarkRecord.from_api(item) for item in data.get("records") or []]

    async def batch_update_records(
        self, records: list[tuple[str, dict[str, Any]]]
    ) -> list[LarkRecord]:
        """Update several records given as (record_id, fields) pairs."""
        data = await self._request(
            "POST",
            f"{self._records_path}/batch_update",
            json={
                "records": [
                    {"record_id": record_id, "fields": fields}
                    for record_id, fields in records
                ]
            },
        )
        return [LarkRecord.from_api(item) for item in data.get("records") or []]

    async def batch_delete_records(self, record_ids: list[str]) -> None:
        """Delete several records."""
        await self._request(
            "POST",
            f"{self._records_path}/batch_delete",
            json={"records": record_ids},
        )


__all__ = [
    "LarkBaseClient",
    "LarkBaseError",
    "LarkRecord",
    "RecordPage",
    "RemoteApiError",
    "RequestFailedError",
]
