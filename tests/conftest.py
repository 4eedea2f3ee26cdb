"""Pytest configuration and fixtures."""

import os
from datetime import date, datetime
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

# Set test environment variables before importing settings
os.environ.setdefault("LARK_APP_ID", "cli_test_app")
os.environ.setdefault("LARK_APP_SECRET", "test-secret")
os.environ.setdefault("LARK_BASE_ID", "bascnTestBase")
os.environ.setdefault("LARK_TABLE_ID", "tblTestTable")

from ontsugi_crm.errors import CRMError  # noqa: E402
from ontsugi_crm.models import (  # noqa: E402
    JST,
    ClientInfo,
    ClientSummary,
    ContentType,
    DeliveryStatus,
    LineItem,
)

FIXED_NOW = datetime(2025, 1, 20, 10, 30, tzinfo=JST)


@pytest.fixture
def fixed_now():
    return FIXED_NOW


@pytest.fixture
def clock():
    """A clock frozen at 2025-01-20 10:30 JST."""
    return lambda: FIXED_NOW


@pytest.fixture
def tax_rate():
    return Decimal("0.10")


@pytest.fixture
def client_directory():
    """Client master data independent of the packaged YAML."""
    return {
        "株式会社ontsugi": ClientInfo(
            name="株式会社ontsugi", prefix="ONT", company_name="株式会社ontsugi"
        ),
        "中村 香菜枝様": ClientInfo(name="中村 香菜枝様", prefix="NKM", honorific=""),
    }


@pytest.fixture
def mock_httpx_client():
    """Create a mock httpx AsyncClient."""
    client = AsyncMock()
    client.request = AsyncMock()
    client.post = AsyncMock()
    client.aclose = AsyncMock()
    return client


def make_response(payload, status_code=200):
    """Build a mock httpx response carrying a JSON payload."""
    response = MagicMock()
    response.status_code = status_code
    response.content = b"{}"
    response.json.return_value = payload
    response.text = ""
    return response


@pytest.fixture
def token_response():
    return make_response(
        {
            "code": 0,
            "msg": "ok",
            "tenant_access_token": "t-test-token",
            "expire": 7200,
        }
    )


def make_item(record_id="rec1", **overrides):
    """A delivered, uninvoiced line-item."""
    values = {
        "record_id": record_id,
        "project_name": "PR動画",
        "content_type": ContentType.EDITING,
        "quantity": 1,
        "unit_price": 10000,
        "status": DeliveryStatus.DELIVERED,
        "client_name": "株式会社ontsugi",
        "invoiced": False,
        "submission_date": date(2025, 1, 10),
    }
    values.update(overrides)
    return LineItem(**values)


class FakeLineItemRepository:
    """In-memory stand-in for ProjectItemRepository."""

    def __init__(self, items=None, fail_on=None, list_error=None):
        self.items = list(items or [])
        self.fail_on = fail_on
        self.list_error = list_error
        self.marked = []

    async def list_all(self, client_name=None, status=None, invoiced=None):
        if self.list_error is not None:
            raise self.list_error
        return [
            item
            for item in self.items
            if (client_name is None or item.client_name == client_name)
            and (status is None or item.status == status)
            and (invoiced is None or item.invoiced == invoiced)
        ]

    async def mark_as_invoiced(self, record_id, invoice_date):
        if record_id == self.fail_on:
            raise CRMError("update rejected")
        for item in self.items:
            if item.record_id == record_id:
                item.invoiced = True
                item.invoice_date = invoice_date
                self.marked.append(record_id)
                return item
        raise CRMError(f"unknown record {record_id}")

    async def summary_by_client(self):
        return [ClientSummary(client_name="株式会社ontsugi", total_amount=1, item_count=1)]


@pytest.fixture
def item_factory():
    return make_item


@pytest.fixture
def response_factory():
    return make_response


@pytest.fixture
def fake_repository():
    """Factory for in-memory line-item repositories."""
    return FakeLineItemRepository
