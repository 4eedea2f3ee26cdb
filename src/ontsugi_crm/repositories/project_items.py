"""Line-item (案件明細) repository backed by a Lark Base table."""

from __future__ import annotations

from dataclasses import fields as dataclass_fields
from datetime import date, datetime
from enum import Enum
from typing import Any

import structlog

from ontsugi_crm.clients.larkbase import MAX_PAGE_SIZE, LarkBaseClient, LarkRecord
from ontsugi_crm.config import mapping
from ontsugi_crm.errors import InvalidInputError, NotFoundError, RemoteApiError
from ontsugi_crm.models import (
    ClientSummary,
    ContentType,
    DeliveryStatus,
    LineItem,
    Page,
)
from ontsugi_crm.repositories.field_codec import (
    decode_bool,
    decode_date,
    decode_int,
    decode_select,
    decode_text,
    decode_timestamp,
    encode_date,
)

logger = structlog.get_logger(__name__)

# LineItem attribute -> Lark Base field label, for writable fields
WRITABLE_FIELDS: dict[str, str] = {
    "project_name": mapping.FIELD_PROJECT_NAME,
    "content_type": mapping.FIELD_CONTENT_TYPE,
    "quantity": mapping.FIELD_QUANTITY,
    "unit_price": mapping.FIELD_UNIT_PRICE,
    "scheduled_date": mapping.FIELD_SCHEDULED_DATE,
    "submission_date": mapping.FIELD_SUBMISSION_DATE,
    "status": mapping.FIELD_STATUS,
    "invoiced": mapping.FIELD_INVOICED,
    "client_name": mapping.FIELD_CLIENT_NAME,
    "notes": mapping.FIELD_NOTES,
    "invoice_date": mapping.FIELD_INVOICE_DATE,
}

_NOT_FOUND_CODES = frozenset({1254043})  # RecordIdNotFound


def record_to_item(record: LarkRecord) -> LineItem:
    """Decode a raw record into a LineItem."""
    fields = record.fields
    invoiced = decode_bool(fields.get(mapping.FIELD_INVOICED))
    return LineItem(
        record_id=record.record_id,
        project_name=decode_text(fields.get(mapping.FIELD_PROJECT_NAME)) or "",
        content_type=decode_select(
            fields.get(mapping.FIELD_CONTENT_TYPE), ContentType, ContentType.EDITING
        ),
        quantity=decode_int(fields.get(mapping.FIELD_QUANTITY)),
        unit_price=decode_int(fields.get(mapping.FIELD_UNIT_PRICE)),
        status=decode_select(
            fields.get(mapping.FIELD_STATUS),
            DeliveryStatus,
            DeliveryStatus.NOT_STARTED,
        ),
        client_name=decode_text(fields.get(mapping.FIELD_CLIENT_NAME))
        or mapping.DEFAULT_CLIENT_NAME,
        invoiced=invoiced,
        scheduled_date=decode_date(fields.get(mapping.FIELD_SCHEDULED_DATE)),
        submission_date=decode_date(fields.get(mapping.FIELD_SUBMISSION_DATE)),
        # An invoice date on an uninvoiced record is stale data
        invoice_date=(
            decode_date(fields.get(mapping.FIELD_INVOICE_DATE)) if invoiced else None
        ),
        invoice_month=decode_text(fields.get(mapping.FIELD_INVOICE_MONTH)),
        notes=decode_text(fields.get(mapping.FIELD_NOTES)),
        created_at=decode_timestamp(record.created_time),
        updated_at=decode_timestamp(record.last_modified_time),
    )


def _encode_value(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (date, datetime)):
        return encode_date(value)
    return value


def encode_changes(changes: dict[str, Any]) -> dict[str, Any]:
    """Encode a mapping of LineItem attributes into Lark Base fields.

    Raises:
        InvalidInputError: For unknown or read-only attributes and negative
            quantities or prices.
    """
    encoded: dict[str, Any] = {}
    for name, value in changes.items():
        label = WRITABLE_FIELDS.get(name)
        if label is None:
            raise InvalidInputError(
                f"Field is not writable: {name}", details={"field": name}
            )
        if name in ("quantity", "unit_price") and value is not None and value < 0:
            raise InvalidInputError(
                f"{name} must not be negative", details={"field": name, "value": value}
            )
        encoded[label] = _encode_value(value)
    return encoded


def item_to_fields(item: LineItem) -> dict[str, Any]:
    """Encode the writable, non-empty attributes of a LineItem."""
    values = {
        f.name: getattr(item, f.name)
        for f in dataclass_fields(item)
        if f.name in WRITABLE_FIELDS and getattr(item, f.name) is not None
    }
    return encode_changes(values)


class ProjectItemRepository:
    """CRUD and aggregate queries over line-items.

    Methods raise ``CRMError`` subclasses; services wrap them into Results.
    """

    def __init__(self, client: LarkBaseClient, page_size: int = MAX_PAGE_SIZE):
        self.client = client
        self.page_size = page_size

    @staticmethod
    def _matches(
        item: LineItem,
        client_name: str | None,
        status: DeliveryStatus | None,
        invoiced: bool | None,
    ) -> bool:
        if client_name is not None and item.client_name != client_name:
            return False
        if status is not None and item.status != status:
            return False
        if invoiced is not None and item.invoiced != invoiced:
            return False
        return True

    async def list(
        self,
        client_name: str | None = None,
        status: DeliveryStatus | None = None,
        invoiced: bool | None = None,
        page_size: int = 20,
        page_token: str | None = None,
    ) -> Page[LineItem]:
        """List one page of line-items, filtered after decoding.

        Filters apply to the fetched page only; ``total`` is the remote count.
        Lark Base pages by cursor, so ``page`` is always 1; pass the returned
        ``page_token`` to continue.
        """
        page = await self.client.list_records(page_size=page_size, page_token=page_token)
        items = [
            item
            for item in (record_to_item(record) for record in page.items)
            if self._matches(item, client_name, status, invoiced)
        ]
        return Page(
            items=items,
            total=page.total,
            page=1,
            page_size=page_size,
            has_more=page.has_more,
            page_token=page.page_token,
        )

    async def list_all(
        self,
        client_name: str | None = None,
        status: DeliveryStatus | None = None,
        invoiced: bool | None = None,
    ) -> list[LineItem]:
        """Fetch every line-item across all pages, then filter."""
        items: list[LineItem] = []
        async for record in self.client.iter_all_records(page_size=self.page_size):
            item = record_to_item(record)
            if self._matches(item, client_name, status, invoiced):
                items.append(item)
        logger.debug("line_items_loaded", count=len(items), client=client_name)
        return items

    async def get(self, record_id: str) -> LineItem:
        """Get one line-item.

        Raises:
            NotFoundError: If the record does not exist.
        """
        try:
            record = await self.client.get_record(record_id)
        except RemoteApiError as e:
            if e.details.get("lark_code") in _NOT_FOUND_CODES or e.status_code == 404:
                raise NotFoundError(
                    f"Line item not found: {record_id}",
                    details={"record_id": record_id},
                ) from e
            raise
        if not record.record_id:
            raise NotFoundError(
                f"Line item not found: {record_id}", details={"record_id": record_id}
            )
        return record_to_item(record)

    async def create(self, item: LineItem) -> LineItem:
        """Create a line-item; the record id on ``item`` is ignored."""
        fields = item_to_fields(item)
        record = await self.client.create_record(fields)
        logger.info("line_item_created", record_id=record.record_id)
        return record_to_item(record)

    async def update(self, record_id: str, **changes: Any) -> LineItem:
        """Update selected attributes of a line-item."""
        if not changes:
            return await self.get(record_id)
        fields = encode_changes(changes)
        record = await self.client.update_record(record_id, fields)
        logger.info("line_item_updated", record_id=record_id, fields=sorted(changes))
        return record_to_item(record)

    async def delete(self, record_id: str) -> None:
        await self.client.delete_record(record_id)
        logger.info("line_item_deleted", record_id=record_id)

    async def mark_as_invoiced(self, record_id: str, invoice_date: date) -> LineItem:
        """Set the invoiced flag and invoice date of one line-item."""
        return await self.update(record_id, invoiced=True, invoice_date=invoice_date)

    async def summary_by_client(self) -> list[ClientSummary]:
        """Total, invoiced and uninvoiced amounts per client."""
        totals: dict[str, dict[str, int]] = {}
        for item in await self.list_all():
            entry = totals.setdefault(
                item.client_name,
                {"total": 0, "invoiced": 0, "uninvoiced": 0, "count": 0},
            )
            entry["total"] += item.amount
            entry["count"] += 1
            if item.invoiced:
                entry["invoiced"] += item.amount
            else:
                entry["uninvoiced"] += item.amount

        return [
            ClientSummary(
                client_name=name,
                total_amount=entry["total"],
                invoiced_amount=entry["invoiced"],
                uninvoiced_amount=entry["uninvoiced"],
                item_count=entry["count"],
            )
            for name, entry in totals.items()
        ]
