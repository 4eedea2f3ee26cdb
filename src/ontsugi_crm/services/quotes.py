"""Quote management over an in-memory document store."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import replace
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Any

import structlog

from ontsugi_crm.config import get_settings
from ontsugi_crm.errors import CRMError, InvalidInputError, NotFoundError, Result
from ontsugi_crm.models import Page, Quote, QuoteItem, QuoteStatus, now_jst
from ontsugi_crm.repositories.document_store import DocumentStore, paginate
from ontsugi_crm.services.numbering import document_id, next_document_number
from ontsugi_crm.services.pricing import (
    parse_tax_rate,
    price_items,
    to_rate,
    validate_items,
)

logger = structlog.get_logger(__name__)

DUPLICATE_VALIDITY_DAYS = 30

UPDATABLE_FIELDS = frozenset(
    {"project_id", "client_id", "valid_until", "items", "tax_rate", "notes"}
)


class QuoteService:
    """CRUD and status changes for quotes."""

    def __init__(
        self,
        store: DocumentStore[Quote],
        tax_rate: Decimal | None = None,
        clock: Callable[[], datetime] = now_jst,
    ):
        self.store = store
        self.tax_rate = to_rate(
            tax_rate if tax_rate is not None else get_settings().tax_rate
        )
        self._clock = clock

    def _require(self, quote_id: str) -> Quote:
        quote = self.store.get(quote_id)
        if quote is None:
            raise NotFoundError(
                f"Quote {quote_id} not found", details={"quote_id": quote_id}
            )
        return quote

    @staticmethod
    def _reprice(quote: Quote) -> Quote:
        priced = price_items(quote.items, quote.tax_rate)
        return replace(
            quote,
            items=priced.items,
            subtotal=priced.totals.subtotal,
            tax_amount=priced.totals.tax_amount,
            total_amount=priced.totals.total_amount,
        )

    def _next_number(self, now: datetime) -> str:
        return next_document_number("Q", now, (q.quote_number for q in self.store))

    def list(
        self,
        project_id: str | None = None,
        client_id: str | None = None,
        status: QuoteStatus | None = None,
        page: int = 1,
        page_size: int = 20,
    ) -> Result[Page[Quote]]:
        """Filter quotes, newest issue date first."""
        if page < 1 or page_size < 1:
            return Result.fail(
                InvalidInputError.code,
                "page and page_size must be positive",
                {"page": page, "page_size": page_size},
            )
        quotes = [
            q
            for q in self.store.values()
            if (not project_id or q.project_id == project_id)
            and (not client_id or q.client_id == client_id)
            and (not status or q.status == status)
        ]
        quotes.sort(key=lambda q: q.issue_date, reverse=True)
        return Result.ok(paginate(quotes, page, page_size))

    def get(self, quote_id: str) -> Result[Quote]:
        try:
            return Result.ok(self._require(quote_id))
        except CRMError as e:
            return Result.from_exception(e)

    def create(
        self,
        project_id: str,
        client_id: str,
        valid_until: date,
        items: list[QuoteItem],
        notes: str | None = None,
        tax_rate: Decimal | None = None,
    ) -> Result[Quote]:
        """Create a draft quote numbered ``Q-YYYYMM-NNNN``."""
        try:
            validate_items(items)
            rate = parse_tax_rate(tax_rate) if tax_rate is not None else self.tax_rate
        except CRMError as e:
            return Result.from_exception(e)

        now = self._clock()
        quote_id = document_id("quote", self._clock)
        quote = self._reprice(
            Quote(
                id=quote_id,
                quote_number=self._next_number(now),
                project_id=project_id,
                client_id=client_id,
                issue_date=now,
                valid_until=valid_until,
                items=[
                    replace(item, id=f"{quote_id}-item-{index}")
                    for index, item in enumerate(items, start=1)
                ],
                tax_rate=rate,
                status=QuoteStatus.DRAFT,
                notes=notes,
                created_at=now,
                updated_at=now,
            )
        )
        self.store.save(quote)
        logger.info(
            "quote_created",
            quote_id=quote.id,
            quote_number=quote.quote_number,
            total=quote.total_amount,
        )
        return Result.ok(quote)

    def update(self, quote_id: str, **changes: Any) -> Result[Quote]:
        """Change quote fields; amounts are always recomputed."""
        try:
            quote = self._require(quote_id)
            unknown = set(changes) - UPDATABLE_FIELDS
            if unknown:
                raise InvalidInputError(
                    f"Fields cannot be updated: {', '.join(sorted(unknown))}",
                    details={"fields": sorted(unknown)},
                )
            if "items" in changes:
                validate_items(changes["items"])
            if "tax_rate" in changes:
                changes["tax_rate"] = parse_tax_rate(changes["tax_rate"])
        except CRMError as e:
            return Result.from_exception(e)

        updated = self._reprice(replace(quote, **changes, updated_at=self._clock()))
        self.store.save(updated)
        logger.info("quote_updated", quote_id=quote_id, fields=sorted(changes))
        return Result.ok(updated)

    def delete(self, quote_id: str) -> Result[None]:
        if not self.store.delete(quote_id):
            return Result.fail(
                NotFoundError.code, f"Quote {quote_id} not found", {"quote_id": quote_id}
            )
        logger.info("quote_deleted", quote_id=quote_id)
        return Result.ok(None)

    def update_status(self, quote_id: str, status: QuoteStatus) -> Result[Quote]:
        try:
            quote = self._require(quote_id)
        except CRMError as e:
            return Result.from_exception(e)

        updated = replace(quote, status=status, updated_at=self._clock())
        self.store.save(updated)
        logger.info(
            "quote_status_changed",
            quote_id=quote_id,
            from_status=quote.status.value,
            to_status=status.value,
        )
        return Result.ok(updated)

    def duplicate(self, quote_id: str) -> Result[Quote]:
        """Copy a quote as a new draft valid for 30 days."""
        try:
            source = self._require(quote_id)
        except CRMError as e:
            return Result.from_exception(e)

        now = self._clock()
        new_id = document_id("quote", self._clock)
        copy = replace(
            source,
            id=new_id,
            quote_number=self._next_number(now),
            status=QuoteStatus.DRAFT,
            issue_date=now,
            valid_until=now.date() + timedelta(days=DUPLICATE_VALIDITY_DAYS),
            items=[
                replace(item, id=f"{new_id}-item-{index}")
                for index, item in enumerate(source.items, start=1)
            ],
            created_at=now,
            updated_at=now,
        )
        self.store.save(copy)
        logger.info("quote_duplicated", source_id=quote_id, quote_id=new_id)
        return Result.ok(copy)
