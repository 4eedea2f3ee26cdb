"""Invoice management over an in-memory document store."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, replace
from datetime import date, datetime
from decimal import Decimal
from typing import Any

import structlog

from ontsugi_crm.config import get_settings
from ontsugi_crm.errors import CRMError, InvalidInputError, NotFoundError, Result
from ontsugi_crm.models import (
    JST,
    PAID_STATUSES,
    PAYMENT_STATUSES,
    UNPAID_STATUSES,
    BankAccount,
    Invoice,
    InvoiceItem,
    InvoiceStatus,
    Page,
    Quote,
    TaxCategory,
    now_jst,
)
from ontsugi_crm.repositories.document_store import DocumentStore, paginate
from ontsugi_crm.services.numbering import document_id, next_document_number
from ontsugi_crm.services.pricing import (
    parse_tax_rate,
    price_items,
    to_rate,
    validate_items,
)

logger = structlog.get_logger(__name__)

FINAL_STATUSES = frozenset(
    {InvoiceStatus.PAID, InvoiceStatus.OVERPAID, InvoiceStatus.CANCELLED}
)

# Target status -> statuses an operator may move an invoice from
OPERATOR_TRANSITIONS: dict[InvoiceStatus, frozenset[InvoiceStatus]] = {
    InvoiceStatus.ISSUED: frozenset({InvoiceStatus.DRAFT}),
    InvoiceStatus.SENT: frozenset({InvoiceStatus.ISSUED}),
    InvoiceStatus.UNCOLLECTED: frozenset(
        {InvoiceStatus.ISSUED, InvoiceStatus.SENT, InvoiceStatus.PARTIALLY_PAID}
    ),
    InvoiceStatus.CANCELLED: frozenset(set(InvoiceStatus) - FINAL_STATUSES),
}

# Fields callers may change through update()
UPDATABLE_FIELDS = frozenset(
    {
        "project_id",
        "client_id",
        "quote_id",
        "due_date",
        "items",
        "tax_rate",
        "notes",
        "payment_terms",
        "bank_account",
    }
)


@dataclass(frozen=True)
class MonthlySummary:
    """Invoiced and collected totals for one month of issue dates."""

    year: int
    month: int
    total_invoiced: int
    total_paid: int
    total_unpaid: int
    invoice_count: int


def payment_status(invoice: Invoice, paid_amount: int) -> InvoiceStatus:
    """Status implied by a cumulative paid amount."""
    if paid_amount > invoice.total_amount:
        return InvoiceStatus.OVERPAID
    if paid_amount == invoice.total_amount and paid_amount > 0:
        return InvoiceStatus.PAID
    if paid_amount > 0:
        return InvoiceStatus.PARTIALLY_PAID
    return invoice.status


def _as_datetime(value: date | datetime, end_of_day: bool = False) -> datetime:
    if isinstance(value, datetime):
        return value
    bound = datetime.max.time() if end_of_day else datetime.min.time()
    return datetime.combine(value, bound, tzinfo=JST)


class InvoiceService:
    """CRUD, status changes and payment tracking for invoices."""

    def __init__(
        self,
        store: DocumentStore[Invoice],
        tax_rate: Decimal | None = None,
        clock: Callable[[], datetime] = now_jst,
        default_payment_terms: str | None = None,
    ):
        settings = get_settings()
        self.store = store
        self.tax_rate = to_rate(tax_rate if tax_rate is not None else settings.tax_rate)
        self._clock = clock
        self._payment_terms = default_payment_terms or settings.default_payment_terms

    def _require(self, invoice_id: str) -> Invoice:
        invoice = self.store.get(invoice_id)
        if invoice is None:
            raise NotFoundError(
                f"Invoice {invoice_id} not found", details={"invoice_id": invoice_id}
            )
        return invoice

    def _reprice(self, invoice: Invoice) -> Invoice:
        priced = price_items(invoice.items, invoice.tax_rate)
        return replace(
            invoice,
            items=priced.items,
            subtotal=priced.totals.subtotal,
            tax_amount=priced.totals.tax_amount,
            total_amount=priced.totals.total_amount,
        )

    # === Queries ===

    def list(
        self,
        project_id: str | None = None,
        client_id: str | None = None,
        status: InvoiceStatus | None = None,
        start_date: date | datetime | None = None,
        end_date: date | datetime | None = None,
        page: int = 1,
        page_size: int = 20,
    ) -> Result[Page[Invoice]]:
        """Filter invoices, newest issue date first, one page at a time."""
        if page < 1 or page_size < 1:
            return Result.fail(
                InvalidInputError.code,
                "page and page_size must be positive",
                {"page": page, "page_size": page_size},
            )

        invoices = self.store.values()
        if project_id:
            invoices = [inv for inv in invoices if inv.project_id == project_id]
        if client_id:
            invoices = [inv for inv in invoices if inv.client_id == client_id]
        if status:
            invoices = [inv for inv in invoices if inv.status == status]
        if start_date:
            start = _as_datetime(start_date)
            invoices = [inv for inv in invoices if inv.issue_date >= start]
        if end_date:
            end = _as_datetime(end_date, end_of_day=True)
            invoices = [inv for inv in invoices if inv.issue_date <= end]

        invoices.sort(key=lambda inv: inv.issue_date, reverse=True)
        return Result.ok(paginate(invoices, page, page_size))

    def get(self, invoice_id: str) -> Result[Invoice]:
        try:
            return Result.ok(self._require(invoice_id))
        except CRMError as e:
            return Result.from_exception(e)

    def get_unpaid(self) -> Result[list[Invoice]]:
        """Issued, sent and partially paid invoices, earliest due date first."""
        unpaid = [inv for inv in self.store.values() if inv.status in UNPAID_STATUSES]
        return Result.ok(sorted(unpaid, key=lambda inv: inv.due_date))

    def get_overdue(self) -> Result[list[Invoice]]:
        """Unpaid invoices whose due date has passed."""
        today = self._clock().date()
        overdue = [
            inv
            for inv in self.store.values()
            if inv.status in UNPAID_STATUSES and inv.due_date < today
        ]
        return Result.ok(sorted(overdue, key=lambda inv: inv.due_date))

    def get_monthly_summary(self, year: int, month: int) -> Result[MonthlySummary]:
        if not 1 <= month <= 12:
            return Result.fail(
                InvalidInputError.code, f"Invalid month: {month}", {"month": month}
            )
        invoices = [
            inv
            for inv in self.store.values()
            if inv.issue_date.year == year and inv.issue_date.month == month
        ]
        total_invoiced = sum(inv.total_amount for inv in invoices)
        total_paid = sum(inv.paid_amount for inv in invoices)
        return Result.ok(
            MonthlySummary(
                year=year,
                month=month,
                total_invoiced=total_invoiced,
                total_paid=total_paid,
                total_unpaid=total_invoiced - total_paid,
                invoice_count=len(invoices),
            )
        )

    # === Mutations ===

    def create(
        self,
        project_id: str,
        client_id: str,
        due_date: date,
        items: list[InvoiceItem],
        quote_id: str | None = None,
        notes: str | None = None,
        payment_terms: str | None = None,
        bank_account: BankAccount | None = None,
        tax_rate: Decimal | None = None,
    ) -> Result[Invoice]:
        """Create a draft invoice numbered ``INV-YYYYMM-NNNN``."""
        try:
            validate_items(items)
            rate = parse_tax_rate(tax_rate) if tax_rate is not None else self.tax_rate
        except CRMError as e:
            return Result.from_exception(e)

        now = self._clock()
        invoice_id = document_id("invoice", self._clock)
        numbered = [
            replace(item, id=f"{invoice_id}-item-{index}")
            for index, item in enumerate(items, start=1)
        ]
        invoice = self._reprice(
            Invoice(
                id=invoice_id,
                invoice_number=next_document_number(
                    "INV", now, (inv.invoice_number for inv in self.store)
                ),
                project_id=project_id,
                client_id=client_id,
                quote_id=quote_id,
                issue_date=now,
                due_date=due_date,
                items=numbered,
                tax_rate=rate,
                status=InvoiceStatus.DRAFT,
                notes=notes,
                payment_terms=payment_terms or self._payment_terms,
                bank_account=bank_account or BankAccount(),
                created_at=now,
                updated_at=now,
            )
        )
        self.store.save(invoice)
        logger.info(
            "invoice_created",
            invoice_id=invoice.id,
            invoice_number=invoice.invoice_number,
            total=invoice.total_amount,
        )
        return Result.ok(invoice)

    def create_from_quote(
        self,
        quote: Quote,
        due_date: date,
        payment_terms: str | None = None,
        bank_account: BankAccount | None = None,
    ) -> Result[Invoice]:
        """Create a draft invoice carrying over a quote's items and rate."""
        items = [
            InvoiceItem(
                description=item.description,
                quantity=item.quantity,
                unit=item.unit,
                unit_price=item.unit_price,
                taxable=item.taxable,
                tax_category=TaxCategory.TAXABLE_10 if item.taxable else TaxCategory.EXEMPT,
            )
            for item in quote.items
        ]
        return self.create(
            project_id=quote.project_id,
            client_id=quote.client_id,
            quote_id=quote.id,
            due_date=due_date,
            items=items,
            notes=quote.notes,
            payment_terms=payment_terms,
            bank_account=bank_account,
            tax_rate=quote.tax_rate,
        )

    def update(self, invoice_id: str, **changes: Any) -> Result[Invoice]:
        """Change invoice fields; amounts are always recomputed."""
        try:
            invoice = self._require(invoice_id)
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

        updated = self._reprice(replace(invoice, **changes, updated_at=self._clock()))
        self.store.save(updated)
        logger.info("invoice_updated", invoice_id=invoice_id, fields=sorted(changes))
        return Result.ok(updated)

    def delete(self, invoice_id: str) -> Result[None]:
        if not self.store.delete(invoice_id):
            return Result.fail(
                NotFoundError.code,
                f"Invoice {invoice_id} not found",
                {"invoice_id": invoice_id},
            )
        logger.info("invoice_deleted", invoice_id=invoice_id)
        return Result.ok(None)

    def update_status(self, invoice_id: str, status: InvoiceStatus) -> Result[Invoice]:
        """Apply an operator status change.

        Payment statuses follow from record_payment and are rejected here.
        """
        try:
            invoice = self._require(invoice_id)
            if status in PAYMENT_STATUSES:
                raise InvalidInputError(
                    f"{status.value} is set by recording payments",
                    details={"status": status.value},
                )
            allowed_from = OPERATOR_TRANSITIONS.get(status, frozenset())
            if invoice.status not in allowed_from:
                raise InvalidInputError(
                    f"Cannot change invoice from {invoice.status.value} to {status.value}",
                    details={"from": invoice.status.value, "to": status.value},
                )
        except CRMError as e:
            return Result.from_exception(e)

        updated = replace(invoice, status=status, updated_at=self._clock())
        self.store.save(updated)
        logger.info(
            "invoice_status_changed",
            invoice_id=invoice_id,
            from_status=invoice.status.value,
            to_status=status.value,
        )
        return Result.ok(updated)

    def record_payment(self, invoice_id: str, amount: int) -> Result[Invoice]:
        """Add a payment and derive the payment status from the cumulative amount."""
        try:
            invoice = self._require(invoice_id)
            if amount < 0:
                raise InvalidInputError(
                    "Payment amount must not be negative", details={"amount": amount}
                )
            if invoice.status == InvoiceStatus.CANCELLED:
                raise InvalidInputError(
                    "Cannot record a payment on a cancelled invoice",
                    details={"invoice_id": invoice_id},
                )
        except CRMError as e:
            return Result.from_exception(e)

        paid_amount = invoice.paid_amount + amount
        status = payment_status(invoice, paid_amount)
        updated = replace(
            invoice, paid_amount=paid_amount, status=status, updated_at=self._clock()
        )
        self.store.save(updated)
        logger.info(
            "invoice_payment_recorded",
            invoice_id=invoice_id,
            amount=amount,
            paid_amount=paid_amount,
            status=status.value,
            settled=status in PAID_STATUSES,
        )
        return Result.ok(updated)
