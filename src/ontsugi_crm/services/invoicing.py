"""Invoices built from delivered Lark Base line-items.

Line-items are grouped per client and month (see ``grouping``); a group
becomes one invoice. Issuing an invoice marks each of its line-items as
invoiced in Lark Base.
"""

import uuid
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Protocol

import structlog

from ontsugi_crm.config import get_settings
from ontsugi_crm.config.clients_loader import get_client_prefix
from ontsugi_crm.config.mapping import LINE_ITEM_UNIT
from ontsugi_crm.errors import CRMError, NotFoundError, Result
from ontsugi_crm.models import (
    BankAccount,
    ClientInfo,
    ClientSummary,
    DeliveryStatus,
    Invoice,
    InvoiceGroup,
    InvoiceItem,
    InvoicePreview,
    InvoiceStatus,
    LineItem,
    TaxCategory,
    now_jst,
)
from ontsugi_crm.repositories.document_store import DocumentStore
from ontsugi_crm.services.grouping import GroupFilter, compute_groups, parse_month_label
from ontsugi_crm.services.pricing import compute_tax, price_items, to_rate

logger = structlog.get_logger(__name__)

DEFAULT_DUE_DAYS = 30

# (client prefix, YYYYMM) -> invoice number
NumberGenerator = Callable[[str, str], str]


class LineItemSource(Protocol):
    """The part of the line-item repository invoicing needs."""

    async def list_all(
        self,
        client_name: str | None = None,
        status: DeliveryStatus | None = None,
        invoiced: bool | None = None,
    ) -> list[LineItem]: ...

    async def mark_as_invoiced(self, record_id: str, invoice_date: date) -> LineItem: ...

    async def summary_by_client(self) -> list[ClientSummary]: ...


@dataclass(frozen=True)
class InvoiceGenerationOptions:
    """Caller-chosen invoice fields."""

    due_date: date | None = None  # defaults to issue date + 30 days
    payment_terms: str | None = None
    bank_account: BankAccount | None = None
    notes: str | None = None


def time_sequence_number(clock: Callable[[], datetime] = now_jst) -> NumberGenerator:
    """Number generator using the last four digits of the epoch-ms clock.

    Numbers generated in the same clock tick, or 10 seconds apart, collide.
    """

    def generate(prefix: str, year_month: str) -> str:
        sequence = str(int(clock().timestamp() * 1000))[-4:]
        return f"INV-{prefix}-{year_month}-{sequence}"

    return generate


class InvoicingService:
    """Builds, previews and issues invoices from line-item groups."""

    def __init__(
        self,
        repository: LineItemSource,
        invoice_store: DocumentStore[Invoice] | None = None,
        tax_rate: Decimal | None = None,
        number_generator: NumberGenerator | None = None,
        clock: Callable[[], datetime] = now_jst,
        client_directory: dict[str, ClientInfo] | None = None,
        default_payment_terms: str | None = None,
    ):
        settings = get_settings()
        self.repository = repository
        self.invoice_store = invoice_store
        self.tax_rate = to_rate(tax_rate if tax_rate is not None else settings.tax_rate)
        self._clock = clock
        self._number_generator = number_generator or time_sequence_number(clock)
        self._client_directory = client_directory
        self._payment_terms = default_payment_terms or settings.default_payment_terms

    # === Queries ===

    async def _load_groups(self, group_filter: GroupFilter) -> list[InvoiceGroup]:
        items = await self.repository.list_all(
            client_name=group_filter.client_name,
            invoiced=False if group_filter.unbilled_only else None,
        )
        return compute_groups(items, group_filter, today=self._clock().date())

    async def get_invoice_groups(
        self,
        client_name: str | None = None,
        year: int | None = None,
        month: int | None = None,
        unbilled_only: bool = True,
    ) -> Result[list[InvoiceGroup]]:
        """Group delivered line-items by client and month."""
        group_filter = GroupFilter(client_name, year, month, unbilled_only)
        try:
            groups = await self._load_groups(group_filter)
        except CRMError as e:
            logger.warning("invoice_groups_failed", error=e.message, code=e.code.value)
            return Result.from_exception(e)
        return Result.ok(groups)

    def _preview(self, group: InvoiceGroup) -> InvoicePreview:
        subtotal = group.total_amount
        tax_amount = compute_tax(subtotal, self.tax_rate)
        return InvoicePreview(
            client_name=group.client_name,
            invoice_month=group.invoice_month,
            items=list(group.items),
            subtotal=subtotal,
            tax_amount=tax_amount,
            total_amount=subtotal + tax_amount,
            item_count=group.item_count,
        )

    async def get_invoice_previews(
        self,
        client_name: str | None = None,
        year: int | None = None,
        month: int | None = None,
        unbilled_only: bool = True,
    ) -> Result[list[InvoicePreview]]:
        """Invoice groups with consumption tax applied."""
        groups = await self.get_invoice_groups(client_name, year, month, unbilled_only)
        if not groups.success or groups.data is None:
            return Result.propagate(groups)
        return Result.ok([self._preview(group) for group in groups.data])

    async def get_summary_by_client(self) -> Result[list[ClientSummary]]:
        try:
            summaries = await self.repository.summary_by_client()
        except CRMError as e:
            logger.warning("client_summary_failed", error=e.message, code=e.code.value)
            return Result.from_exception(e)
        return Result.ok(summaries)

    # === Invoice Assembly ===

    def _invoice_number(self, client_name: str, invoice_month: str) -> str:
        prefix = get_client_prefix(client_name, self._client_directory)
        parsed = parse_month_label(invoice_month)
        year_month = f"{parsed[0]}{parsed[1]:02d}" if parsed else ""
        return self._number_generator(prefix, year_month)

    def build_invoice(
        self, group: InvoiceGroup, options: InvoiceGenerationOptions | None = None
    ) -> Invoice:
        """Assemble a draft invoice from one group."""
        options = options or InvoiceGenerationOptions()
        now = self._clock()
        items = [
            InvoiceItem(
                id=f"item-{index}",
                description=f"{item.project_name} - {item.content_type.value}",
                quantity=item.quantity,
                unit=LINE_ITEM_UNIT,
                unit_price=item.unit_price,
                taxable=True,
                tax_category=TaxCategory.TAXABLE_10,
            )
            for index, item in enumerate(group.items, start=1)
        ]
        priced = price_items(items, self.tax_rate)
        return Invoice(
            id=f"inv-{uuid.uuid4().hex[:12]}",
            invoice_number=self._invoice_number(group.client_name, group.invoice_month),
            project_id=f"{group.client_name}-{group.invoice_month}",
            client_id=group.client_name,
            issue_date=now,
            due_date=options.due_date or (now.date() + timedelta(days=DEFAULT_DUE_DAYS)),
            items=priced.items,
            tax_rate=self.tax_rate,
            subtotal=priced.totals.subtotal,
            tax_amount=priced.totals.tax_amount,
            total_amount=priced.totals.total_amount,
            paid_amount=0,
            status=InvoiceStatus.DRAFT,
            notes=options.notes,
            payment_terms=options.payment_terms or self._payment_terms,
            bank_account=options.bank_account,
            created_at=now,
            updated_at=now,
        )

    async def _find_group(self, client_name: str, invoice_month: str) -> InvoiceGroup:
        groups = await self._load_groups(GroupFilter(client_name=client_name))
        for group in groups:
            if group.client_name == client_name and group.invoice_month == invoice_month:
                return group
        raise NotFoundError(
            f"No uninvoiced items found for {client_name} in {invoice_month}",
            details={"client_name": client_name, "invoice_month": invoice_month},
        )

    def _store(self, invoice: Invoice) -> None:
        if self.invoice_store is not None:
            self.invoice_store.save(invoice)

    async def generate_invoice(
        self,
        client_name: str,
        invoice_month: str,
        options: InvoiceGenerationOptions | None = None,
    ) -> Result[Invoice]:
        """Build a draft invoice for the unbilled items of one client and month."""
        try:
            group = await self._find_group(client_name, invoice_month)
        except CRMError as e:
            logger.warning(
                "invoice_generation_failed",
                client=client_name,
                month=invoice_month,
                error=e.message,
            )
            return Result.from_exception(e)

        invoice = self.build_invoice(group, options)
        self._store(invoice)
        logger.info(
            "invoice_generated",
            invoice_number=invoice.invoice_number,
            client=client_name,
            month=invoice_month,
            items=len(invoice.items),
            total=invoice.total_amount,
        )
        return Result.ok(invoice)

    async def issue_invoice(
        self,
        client_name: str,
        invoice_month: str,
        options: InvoiceGenerationOptions | None = None,
    ) -> Result[Invoice]:
        """Build an invoice and mark its line-items invoiced.

        Items are marked one at a time with a shared timestamp. A failure
        part-way leaves earlier items marked; the failed result lists them
        under ``invoiced_record_ids`` together with ``failed_record_id``.
        """
        try:
            group = await self._find_group(client_name, invoice_month)
        except CRMError as e:
            logger.warning(
                "invoice_issue_failed",
                client=client_name,
                month=invoice_month,
                error=e.message,
            )
            return Result.from_exception(e)

        invoice = self.build_invoice(group, options)
        issued_at = self._clock()
        invoiced_ids: list[str] = []
        for item in group.items:
            try:
                await self.repository.mark_as_invoiced(item.record_id, issued_at.date())
            except CRMError as e:
                logger.error(
                    "invoice_issue_partial_failure",
                    invoice_number=invoice.invoice_number,
                    failed_record_id=item.record_id,
                    invoiced_count=len(invoiced_ids),
                    error=e.message,
                )
                details = dict(e.details)
                details.update(
                    invoice_number=invoice.invoice_number,
                    invoiced_record_ids=list(invoiced_ids),
                    failed_record_id=item.record_id,
                )
                return Result.fail(
                    e.code,
                    f"Failed to mark {item.record_id} as invoiced: {e.message}",
                    details,
                )
            invoiced_ids.append(item.record_id)

        invoice.status = InvoiceStatus.ISSUED
        invoice.issue_date = issued_at
        invoice.updated_at = issued_at
        self._store(invoice)
        logger.info(
            "invoice_issued",
            invoice_number=invoice.invoice_number,
            client=client_name,
            month=invoice_month,
            items=len(invoiced_ids),
        )
        return Result.ok(invoice)

    async def generate_monthly_invoices(
        self,
        year: int,
        month: int,
        options: InvoiceGenerationOptions | None = None,
    ) -> Result[list[Invoice]]:
        """Draft invoices for every unbilled group of one month."""
        try:
            groups = await self._load_groups(GroupFilter(year=year, month=month))
        except CRMError as e:
            logger.warning("monthly_invoices_failed", year=year, month=month, error=e.message)
            return Result.from_exception(e)

        invoices: list[Invoice] = []
        for group in groups:
            try:
                invoice = self.build_invoice(group, options)
            except (CRMError, ValueError) as e:
                logger.warning(
                    "monthly_invoice_skipped",
                    client=group.client_name,
                    month=group.invoice_month,
                    error=str(e),
                )
                continue
            self._store(invoice)
            invoices.append(invoice)

        logger.info("monthly_invoices_generated", year=year, month=month, count=len(invoices))
        return Result.ok(invoices)


__all__ = [
    "InvoiceGenerationOptions",
    "InvoicingService",
    "LineItemSource",
    "time_sequence_number",
]
