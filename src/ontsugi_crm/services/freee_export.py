"""freee accounting journal CSV export.

Each invoice turns into journal entries: a receivable/sales pair for the
taxable part, a consumption-tax entry, a separate pair for non-taxable
sales and a bank receipt when something has been paid. Draft invoices
book no sales, but payments recorded against them still appear.
"""

import calendar
import csv
import io
from dataclasses import dataclass
from datetime import date, datetime
from pathlib import Path
from typing import Literal

import structlog

from ontsugi_crm.config.mapping import (
    ACCOUNT_BANK,
    ACCOUNT_RECEIVABLE,
    ACCOUNT_SALES,
    ACCOUNT_TAX_PAYABLE,
    FREEE_CSV_HEADERS,
    FREEE_TAX_EXEMPT,
    FREEE_TAX_NOT_APPLICABLE,
    FREEE_TAX_TAXABLE_10,
)
from ontsugi_crm.errors import ErrorCode, Result
from ontsugi_crm.models import (
    JST,
    PAID_STATUSES,
    Invoice,
    InvoiceStatus,
    JournalEntry,
)

logger = structlog.get_logger(__name__)

PREVIEW_INVOICE_LIMIT = 10

UTF8_BOM = "\ufeff"


@dataclass(frozen=True)
class ExportOptions:
    """Which invoices to export and how to encode the file."""

    start_date: date | None = None
    end_date: date | None = None
    include_unpaid: bool = True
    encoding: Literal["utf-8", "shift_jis"] = "utf-8"


def format_entry_date(value: date | datetime) -> str:
    """``YYYY-MM-DD`` of a date, or of a datetime's calendar day in Japan."""
    if isinstance(value, datetime):
        value = value.astimezone(JST).date() if value.tzinfo else value.date()
    return value.isoformat()


def _calendar_day(value: date | datetime) -> date:
    if isinstance(value, datetime):
        return value.astimezone(JST).date() if value.tzinfo else value.date()
    return value


def invoice_to_journal_entries(invoice: Invoice) -> list[JournalEntry]:
    """Journal entries booking one invoice and its payments."""
    entries: list[JournalEntry] = []
    number = invoice.invoice_number
    tag = invoice.project_id
    issued_on = format_entry_date(invoice.issue_date)

    if invoice.status != InvoiceStatus.DRAFT:
        taxable = sum(item.amount for item in invoice.items if item.taxable)
        non_taxable = sum(item.amount for item in invoice.items if not item.taxable)

        if taxable > 0:
            entries.append(
                JournalEntry(
                    transaction_date=issued_on,
                    debit_account=ACCOUNT_RECEIVABLE,
                    debit_amount=taxable + invoice.tax_amount,
                    debit_tax_category=FREEE_TAX_NOT_APPLICABLE,
                    credit_account=ACCOUNT_SALES,
                    credit_amount=taxable,
                    credit_tax_category=FREEE_TAX_TAXABLE_10,
                    description=f"{number} 売上計上",
                    tag=tag,
                )
            )
            if invoice.tax_amount > 0:
                entries.append(
                    JournalEntry(
                        transaction_date=issued_on,
                        debit_account=ACCOUNT_RECEIVABLE,
                        debit_amount=0,
                        debit_tax_category=FREEE_TAX_NOT_APPLICABLE,
                        credit_account=ACCOUNT_TAX_PAYABLE,
                        credit_amount=invoice.tax_amount,
                        credit_tax_category=FREEE_TAX_NOT_APPLICABLE,
                        description=f"{number} 消費税",
                        tag=tag,
                    )
                )

        if non_taxable > 0:
            entries.append(
                JournalEntry(
                    transaction_date=issued_on,
                    debit_account=ACCOUNT_RECEIVABLE,
                    debit_amount=non_taxable,
                    debit_tax_category=FREEE_TAX_NOT_APPLICABLE,
                    credit_account=ACCOUNT_SALES,
                    credit_amount=non_taxable,
                    credit_tax_category=FREEE_TAX_EXEMPT,
                    description=f"{number} 売上計上（非課税）",
                    tag=tag,
                )
            )

    if invoice.paid_amount > 0:
        entries.append(
            JournalEntry(
                transaction_date=format_entry_date(invoice.updated_at),
                debit_account=ACCOUNT_BANK,
                debit_amount=invoice.paid_amount,
                debit_tax_category=FREEE_TAX_NOT_APPLICABLE,
                credit_account=ACCOUNT_RECEIVABLE,
                credit_amount=invoice.paid_amount,
                credit_tax_category=FREEE_TAX_NOT_APPLICABLE,
                description=f"{number} 入金",
                tag=tag,
            )
        )

    return entries


def entries_to_csv(entries: list[JournalEntry]) -> str:
    """Render the header and one row per entry, quoting only where needed."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n", quoting=csv.QUOTE_MINIMAL)
    writer.writerow(FREEE_CSV_HEADERS)
    writer.writerows(entry.to_row() for entry in entries)
    return buffer.getvalue()


class FreeeExportService:
    """Exports invoices as a freee journal import file."""

    def select_invoices(
        self, invoices: list[Invoice], options: ExportOptions
    ) -> list[Invoice]:
        """Invoices inside the date range, optionally only settled ones."""
        selected = invoices
        if options.start_date:
            selected = [
                inv for inv in selected if _calendar_day(inv.issue_date) >= options.start_date
            ]
        if options.end_date:
            selected = [
                inv for inv in selected if _calendar_day(inv.issue_date) <= options.end_date
            ]
        if not options.include_unpaid:
            selected = [inv for inv in selected if inv.status in PAID_STATUSES]
        return selected

    def export_to_csv(
        self, invoices: list[Invoice], options: ExportOptions | None = None
    ) -> Result[str]:
        """Build the whole CSV text for the selected invoices."""
        options = options or ExportOptions()
        try:
            entries = [
                entry
                for invoice in self.select_invoices(invoices, options)
                for entry in invoice_to_journal_entries(invoice)
            ]
            # sorted() is stable, so entries of one day keep invoice order
            entries = sorted(entries, key=lambda entry: entry.transaction_date)
            content = entries_to_csv(entries)
        except Exception as e:
            logger.exception("freee_export_failed")
            return Result.from_exception(e, ErrorCode.EXPORT_FAILED)

        logger.info("freee_export_built", invoices=len(invoices), entries=len(entries))
        return Result.ok(content)

    def save_to_file(
        self,
        invoices: list[Invoice],
        path: str | Path,
        options: ExportOptions | None = None,
    ) -> Result[Path]:
        """Write the CSV, UTF-8 with BOM or CP932 for Shift-JIS."""
        options = options or ExportOptions()
        result = self.export_to_csv(invoices, options)
        if not result.success or result.data is None:
            return Result.propagate(result)

        target = Path(path)
        try:
            if options.encoding == "shift_jis":
                target.write_text(result.data, encoding="cp932", newline="")
            else:
                target.write_text(UTF8_BOM + result.data, encoding="utf-8", newline="")
        except (OSError, UnicodeEncodeError) as e:
            logger.warning("freee_export_write_failed", path=str(target), error=str(e))
            return Result.fail(ErrorCode.FILE_WRITE_FAILED, str(e), {"path": str(target)})

        logger.info("freee_export_saved", path=str(target), encoding=options.encoding)
        return Result.ok(target)

    def preview(self, invoices: list[Invoice]) -> Result[list[JournalEntry]]:
        """Journal entries of the first ten invoices."""
        try:
            entries = [
                entry
                for invoice in invoices[:PREVIEW_INVOICE_LIMIT]
                for entry in invoice_to_journal_entries(invoice)
            ]
        except Exception as e:
            logger.exception("freee_preview_failed")
            return Result.from_exception(e, ErrorCode.PREVIEW_FAILED)
        return Result.ok(entries)

    def export_monthly(self, invoices: list[Invoice], year: int, month: int) -> Result[str]:
        """CSV for invoices issued in one calendar month."""
        if not 1 <= month <= 12:
            return Result.fail(
                ErrorCode.INVALID_INPUT, f"Invalid month: {month}", {"month": month}
            )
        last_day = calendar.monthrange(year, month)[1]
        return self.export_to_csv(
            invoices,
            ExportOptions(start_date=date(year, month, 1), end_date=date(year, month, last_day)),
        )
