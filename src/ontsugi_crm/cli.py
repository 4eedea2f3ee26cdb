"""Operator command line for monthly billing.

Usage:
    # Unbilled groups per client and month
    ontsugi-crm groups --year 2025 --month 1

    # Previews with consumption tax
    ontsugi-crm preview --client "株式会社ontsugi"

    # Draft invoice as HTML
    ontsugi-crm invoice "株式会社ontsugi" 2025-01 --html out/invoice.html

    # Issue: mark items invoiced and export for freee
    ontsugi-crm issue "株式会社ontsugi" 2025年01月 --pdf out/invoice.pdf --freee-csv out/freee.csv
"""

import argparse
import asyncio
import re
import sys
from datetime import date
from typing import Any

import structlog

from ontsugi_crm.clients.larkbase import LarkBaseClient
from ontsugi_crm.config import configure_logging, get_settings
from ontsugi_crm.config.clients_loader import get_client_info
from ontsugi_crm.documents.html import format_currency, generate_invoice_html
from ontsugi_crm.documents.pdf import PdfGenerator
from ontsugi_crm.errors import Result
from ontsugi_crm.models import CompanyInfo, Invoice
from ontsugi_crm.repositories.project_items import ProjectItemRepository
from ontsugi_crm.services.freee_export import FreeeExportService
from ontsugi_crm.services.invoicing import InvoiceGenerationOptions, InvoicingService

logger = structlog.get_logger(__name__)

_ISO_MONTH = re.compile(r"^(\d{4})-(\d{1,2})$")


def normalize_month_label(value: str) -> str:
    """Accept ``2025-01`` or ``2025年01月`` and return ``2025年01月``."""
    match = _ISO_MONTH.match(value.strip())
    if match:
        return f"{match.group(1)}年{int(match.group(2)):02d}月"
    return value.strip()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ontsugi-crm",
        description="Ontsugi CRM billing: group line-items, issue invoices, export to freee",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Override LOG_LEVEL",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    def add_group_filters(p: argparse.ArgumentParser) -> None:
        p.add_argument("--client", default=None, help="Client name (select option)")
        p.add_argument("--year", type=int, default=None)
        p.add_argument("--month", type=int, default=None)
        p.add_argument(
            "--all",
            action="store_true",
            help="Include line-items already invoiced",
        )

    add_group_filters(sub.add_parser("groups", help="List invoice groups"))
    add_group_filters(sub.add_parser("preview", help="Preview invoices with tax"))
    sub.add_parser("summary", help="Totals per client")

    for name, help_text in (
        ("invoice", "Build a draft invoice"),
        ("issue", "Issue an invoice and mark its line-items invoiced"),
    ):
        p = sub.add_parser(name, help=help_text)
        p.add_argument("client", help="Client name (select option)")
        p.add_argument("month", type=normalize_month_label, help="2025-01 or 2025年01月")
        p.add_argument("--due-date", type=date.fromisoformat, default=None)
        p.add_argument("--notes", default=None)
        p.add_argument("--html", default=None, help="Write the invoice as HTML")
        p.add_argument("--pdf", default=None, help="Write the invoice as PDF")
        if name == "issue":
            p.add_argument("--freee-csv", default=None, help="Write a freee journal CSV")

    return parser


def _report_failure(result: Result[Any]) -> int:
    error = result.error
    if error is not None:
        print(f"error [{error.code}]: {error.message}", file=sys.stderr)
        for key, value in error.details.items():
            print(f"  {key}: {value}", file=sys.stderr)
    return 1


def _write_outputs(invoice: Invoice, args: argparse.Namespace) -> int:
    client = get_client_info(invoice.client_id)
    company = CompanyInfo.from_settings(get_settings())
    html = generate_invoice_html(invoice, client, company)
    generator = PdfGenerator()

    if args.html:
        saved = generator.save_html_to_file(html, args.html)
        if not saved.success:
            return _report_failure(saved)
        print(f"HTML: {saved.data}")
    if args.pdf:
        pdf = generator.generate_pdf(html)
        if not pdf.success or pdf.data is None:
            return _report_failure(pdf)
        saved = generator.save_pdf_to_file(pdf.data, args.pdf)
        if not saved.success:
            return _report_failure(saved)
        print(f"PDF: {saved.data}")
    if getattr(args, "freee_csv", None):
        saved = FreeeExportService().save_to_file([invoice], args.freee_csv)
        if not saved.success:
            return _report_failure(saved)
        print(f"freee CSV: {saved.data}")
    return 0


def _print_invoice(invoice: Invoice) -> None:
    print(f"{invoice.invoice_number}  {invoice.client_id}  [{invoice.status.value}]")
    for item in invoice.items:
        print(f"  {item.description}  {item.quantity} x {format_currency(item.unit_price)}")
    print(
        f"  小計 {format_currency(invoice.subtotal)}"
        f"  消費税 {format_currency(invoice.tax_amount)}"
        f"  合計 {format_currency(invoice.total_amount)}"
    )


async def execute(args: argparse.Namespace, service: InvoicingService) -> int:
    """Run one parsed command against an invoicing service."""
    if args.command == "groups":
        groups = await service.get_invoice_groups(
            args.client, args.year, args.month, unbilled_only=not args.all
        )
        if not groups.success or groups.data is None:
            return _report_failure(groups)
        for group in groups.data:
            print(
                f"{group.invoice_month}  {group.client_name}  "
                f"{group.item_count}件  {format_currency(group.total_amount)}"
            )
        return 0

    if args.command == "preview":
        previews = await service.get_invoice_previews(
            args.client, args.year, args.month, unbilled_only=not args.all
        )
        if not previews.success or previews.data is None:
            return _report_failure(previews)
        for preview in previews.data:
            print(
                f"{preview.invoice_month}  {preview.client_name}  {preview.item_count}件  "
                f"小計 {format_currency(preview.subtotal)}  "
                f"消費税 {format_currency(preview.tax_amount)}  "
                f"合計 {format_currency(preview.total_amount)}"
            )
        return 0

    if args.command == "summary":
        summaries = await service.get_summary_by_client()
        if not summaries.success or summaries.data is None:
            return _report_failure(summaries)
        for summary in summaries.data:
            print(
                f"{summary.client_name}  {summary.item_count}件  "
                f"合計 {format_currency(summary.total_amount)}  "
                f"請求済 {format_currency(summary.invoiced_amount)}  "
                f"未請求 {format_currency(summary.uninvoiced_amount)}"
            )
        return 0

    options = InvoiceGenerationOptions(due_date=args.due_date, notes=args.notes)
    if args.command == "invoice":
        result = await service.generate_invoice(args.client, args.month, options)
    else:
        result = await service.issue_invoice(args.client, args.month, options)
    if not result.success or result.data is None:
        return _report_failure(result)
    _print_invoice(result.data)
    return _write_outputs(result.data, args)


async def main(argv: list[str] | None = None) -> int:
    """Entry point; returns the process exit code."""
    args = build_parser().parse_args(argv)
    configure_logging(level=args.log_level)
    logger.debug("cli_command", command=args.command)

    async with LarkBaseClient() as client:
        repository = ProjectItemRepository(client, page_size=get_settings().lark_page_size)
        service = InvoicingService(repository)
        return await execute(args, service)


def run() -> None:
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        logger.info("cli_interrupted")
        sys.exit(130)


if __name__ == "__main__":
    run()
