"""Billing services: grouping, pricing, invoicing, quotes and freee export."""

from ontsugi_crm.services.freee_export import (
    ExportOptions,
    FreeeExportService,
    invoice_to_journal_entries,
)
from ontsugi_crm.services.grouping import (
    GroupFilter,
    compute_groups,
    format_month_label,
    parse_month_label,
)
from ontsugi_crm.services.invoices import InvoiceService, MonthlySummary
from ontsugi_crm.services.invoicing import InvoiceGenerationOptions, InvoicingService
from ontsugi_crm.services.pricing import PricedItems, price_items
from ontsugi_crm.services.quotes import QuoteService

__all__ = [
    "ExportOptions",
    "FreeeExportService",
    "GroupFilter",
    "InvoiceGenerationOptions",
    "InvoiceService",
    "InvoicingService",
    "MonthlySummary",
    "PricedItems",
    "QuoteService",
    "compute_groups",
    "format_month_label",
    "invoice_to_journal_entries",
    "parse_month_label",
    "price_items",
]
