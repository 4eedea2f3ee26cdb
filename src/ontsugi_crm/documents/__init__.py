"""Quote and invoice documents: HTML and PDF."""

from ontsugi_crm.documents.html import (
    format_currency,
    format_date,
    generate_invoice_html,
    generate_quote_html,
)
from ontsugi_crm.documents.pdf import PdfGenerator, PdfOptions

__all__ = [
    "PdfGenerator",
    "PdfOptions",
    "format_currency",
    "format_date",
    "generate_invoice_html",
    "generate_quote_html",
]
