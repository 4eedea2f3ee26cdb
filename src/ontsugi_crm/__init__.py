"""Ontsugi CRM - Lark Base line-items to invoices, documents and freee journals."""

__version__ = "0.1.0"

from ontsugi_crm.clients import LarkBaseClient, LarkRecord, RecordPage
from ontsugi_crm.config import configure_logging, get_settings
from ontsugi_crm.documents import PdfGenerator, PdfOptions
from ontsugi_crm.errors import CRMError, ErrorCode, ErrorInfo, Result
from ontsugi_crm.repositories import DocumentStore, ProjectItemRepository
from ontsugi_crm.services import (
    FreeeExportService,
    InvoiceService,
    InvoicingService,
    QuoteService,
    compute_groups,
    price_items,
)

__all__ = [
    # Version
    "__version__",
    # Record store
    "LarkBaseClient",
    "LarkRecord",
    "RecordPage",
    "ProjectItemRepository",
    "DocumentStore",
    # Services
    "InvoicingService",
    "InvoiceService",
    "QuoteService",
    "FreeeExportService",
    "compute_groups",
    "price_items",
    # Documents
    "PdfGenerator",
    "PdfOptions",
    # Errors
    "CRMError",
    "ErrorCode",
    "ErrorInfo",
    "Result",
    # Config
    "configure_logging",
    "get_settings",
]
