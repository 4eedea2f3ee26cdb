"""PDF output for quotes and invoices via WeasyPrint."""

from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Literal

import structlog

from ontsugi_crm.documents.html import generate_invoice_html, generate_quote_html
from ontsugi_crm.errors import ErrorCode, Result
from ontsugi_crm.models import ClientInfo, CompanyInfo, Invoice, Quote

logger = structlog.get_logger(__name__)

# (html, page stylesheet) -> PDF bytes
Renderer = Callable[[str, str], bytes]


@dataclass(frozen=True)
class PdfOptions:
    """Paper and margins, margins in millimetres."""

    paper_size: Literal["A4", "Letter"] = "A4"
    orientation: Literal["portrait", "landscape"] = "portrait"
    margin_top: float = 20
    margin_right: float = 20
    margin_bottom: float = 20
    margin_left: float = 20

    def page_css(self) -> str:
        return (
            f"@page {{ size: {self.paper_size} {self.orientation}; "
            f"margin: {self.margin_top}mm {self.margin_right}mm "
            f"{self.margin_bottom}mm {self.margin_left}mm; }}"
        )


def weasyprint_render(html: str, page_css: str) -> bytes:
    """Render HTML to PDF bytes."""
    from weasyprint import CSS, HTML

    return HTML(string=html).write_pdf(stylesheets=[CSS(string=page_css)])


class PdfGenerator:
    """Renders documents to PDF and writes them to disk."""

    def __init__(self, render: Renderer | None = None):
        self._render = render or weasyprint_render

    def generate_pdf(self, html: str, options: PdfOptions | None = None) -> Result[bytes]:
        options = options or PdfOptions()
        try:
            pdf = self._render(html, options.page_css())
        except Exception as e:
            logger.exception("pdf_generation_failed")
            return Result.from_exception(e, ErrorCode.PDF_GENERATION_FAILED)
        logger.debug("pdf_generated", size=len(pdf), paper=options.paper_size)
        return Result.ok(pdf)

    def generate_quote_pdf(
        self,
        quote: Quote,
        client: ClientInfo,
        company: CompanyInfo,
        options: PdfOptions | None = None,
    ) -> Result[bytes]:
        return self.generate_pdf(generate_quote_html(quote, client, company), options)

    def generate_invoice_pdf(
        self,
        invoice: Invoice,
        client: ClientInfo,
        company: CompanyInfo,
        options: PdfOptions | None = None,
    ) -> Result[bytes]:
        return self.generate_pdf(generate_invoice_html(invoice, client, company), options)

    @staticmethod
    def save_pdf_to_file(pdf: bytes, path: str | Path) -> Result[Path]:
        target = Path(path)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(pdf)
        except OSError as e:
            logger.warning("pdf_write_failed", path=str(target), error=str(e))
            return Result.fail(ErrorCode.FILE_WRITE_FAILED, str(e), {"path": str(target)})
        logger.info("pdf_saved", path=str(target))
        return Result.ok(target)

    @staticmethod
    def save_html_to_file(html: str, path: str | Path) -> Result[Path]:
        target = Path(path)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(html, encoding="utf-8")
        except OSError as e:
            logger.warning("html_write_failed", path=str(target), error=str(e))
            return Result.fail(ErrorCode.FILE_WRITE_FAILED, str(e), {"path": str(target)})
        logger.info("html_saved", path=str(target))
        return Result.ok(target)
