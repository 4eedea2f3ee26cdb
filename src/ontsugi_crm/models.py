"""Domain models: line-items, invoice groups, quotes, invoices, journal entries."""

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Generic, Literal, TypeVar

from ontsugi_crm.config.mapping import (
    DEFAULT_CLIENT_NAME,
    GENERIC_CLIENT_PREFIX,
)

if TYPE_CHECKING:
    from ontsugi_crm.config.settings import Settings

T = TypeVar("T")

# Japan has no daylight saving time, a fixed offset is exact
JST = timezone(timedelta(hours=9), "JST")


def now_jst() -> datetime:
    """Current time in Japan."""
    return datetime.now(JST)


class ContentType(str, Enum):
    """Kind of work a line-item bills for (内容)."""

    EDITING = "編集"
    DIRECTION = "ディレクション"
    OPERATION = "運用"
    SCRIPT = "台本"
    DISCOUNT = "割引"
    OUTSOURCING = "外注"


class DeliveryStatus(str, Enum):
    """Delivery state of a line-item (案件状況)."""

    NOT_STARTED = "未着手"
    IN_PROGRESS = "着手中"
    SUBMITTED = "提出"
    REVISING = "修正中"
    DELIVERED = "納品"
    DISCOUNT = "割引"
    STOCK = "ストック"


class QuoteStatus(str, Enum):
    """Quote lifecycle states."""

    DRAFT = "下書き"
    SENT = "送付済み"
    PENDING_APPROVAL = "承認待ち"
    APPROVED = "承認済み"
    EXPIRED = "失効"
    CANCELLED = "キャンセル"


class InvoiceStatus(str, Enum):
    """Invoice lifecycle states."""

    DRAFT = "下書き"
    ISSUED = "発行済み"
    SENT = "送付済み"
    PARTIALLY_PAID = "一部入金"
    PAID = "入金済み"
    OVERPAID = "過払い"
    UNCOLLECTED = "未回収"
    CANCELLED = "キャンセル"


# Statuses derived from the recorded paid amount
PAYMENT_STATUSES = frozenset(
    {InvoiceStatus.PARTIALLY_PAID, InvoiceStatus.PAID, InvoiceStatus.OVERPAID}
)
PAID_STATUSES = frozenset({InvoiceStatus.PAID, InvoiceStatus.OVERPAID})
UNPAID_STATUSES = frozenset(
    {InvoiceStatus.ISSUED, InvoiceStatus.SENT, InvoiceStatus.PARTIALLY_PAID}
)


class TaxCategory(str, Enum):
    """Consumption tax category of an invoice item (税区分)."""

    TAXABLE_10 = "課税売上10%"
    TAXABLE_8_REDUCED = "課税売上8%（軽減税率）"
    EXEMPT = "非課税売上"
    NOT_APPLICABLE = "不課税売上"


@dataclass
class LineItem:
    """One billable unit of agency work stored in Lark Base."""

    record_id: str
    project_name: str
    content_type: ContentType = ContentType.EDITING
    quantity: int = 0
    unit_price: int = 0
    status: DeliveryStatus = DeliveryStatus.NOT_STARTED
    client_name: str = DEFAULT_CLIENT_NAME
    invoiced: bool = False
    scheduled_date: date | None = None
    submission_date: date | None = None
    invoice_date: date | None = None
    invoice_month: str | None = None  # lookup, e.g. "2025年01月"
    notes: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def amount(self) -> int:
        """Billable amount in yen."""
        return self.quantity * self.unit_price


@dataclass
class InvoiceGroup:
    """Delivered line-items billed together for one client and month."""

    client_name: str
    invoice_month: str
    items: list[LineItem] = field(default_factory=list)

    @property
    def total_amount(self) -> int:
        return sum(item.amount for item in self.items)

    @property
    def item_count(self) -> int:
        return len(self.items)


@dataclass(frozen=True)
class InvoicePreview:
    """An invoice group with tax applied, before an invoice is generated."""

    client_name: str
    invoice_month: str
    items: list[LineItem]
    subtotal: int
    tax_amount: int
    total_amount: int
    item_count: int


@dataclass(frozen=True)
class ClientSummary:
    """Billing totals for one client across all line-items."""

    client_name: str
    total_amount: int = 0
    invoiced_amount: int = 0
    uninvoiced_amount: int = 0
    item_count: int = 0


@dataclass
class QuoteItem:
    """A priced line on a quote."""

    description: str
    quantity: int
    unit_price: int
    unit: str = "式"
    taxable: bool = True
    amount: int = 0
    id: str = ""


@dataclass
class InvoiceItem(QuoteItem):
    """A priced line on an invoice."""

    tax_category: TaxCategory = TaxCategory.TAXABLE_10


@dataclass(frozen=True)
class DocumentTotals:
    """Subtotal, tax and total of a priced item list."""

    taxable_subtotal: int
    non_taxable_subtotal: int
    subtotal: int
    tax_amount: int
    total_amount: int


@dataclass(frozen=True)
class BankAccount:
    """Transfer destination printed on invoices (振込先)."""

    bank_name: str = ""
    branch_name: str = ""
    account_type: Literal["普通", "当座"] = "普通"
    account_number: str = ""
    account_holder: str = ""


@dataclass
class Quote:
    """A quote (見積書)."""

    id: str
    quote_number: str
    project_id: str
    client_id: str
    issue_date: datetime
    valid_until: date
    items: list[QuoteItem]
    tax_rate: Decimal
    subtotal: int = 0
    tax_amount: int = 0
    total_amount: int = 0
    status: QuoteStatus = QuoteStatus.DRAFT
    notes: str | None = None
    created_at: datetime = field(default_factory=now_jst)
    updated_at: datetime = field(default_factory=now_jst)


@dataclass
class Invoice:
    """An invoice (請求書)."""

    id: str
    invoice_number: str
    project_id: str
    client_id: str
    issue_date: datetime
    due_date: date
    items: list[InvoiceItem]
    tax_rate: Decimal
    subtotal: int = 0
    tax_amount: int = 0
    total_amount: int = 0
    paid_amount: int = 0
    status: InvoiceStatus = InvoiceStatus.DRAFT
    quote_id: str | None = None
    notes: str | None = None
    payment_terms: str | None = None
    bank_account: BankAccount | None = None
    created_at: datetime = field(default_factory=now_jst)
    updated_at: datetime = field(default_factory=now_jst)


@dataclass(frozen=True)
class ClientInfo:
    """Addressee printed on quotes and invoices."""

    name: str
    prefix: str = GENERIC_CLIENT_PREFIX
    company_name: str | None = None
    honorific: str = "御中"
    email: str | None = None
    phone: str | None = None
    postal_code: str | None = None
    address: str | None = None
    tax_id: str | None = None

    @property
    def display_name(self) -> str:
        name = self.company_name or self.name
        return f"{name} {self.honorific}" if self.honorific else name


@dataclass(frozen=True)
class CompanyInfo:
    """Issuer printed on quotes and invoices."""

    name: str
    address: str = ""
    postal_code: str = ""
    phone: str = ""
    email: str = ""
    tax_id: str | None = None  # qualified invoice issuer registration number

    @classmethod
    def from_settings(cls, settings: "Settings") -> "CompanyInfo":
        return cls(
            name=settings.company_name,
            address=settings.company_address,
            postal_code=settings.company_postal_code,
            phone=settings.company_phone,
            email=settings.company_email,
            tax_id=settings.company_tax_id,
        )


@dataclass(frozen=True)
class JournalEntry:
    """One double-entry row of a freee journal import."""

    transaction_date: str  # YYYY-MM-DD
    debit_account: str
    debit_amount: int
    debit_tax_category: str
    credit_account: str
    credit_amount: int
    credit_tax_category: str
    description: str
    debit_sub_account: str = ""
    debit_department: str = ""
    credit_sub_account: str = ""
    credit_department: str = ""
    tag: str = ""

    def to_row(self) -> list[str]:
        """Return the CSV row in FREEE_CSV_HEADERS order."""
        return [
            self.transaction_date,
            self.debit_account,
            self.debit_sub_account,
            self.debit_department,
            str(self.debit_amount),
            self.debit_tax_category,
            self.credit_account,
            self.credit_sub_account,
            self.credit_department,
            str(self.credit_amount),
            self.credit_tax_category,
            self.description,
            self.tag,
        ]


@dataclass(frozen=True)
class Page(Generic[T]):
    """One page of a listing.

    Local listings are numbered from 1. Remote listings are cursor based:
    ``page`` is always 1 and ``page_token`` fetches the next page.
    """

    items: list[T]
    total: int
    page: int
    page_size: int
    has_more: bool
    page_token: str | None = None  # cursor for the next page, when remote
