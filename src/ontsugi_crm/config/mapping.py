"""Lark Base field labels, select options and freee account names.

The Lark Base records API keys fields by their display label, so the
labels below are the wire names of the line-item table.
"""

# Line-item table field labels
FIELD_PROJECT_NAME = "案件名"
FIELD_CONTENT_TYPE = "内容"
FIELD_QUANTITY = "数量"
FIELD_UNIT_PRICE = "単価"
FIELD_SCHEDULED_DATE = "初稿予定日"
FIELD_SUBMISSION_DATE = "初稿提出日"
FIELD_STATUS = "案件状況"
FIELD_INVOICED = "請求済"
FIELD_CLIENT_NAME = "クライアント名"
FIELD_NOTES = "備考"
FIELD_INVOICE_DATE = "請求日"
FIELD_INVOICE_MONTH = "請求月"

DEFAULT_CLIENT_NAME = "株式会社ontsugi"
GENERIC_CLIENT_PREFIX = "OTH"

# Invoice items generated from line-items
LINE_ITEM_UNIT = "件"

# freee journal accounts
ACCOUNT_RECEIVABLE = "売掛金"
ACCOUNT_SALES = "売上高"
ACCOUNT_TAX_PAYABLE = "仮受消費税"
ACCOUNT_BANK = "普通預金"

# freee tax category labels
FREEE_TAX_TAXABLE_10 = "課売上10%"
FREEE_TAX_EXEMPT = "非売上"
FREEE_TAX_NOT_APPLICABLE = "対象外"

FREEE_CSV_HEADERS: tuple[str, ...] = (
    "取引日",
    "借方勘定科目",
    "借方補助科目",
    "借方部門",
    "借方金額",
    "借方税区分",
    "貸方勘定科目",
    "貸方補助科目",
    "貸方部門",
    "貸方金額",
    "貸方税区分",
    "摘要",
    "タグ",
)
