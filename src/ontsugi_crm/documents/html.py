"""HTML rendering of quotes and invoices, suitable for PDF conversion."""

from collections.abc import Sequence
from datetime import date, datetime
from decimal import Decimal
from html import escape

from ontsugi_crm.models import (
    JST,
    BankAccount,
    ClientInfo,
    CompanyInfo,
    Invoice,
    Quote,
    QuoteItem,
)

DOCUMENT_CSS = """
    * { margin: 0; padding: 0; box-sizing: border-box; }
    body {
        font-family: "Hiragino Kaku Gothic ProN", "Hiragino Sans", "Noto Sans CJK JP", sans-serif;
        font-size: 12px;
        line-height: 1.6;
        color: #333;
    }
    .header { text-align: center; margin-bottom: 40px; }
    .header h1 { font-size: 24px; border-bottom: 2px solid #333; padding-bottom: 10px; }
    .info-section { display: flex; justify-content: space-between; margin-bottom: 30px; }
    .client-info, .company-info { width: 45%; }
    .client-info h2, .company-info h2 {
        font-size: 14px;
        margin-bottom: 10px;
        border-bottom: 1px solid #ccc;
        padding-bottom: 5px;
    }
    .meta { margin-bottom: 20px; }
    .meta table { margin-left: auto; }
    .meta td { padding: 5px 10px; }
    .total-box {
        background-color: #e8f4f8;
        border: 2px solid #0066cc;
        padding: 15px;
        margin-bottom: 30px;
        text-align: center;
    }
    .total-box .label { font-size: 14px; margin-bottom: 5px; }
    .total-box .amount { font-size: 24px; font-weight: bold; color: #0066cc; }
    .items-table { width: 100%; border-collapse: collapse; margin-bottom: 30px; }
    .items-table th, .items-table td { border: 1px solid #ccc; padding: 8px; text-align: left; }
    .items-table th { background-color: #f5f5f5; font-weight: bold; }
    .items-table .index { width: 5%; text-align: center; }
    .items-table .description { width: 40%; }
    .items-table .quantity { width: 10%; text-align: right; }
    .items-table .unit { width: 10%; text-align: center; }
    .items-table .price { width: 15%; text-align: right; }
    .items-table .amount { width: 20%; text-align: right; }
    .totals { width: 300px; margin-left: auto; margin-bottom: 30px; }
    .totals table { width: 100%; border-collapse: collapse; }
    .totals td { padding: 8px; border: 1px solid #ccc; }
    .totals .label { background-color: #f5f5f5; width: 40%; }
    .totals .value { text-align: right; font-weight: bold; }
    .totals .grand-total { font-size: 16px; background-color: #e8f4f8; }
    .bank-info, .notes { margin-top: 20px; padding: 15px; border: 1px solid #ddd; }
    .bank-info { background-color: #f9f9f9; }
    .notes { background-color: #fff9e6; border-color: #f0c36d; }
    .bank-info h3, .notes h3 { font-size: 12px; margin-bottom: 10px; }
    .bank-info td { padding: 3px 10px; }
    .footer { margin-top: 30px; font-size: 11px; color: #666; }
"""


def format_currency(amount: int) -> str:
    """Format yen, e.g. ``¥1,234``."""
    if amount < 0:
        return f"-¥{-amount:,}"
    return f"¥{amount:,}"


def format_date(value: date | datetime) -> str:
    """Format a date in Japanese, e.g. ``2025年1月15日``."""
    if isinstance(value, datetime):
        value = value.astimezone(JST).date() if value.tzinfo else value.date()
    return f"{value.year}年{value.month}月{value.day}日"


def format_tax_rate(rate: Decimal) -> str:
    percent = (Decimal(rate) * 100).normalize()
    return f"{percent:f}%"


def _multiline(text: str) -> str:
    return escape(text).replace("\n", "<br>")


def _item_rows(items: Sequence[QuoteItem]) -> str:
    return "".join(
        f"""
        <tr>
            <td class="index">{index}</td>
            <td class="description">{escape(item.description)}</td>
            <td class="quantity">{item.quantity}</td>
            <td class="unit">{escape(item.unit)}</td>
            <td class="price">{format_currency(item.unit_price)}</td>
            <td class="amount">{format_currency(item.amount)}</td>
        </tr>"""
        for index, item in enumerate(items, start=1)
    )


def _items_table(items: Sequence[QuoteItem]) -> str:
    return f"""
    <table class="items-table">
        <thead>
            <tr>
                <th class="index">No.</th>
                <th class="description">品目・内容</th>
                <th class="quantity">数量</th>
                <th class="unit">単位</th>
                <th class="price">単価</th>
                <th class="amount">金額</th>
            </tr>
        </thead>
        <tbody>{_item_rows(items)}
        </tbody>
    </table>"""


def _parties(addressee_label: str, client: ClientInfo, company: CompanyInfo) -> str:
    client_address = ""
    if client.postal_code:
        client_address += f"<p>〒{escape(client.postal_code)}</p>"
    if client.address:
        client_address += f"<p>{escape(client.address)}</p>"
    tax_id = f"<p>登録番号: {escape(company.tax_id)}</p>" if company.tax_id else ""
    return f"""
    <div class="info-section">
        <div class="client-info">
            <h2>{addressee_label}</h2>
            <p><strong>{escape(client.display_name)}</strong></p>
            {client_address}
        </div>
        <div class="company-info">
            <h2>発行元</h2>
            <p><strong>{escape(company.name)}</strong></p>
            <p>〒{escape(company.postal_code)}</p>
            <p>{escape(company.address)}</p>
            <p>TEL: {escape(company.phone)}</p>
            <p>Email: {escape(company.email)}</p>
            {tax_id}
        </div>
    </div>"""


def _notes(notes: str | None) -> str:
    if not notes:
        return ""
    return f"""
    <div class="notes">
        <h3>備考</h3>
        <p>{_multiline(notes)}</p>
    </div>"""


def _bank_account(account: BankAccount | None) -> str:
    if account is None or not account.bank_name:
        return ""
    rows = (
        ("銀行名", account.bank_name),
        ("支店名", account.branch_name),
        ("口座種別", account.account_type),
        ("口座番号", account.account_number),
        ("口座名義", account.account_holder),
    )
    cells = "".join(
        f"<tr><td>{label}:</td><td>{escape(value)}</td></tr>" for label, value in rows
    )
    return f"""
    <div class="bank-info">
        <h3>お振込先</h3>
        <table>{cells}</table>
    </div>"""


def _page(title: str, body: str) -> str:
    return f"""<!DOCTYPE html>
<html lang="ja">
<head>
    <meta charset="utf-8">
    <title>{escape(title)}</title>
    <style>{DOCUMENT_CSS}</style>
</head>
<body>{body}
</body>
</html>"""


def generate_quote_html(quote: Quote, client: ClientInfo, company: CompanyInfo) -> str:
    """Render a quote (御見積書)."""
    body = f"""
    <div class="header"><h1>御 見 積 書</h1></div>
    {_parties('宛先', client, company)}
    <div class="meta">
        <table>
            <tr><td>見積番号:</td><td><strong>{escape(quote.quote_number)}</strong></td></tr>
            <tr><td>発行日:</td><td>{format_date(quote.issue_date)}</td></tr>
            <tr><td>有効期限:</td><td>{format_date(quote.valid_until)}</td></tr>
        </table>
    </div>
    {_items_table(quote.items)}
    <div class="totals">
        <table>
            <tr><td class="label">小計</td><td class="value">{format_currency(quote.subtotal)}</td></tr>
            <tr>
                <td class="label">消費税（{format_tax_rate(quote.tax_rate)}）</td>
                <td class="value">{format_currency(quote.tax_amount)}</td>
            </tr>
            <tr>
                <td class="label grand-total">合計金額</td>
                <td class="value grand-total">{format_currency(quote.total_amount)}</td>
            </tr>
        </table>
    </div>
    {_notes(quote.notes)}
    <div class="footer">
        <p>※ 本見積書の有効期限は {format_date(quote.valid_until)} までとなります。</p>
        <p>※ 上記金額には消費税が含まれております。</p>
    </div>"""
    return _page(f"見積書 {quote.quote_number}", body)


def generate_invoice_html(
    invoice: Invoice, client: ClientInfo, company: CompanyInfo
) -> str:
    """Render an invoice (請求書)."""
    payment_terms = (
        f"<p>※ {escape(invoice.payment_terms)}</p>" if invoice.payment_terms else ""
    )
    body = f"""
    <div class="header"><h1>請 求 書</h1></div>
    {_parties('請求先', client, company)}
    <div class="meta">
        <table>
            <tr><td>請求書番号:</td><td><strong>{escape(invoice.invoice_number)}</strong></td></tr>
            <tr><td>発行日:</td><td>{format_date(invoice.issue_date)}</td></tr>
            <tr><td>お支払期限:</td><td><strong>{format_date(invoice.due_date)}</strong></td></tr>
        </table>
    </div>
    <div class="total-box">
        <div class="label">ご請求金額（税込）</div>
        <div class="amount">{format_currency(invoice.total_amount)}</div>
    </div>
    {_items_table(invoice.items)}
    <div class="totals">
        <table>
            <tr><td class="label">小計</td><td class="value">{format_currency(invoice.subtotal)}</td></tr>
            <tr>
                <td class="label">消費税（{format_tax_rate(invoice.tax_rate)}）</td>
                <td class="value">{format_currency(invoice.tax_amount)}</td>
            </tr>
            <tr><td class="label">合計</td><td class="value">{format_currency(invoice.total_amount)}</td></tr>
        </table>
    </div>
    {_bank_account(invoice.bank_account)}
    {_notes(invoice.notes)}
    <div class="footer">
        <p>※ お支払い期限までにお振込みをお願いいたします。</p>
        <p>※ 振込手数料は貴社にてご負担ください。</p>
        {payment_terms}
    </div>"""
    return _page(f"請求書 {invoice.invoice_number}", body)
