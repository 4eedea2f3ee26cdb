"""Grouping of delivered line-items into per-client monthly invoices."""

import re
from dataclasses import dataclass
from datetime import date

from ontsugi_crm.models import DeliveryStatus, InvoiceGroup, LineItem, now_jst

_MONTH_LABEL = re.compile(r"(\d{4})年(\d{1,2})月")


@dataclass(frozen=True)
class GroupFilter:
    """Which line-items take part in grouping."""

    client_name: str | None = None
    year: int | None = None
    month: int | None = None
    unbilled_only: bool = True


def format_month_label(value: date) -> str:
    """Format a date as a zero-padded month label, e.g. ``2025年01月``."""
    return f"{value.year}年{value.month:02d}月"


def parse_month_label(label: str) -> tuple[int, int] | None:
    """Return (year, month) from a label such as ``2025年01月``."""
    match = _MONTH_LABEL.search(label)
    if match is None:
        return None
    year, month = int(match.group(1)), int(match.group(2))
    if not 1 <= month <= 12:
        return None
    return year, month


def resolve_month(item: LineItem, today: date | None = None) -> str:
    """Month label an item is billed in."""
    if item.invoice_month:
        return item.invoice_month
    return format_month_label(item.submission_date or today or now_jst().date())


def _is_eligible(item: LineItem, group_filter: GroupFilter) -> bool:
    if item.status != DeliveryStatus.DELIVERED:
        return False
    if group_filter.unbilled_only and item.invoiced:
        return False
    if group_filter.client_name and item.client_name != group_filter.client_name:
        return False
    return True


def _in_month(item: LineItem, year: int, month: int) -> bool:
    if item.invoice_month:
        return f"{year}年{month:02d}月" in item.invoice_month
    if item.invoice_date:
        return item.invoice_date.year == year and item.invoice_date.month == month
    return False


def compute_groups(
    items: list[LineItem],
    group_filter: GroupFilter | None = None,
    today: date | None = None,
) -> list[InvoiceGroup]:
    """Partition eligible line-items by (client, month).

    Only delivered items are eligible. Groups keep the input order of their
    members and are sorted by month label, newest first. Labels compare as
    strings, which orders correctly because they are zero-padded.
    """
    group_filter = group_filter or GroupFilter()
    eligible = [item for item in items if _is_eligible(item, group_filter)]

    if group_filter.year and group_filter.month:
        eligible = [
            item
            for item in eligible
            if _in_month(item, group_filter.year, group_filter.month)
        ]

    groups: dict[tuple[str, str], InvoiceGroup] = {}
    for item in eligible:
        month = resolve_month(item, today)
        key = (item.client_name, month)
        if key not in groups:
            groups[key] = InvoiceGroup(client_name=item.client_name, invoice_month=month)
        groups[key].items.append(item)

    return sorted(groups.values(), key=lambda g: g.invoice_month, reverse=True)
