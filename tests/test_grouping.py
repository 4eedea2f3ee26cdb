"""Tests for invoice grouping."""

from datetime import date

from ontsugi_crm.models import DeliveryStatus
from ontsugi_crm.services.grouping import (
    GroupFilter,
    compute_groups,
    format_month_label,
    parse_month_label,
    resolve_month,
)


class TestMonthLabels:
    """Tests for month label helpers."""

    def test_format_is_zero_padded(self):
        assert format_month_label(date(2025, 1, 15)) == "2025年01月"
        assert format_month_label(date(2024, 12, 1)) == "2024年12月"

    def test_parse(self):
        assert parse_month_label("2025年01月") == (2025, 1)
        assert parse_month_label("請求月: 2024年9月") == (2024, 9)
        assert parse_month_label("2025年13月") is None
        assert parse_month_label("January") is None

    def test_resolve_month_prefers_lookup(self, item_factory):
        assert resolve_month(item_factory(invoice_month="2024年12月")) == "2024年12月"
        assert resolve_month(item_factory()) == "2025年01月"

    def test_resolve_month_without_dates_uses_today(self, item_factory):
        item = item_factory(submission_date=None)

        assert resolve_month(item, today=date(2025, 3, 4)) == "2025年03月"


class TestComputeGroups:
    """Tests for compute_groups."""

    def test_partitions_by_client_and_month(self, item_factory):
        items = [
            item_factory("rec1", unit_price=10000),
            item_factory("rec2", unit_price=5000, quantity=3),
            item_factory("rec3", client_name="中村 香菜枝様"),
            item_factory("rec4", submission_date=date(2024, 12, 20)),
        ]

        groups = compute_groups(items)

        assert [(g.client_name, g.invoice_month) for g in groups] == [
            ("株式会社ontsugi", "2025年01月"),
            ("中村 香菜枝様", "2025年01月"),
            ("株式会社ontsugi", "2024年12月"),
        ]
        first = groups[0]
        assert [item.record_id for item in first.items] == ["rec1", "rec2"]
        assert first.total_amount == 25000
        assert first.item_count == 2

    def test_only_delivered_items(self, item_factory):
        items = [
            item_factory("rec1"),
            item_factory("rec2", status=DeliveryStatus.IN_PROGRESS),
            item_factory("rec3", status=DeliveryStatus.SUBMITTED),
        ]

        groups = compute_groups(items)

        assert [item.record_id for g in groups for item in g.items] == ["rec1"]

    def test_invoiced_items_excluded_when_unbilled_only(self, item_factory):
        items = [item_factory("rec1"), item_factory("rec2", invoiced=True)]

        unbilled = compute_groups(items)
        everything = compute_groups(items, GroupFilter(unbilled_only=False))

        assert unbilled[0].item_count == 1
        assert everything[0].item_count == 2

    def test_client_filter(self, item_factory):
        items = [item_factory("rec1"), item_factory("rec2", client_name="中村 香菜枝様")]

        groups = compute_groups(items, GroupFilter(client_name="中村 香菜枝様"))

        assert len(groups) == 1
        assert groups[0].client_name == "中村 香菜枝様"

    def test_year_month_filter(self, item_factory):
        """Test that the month filter uses the lookup label, then the invoice date."""
        items = [
            item_factory("rec1", invoice_month="2025年01月"),
            item_factory("rec2", invoice_month="2024年12月"),
            item_factory("rec3", invoice_date=date(2025, 1, 31)),
            item_factory("rec4"),
        ]

        groups = compute_groups(items, GroupFilter(year=2025, month=1))

        assert [item.record_id for g in groups for item in g.items] == ["rec1", "rec3"]

    def test_empty_input(self):
        assert compute_groups([]) == []

    def test_groups_sorted_newest_first(self, item_factory):
        items = [
            item_factory("rec1", invoice_month="2024年11月"),
            item_factory("rec2", invoice_month="2025年02月"),
            item_factory("rec3", invoice_month="2024年12月"),
        ]

        months = [g.invoice_month for g in compute_groups(items)]

        assert months == ["2025年02月", "2024年12月", "2024年11月"]
