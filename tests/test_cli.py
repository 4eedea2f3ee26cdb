"""Tests for the command line."""

from datetime import date
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from ontsugi_crm import cli
from ontsugi_crm.cli import build_parser, execute, normalize_month_label
from ontsugi_crm.services.invoicing import InvoicingService


@pytest.fixture
def service(fake_repository, item_factory, clock, tax_rate, client_directory):
    repository = fake_repository(
        [
            item_factory("rec1", unit_price=10000),
            item_factory("rec2", client_name="中村 香菜枝様", unit_price=8000),
        ]
    )
    return InvoicingService(
        repository,
        tax_rate=tax_rate,
        number_generator=lambda prefix, ym: f"INV-{prefix}-{ym}-0001",
        clock=clock,
        client_directory=client_directory,
    )


class TestParser:
    """Tests for argument parsing."""

    def test_normalize_month_label(self):
        assert normalize_month_label("2025-01") == "2025年01月"
        assert normalize_month_label("2025-1") == "2025年01月"
        assert normalize_month_label("2025年01月") == "2025年01月"

    def test_issue_arguments(self):
        args = build_parser().parse_args(
            [
                "issue",
                "株式会社ontsugi",
                "2025-01",
                "--due-date",
                "2025-02-28",
                "--freee-csv",
                "out.csv",
            ]
        )

        assert args.command == "issue"
        assert args.month == "2025年01月"
        assert args.due_date == date(2025, 2, 28)
        assert args.freee_csv == "out.csv"

    def test_group_filters(self):
        args = build_parser().parse_args(["groups", "--year", "2025", "--month", "1", "--all"])

        assert (args.year, args.month, args.all) == (2025, 1, True)

    def test_command_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])


class TestExecute:
    """Tests for running commands against a service."""

    @pytest.mark.asyncio
    async def test_groups(self, service, capsys):
        code = await execute(build_parser().parse_args(["groups"]), service)

        out = capsys.readouterr().out
        assert code == 0
        assert "株式会社ontsugi" in out
        assert "¥10,000" in out

    @pytest.mark.asyncio
    async def test_preview(self, service, capsys):
        code = await execute(
            build_parser().parse_args(["preview", "--client", "中村 香菜枝様"]), service
        )

        out = capsys.readouterr().out
        assert code == 0
        assert "消費税 ¥800" in out
        assert "合計 ¥8,800" in out

    @pytest.mark.asyncio
    async def test_invoice_writes_html(self, service, tmp_path, capsys):
        target = tmp_path / "invoice.html"
        args = build_parser().parse_args(
            ["invoice", "株式会社ontsugi", "2025-01", "--html", str(target)]
        )

        code = await execute(args, service)

        assert code == 0
        assert "INV-ONT-202501-0001" in target.read_text(encoding="utf-8")
        assert "INV-ONT-202501-0001" in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_issue_writes_freee_csv(self, service, tmp_path):
        target = tmp_path / "freee.csv"
        args = build_parser().parse_args(
            ["issue", "中村 香菜枝様", "2025年01月", "--freee-csv", str(target)]
        )

        code = await execute(args, service)

        assert code == 0
        assert "INV-NKM-202501-0001 売上計上" in target.read_text(encoding="utf-8-sig")

    @pytest.mark.asyncio
    async def test_failure_exit_code(self, service, capsys):
        args = build_parser().parse_args(["invoice", "株式会社ontsugi", "2024-12"])

        code = await execute(args, service)

        assert code == 1
        assert "NOT_FOUND" in capsys.readouterr().err


class TestMain:
    """Tests for main wiring."""

    @pytest.mark.asyncio
    async def test_main_closes_client(self):
        lark_client = MagicMock()
        lark_client.__aenter__ = AsyncMock(return_value=lark_client)
        lark_client.__aexit__ = AsyncMock(return_value=None)

        with (
            patch.object(cli, "LarkBaseClient", return_value=lark_client),
            patch.object(cli, "execute", AsyncMock(return_value=0)) as mock_execute,
            patch.object(cli, "configure_logging"),
        ):
            code = await cli.main(["summary"])

        assert code == 0
        mock_execute.assert_awaited_once()
        lark_client.__aexit__.assert_awaited_once()
