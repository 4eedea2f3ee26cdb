"""Tests for configuration settings."""

from decimal import Decimal


def test_settings_loads_from_env():
    """Test that settings loads from environment variables."""
    # Import after env vars are set in conftest
    from ontsugi_crm.config.settings import get_settings

    get_settings.cache_clear()
    settings = get_settings()

    assert settings.lark_app_id == "cli_test_app"
    assert settings.lark_app_secret.get_secret_value() == "test-secret"
    assert settings.lark_base_id == "bascnTestBase"
    assert settings.lark_table_id == "tblTestTable"


def test_settings_has_defaults():
    """Test that settings has sensible defaults."""
    from ontsugi_crm.config.settings import get_settings

    get_settings.cache_clear()
    settings = get_settings()

    assert settings.lark_region == "global"
    assert settings.lark_timeout == 30.0
    assert settings.lark_page_size == 500
    assert settings.tax_rate == Decimal("0.10")
    assert settings.default_payment_terms == "請求書発行日より30日以内"
    assert settings.log_format == "console"


def test_settings_are_cached():
    """Test that get_settings returns cached instance."""
    from ontsugi_crm.config.settings import get_settings

    get_settings.cache_clear()

    settings1 = get_settings()
    settings2 = get_settings()

    assert settings1 is settings2


def test_tax_rate_from_env(monkeypatch):
    """Test that TAX_RATE is parsed as a Decimal."""
    from ontsugi_crm.config.settings import Settings

    monkeypatch.setenv("TAX_RATE", "0.08")

    assert Settings().tax_rate == Decimal("0.08")


def test_configure_logging_renderer():
    """Test that the log format selects the final renderer."""
    import structlog

    from ontsugi_crm.config.logging import configure_logging

    try:
        configure_logging(level="DEBUG", format="json")
        assert isinstance(
            structlog.get_config()["processors"][-1], structlog.processors.JSONRenderer
        )

        configure_logging(format="console")
        assert isinstance(
            structlog.get_config()["processors"][-1], structlog.dev.ConsoleRenderer
        )
    finally:
        structlog.reset_defaults()
