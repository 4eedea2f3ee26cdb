"""Configuration settings for Ontsugi CRM."""

from decimal import Decimal
from functools import lru_cache
from typing import Literal

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Flat settings read from environment variables and an optional .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Lark Base (record store)
    lark_app_id: str = Field(default="", validation_alias="LARK_APP_ID")
    lark_app_secret: SecretStr = Field(
        default=SecretStr(""), validation_alias="LARK_APP_SECRET"
    )
    lark_base_id: str = Field(
        default="Opspbp1j1a54YNsZ3kaj2hfMpJe", validation_alias="LARK_BASE_ID"
    )
    lark_table_id: str = Field(
        default="tblALCtB4FaCjUjm", validation_alias="LARK_TABLE_ID"
    )
    lark_region: Literal["global", "china"] = Field(
        default="global", validation_alias="LARK_REGION"
    )
    lark_timeout: float = Field(default=30.0, validation_alias="LARK_TIMEOUT")
    lark_page_size: int = Field(
        default=500, ge=1, le=500, validation_alias="LARK_PAGE_SIZE"
    )

    # Billing
    tax_rate: Decimal = Field(default=Decimal("0.10"), validation_alias="TAX_RATE")
    default_payment_terms: str = Field(
        default="請求書発行日より30日以内", validation_alias="DEFAULT_PAYMENT_TERMS"
    )

    # Issuer printed on quotes and invoices
    company_name: str = Field(default="株式会社ontsugi", validation_alias="COMPANY_NAME")
    company_postal_code: str = Field(default="", validation_alias="COMPANY_POSTAL_CODE")
    company_address: str = Field(default="", validation_alias="COMPANY_ADDRESS")
    company_phone: str = Field(default="", validation_alias="COMPANY_PHONE")
    company_email: str = Field(default="", validation_alias="COMPANY_EMAIL")
    company_tax_id: str | None = Field(default=None, validation_alias="COMPANY_TAX_ID")

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO", validation_alias="LOG_LEVEL"
    )
    log_format: Literal["json", "console"] = Field(
        default="console", validation_alias="LOG_FORMAT"
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
