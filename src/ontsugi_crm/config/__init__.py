"""Configuration module for Ontsugi CRM."""

from ontsugi_crm.config.logging import configure_logging, get_logger
from ontsugi_crm.config.settings import Settings, get_settings

__all__ = ["Settings", "get_settings", "configure_logging", "get_logger"]
