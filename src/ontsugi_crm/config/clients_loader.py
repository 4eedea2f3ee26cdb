"""Utilities for loading client master data from YAML."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml  # type: ignore[import-untyped]

from ontsugi_crm.config.mapping import GENERIC_CLIENT_PREFIX
from ontsugi_crm.models import ClientInfo

DEFAULT_CLIENTS_PATH = Path(__file__).resolve().parent / "clients.yaml"

_OPTIONAL_TEXT_FIELDS = (
    "company_name",
    "email",
    "phone",
    "postal_code",
    "address",
    "tax_id",
)


def _parse_client(name: str, data: Any, source: str) -> ClientInfo:
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValueError(f"{source}: client {name!r} must be a mapping")

    prefix = str(data.get("prefix") or GENERIC_CLIENT_PREFIX).strip().upper()
    if not prefix.isalnum():
        raise ValueError(f"{source}: invalid prefix for {name!r}: {prefix!r}")

    kwargs: dict[str, Any] = {"name": name, "prefix": prefix}
    if "honorific" in data:
        kwargs["honorific"] = str(data["honorific"] or "")
    for key in _OPTIONAL_TEXT_FIELDS:
        value = data.get(key)
        if value is not None:
            kwargs[key] = str(value)
    return ClientInfo(**kwargs)


@lru_cache
def load_client_directory(path: Path | None = None) -> dict[str, ClientInfo]:
    """Load client master data.

    Args:
        path: YAML file to read. Defaults to the packaged ``clients.yaml``.

    Returns:
        Mapping of client name (the Lark Base select option) to ClientInfo.
    """
    source = path or DEFAULT_CLIENTS_PATH
    if not source.exists():
        return {}

    data = yaml.safe_load(source.read_text(encoding="utf-8")) or {}
    clients = data.get("clients") or {}
    if not isinstance(clients, dict):
        raise ValueError(f"{source.name}: clients must be a mapping")

    return {
        str(name): _parse_client(str(name), entry, source.name)
        for name, entry in clients.items()
    }


def get_client_info(
    client_name: str, directory: dict[str, ClientInfo] | None = None
) -> ClientInfo:
    """Look up a client, falling back to a generic entry for unknown names."""
    clients = load_client_directory() if directory is None else directory
    return clients.get(client_name) or ClientInfo(name=client_name)


def get_client_prefix(
    client_name: str, directory: dict[str, ClientInfo] | None = None
) -> str:
    """Invoice-number prefix for a client; unknown clients get ``OTH``."""
    return get_client_info(client_name, directory).prefix
