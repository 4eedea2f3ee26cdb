"""Tests for the client master data loader."""

import pytest

from ontsugi_crm.config.clients_loader import (
    get_client_info,
    get_client_prefix,
    load_client_directory,
)


class TestLoadClientDirectory:
    """Tests for load_client_directory."""

    def test_packaged_clients(self):
        clients = load_client_directory()

        assert clients["株式会社ontsugi"].prefix == "ONT"
        assert clients["株式会社ontsugi"].display_name == "株式会社ontsugi 御中"
        assert clients["中村 香菜枝様"].prefix == "NKM"
        assert clients["中村 香菜枝様"].display_name == "中村 香菜枝様"

    def test_custom_file(self, tmp_path):
        path = tmp_path / "clients.yaml"
        path.write_text(
            "clients:\n"
            "  株式会社サンプル:\n"
            "    prefix: smp\n"
            "    postal_code: 100-0001\n"
            "  個人様:\n",
            encoding="utf-8",
        )

        clients = load_client_directory(path)

        assert clients["株式会社サンプル"].prefix == "SMP"
        assert clients["株式会社サンプル"].postal_code == "100-0001"
        assert clients["個人様"].prefix == "OTH"

    def test_missing_file(self, tmp_path):
        assert load_client_directory(tmp_path / "absent.yaml") == {}

    def test_invalid_prefix(self, tmp_path):
        path = tmp_path / "clients.yaml"
        path.write_text("clients:\n  悪い:\n    prefix: 'A-1'\n", encoding="utf-8")

        with pytest.raises(ValueError, match="invalid prefix"):
            load_client_directory(path)


class TestLookups:
    """Tests for get_client_info and get_client_prefix."""

    def test_unknown_client_is_generic(self, client_directory):
        info = get_client_info("新規様", client_directory)

        assert info.name == "新規様"
        assert info.prefix == "OTH"
        assert info.display_name == "新規様 御中"

    def test_prefix_from_directory(self, client_directory):
        assert get_client_prefix("中村 香菜枝様", client_directory) == "NKM"
        assert get_client_prefix("株式会社ontsugi", {}) == "OTH"
