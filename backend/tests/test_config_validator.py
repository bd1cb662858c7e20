"""
Unit tests for startup configuration validation.
"""
from unittest.mock import patch

from core.config_validator import ConfigValidator


class TestConfigValidator:
    """Test the startup checks."""

    def test_default_secret_is_warning_in_development(self):
        with patch("core.config.JWT_SECRET", "change-me"), patch("core.config.IS_DEVELOPMENT", True):
            result = ConfigValidator().validate_all()

        assert any("JWT_SECRET" in w for w in result["warnings"])
        assert not any("JWT_SECRET" in e for e in result["errors"])

    def test_default_secret_is_error_in_production(self):
        with patch("core.config.JWT_SECRET", "change-me"), patch("core.config.IS_DEVELOPMENT", False):
            result = ConfigValidator().validate_all()

        assert result["valid"] is False
        assert any("JWT_SECRET" in e for e in result["errors"])

    def test_missing_asset_credentials_warn(self):
        with patch("core.config.CLOUDINARY_API_KEY", None):
            result = ConfigValidator().validate_all()
        assert any("Asset store credentials missing" in w for w in result["warnings"])

    def test_page_size_bounds(self):
        with patch("core.config.DEFAULT_PAGE_SIZE", 500), patch("core.config.MAX_PAGE_SIZE", 100):
            result = ConfigValidator().validate_all()
        assert any("DEFAULT_PAGE_SIZE" in e for e in result["errors"])

    def test_missing_tables(self, tmp_path):
        empty = tmp_path / "empty.db"
        empty.write_bytes(b"")
        with patch("core.config.DB_PATH", empty):
            result = ConfigValidator().validate_all()
        assert any("Document tables missing" in e for e in result["errors"])
