"""
Unit tests for Pydantic Settings configuration.

Tests settings loading and validation.
"""

import pytest
from pydantic import ValidationError


class TestSettings:
    """Tests for Settings configuration."""

    def test_settings_has_defaults(self):
        """Settings should have sensible defaults."""
        from app.config.settings import settings

        assert settings.database_url is not None
        assert settings.plan_days_per_month > 0
        assert settings.environment in ("development", "production", "testing")

    def test_allowed_origins_includes_localhost(self):
        """allowed_origins should include localhost for development."""
        from app.config.settings import Settings

        assert "http://localhost:3000" in Settings(_env_file=None).allowed_origins

    def test_environment_properties(self):
        from app.config.settings import Settings

        production = Settings(_env_file=None, environment="production")
        development = Settings(_env_file=None, environment="development")

        assert production.is_production is True
        assert production.is_development is False
        assert development.is_development is True

    def test_no_unused_frontend_url(self):
        from app.config.settings import Settings

        assert "frontend_url" not in Settings.model_fields

    def test_get_settings_is_cached(self):
        from app.config.settings import get_settings

        assert get_settings() is get_settings()


class TestDatabaseUrlNormalization:
    """Sync driver URLs are rewritten to async drivers."""

    @pytest.mark.parametrize(
        "url,expected",
        [
            ("postgres://u:p@db:5432/studio", "postgresql+asyncpg://u:p@db:5432/studio"),
            ("postgresql://u:p@db:5432/studio", "postgresql+asyncpg://u:p@db:5432/studio"),
            ("sqlite:///./data/studio.db", "sqlite+aiosqlite:///./data/studio.db"),
            ("sqlite+aiosqlite:///:memory:", "sqlite+aiosqlite:///:memory:"),
        ],
    )
    def test_normalize(self, url, expected):
        from app.config.settings import Settings

        assert Settings(_env_file=None, database_url=url).database_url == expected

    def test_is_sqlite(self):
        from app.config.settings import Settings

        assert Settings(_env_file=None, database_url="sqlite:///x.db").is_sqlite is True
        assert Settings(_env_file=None, database_url="postgres://h/db").is_sqlite is False

    def test_rejects_non_positive_days_per_month(self):
        from app.config.settings import Settings

        with pytest.raises(ValidationError):
            Settings(_env_file=None, plan_days_per_month=0)
