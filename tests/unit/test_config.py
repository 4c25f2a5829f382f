# tests/unit/test_config.py
"""Unit tests for settings validation."""

import pytest
from pydantic import ValidationError


class TestSettings:
    """Tests for Settings validators."""

    def test_defaults(self):
        from app.config import Settings

        settings = Settings()

        assert settings.RECOVERY_WINDOW_HOURS == 48
        assert settings.STALE_DRAFT_DAYS == 30
        assert settings.RECLAMATION_BATCH_SIZE == 100
        assert settings.RECLAMATION_MAX_PER_RUN == 1000
        assert settings.RECLAMATION_SCHEDULER_ENABLED is False

    def test_railway_postgres_url_rewritten(self):
        from app.config import Settings

        settings = Settings(DATABASE_URL="postgresql://u:p@db:5432/reports")

        assert settings.DATABASE_URL == "postgresql+psycopg2://u:p@db:5432/reports"

    def test_sqlite_url_untouched(self):
        from app.config import Settings

        assert Settings(DATABASE_URL="sqlite:///./x.db").DATABASE_URL == "sqlite:///./x.db"

    @pytest.mark.parametrize(
        "field",
        ["RECOVERY_WINDOW_HOURS", "STALE_DRAFT_DAYS", "RECLAMATION_BATCH_SIZE", "RECLAMATION_INTERVAL_HOURS"],
    )
    def test_rejects_non_positive(self, field):
        from app.config import Settings

        with pytest.raises(ValidationError, match="greater than zero"):
            Settings(**{field: 0})

    def test_batch_larger_than_run_rejected(self):
        from app.config import Settings

        with pytest.raises(ValidationError, match="cannot exceed"):
            Settings(RECLAMATION_BATCH_SIZE=500, RECLAMATION_MAX_PER_RUN=100)

    def test_report_store_normalized(self):
        from app.config import Settings

        assert Settings(REPORT_STORE=" Memory ").REPORT_STORE == "memory"

        with pytest.raises(ValidationError):
            Settings(REPORT_STORE="redis")


class TestPolicyFromSettings:
    """Settings flow into the policy and job configuration."""

    def test_reclamation_config(self):
        from datetime import timedelta

        from app.config import Settings
        from app.services.lifecycle.reclamation_service import ReclamationConfig

        settings = Settings(RECLAMATION_BATCH_SIZE=25, RECLAMATION_MAX_PER_RUN=200, RECOVERY_WINDOW_HOURS=24)

        config = ReclamationConfig.from_settings(settings)

        assert config.batch_size == 25
        assert config.max_per_run == 200
        assert config.policy.recovery_window == timedelta(hours=24)
