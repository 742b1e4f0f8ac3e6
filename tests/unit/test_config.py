"""Unit tests for settings loading."""

import pytest
from pydantic import ValidationError

from src.services.config import Settings, get_settings


class TestSettings:
    """Tests for Settings defaults and environment overrides."""

    def test_defaults(self, monkeypatch):
        for name in ("DATABASE_URL", "LOG_LEVEL", "PATIENT_LOCK_TIMEOUT_SECONDS", "PAYMENTS_PAGE_SIZE"):
            monkeypatch.delenv(name, raising=False)

        settings = Settings(_env_file=None)

        assert settings.database_url == "sqlite:///./clinic_billing.db"
        assert settings.log_level == "INFO"
        assert settings.patient_lock_timeout_seconds == 5.0
        assert settings.payments_page_size == 50
        assert settings.paid_at_visit_note == "Paid at visit"

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("DATABASE_URL", "postgresql://clinic@db/clinic")
        monkeypatch.setenv("PATIENT_LOCK_TIMEOUT_SECONDS", "0.5")
        monkeypatch.setenv("PAYMENTS_PAGE_SIZE", "10")

        settings = Settings(_env_file=None)

        assert settings.database_url == "postgresql://clinic@db/clinic"
        assert settings.patient_lock_timeout_seconds == 0.5
        assert settings.payments_page_size == 10

    def test_env_file_is_read(self, monkeypatch, tmp_path):
        monkeypatch.delenv("PAID_AT_VISIT_NOTE", raising=False)
        env_file = tmp_path / ".env"
        env_file.write_text("PAID_AT_VISIT_NOTE=Pago en consulta\n")

        settings = Settings(_env_file=str(env_file))

        assert settings.paid_at_visit_note == "Pago en consulta"

    @pytest.mark.parametrize("name, value", [("PATIENT_LOCK_TIMEOUT_SECONDS", "0"), ("PAYMENTS_PAGE_SIZE", "-1")])
    def test_rejects_non_positive_limits(self, monkeypatch, name, value):
        monkeypatch.setenv(name, value)

        with pytest.raises(ValidationError):
            Settings(_env_file=None)

    def test_get_settings_is_cached(self):
        assert get_settings() is get_settings()
