"""
Tests for application settings.
"""

import pytest
from pydantic import ValidationError

from order_tracker.core.config import DEFAULT_SECRET_KEY, Settings


class TestSettings:
    def test_defaults(self):
        settings = Settings(environment="test")

        assert settings.bulk_operation_max == 100
        assert settings.notify_on_stage_change is True
        assert settings.api_v1_prefix == "/api/v1"
        assert not settings.twilio_configured
        assert not settings.resend_configured

    def test_environment_variables(self, monkeypatch):
        monkeypatch.setenv("APP_BULK_OPERATION_MAX", "25")
        monkeypatch.setenv("APP_NOTIFY_ON_STAGE_CHANGE", "false")

        settings = Settings(environment="test")

        assert settings.bulk_operation_max == 25
        assert settings.notify_on_stage_change is False

    def test_bulk_max_bounds(self):
        with pytest.raises(ValidationError):
            Settings(environment="test", bulk_operation_max=0)

    def test_invalid_database_url(self):
        with pytest.raises(ValidationError, match="Database URL must start with"):
            Settings(environment="test", database_url="mysql://localhost/db")

    def test_default_secret_rejected_in_production(self):
        with pytest.raises(ValidationError, match="Default secret key"):
            Settings(environment="production", secret_key=DEFAULT_SECRET_KEY)

    def test_twilio_configured(self):
        settings = Settings(
            environment="test",
            twilio_account_sid="AC1",
            twilio_auth_token="token",
            twilio_phone_number="+15550000000",
        )

        assert settings.twilio_configured

    def test_cors_origins_from_comma_separated_string(self):
        settings = Settings(
            environment="test",
            cors_origins="https://a.example, https://b.example,",
        )

        assert settings.cors_origins == ["https://a.example", "https://b.example"]
