"""Unit tests for core/config.py."""

from pydantic import SecretStr

from app.core.config import Settings


class TestSettings:
    def test_app_url_trailing_slash_is_stripped(self):
        settings = Settings(app_url="https://shop.example.com/ ")
        assert settings.app_url == "https://shop.example.com"

    def test_blank_app_url_is_none(self):
        assert Settings(app_url="  ").app_url is None

    def test_secret_value(self):
        settings = Settings(cron_secret=SecretStr(" s3cret "), internal_secret=SecretStr("  "))
        assert settings.secret_value("cron_secret") == "s3cret"
        assert settings.secret_value("internal_secret") is None
        assert settings.secret_value("twilio_auth_token") is None

    def test_defaults(self):
        settings = Settings()
        assert settings.offer_expiry_minutes == 15
        assert settings.offer_cooldown_seconds == 86400
        assert settings.resolve_outcomes_max_limit == 1000
