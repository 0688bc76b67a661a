"""
Unit tests for configuration module

Settings come from FEEDSESSION_ prefixed environment variables; the feed
orchestration knobs (focus reload threshold, load serialization) are the
ones the session layer depends on.
"""

import os
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from feedsession.core.config import Settings

# Mark all tests in this module as unit tests
pytestmark = pytest.mark.unit


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Drop any FEEDSESSION_ variables leaking in from the shell"""
    for key in list(os.environ):
        if key.startswith("FEEDSESSION_"):
            monkeypatch.delenv(key)


class TestSettings:
    """Test application settings configuration"""

    def test_default_settings(self):
        """Test default configuration values"""
        settings = Settings(_env_file=None)

        assert settings.APP_NAME == "feedsession"
        assert settings.VERSION == "0.4.0"
        assert settings.ENVIRONMENT == "development"
        assert settings.DEV_MODE is False
        assert settings.AUTOLOAD_ON_FOCUS_AFTER_MINUTES == 5
        assert settings.SERIALIZE_LOADS is True
        assert settings.DEFAULT_LOCALE == "en-CA"
        assert settings.HOME_PATH == "/"
        assert settings.LOGIN_PATH == "/#/login"

    def test_database_url_default(self):
        settings = Settings(_env_file=None)

        assert settings.DATABASE_URL == "sqlite:///./data/feedsession.db"
        assert settings.SECURE_CREDENTIAL_STORAGE is False


class TestEnvironmentOverrides:
    """Test values read from the environment"""

    def test_prefixed_variables_override_defaults(self):
        with patch.dict(os.environ, {
            "FEEDSESSION_AUTOLOAD_ON_FOCUS_AFTER_MINUTES": "10",
            "FEEDSESSION_SERIALIZE_LOADS": "false",
            "FEEDSESSION_ENVIRONMENT": "production",
        }):
            settings = Settings(_env_file=None)

        assert settings.AUTOLOAD_ON_FOCUS_AFTER_MINUTES == 10
        assert settings.SERIALIZE_LOADS is False
        assert settings.ENVIRONMENT == "production"

    def test_unprefixed_variables_are_ignored(self):
        with patch.dict(os.environ, {"AUTOLOAD_ON_FOCUS_AFTER_MINUTES": "99"}):
            settings = Settings(_env_file=None)

        assert settings.AUTOLOAD_ON_FOCUS_AFTER_MINUTES == 5

    def test_case_insensitive_names(self):
        with patch.dict(os.environ, {"feedsession_log_level": "debug"}):
            settings = Settings(_env_file=None)

        assert settings.LOG_LEVEL == "DEBUG"


class TestValidation:
    """Test settings validators"""

    @pytest.mark.parametrize("minutes", [0, -5])
    def test_autoload_minutes_must_be_positive(self, minutes):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, AUTOLOAD_ON_FOCUS_AFTER_MINUTES=minutes)

    def test_http_timeout_must_be_positive(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, HTTP_TIMEOUT_SECONDS=0)

    def test_invalid_log_level(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, LOG_LEVEL="CHATTY")

    def test_log_level_is_uppercased(self):
        assert Settings(_env_file=None, LOG_LEVEL="warning").LOG_LEVEL == "WARNING"

    def test_invalid_environment(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, ENVIRONMENT="staging")
