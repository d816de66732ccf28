from __future__ import annotations

import pytest

from video_insight.config import load_settings
from video_insight.errors import ConfigurationError, classify_error


def test_missing_credentials_are_all_reported() -> None:
    with pytest.raises(ConfigurationError) as excinfo:
        load_settings(env={})

    message = str(excinfo.value)
    assert "GEMINI_API_KEY" in message
    assert "SPEECH_API_KEY" in message


def test_blank_credential_counts_as_missing() -> None:
    with pytest.raises(ConfigurationError, match="SPEECH_API_KEY"):
        load_settings(env={"GEMINI_API_KEY": "g", "SPEECH_API_KEY": "   "})


def test_defaults() -> None:
    settings = load_settings(env={"GEMINI_API_KEY": "g", "SPEECH_API_KEY": "s"})

    assert settings.gemini_model == "gemini-2.5-flash"
    assert settings.upload_dir == "uploads"
    assert settings.max_download_bytes == 500 * 1024 * 1024
    assert settings.download_timeout == 30.0
    assert settings.allowed_origins == ("*",)
    assert settings.port == 3000


def test_overrides() -> None:
    settings = load_settings(
        env={
            "GEMINI_API_KEY": "g",
            "SPEECH_API_KEY": "s",
            "MAX_DOWNLOAD_MB": "10",
            "ALLOWED_ORIGINS": "http://a.test, http://b.test",
            "PORT": "8080",
            "LOG_LEVEL": "debug",
        }
    )

    assert settings.max_download_bytes == 10 * 1024 * 1024
    assert settings.allowed_origins == ("http://a.test", "http://b.test")
    assert settings.port == 8080
    assert settings.log_level == "DEBUG"


def test_malformed_integer_is_a_configuration_error() -> None:
    with pytest.raises(ConfigurationError, match="PORT"):
        load_settings(env={"GEMINI_API_KEY": "g", "SPEECH_API_KEY": "s", "PORT": "eighty"})


def test_classify_error_falls_back_to_500() -> None:
    classified = classify_error(ValueError())
    assert (classified.status, classified.message) == (500, "ValueError")
