"""Service settings read from the environment (and .env)."""

import os
from dataclasses import dataclass

from dotenv import load_dotenv

from video_insight.errors import ConfigurationError

REQUIRED_CREDENTIALS = {
    "GEMINI_API_KEY": "generation provider (Google Gemini)",
    "SPEECH_API_KEY": "transcription provider (Google Speech)",
}


@dataclass(frozen=True)
class Settings:
    gemini_api_key: str
    speech_api_key: str
    gemini_model: str = "gemini-2.5-flash"
    speech_language: str = "en-US"
    upload_dir: str = "uploads"
    max_download_bytes: int = 500 * 1024 * 1024
    download_timeout: float = 30.0
    transcription_chunk_ms: int = 30_000
    allowed_origins: tuple[str, ...] = ("*",)
    host: str = "0.0.0.0"
    port: int = 3000
    log_level: str = "INFO"


def _int_env(env: dict, name: str, default: int) -> int:
    raw = (env.get(name) or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from e


def load_settings(env: dict | None = None, dotenv: bool = True) -> Settings:
    """
    Build Settings from environment variables.

    Args:
        env: Mapping to read from (default: os.environ).
        dotenv: Load a .env file into os.environ first.

    Returns:
        Validated Settings.

    Raises:
        ConfigurationError: A provider credential is missing or a value is malformed.
    """
    if env is None:
        if dotenv:
            load_dotenv()
        env = dict(os.environ)

    missing = [name for name in REQUIRED_CREDENTIALS if not (env.get(name) or "").strip()]
    if missing:
        details = ", ".join(f"{name} ({REQUIRED_CREDENTIALS[name]})" for name in missing)
        raise ConfigurationError(f"Missing required configuration: {details}")

    origins = tuple(
        o.strip() for o in (env.get("ALLOWED_ORIGINS") or "*").split(",") if o.strip()
    )
    return Settings(
        gemini_api_key=env["GEMINI_API_KEY"].strip(),
        speech_api_key=env["SPEECH_API_KEY"].strip(),
        gemini_model=env.get("GEMINI_MODEL") or "gemini-2.5-flash",
        speech_language=env.get("SPEECH_LANGUAGE") or "en-US",
        upload_dir=env.get("UPLOAD_DIR") or "uploads",
        max_download_bytes=_int_env(env, "MAX_DOWNLOAD_MB", 500) * 1024 * 1024,
        download_timeout=float(_int_env(env, "DOWNLOAD_TIMEOUT_SECONDS", 30)),
        transcription_chunk_ms=_int_env(env, "TRANSCRIPTION_CHUNK_MS", 30_000),
        allowed_origins=origins or ("*",),
        host=env.get("HOST") or "0.0.0.0",
        port=_int_env(env, "PORT", 3000),
        log_level=(env.get("LOG_LEVEL") or "INFO").upper(),
    )
