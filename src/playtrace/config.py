"""Centralized settings for playtrace."""

from __future__ import annotations

import logging
import sys
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

try:
    from dotenv import load_dotenv
except ImportError as e:
    raise RuntimeError("python-dotenv is required to load .env; please install it.") from e


# Collector address used when the host configures an empty URL.
DEFAULT_SERVER_URL = "http://10.20.5.27:8080/telemetry"

# Seconds the transport may hold a single POST before giving up.
REQUEST_TIMEOUT_S = 5.0


def normalize_mode(v: str | None) -> str:
    """Map telemetry mode spellings onto remote|off. Unknown values mean remote."""
    m = (v or "").strip().lower()
    if m in ("off", "disabled", "false", "0"):
        return "off"
    if m and m != "remote":
        logger.warning("[config] unknown telemetry_mode=%s; using remote", v)
    return "remote"


def runtime_root() -> Path:
    """Return the runtime root directory for .env lookup.

    Frozen builds (PyInstaller) resolve next to the executable rather than
    inside the extracted bundle.
    """
    if getattr(sys, "frozen", False):
        return Path(sys.executable).resolve().parent
    return Path(__file__).resolve().parents[2]


# .env is optional; real environment variables win.
env_file = runtime_root() / ".env"
if env_file.exists():
    load_dotenv(env_file, override=False, encoding="utf-8-sig")


class PlaytraceSettings(BaseSettings):
    """Telemetry client settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="PLAYTRACE_",
        extra="ignore",
    )

    # Telemetry (playtrace.telemetry.v1)
    # - remote: events are POSTed to the collector.
    # - off: the dispatcher drops everything; session bookkeeping still runs.
    telemetry_mode: str = Field(
        default="remote",
        description="Telemetry delivery mode: remote|off",
    )

    telemetry_server_url: str = Field(
        default="",
        description="Collector endpoint. When set, the service configures itself on start().",
    )

    telemetry_request_timeout_s: float = Field(
        default=REQUEST_TIMEOUT_S,
        description="Per-request timeout for the HTTP transport (seconds).",
    )

    telemetry_machine_id: str = Field(
        default="",
        description="Overrides the host name reported as machine_id.",
    )

    telemetry_user_id: str = Field(
        default="",
        description="Optional user identity attached to every event.",
    )

    telemetry_join_timeout_s: float = Field(
        default=2.0,
        description="How long stop() waits for the sender thread before abandoning in-flight events.",
    )

    @field_validator("telemetry_server_url", "telemetry_machine_id", "telemetry_user_id", mode="before")
    @classmethod
    def _strip_strings(cls, v):
        # Treat None as "unset" so we keep the intended default.
        if v is None:
            return ""
        return str(v).strip()

    @field_validator("telemetry_request_timeout_s", "telemetry_join_timeout_s", mode="after")
    @classmethod
    def _validate_positive(cls, v):
        if v <= 0:
            raise ValueError("timeouts must be positive")
        return v

    @field_validator("telemetry_mode", mode="after")
    @classmethod
    def _normalize_mode(cls, v):
        return normalize_mode(v)


settings = PlaytraceSettings()
