"""Pydantic models for host settings."""

from __future__ import annotations

import os

from dotenv import load_dotenv
from pydantic import BaseModel, Field

DEFAULT_SYSTEM_PATH = "/usr/local/bin:/usr/bin:/bin:/usr/sbin:/sbin"
DEFAULT_COMMON_BIN_DIRS = ("/opt/homebrew/bin", "/usr/local/bin", "/usr/bin", "/bin")


class Settings(BaseModel, frozen=True):
    """Runtime configuration loaded from environment variables."""

    system_path: str = DEFAULT_SYSTEM_PATH
    home_dir: str = "/Users/user"
    support_path: str = "/tmp/supercommand"
    state_file: str | None = None
    store_quota_bytes: int = 5 * 1024 * 1024
    settle_delay_ms: int = 600
    shell: str = "/bin/zsh"
    log_level: str = "INFO"
    common_bin_dirs: list[str] = Field(default_factory=lambda: list(DEFAULT_COMMON_BIN_DIRS))
    raycast_version: str = "1.80.0"

    @property
    def settle_delay(self) -> float:
        """Settle delay in seconds."""
        return self.settle_delay_ms / 1000


def _parse_list(value: str) -> list[str]:
    """Parse colon or comma separated string into list."""
    separator = ":" if ":" in value else ","
    return [item.strip() for item in value.split(separator) if item.strip()]


def _parse_int(name: str, default: str) -> int:
    raw = os.getenv(name, default)
    try:
        value = int(raw)
    except ValueError:
        msg = f"{name} must be an integer, got {raw!r}"
        raise ValueError(msg) from None
    if value < 0:
        msg = f"{name} must not be negative"
        raise ValueError(msg)
    return value


def load_settings() -> Settings:
    """Load settings from environment variables with defaults."""
    load_dotenv()

    log_level = os.getenv("EXTENSION_HOST_LOG_LEVEL", "INFO").upper()
    if log_level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
        msg = f"EXTENSION_HOST_LOG_LEVEL is not a logging level: {log_level}"
        raise ValueError(msg)

    bin_dirs = os.getenv("EXTENSION_HOST_COMMON_BIN_DIRS", "")

    return Settings(
        system_path=os.getenv("EXTENSION_HOST_SYSTEM_PATH") or DEFAULT_SYSTEM_PATH,
        home_dir=os.getenv("EXTENSION_HOST_HOME") or os.path.expanduser("~"),
        support_path=os.getenv("EXTENSION_HOST_SUPPORT_PATH", "/tmp/supercommand"),
        state_file=os.getenv("EXTENSION_HOST_STATE_FILE") or None,
        store_quota_bytes=_parse_int("EXTENSION_HOST_STORE_QUOTA_BYTES", str(5 * 1024 * 1024)),
        settle_delay_ms=_parse_int("EXTENSION_HOST_SETTLE_DELAY_MS", "600"),
        shell=os.getenv("EXTENSION_HOST_SHELL", "/bin/zsh"),
        log_level=log_level,
        common_bin_dirs=_parse_list(bin_dirs) if bin_dirs else list(DEFAULT_COMMON_BIN_DIRS),
        raycast_version=os.getenv("EXTENSION_HOST_API_VERSION", "1.80.0"),
    )
