"""Runtime settings loaded from the environment (and an optional .env file)."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv


@dataclass(frozen=True)
class Settings:
    timezone: str = "UTC"
    slot_duration_minutes: int = 30

    # Alternatives offered when a requested slot is no longer free.
    alternatives_count: int = 3
    alternatives_horizon_days: int = 30

    data_dir: str = "data"
    log_level: str = "INFO"

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)


def _int_env(name: str, default: int, minimum: int) -> int:
    raw = os.getenv(name, str(default)).strip()
    try:
        value = int(raw)
    except ValueError as e:
        raise RuntimeError(f"Invalid {name} value: {raw!r}. Expected an integer.") from e
    if value < minimum:
        raise RuntimeError(f"{name} must be >= {minimum}")
    return value


def load_settings(dotenv_path: str | None = None) -> Settings:
    load_dotenv(dotenv_path=dotenv_path, override=False)

    timezone = os.getenv("SLOTENGINE_TIMEZONE", "UTC").strip() or "UTC"
    try:
        ZoneInfo(timezone)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise RuntimeError(f"Invalid SLOTENGINE_TIMEZONE value: {timezone!r}") from e

    log_level = os.getenv("SLOTENGINE_LOG_LEVEL", "INFO").strip().upper()
    if not isinstance(logging.getLevelName(log_level), int):
        raise RuntimeError(f"Invalid SLOTENGINE_LOG_LEVEL value: {log_level!r}")

    return Settings(
        timezone=timezone,
        slot_duration_minutes=_int_env("SLOTENGINE_SLOT_MINUTES", 30, 1),
        alternatives_count=_int_env("SLOTENGINE_ALTERNATIVES", 3, 0),
        alternatives_horizon_days=_int_env("SLOTENGINE_HORIZON_DAYS", 30, 1),
        data_dir=os.getenv("SLOTENGINE_DATA_DIR", "data"),
        log_level=log_level,
    )


def setup_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s - %(message)s",
    )
