"""Centralized application settings.

All runtime configuration is read here once and handed to the rest of the
application as an immutable :class:`AppSettings` snapshot. Tests build their
own snapshot with :func:`load_settings` and an explicit mapping instead of
touching ``os.environ``.
"""

from __future__ import annotations
from tracking import t

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Mapping, Optional

from dotenv import load_dotenv

from . import constants as laundry_constants


def _to_bool(value: Optional[str], default: bool = False) -> bool:
    """Normalize environment strings such as "true"/"1" into booleans."""
    t('infrastructure.settings._to_bool')

    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _to_float(value: Optional[str], default: float) -> float:
    t('infrastructure.settings._to_float')
    if value is None:
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _to_int(value: Optional[str], default: int) -> int:
    t('infrastructure.settings._to_int')
    if value is None:
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


@dataclass(frozen=True)
class AppSettings:
    """Immutable snapshot of high-level configuration values."""

    production_mode: bool
    timezone: str
    data_directory: str
    state_file: str
    sweep_enabled: bool
    sweep_interval_seconds: float
    washer_cycle_price: float
    dryer_cycle_price: float
    supabase_url: str
    supabase_anon_key: str
    supabase_timeout_seconds: float
    telegram_bot_token: str
    telegram_chat_id: str
    api_host: str
    api_port: int

    def cycle_price(self, machine_type: str) -> float:
        """Return the flat per-cycle price charged for a machine type."""
        t('infrastructure.settings.AppSettings.cycle_price')
        if machine_type == laundry_constants.DRYER:
            return self.dryer_cycle_price
        return self.washer_cycle_price

    @property
    def supabase_enabled(self) -> bool:
        return bool(self.supabase_url and self.supabase_anon_key)

    @property
    def telegram_enabled(self) -> bool:
        return bool(self.telegram_bot_token and self.telegram_chat_id)


def load_settings(env: Optional[Mapping[str, str]] = None) -> AppSettings:
    """Load configuration from the environment and fall back to defaults."""
    t('infrastructure.settings.load_settings')

    if env is None:
        load_dotenv(override=False)
        env = os.environ

    production_mode = _to_bool(env.get("PRODUCTION_MODE", "false"), default=False)
    timezone = env.get("LAUNDRY_TIMEZONE", "Asia/Kuala_Lumpur")

    data_directory = env.get("DATA_DIRECTORY", "data")
    state_file = env.get("STATE_FILE", os.path.join(data_directory, "state.json"))

    sweep_enabled = _to_bool(env.get("SWEEP_ENABLED", "true"), default=True)
    sweep_interval_seconds = _to_float(
        env.get("SWEEP_INTERVAL_SECONDS"),
        laundry_constants.DEFAULT_SWEEP_INTERVAL_SECONDS,
    )
    if sweep_interval_seconds <= 0:
        sweep_interval_seconds = laundry_constants.DEFAULT_SWEEP_INTERVAL_SECONDS

    washer_cycle_price = _to_float(env.get("WASHER_CYCLE_PRICE"), 5.0)
    dryer_cycle_price = _to_float(env.get("DRYER_CYCLE_PRICE"), 4.0)

    supabase_url = env.get("SUPABASE_URL", "").strip().rstrip("/")
    supabase_anon_key = env.get("SUPABASE_ANON_KEY", "").strip()
    supabase_timeout_seconds = _to_float(env.get("SUPABASE_TIMEOUT_SECONDS"), 3.0)

    telegram_bot_token = env.get("TELEGRAM_BOT_TOKEN", "").strip()
    telegram_chat_id = env.get("TELEGRAM_CHAT_ID", "").strip()

    api_host = env.get("API_HOST", "0.0.0.0")
    api_port = _to_int(env.get("API_PORT"), 8000)

    return AppSettings(
        production_mode=production_mode,
        timezone=timezone,
        data_directory=data_directory,
        state_file=state_file,
        sweep_enabled=sweep_enabled,
        sweep_interval_seconds=sweep_interval_seconds,
        washer_cycle_price=washer_cycle_price,
        dryer_cycle_price=dryer_cycle_price,
        supabase_url=supabase_url,
        supabase_anon_key=supabase_anon_key,
        supabase_timeout_seconds=supabase_timeout_seconds,
        telegram_bot_token=telegram_bot_token,
        telegram_chat_id=telegram_chat_id,
        api_host=api_host,
        api_port=api_port,
    )


@lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    """Return a cached :class:`AppSettings` instance."""
    t('infrastructure.settings.get_settings')

    return load_settings()
