"""Configuration helpers for environment variables."""

from __future__ import annotations

import os
import logging

from dotenv import load_dotenv


logger = logging.getLogger(__name__)


_FALSE_VALUES = {"0", "false", "no", "off"}

DEFAULT_LOCK_STRIPES = 2048
DEFAULT_PAGE_SIZE = 10


def _should_load_dotenv() -> bool:
    """Return whether local dotenv loading should run."""
    app_env = os.getenv("APP_ENV", "dev").strip().lower()
    return app_env in {"dev", "local"}


if _should_load_dotenv():
    load_dotenv()


def get_env(name: str, default: str | None = None) -> str | None:
    """Return a raw environment value or default."""
    return os.getenv(name, default)


def app_env() -> str:
    """Return the current application environment."""
    return (get_env("APP_ENV", "dev") or "dev").strip() or "dev"


def cors_allow_origins() -> list[str]:
    """Return CORS allowed origins from env with safe environment defaults."""
    raw_origins = get_env("CORS_ALLOW_ORIGINS", "") or ""
    parsed_origins = [origin.strip() for origin in raw_origins.split(",") if origin.strip()]

    if parsed_origins:
        return parsed_origins

    if app_env().strip().lower() in {"dev", "local"}:
        return ["http://localhost:5173", "http://127.0.0.1:5173"]

    ui_origin = (get_env("UI_ORIGIN", "") or "").strip()
    if ui_origin:
        return [ui_origin]

    logger.warning(
        "cors_allow_origins_empty_in_prod app_env=%s; define CORS_ALLOW_ORIGINS or UI_ORIGIN",
        app_env(),
    )

    return []


def transaction_lock_stripes() -> int:
    """Return the shard lock table size, falling back to the default on bad input."""
    raw_value = (get_env("TRANSACTION_LOCK_STRIPES", "") or "").strip()
    if not raw_value:
        return DEFAULT_LOCK_STRIPES
    try:
        stripes = int(raw_value)
    except ValueError:
        logger.warning("transaction_lock_stripes_invalid value=%s", raw_value)
        return DEFAULT_LOCK_STRIPES
    if stripes <= 0:
        logger.warning("transaction_lock_stripes_invalid value=%s", raw_value)
        return DEFAULT_LOCK_STRIPES
    return stripes


def transaction_lock_timeout_seconds() -> float | None:
    """Return the lock acquisition timeout, or None to block indefinitely."""
    raw_value = (get_env("TRANSACTION_LOCK_TIMEOUT_SECONDS", "") or "").strip()
    if not raw_value:
        return None
    try:
        timeout = float(raw_value)
    except ValueError:
        logger.warning("transaction_lock_timeout_invalid value=%s", raw_value)
        return None
    return timeout if timeout > 0 else None


def transaction_cache_enabled() -> bool:
    """Return whether the read-through cache sits in front of the store."""
    raw_value = (get_env("TRANSACTION_CACHE_ENABLED", "") or "").strip().lower()
    return raw_value not in _FALSE_VALUES


def log_level() -> str:
    """Return the configured log level name for the backend loggers."""
    raw_value = (get_env("LOG_LEVEL", "INFO") or "INFO").strip().upper()
    if raw_value not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
        return "INFO"
    return raw_value


def supabase_url() -> str | None:
    """Return Supabase URL when configured."""
    return get_env("SUPABASE_URL")


def supabase_service_role_key() -> str | None:
    """Return Supabase service role key when configured."""
    return get_env("SUPABASE_SERVICE_ROLE_KEY")


def supabase_transactions_table() -> str:
    """Return the PostgREST table holding transaction records."""
    return (get_env("SUPABASE_TRANSACTIONS_TABLE", "transactions") or "transactions").strip() or "transactions"
