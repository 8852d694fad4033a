"""Environment driven settings for the airport operations core."""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass

DEFAULT_DATABASE_URL = "sqlite+pysqlite:///airport_ops.db"


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


@dataclass
class Settings:
    database_url: str = DEFAULT_DATABASE_URL
    echo_sql: bool = False
    log_level: str = "INFO"


def load_settings() -> Settings:
    """Read settings from ``AIRPORT_OPS_*`` environment variables."""

    return Settings(
        database_url=os.environ.get("AIRPORT_OPS_DATABASE_URL", DEFAULT_DATABASE_URL),
        echo_sql=_env_flag("AIRPORT_OPS_ECHO_SQL"),
        log_level=os.environ.get("AIRPORT_OPS_LOG_LEVEL", "INFO").upper(),
    )


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
