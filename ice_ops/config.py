from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from .constants import (
    DATA_DIR,
    DB_FILE_NAME,
    DEFAULT_DB_TIMEOUT,
    DEFAULT_ENV,
    DEFAULT_LOG_LEVEL,
    DEFAULT_PORT,
    DEFAULT_TIMEZONE,
    DEV_SECRET_KEY,
)

BASE_DIR = Path(__file__).resolve().parent.parent

ENV_DATA_DIR = "ICE_OPS_DATA_DIR"
ENV_DB_PATH = "ICE_OPS_DB_PATH"


@dataclass(frozen=True)
class Settings:
    db_path: Path
    timezone: str = DEFAULT_TIMEZONE
    db_timeout: float = DEFAULT_DB_TIMEOUT
    env: str = DEFAULT_ENV
    secret_key: str = DEV_SECRET_KEY
    log_level: str = DEFAULT_LOG_LEVEL
    port: int = DEFAULT_PORT

    @property
    def is_production(self) -> bool:
        return self.env.strip().lower() == "production"


def _data_dir() -> Path:
    if os.getenv(ENV_DATA_DIR):
        return Path(os.getenv(ENV_DATA_DIR, "")).expanduser().resolve()
    return BASE_DIR / DATA_DIR


def load_settings() -> Settings:
    # Priority order:
    # 1) ICE_OPS_DB_PATH
    # 2) ICE_OPS_DATA_DIR / ice_ops.db
    # 3) <project>/data/ice_ops.db
    if os.getenv(ENV_DB_PATH):
        db_path = Path(os.getenv(ENV_DB_PATH, "")).expanduser().resolve()
    else:
        db_path = _data_dir() / DB_FILE_NAME

    return Settings(
        db_path=db_path,
        timezone=os.getenv("ICE_OPS_TIMEZONE", DEFAULT_TIMEZONE),
        db_timeout=float(os.getenv("ICE_OPS_DB_TIMEOUT", DEFAULT_DB_TIMEOUT)),
        env=os.getenv("ICE_OPS_ENV", DEFAULT_ENV),
        secret_key=os.getenv("ICE_OPS_SECRET_KEY", DEV_SECRET_KEY),
        log_level=os.getenv("ICE_OPS_LOG_LEVEL", DEFAULT_LOG_LEVEL),
        port=int(os.getenv("PORT", DEFAULT_PORT)),
    )
