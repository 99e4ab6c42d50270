"""Run configuration read from the environment (and an optional .env file)."""
import os
from dataclasses import dataclass
from typing import Callable, Optional

from dotenv import load_dotenv
from sqlalchemy.engine import URL

from prep_ingest.db import sqlite_url
from prep_ingest.errors import ConfigError

BATCH_SCOPES = ("per-category", "per-topic", "per-lesson")
ERROR_POLICIES = ("skip_bundle", "abort_run")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
TRUE_VALUES = ("1", "true", "yes", "on")
FALSE_VALUES = ("0", "false", "no", "off", "")


@dataclass
class IngestConfig:
    batch_scope: str = "per-category"
    on_validation_error: str = "skip_bundle"
    overwrite_existing: bool = False
    dry_run: bool = False
    progress_reporter: Optional[Callable] = None
    statement_timeout: float = 0        # seconds, 0 = none
    transaction_timeout: float = 0
    verify: bool = True
    log_level: str = "WARNING"

    def __post_init__(self):
        level = str(self.log_level).strip().upper()
        if level not in LOG_LEVELS:
            raise ConfigError(f"log level must be one of {', '.join(LOG_LEVELS)}, got {self.log_level!r}")
        self.log_level = level
        if self.batch_scope not in BATCH_SCOPES:
            raise ConfigError(f"batch_scope must be one of {', '.join(BATCH_SCOPES)}, got {self.batch_scope!r}")
        if self.on_validation_error not in ERROR_POLICIES:
            raise ConfigError(
                f"on_validation_error must be one of {', '.join(ERROR_POLICIES)}, got {self.on_validation_error!r}"
            )
        if self.statement_timeout < 0 or self.transaction_timeout < 0:
            raise ConfigError("timeouts must not be negative")


@dataclass
class DatabaseSettings:
    host: Optional[str] = None
    port: Optional[int] = None
    user: Optional[str] = None
    password: Optional[str] = None
    name: Optional[str] = None
    driver: str = "postgresql+psycopg2"
    url: Optional[str] = None

    def sqlalchemy_url(self):
        """DB_HOST wins, then DATABASE_URL, then the local SQLite file."""
        if self.host:
            return URL.create(
                self.driver, username=self.user, password=self.password,
                host=self.host, port=self.port, database=self.name,
            )
        if self.url:
            return self.url
        return sqlite_url()


def parse_bool(name: str, value: Optional[str]) -> bool:
    normalized = (value or "").strip().lower()
    if normalized in TRUE_VALUES:
        return True
    if normalized in FALSE_VALUES:
        return False
    raise ConfigError(f"{name} must be true or false, got {value!r}")


def _parse_number(name: str, value: Optional[str], kind=float):
    if value is None or not value.strip():
        return kind(0)
    try:
        return kind(value)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {value!r}") from None


def load_settings(env=None, dotenv: bool = True):
    """Return (DatabaseSettings, IngestConfig, source spec) from the environment."""
    if dotenv and env is None:
        load_dotenv()
    env = os.environ if env is None else env

    port = env.get("DB_PORT")
    database = DatabaseSettings(
        host=env.get("DB_HOST") or None,
        port=_parse_number("DB_PORT", port, int) if port else None,
        user=env.get("DB_USER") or None,
        password=env.get("DB_PASSWORD") or None,
        name=env.get("DB_NAME") or None,
        driver=env.get("DB_DRIVER") or "postgresql+psycopg2",
        url=env.get("DATABASE_URL") or None,
    )
    config = IngestConfig(
        batch_scope=env.get("INGEST_BATCH_SCOPE") or "per-category",
        on_validation_error=env.get("INGEST_ON_ERROR") or "skip_bundle",
        overwrite_existing=parse_bool("INGEST_OVERWRITE", env.get("INGEST_OVERWRITE")),
        dry_run=parse_bool("INGEST_DRY_RUN", env.get("INGEST_DRY_RUN")),
        statement_timeout=_parse_number("INGEST_STATEMENT_TIMEOUT", env.get("INGEST_STATEMENT_TIMEOUT")),
        transaction_timeout=_parse_number("INGEST_TRANSACTION_TIMEOUT", env.get("INGEST_TRANSACTION_TIMEOUT")),
        log_level=env.get("INGEST_LOG_LEVEL") or "WARNING",
    )
    return database, config, env.get("INGEST_SOURCE") or "embedded"
