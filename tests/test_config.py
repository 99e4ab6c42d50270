import pytest

from prep_ingest.config import DatabaseSettings, IngestConfig, load_settings, parse_bool
from prep_ingest.errors import ConfigError


def test_defaults_from_empty_environment():
    database, config, source = load_settings(env={})
    assert config == IngestConfig()
    assert source == "embedded"
    assert database.sqlalchemy_url().startswith("sqlite:///")


def test_ingest_keys_are_read():
    env = {
        "INGEST_BATCH_SCOPE": "per-lesson",
        "INGEST_ON_ERROR": "abort_run",
        "INGEST_OVERWRITE": "true",
        "INGEST_DRY_RUN": "1",
        "INGEST_STATEMENT_TIMEOUT": "2.5",
        "INGEST_TRANSACTION_TIMEOUT": "30",
        "INGEST_SOURCE": "/srv/content",
    }
    _, config, source = load_settings(env=env)
    assert config.batch_scope == "per-lesson"
    assert config.on_validation_error == "abort_run"
    assert config.overwrite_existing is True
    assert config.dry_run is True
    assert config.statement_timeout == 2.5
    assert config.transaction_timeout == 30
    assert source == "/srv/content"


def test_db_host_builds_postgres_url():
    env = {"DB_HOST": "db.internal", "DB_PORT": "5433", "DB_USER": "ingest",
           "DB_PASSWORD": "s3cret", "DB_NAME": "learning"}
    database, _, _ = load_settings(env=env)
    url = database.sqlalchemy_url()
    assert url.drivername == "postgresql+psycopg2"
    assert (url.host, url.port, url.database, url.username) == ("db.internal", 5433, "learning", "ingest")


def test_db_host_wins_over_database_url():
    settings = DatabaseSettings(host="db", url="sqlite:///other.db")
    assert settings.sqlalchemy_url().host == "db"


def test_database_url_used_without_host():
    database, _, _ = load_settings(env={"DATABASE_URL": "sqlite:////tmp/x.db"})
    assert database.sqlalchemy_url() == "sqlite:////tmp/x.db"


@pytest.mark.parametrize("key,value", [
    ("INGEST_BATCH_SCOPE", "per-galaxy"),
    ("INGEST_ON_ERROR", "ignore"),
    ("INGEST_OVERWRITE", "maybe"),
    ("INGEST_STATEMENT_TIMEOUT", "soon"),
    ("INGEST_TRANSACTION_TIMEOUT", "-1"),
    ("DB_PORT", "postgres"),
    ("INGEST_LOG_LEVEL", "verbose"),
])
def test_invalid_values_raise_config_error(key, value):
    with pytest.raises(ConfigError):
        load_settings(env={key: value})


def test_parse_bool():
    assert parse_bool("X", "Yes") is True
    assert parse_bool("X", None) is False
    with pytest.raises(ConfigError):
        parse_bool("X", "2")


def test_log_level_is_normalized():
    _, config, _ = load_settings(env={"INGEST_LOG_LEVEL": " debug "})
    assert config.log_level == "DEBUG"
