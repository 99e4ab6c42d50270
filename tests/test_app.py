import json
from unittest.mock import patch

import pytest
from sqlalchemy import create_engine, text

from conftest import category, lesson, quiz_question, topic
from prep_ingest.app import EXIT_ABORTED, EXIT_INIT_FAILED, EXIT_OK, EXIT_VALIDATION, main, parse_args
from prep_ingest.errors import ConfigError, TransportError

INGEST_KEYS = (
    "DB_HOST", "DATABASE_URL", "INGEST_BATCH_SCOPE", "INGEST_ON_ERROR", "INGEST_OVERWRITE",
    "INGEST_DRY_RUN", "INGEST_SOURCE", "INGEST_STATEMENT_TIMEOUT", "INGEST_TRANSACTION_TIMEOUT",
    "INGEST_LOG_LEVEL",
)


@pytest.fixture
def env(monkeypatch, tmp_db):
    for key in INGEST_KEYS:
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_db}")
    # keep a developer's .env out of the run
    monkeypatch.setattr("prep_ingest.config.load_dotenv", lambda: None)
    return monkeypatch


def _content_dir(tmp_path, data):
    root = tmp_path / "content"
    root.mkdir()
    (root / "architecture.json").write_text(json.dumps(data))
    return str(root)


def _count(tmp_db, table):
    eng = create_engine(f"sqlite:///{tmp_db}")
    try:
        with eng.connect() as conn:
            return conn.execute(text(f"SELECT COUNT(*) FROM {table}")).scalar_one()
    finally:
        eng.dispose()


def test_parse_args_flags():
    args = parse_args(["--source", "content/", "--batch-scope", "per-topic", "--dry-run", "--no-verify"])
    assert args.source == "content/"
    assert args.batch_scope == "per-topic"
    assert args.dry_run is True
    assert args.no_verify is True
    assert args.overwrite is None


def test_main_ingests_embedded_content(env, tmp_db):
    assert main([]) == EXIT_OK
    assert _count(tmp_db, "categories") == 3


def test_main_reads_source_directory(env, tmp_path, tmp_db):
    source = _content_dir(tmp_path, category())
    assert main(["--source", source]) == EXIT_OK
    assert _count(tmp_db, "lessons") == 1


def test_source_from_environment(env, tmp_path, tmp_db):
    env.setenv("INGEST_SOURCE", _content_dir(tmp_path, category()))
    assert main([]) == EXIT_OK
    assert _count(tmp_db, "categories") == 1


def test_dry_run_flag_writes_nothing(env, tmp_path, tmp_db):
    source = _content_dir(tmp_path, category())
    assert main(["--source", source, "--dry-run"]) == EXIT_OK
    assert _count(tmp_db, "categories") == 0


def test_validation_abort_exit_code(env, tmp_path):
    bad = lesson(questions=())
    bad["quiz_questions"] = [quiz_question(1, correct="Not an option")]
    source = _content_dir(tmp_path, category(topics=[topic(lessons=[bad])]))
    assert main(["--source", source, "--on-error", "abort_run"]) == EXIT_VALIDATION


def test_validation_skip_still_exits_ok(env, tmp_path):
    bad = lesson(questions=())
    bad["quiz_questions"] = [quiz_question(1, correct="Not an option")]
    source = _content_dir(tmp_path, category(topics=[topic(lessons=[bad])]))
    assert main(["--source", source]) == EXIT_OK


def test_invalid_environment_exit_code(env):
    env.setenv("INGEST_BATCH_SCOPE", "per-galaxy")
    assert main([]) == EXIT_INIT_FAILED


def test_config_error_from_settings(env):
    with patch("prep_ingest.app.load_settings", side_effect=ConfigError("bad")):
        assert main([]) == EXIT_INIT_FAILED


def test_schema_failure_exit_code(env, tmp_db):
    eng = create_engine(f"sqlite:///{tmp_db}")
    with eng.begin() as conn:
        conn.execute(text("CREATE TABLE topics (id INTEGER PRIMARY KEY)"))
    eng.dispose()
    assert main([]) == EXIT_INIT_FAILED


def test_missing_source_directory_aborts(env, tmp_path):
    assert main(["--source", str(tmp_path / "missing")]) == EXIT_ABORTED


def test_transport_failure_exit_code(env):
    with patch("prep_ingest.app.run_ingest", side_effect=TransportError("connection reset")):
        assert main([]) == EXIT_ABORTED


def test_malformed_category_does_not_stop_later_ones(env, tmp_path, tmp_db):
    root = tmp_path / "content"
    root.mkdir()
    broken = category(topics=[topic(lessons=[lesson(code_examples="print(1)")])])
    (root / "a.json").write_text(json.dumps(broken))
    valid = category(slug="backend", name="Backend", order=2,
                     topics=[topic(slug="api-development", lessons=[lesson(slug="rest-principles")])])
    (root / "b.json").write_text(json.dumps(valid))
    assert main(["--source", str(root)]) == EXIT_OK
    assert _count(tmp_db, "categories") == 2
    assert _count(tmp_db, "lessons") == 1


def test_unknown_log_level_exit_code(env):
    env.setenv("INGEST_LOG_LEVEL", "verbose")
    assert main([]) == EXIT_INIT_FAILED


def test_unknown_log_level_flag_exit_code(env):
    assert main(["--log-level", "chatty"]) == EXIT_INIT_FAILED
