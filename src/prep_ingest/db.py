"""Target schema, engine construction and schema initialization."""
import logging
import time
from pathlib import Path

from alembic.autogenerate import compare_metadata
from alembic.migration import MigrationContext
from alembic.operations import Operations
from sqlalchemy import (
    JSON, Boolean, CheckConstraint, Column, DateTime, ForeignKey, Integer,
    MetaData, String, Text, UniqueConstraint, create_engine, event, inspect,
    insert, select, update,
)
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func

from prep_ingest.errors import SchemaInitError
from prep_ingest.models import DIFFICULTIES, QUESTION_TYPES, QUIZ_DIFFICULTIES

log = logging.getLogger(__name__)

DEFAULT_DB_PATH = str(Path.home() / ".prep_ingest" / "content.db")

# Bump when the row shape seen by the API changes.
SCHEMA_VERSION = 1

NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}
Base = declarative_base(metadata=MetaData(naming_convention=NAMING_CONVENTION))


def _one_of(column: str, values) -> str:
    quoted = ", ".join(f"'{v}'" for v in values)
    return f"{column} IN ({quoted})"


class Category(Base):
    __tablename__ = "categories"
    id = Column(Integer, primary_key=True)
    name = Column(String(100), nullable=False)
    slug = Column(String(100), unique=True, nullable=False)
    description = Column(Text, nullable=True)
    icon = Column(String(100), nullable=True)
    order_index = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        CheckConstraint("order_index >= 0", name="order_index_nonneg"),
    )


class Topic(Base):
    __tablename__ = "topics"
    id = Column(Integer, primary_key=True)
    category_id = Column(Integer, ForeignKey("categories.id", ondelete="CASCADE"), index=True, nullable=False)
    name = Column(String(200), nullable=False)
    slug = Column(String(200), unique=True, nullable=False)
    description = Column(Text, nullable=True)
    difficulty_level = Column(String(20), index=True, nullable=True)
    estimated_time = Column(Integer, nullable=True)                 # minutes
    order_index = Column(Integer, nullable=False, default=0)
    icon = Column(String(100), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        CheckConstraint(_one_of("difficulty_level", DIFFICULTIES), name="difficulty_level"),
        CheckConstraint("order_index >= 0", name="order_index_nonneg"),
    )


class Lesson(Base):
    __tablename__ = "lessons"
    id = Column(Integer, primary_key=True)
    topic_id = Column(Integer, ForeignKey("topics.id", ondelete="CASCADE"), index=True, nullable=False)
    title = Column(String(300), nullable=False)
    slug = Column(String(300), unique=True, nullable=False)
    content = Column(Text, nullable=False)                          # markdown
    summary = Column(Text, nullable=True)
    difficulty_level = Column(String(20), index=True, nullable=True)
    estimated_time = Column(Integer, nullable=True)
    order_index = Column(Integer, nullable=False, default=0)
    prerequisites = Column(JSON, nullable=False, default=list)      # lesson slugs
    key_points = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        CheckConstraint(_one_of("difficulty_level", DIFFICULTIES), name="difficulty_level"),
        CheckConstraint("order_index >= 0", name="order_index_nonneg"),
    )


class CodeExample(Base):
    __tablename__ = "code_examples"
    id = Column(Integer, primary_key=True)
    lesson_id = Column(Integer, ForeignKey("lessons.id", ondelete="CASCADE"), index=True, nullable=False)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    language = Column(String(50), nullable=False)
    code = Column(Text, nullable=False)
    explanation = Column(Text, nullable=True)
    order_index = Column(Integer, nullable=False, default=0)
    is_interactive = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        CheckConstraint("order_index >= 0", name="order_index_nonneg"),
    )


class QuizQuestion(Base):
    __tablename__ = "quiz_questions"
    id = Column(Integer, primary_key=True)
    lesson_id = Column(Integer, ForeignKey("lessons.id", ondelete="CASCADE"), index=True, nullable=False)
    question_text = Column(Text, nullable=False)
    question_type = Column(String(20), nullable=False, default="multiple_choice")
    options = Column(JSON, nullable=False, default=list)
    correct_answer = Column(Text, nullable=False)
    explanation = Column(Text, nullable=True)
    difficulty = Column(String(20), nullable=True)
    points = Column(Integer, nullable=False, default=10)
    order_index = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        CheckConstraint(_one_of("question_type", QUESTION_TYPES), name="question_type"),
        CheckConstraint(_one_of("difficulty", QUIZ_DIFFICULTIES), name="difficulty"),
        CheckConstraint("order_index >= 0", name="order_index_nonneg"),
    )


# Owned by the API. Created if missing so both sides agree on the shape,
# never written by the ingester.

class User(Base):
    __tablename__ = "users"
    id = Column(Integer, primary_key=True)
    username = Column(String(100), unique=True, nullable=False)
    email = Column(String(255), unique=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    last_login = Column(DateTime(timezone=True), nullable=True)
    profile_picture = Column(String(500), nullable=True)
    bio = Column(Text, nullable=True)


class UserProgress(Base):
    __tablename__ = "user_progress"
    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    lesson_id = Column(Integer, ForeignKey("lessons.id", ondelete="CASCADE"), index=True, nullable=False)
    status = Column(String(20), nullable=False, default="not_started")
    progress_percentage = Column(Integer, nullable=False, default=0)
    time_spent = Column(Integer, nullable=False, default=0)
    notes = Column(Text, nullable=True)
    started_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    last_accessed = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint("user_id", "lesson_id", name="user_lesson"),
        CheckConstraint(_one_of("status", ("not_started", "in_progress", "completed")), name="status"),
        CheckConstraint("progress_percentage >= 0 AND progress_percentage <= 100", name="progress_percentage"),
    )


class QuizAttempt(Base):
    __tablename__ = "quiz_attempts"
    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    quiz_question_id = Column(Integer, ForeignKey("quiz_questions.id", ondelete="CASCADE"), nullable=False)
    user_answer = Column(Text, nullable=True)
    is_correct = Column(Boolean, nullable=True)
    points_earned = Column(Integer, nullable=False, default=0)
    attempt_number = Column(Integer, nullable=False, default=1)
    attempted_at = Column(DateTime(timezone=True), server_default=func.now())


class SchemaVersion(Base):
    __tablename__ = "schema_version"
    id = Column(Integer, primary_key=True)
    version = Column(Integer, nullable=False)
    applied_at = Column(DateTime(timezone=True), server_default=func.now())


EXPECTED_TABLES = (
    "categories", "topics", "lessons", "code_examples", "quiz_questions",
    "users", "user_progress", "quiz_attempts",
)


def sqlite_url(db_path: str = DEFAULT_DB_PATH) -> str:
    return f"sqlite:///{db_path}"


def _install_sqlite_hooks(engine: Engine, statement_timeout: float) -> None:
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_conn, record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys = ON")
        cursor.close()
        if statement_timeout:
            info = record.info

            def _interrupt():
                started = info.get("statement_started")
                return 1 if started is not None and time.monotonic() - started > statement_timeout else 0

            # sqlite aborts the running statement with "interrupted"
            dbapi_conn.set_progress_handler(_interrupt, 1000)

    if statement_timeout:
        @event.listens_for(engine, "before_cursor_execute")
        def _mark_start(conn, cursor, statement, parameters, context, executemany):
            conn.info["statement_started"] = time.monotonic()

        @event.listens_for(engine, "after_cursor_execute")
        def _clear_start(conn, cursor, statement, parameters, context, executemany):
            conn.info.pop("statement_started", None)

        @event.listens_for(engine, "handle_error")
        def _clear_on_error(context):
            if context.connection is not None:
                context.connection.info.pop("statement_started", None)


def get_engine(url: str | None = None, statement_timeout: float = 0) -> Engine:
    """Build an engine for ``url`` (default: the local SQLite file).

    SQLite connections get foreign keys switched on. ``statement_timeout`` is in
    seconds; PostgreSQL enforces it server-side, SQLite through a progress
    handler that interrupts the running statement.
    """
    url = make_url(url or sqlite_url())
    backend = url.get_backend_name()
    if backend == "sqlite":
        if url.database and url.database != ":memory:":
            Path(url.database).parent.mkdir(parents=True, exist_ok=True)
        engine = create_engine(url)
        _install_sqlite_hooks(engine, statement_timeout)
        return engine
    connect_args = {}
    if statement_timeout and backend == "postgresql":
        connect_args["options"] = f"-c statement_timeout={int(statement_timeout * 1000)}"
    return create_engine(url, pool_pre_ping=True, connect_args=connect_args)


def _migrate(connection) -> list:
    """Apply additive differences between the live schema and the models."""
    context = MigrationContext.configure(connection)
    ops = Operations(context)
    inspector = inspect(connection)
    applied = []
    for diff in compare_metadata(context, Base.metadata):
        # Column modifications come back as lists; only additions are applied.
        if not isinstance(diff, tuple):
            continue
        if diff[0] == "add_column":
            _, schema, table_name, column = diff
            ops.add_column(table_name, column, schema=schema)
            applied.append(f"{table_name}.{column.name}")
        elif diff[0] == "add_index":
            index = diff[1]
            existing = {ix["name"] for ix in inspector.get_indexes(index.table.name)}
            if index.name in existing:
                continue
            ops.create_index(index.name, index.table.name, [c.name for c in index.columns], unique=bool(index.unique))
            applied.append(index.name)
    return applied


def get_schema_version(connection) -> int | None:
    return connection.execute(
        select(SchemaVersion.version).where(SchemaVersion.id == 1)
    ).scalar_one_or_none()


def _record_version(connection) -> None:
    current = get_schema_version(connection)
    if current is None:
        connection.execute(insert(SchemaVersion).values(id=1, version=SCHEMA_VERSION))
    elif current < SCHEMA_VERSION:
        connection.execute(
            update(SchemaVersion).where(SchemaVersion.id == 1).values(version=SCHEMA_VERSION)
        )


def init_db(connection) -> list:
    """Create missing tables, indices and constraints, then migrate additively.

    Safe to run on a fully provisioned database. Returns the names of the
    columns and indices the migration pass added.
    """
    try:
        Base.metadata.create_all(connection, checkfirst=True)
        applied = _migrate(connection)
        _record_version(connection)
        connection.commit()
    except (SQLAlchemyError, NotImplementedError) as exc:
        # NotImplementedError: alembic cannot ALTER constraints on SQLite
        connection.rollback()
        raise SchemaInitError(f"schema initialization failed: {exc}") from exc
    if applied:
        log.info("schema migrated: %s", ", ".join(applied))
    return applied
