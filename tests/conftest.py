import pytest
from sqlalchemy.orm import Session

from prep_ingest.db import get_engine, init_db, sqlite_url


@pytest.fixture
def tmp_db(tmp_path):
    """Provide a temporary SQLite database path for tests."""
    db_path = str(tmp_path / "test_content.db")
    return db_path


@pytest.fixture
def engine(tmp_db):
    eng = get_engine(sqlite_url(tmp_db))
    yield eng
    eng.dispose()


@pytest.fixture
def db_session(engine):
    """A session on an initialized database, bound to a single connection."""
    with engine.connect() as conn:
        init_db(conn)
        session = Session(bind=conn, expire_on_commit=False)
        yield session
        session.close()


def code_example(order, title=None, **extra):
    return {
        "title": title or f"Example {order}",
        "language": "python",
        "code": f"print({order})",
        "order_index": order,
        **extra,
    }


def quiz_question(order, correct="B", options=("A", "B", "C"), **extra):
    return {
        "question_text": f"Question {order}?",
        "options": list(options),
        "correct_answer": correct,
        "order_index": order,
        **extra,
    }


def lesson(slug="microservices-fundamentals", title="Microservices Fundamentals", order=1,
           examples=(1, 2), questions=(1, 2), **extra):
    return {
        "slug": slug,
        "title": title,
        "content": "# Microservices\n\nSmall, independently deployable services.",
        "difficulty_level": "advanced",
        "order_index": order,
        "code_examples": [code_example(o) for o in examples],
        "quiz_questions": [quiz_question(o) for o in questions],
        **extra,
    }


def topic(slug="microservices", name="Microservices Architecture", order=5, lessons=None, **extra):
    return {
        "slug": slug,
        "name": name,
        "difficulty_level": "advanced",
        "order_index": order,
        "lessons": [lesson()] if lessons is None else lessons,
        **extra,
    }


def category(slug="architecture", name="Architecture", order=1, topics=None, **extra):
    return {
        "slug": slug,
        "name": name,
        "order_index": order,
        "topics": [topic()] if topics is None else topics,
        **extra,
    }
