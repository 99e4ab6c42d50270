from unittest.mock import MagicMock

from sqlalchemy import select
from sqlalchemy.exc import DataError, IntegrityError, OperationalError

from prep_ingest.db import CodeExample as CodeExampleRow
from prep_ingest.db import QuizQuestion as QuizQuestionRow
from prep_ingest.db import Topic as TopicRow
from prep_ingest.models import (
    CategoryBundle, CodeExample, Conflict, LessonBundle, Ok, ParentMissing, QuizQuestion,
    TopicBundle, TransportFail, ValidationFail,
)
from prep_ingest.upsert import (
    classify_db_error, upsert_category, upsert_code_example, upsert_lesson,
    upsert_quiz_question, upsert_topic,
)


def _category(**kw):
    return CategoryBundle(**{"slug": "architecture", "name": "Architecture", "order_index": 1, **kw})


def _topic(**kw):
    return TopicBundle(**{
        "slug": "microservices", "name": "Microservices Architecture", "category_slug": "architecture",
        "difficulty_level": "advanced", "order_index": 5, **kw,
    })


def _lesson(**kw):
    return LessonBundle(**{
        "slug": "microservices-fundamentals", "title": "Microservices Fundamentals",
        "content": "# Microservices", "topic_slug": "microservices",
        "difficulty_level": "advanced", "order_index": 1, **kw,
    })


def _tree(session):
    category_id = upsert_category(session, _category()).id
    topic_id = upsert_topic(session, _topic(), category_id).id
    lesson_id = upsert_lesson(session, _lesson(), topic_id).id
    return category_id, topic_id, lesson_id


def test_insert_then_unchanged(db_session):
    first = upsert_category(db_session, _category())
    second = upsert_category(db_session, _category(name="Renamed"))
    assert first.outcome == "inserted"
    assert second == Ok(first.id, "unchanged")


def test_overwrite_updates_scalars(db_session):
    category_id, _, _ = _tree(db_session)
    result = upsert_topic(db_session, _topic(description="New words"), category_id, overwrite=True)
    assert result.outcome == "updated"
    row = db_session.get(TopicRow, result.id)
    assert row.description == "New words"


def test_overwrite_with_identical_values_is_unchanged(db_session):
    category_id, _, _ = _tree(db_session)
    result = upsert_topic(db_session, _topic(), category_id, overwrite=True)
    assert result.outcome == "unchanged"


def test_topic_slug_under_other_category_is_conflict(db_session):
    category_id, _, _ = _tree(db_session)
    other_id = upsert_category(db_session, _category(slug="backend", name="Backend")).id
    result = upsert_topic(db_session, _topic(category_slug="backend"), other_id)
    assert isinstance(result, Conflict)
    assert result.slug == "microservices"
    rows = db_session.execute(select(TopicRow).where(TopicRow.slug == "microservices")).scalars().all()
    assert [r.category_id for r in rows] == [category_id]


def test_lesson_slug_under_other_topic_is_conflict(db_session):
    category_id, _, _ = _tree(db_session)
    other_topic = upsert_topic(db_session, _topic(slug="monoliths", name="Monoliths"), category_id).id
    result = upsert_lesson(db_session, _lesson(topic_slug="monoliths"), other_topic)
    assert isinstance(result, Conflict)


def test_code_example_matches_on_order_then_title(db_session):
    _, _, lesson_id = _tree(db_session)
    first = upsert_code_example(db_session, CodeExample("Gateway", "js", "a()", order_index=1), lesson_id)
    same_order = upsert_code_example(db_session, CodeExample("Renamed", "js", "b()", order_index=1), lesson_id)
    assert same_order == Ok(first.id, "unchanged")
    moved = upsert_code_example(
        db_session, CodeExample("Gateway", "js", "a()", order_index=4), lesson_id, overwrite=True,
    )
    # order 4 is free, so the title match is used and the row is re-ordered
    assert moved == Ok(first.id, "updated")
    assert db_session.get(CodeExampleRow, first.id).order_index == 4


def test_quiz_question_insert_and_overwrite(db_session):
    _, _, lesson_id = _tree(db_session)
    q = QuizQuestion("Which?", "b", options=["a", "b"], order_index=1)
    first = upsert_quiz_question(db_session, q, lesson_id)
    assert first.outcome == "inserted"
    changed = QuizQuestion("Which one?", "b", options=["a", "b"], order_index=1)
    result = upsert_quiz_question(db_session, changed, lesson_id, overwrite=True)
    assert result == Ok(first.id, "updated")
    row = db_session.get(QuizQuestionRow, first.id)
    assert row.question_text == "Which one?"
    assert row.options == ["a", "b"]


def test_parent_upsert_does_not_touch_children(db_session):
    category_id, topic_id, lesson_id = _tree(db_session)
    upsert_code_example(db_session, CodeExample("Gateway", "js", "a()", order_index=1), lesson_id)
    upsert_topic(db_session, _topic(description="changed"), category_id, overwrite=True)
    upsert_lesson(db_session, _lesson(summary="changed"), topic_id, overwrite=True)
    count = db_session.execute(select(CodeExampleRow).where(CodeExampleRow.lesson_id == lesson_id)).scalars().all()
    assert len(count) == 1


def test_missing_parent_id_classified_as_parent_missing(db_session):
    result = upsert_topic(db_session, _topic(), category_id=999)
    assert result == ParentMissing("category", "architecture")
    db_session.rollback()


def test_check_violation_classified_as_validation_fail(db_session):
    category_id = upsert_category(db_session, _category()).id
    result = upsert_topic(db_session, _topic(difficulty_level="legendary"), category_id)
    assert isinstance(result, ValidationFail)
    db_session.rollback()


def _db_error(cls, message, pgcode=None):
    orig = Exception(message)
    orig.pgcode = pgcode
    return cls("INSERT ...", {}, orig)


def test_classify_postgres_codes():
    fk = classify_db_error(_db_error(IntegrityError, "fk", "23503"), "lesson", "x", ("topic", "t"))
    assert fk == ParentMissing("topic", "t")
    unique = classify_db_error(_db_error(IntegrityError, "dup", "23505"), "lesson", "x")
    assert isinstance(unique, Conflict)
    check = classify_db_error(_db_error(IntegrityError, "check", "23514"), "lesson", "x")
    assert isinstance(check, ValidationFail)


def test_classify_data_and_transport_errors():
    assert isinstance(classify_db_error(_db_error(DataError, "too long"), "lesson", "x"), ValidationFail)
    down = classify_db_error(_db_error(OperationalError, "server closed the connection"), "lesson", "x")
    assert down == TransportFail("server closed the connection")


def test_transport_error_during_lookup_is_returned_not_raised():
    session = MagicMock()
    session.execute.side_effect = _db_error(OperationalError, "connection refused")
    result = upsert_category(session, _category())
    assert isinstance(result, TransportFail)
