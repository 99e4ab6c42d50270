"""Conflict-aware writes, one record at a time.

Each ``upsert_*`` function looks the row up by its conflict key and either
inserts it, leaves the existing row alone (default), or replaces its scalar
columns (``overwrite=True``). Child rows are never touched by a parent's
upsert. Database errors come back as result variants, never as exceptions.
"""
import logging

from sqlalchemy import select
from sqlalchemy.exc import DataError, DBAPIError, IntegrityError

from prep_ingest.db import Category, CodeExample, Lesson, QuizQuestion, Topic
from prep_ingest.models import Conflict, Ok, ParentMissing, TransportFail, ValidationFail

log = logging.getLogger(__name__)

FOREIGN_KEY_CODES = ("23503",)
UNIQUE_CODES = ("23505",)


def _sqlstate(exc: DBAPIError):
    orig = exc.orig
    return getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)


def classify_db_error(exc: DBAPIError, kind: str, slug: str, parent: tuple = ("", "")):
    """Turn a driver error into ParentMissing, Conflict, ValidationFail or TransportFail."""
    message = str(exc.orig)
    if isinstance(exc, IntegrityError):
        code = _sqlstate(exc)
        if code in FOREIGN_KEY_CODES or "FOREIGN KEY constraint failed" in message:
            return ParentMissing(*parent)
        if code in UNIQUE_CODES or "UNIQUE constraint failed" in message:
            return Conflict(kind, slug, f"unique constraint rejected the row: {message}")
        return ValidationFail(f"{kind} {slug}: {message}")
    if isinstance(exc, DataError):
        return ValidationFail(f"{kind} {slug}: {message}")
    return TransportFail(message)


def _replace_scalars(row, values: dict) -> str:
    changed = False
    for name, value in values.items():
        if getattr(row, name) != value:
            setattr(row, name, value)
            changed = True
    return "updated" if changed else "unchanged"


def _write(session, model, row, values: dict, overwrite: bool) -> Ok:
    if row is None:
        row = model(**values)
        session.add(row)
        session.flush()
        log.debug("inserted %s id=%s", model.__tablename__, row.id)
        return Ok(row.id, "inserted")
    if not overwrite:
        return Ok(row.id, "unchanged")
    outcome = _replace_scalars(row, values)
    if outcome == "updated":
        session.flush()
    return Ok(row.id, outcome)


def upsert_category(session, category, overwrite: bool = False):
    values = {
        "slug": category.slug,
        "name": category.name,
        "description": category.description,
        "icon": category.icon,
        "order_index": category.order_index,
    }
    try:
        row = session.execute(
            select(Category).where(Category.slug == category.slug)
        ).scalar_one_or_none()
        return _write(session, Category, row, values, overwrite)
    except DBAPIError as exc:
        return classify_db_error(exc, "category", category.slug)


def upsert_topic(session, topic, category_id: int, overwrite: bool = False):
    values = {
        "category_id": category_id,
        "slug": topic.slug,
        "name": topic.name,
        "description": topic.description,
        "difficulty_level": topic.difficulty_level,
        "estimated_time": topic.estimated_time,
        "order_index": topic.order_index,
        "icon": topic.icon,
    }
    try:
        row = session.execute(
            select(Topic).where(Topic.slug == topic.slug)
        ).scalar_one_or_none()
        if row is not None and row.category_id != category_id:
            return Conflict("topic", topic.slug, f"slug already used under category id {row.category_id}")
        return _write(session, Topic, row, values, overwrite)
    except DBAPIError as exc:
        return classify_db_error(exc, "topic", topic.slug, ("category", topic.category_slug))


def upsert_lesson(session, lesson, topic_id: int, overwrite: bool = False):
    values = {
        "topic_id": topic_id,
        "slug": lesson.slug,
        "title": lesson.title,
        "content": lesson.content,
        "summary": lesson.summary,
        "difficulty_level": lesson.difficulty_level,
        "estimated_time": lesson.estimated_time,
        "order_index": lesson.order_index,
        "key_points": list(lesson.key_points),
        "prerequisites": list(lesson.prerequisites),
    }
    try:
        row = session.execute(
            select(Lesson).where(Lesson.slug == lesson.slug)
        ).scalar_one_or_none()
        if row is not None and row.topic_id != topic_id:
            return Conflict("lesson", lesson.slug, f"slug already used under topic id {row.topic_id}")
        return _write(session, Lesson, row, values, overwrite)
    except DBAPIError as exc:
        return classify_db_error(exc, "lesson", lesson.slug, ("topic", lesson.topic_slug))


def upsert_code_example(session, example, lesson_id: int, lesson_slug: str = "", overwrite: bool = False):
    """Match on (lesson, order_index) first, then on (lesson, title)."""
    values = {
        "lesson_id": lesson_id,
        "title": example.title,
        "description": example.description,
        "language": example.language,
        "code": example.code,
        "explanation": example.explanation,
        "order_index": example.order_index,
        "is_interactive": example.is_interactive,
    }
    key = f"{lesson_slug}#{example.order_index}"
    try:
        row = session.execute(
            select(CodeExample).where(
                CodeExample.lesson_id == lesson_id,
                CodeExample.order_index == example.order_index,
            ).order_by(CodeExample.id)
        ).scalars().first()
        if row is None:
            row = session.execute(
                select(CodeExample).where(
                    CodeExample.lesson_id == lesson_id,
                    CodeExample.title == example.title,
                ).order_by(CodeExample.id)
            ).scalars().first()
        return _write(session, CodeExample, row, values, overwrite)
    except DBAPIError as exc:
        return classify_db_error(exc, "code_example", key, ("lesson", lesson_slug))


def upsert_quiz_question(session, question, lesson_id: int, lesson_slug: str = "", overwrite: bool = False):
    values = {
        "lesson_id": lesson_id,
        "question_text": question.question_text,
        "question_type": question.question_type,
        "options": list(question.options or []),
        "correct_answer": question.correct_answer,
        "explanation": question.explanation,
        "difficulty": question.difficulty,
        "points": question.points,
        "order_index": question.order_index,
    }
    key = f"{lesson_slug}#{question.order_index}"
    try:
        row = session.execute(
            select(QuizQuestion).where(
                QuizQuestion.lesson_id == lesson_id,
                QuizQuestion.order_index == question.order_index,
            ).order_by(QuizQuestion.id)
        ).scalars().first()
        return _write(session, QuizQuestion, row, values, overwrite)
    except DBAPIError as exc:
        return classify_db_error(exc, "quiz_question", key, ("lesson", lesson_slug))
