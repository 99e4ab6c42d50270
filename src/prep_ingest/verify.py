"""Post-ingest counts and integrity checks. Read-only."""
import json

from sqlalchemy import text

from prep_ingest.db import EXPECTED_TABLES
from prep_ingest.models import VerificationReport
from prep_ingest.validation import answer_matches

# (child table, foreign key column, parent table)
RELATIONS = (
    ("topics", "category_id", "categories"),
    ("lessons", "topic_id", "topics"),
    ("code_examples", "lesson_id", "lessons"),
    ("quiz_questions", "lesson_id", "lessons"),
)


def count_rows(connection) -> dict:
    return {
        table: connection.execute(text(f"SELECT COUNT(*) FROM {table}")).scalar_one()
        for table in EXPECTED_TABLES
    }


def get_lessons_per_topic(connection) -> dict:
    rows = connection.execute(text(
        """SELECT t.slug AS slug, COUNT(l.id) AS total
        FROM topics t LEFT JOIN lessons l ON l.topic_id = t.id
        GROUP BY t.id, t.slug
        ORDER BY t.slug"""
    )).mappings()
    return {r["slug"]: r["total"] for r in rows}


def get_topics_per_category(connection) -> dict:
    rows = connection.execute(text(
        """SELECT c.slug AS slug, COUNT(t.id) AS total
        FROM categories c LEFT JOIN topics t ON t.category_id = c.id
        GROUP BY c.id, c.slug
        ORDER BY c.slug"""
    )).mappings()
    return {r["slug"]: r["total"] for r in rows}


def find_orphans(connection) -> dict:
    """Child rows whose parent id no longer resolves, per relation."""
    orphans = {}
    for child, fk, parent in RELATIONS:
        orphans[child] = connection.execute(text(
            f"""SELECT COUNT(*) FROM {child} c
            LEFT JOIN {parent} p ON c.{fk} = p.id
            WHERE p.id IS NULL"""
        )).scalar_one()
    return orphans


def find_unmatched_answers(connection) -> list:
    rows = connection.execute(text(
        """SELECT id, correct_answer, options FROM quiz_questions
        WHERE question_type = 'multiple_choice'
        ORDER BY id"""
    )).mappings()
    unmatched = []
    for r in rows:
        options = r["options"]
        if isinstance(options, str):
            options = json.loads(options)
        if not answer_matches(r["correct_answer"], options or []):
            unmatched.append(r["id"])
    return unmatched


def find_lessons_without_quiz(connection) -> list:
    rows = connection.execute(text(
        """SELECT l.slug FROM lessons l
        LEFT JOIN quiz_questions q ON q.lesson_id = l.id
        WHERE q.id IS NULL
        ORDER BY l.slug"""
    ))
    return [r[0] for r in rows]


def verify(connection) -> VerificationReport:
    return VerificationReport(
        table_counts=count_rows(connection),
        lessons_per_topic=get_lessons_per_topic(connection),
        topics_per_category=get_topics_per_category(connection),
        orphans=find_orphans(connection),
        unmatched_answers=find_unmatched_answers(connection),
        lessons_without_quiz=find_lessons_without_quiz(connection),
    )
