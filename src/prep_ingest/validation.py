"""Structural checks run on every bundle before it reaches the database."""
import re

from prep_ingest.models import DIFFICULTIES, QUESTION_TYPES, QUIZ_DIFFICULTIES

SLUG_RE = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")


def normalize_answer(text: str) -> str:
    return text.strip().casefold()


def answer_matches(answer: str, options: list) -> bool:
    """True when ``answer`` equals one option after trimming and case-folding."""
    wanted = normalize_answer(answer)
    return any(isinstance(o, str) and normalize_answer(o) == wanted for o in options)


def _blank(value) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _check_required(record, fields, errors: list) -> None:
    for name in fields:
        value = getattr(record, name)
        if _blank(value):
            errors.append(f"{name} is required")
        elif not isinstance(value, str):
            errors.append(f"{name} must be a string, got {type(value).__name__}")


def _check_text(record, fields, errors: list) -> None:
    for name in fields:
        value = getattr(record, name)
        if value is not None and not isinstance(value, str):
            errors.append(f"{name} must be a string, got {type(value).__name__}")


def _check_index(value, name: str, errors: list, optional: bool = False) -> None:
    if value is None and optional:
        return
    # bool is an int subclass; True is not an ordering index
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        errors.append(f"{name} must be a non-negative integer, got {value!r}")


def _check_slug(slug, errors: list) -> None:
    if _blank(slug):
        errors.append("slug is required")
    elif not isinstance(slug, str):
        errors.append(f"slug must be a string, got {type(slug).__name__}")
    elif not SLUG_RE.match(slug):
        errors.append(f"slug {slug!r} must be lowercase ASCII words joined by '-'")


def _check_difficulty(value, allowed, name: str, errors: list) -> None:
    if value not in allowed:
        errors.append(f"{name} must be one of {', '.join(allowed)}, got {value!r}")


def validate_category(bundle) -> list:
    errors = []
    _check_required(bundle, ("name",), errors)
    _check_text(bundle, ("description", "icon"), errors)
    _check_slug(bundle.slug, errors)
    _check_index(bundle.order_index, "order_index", errors)
    return errors


def validate_topic(bundle) -> list:
    errors = []
    _check_required(bundle, ("name", "category_slug"), errors)
    _check_text(bundle, ("description", "icon"), errors)
    _check_slug(bundle.slug, errors)
    _check_difficulty(bundle.difficulty_level, DIFFICULTIES, "difficulty_level", errors)
    _check_index(bundle.order_index, "order_index", errors)
    _check_index(bundle.estimated_time, "estimated_time", errors, optional=True)
    return errors


def validate_code_example(example, position: int) -> list:
    errors = []
    _check_required(example, ("title", "language", "code"), errors)
    _check_text(example, ("description", "explanation"), errors)
    _check_index(example.order_index, "order_index", errors)
    return [f"code example #{position}: {e}" for e in errors]


def validate_quiz_question(question, position: int) -> list:
    errors = []
    _check_required(question, ("question_text", "correct_answer"), errors)
    _check_text(question, ("explanation",), errors)
    _check_index(question.order_index, "order_index", errors)
    _check_index(question.points, "points", errors)
    if question.question_type not in QUESTION_TYPES:
        errors.append(f"question_type {question.question_type!r} is not supported")
    if question.difficulty is not None:
        _check_difficulty(question.difficulty, QUIZ_DIFFICULTIES, "difficulty", errors)

    options = question.options
    if question.question_type == "multiple_choice":
        if not isinstance(options, list) or not options:
            errors.append("options must be a non-empty list")
        elif not all(isinstance(o, str) and o.strip() for o in options):
            errors.append("options must be non-empty strings")
        else:
            seen = [normalize_answer(o) for o in options]
            if len(set(seen)) != len(seen):
                errors.append("options must be distinct")
            if isinstance(question.correct_answer, str) and question.correct_answer.strip() \
                    and not answer_matches(question.correct_answer, options):
                errors.append(f"correct_answer {question.correct_answer!r} is not one of the options")
    elif question.question_type == "true_false":
        if isinstance(question.correct_answer, str) and \
                normalize_answer(question.correct_answer) not in ("true", "false"):
            errors.append("correct_answer must be 'true' or 'false'")
    return [f"quiz question #{position}: {e}" for e in errors]


def _duplicate_indices(items) -> list:
    seen, dupes = set(), []
    for item in items:
        if item.order_index in seen and item.order_index not in dupes:
            dupes.append(item.order_index)
        seen.add(item.order_index)
    return dupes


def validate_lesson(bundle) -> list:
    """Validate a lesson together with its code examples and quiz questions."""
    errors = []
    _check_required(bundle, ("title", "content", "topic_slug"), errors)
    _check_text(bundle, ("summary",), errors)
    _check_slug(bundle.slug, errors)
    _check_difficulty(bundle.difficulty_level, DIFFICULTIES, "difficulty_level", errors)
    _check_index(bundle.order_index, "order_index", errors)
    _check_index(bundle.estimated_time, "estimated_time", errors, optional=True)
    for name in ("key_points", "prerequisites"):
        values = getattr(bundle, name)
        if not isinstance(values, list):
            errors.append(f"{name} must be a list, got {type(values).__name__}")
        elif not all(isinstance(v, str) for v in values):
            errors.append(f"{name} must be strings")
    children = {"code_examples": validate_code_example, "quiz_questions": validate_quiz_question}
    for name, check in children.items():
        items = getattr(bundle, name)
        if not isinstance(items, list):
            errors.append(f"{name} must be a list, got {type(items).__name__}")
            continue
        for position, item in enumerate(items, 1):
            errors.extend(check(item, position))

    # order_index is the conflict key for children, so it must not repeat
    if not errors:
        for dupe in _duplicate_indices(bundle.code_examples):
            errors.append(f"code examples share order_index {dupe}")
        for dupe in _duplicate_indices(bundle.quiz_questions):
            errors.append(f"quiz questions share order_index {dupe}")
    return errors
