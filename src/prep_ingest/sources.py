"""Content sources: embedded modules, directory trees and archives.

Every source exposes ``enumerate()``, a lazy iterator of ``CategoryBundle``
items in declared order. A category, topic or lesson that fails validation is
replaced in the stream by a ``SourceError`` carrying its identifiers.
"""
import importlib
import io
import json
import logging
import tarfile
import tempfile
import zipfile
from dataclasses import fields
from pathlib import Path

import requests
import yaml

from prep_ingest.errors import SourceUnavailable
from prep_ingest.models import (
    CategoryBundle, CodeExample, LessonBundle, QuizQuestion, SourceError, TopicBundle,
)
from prep_ingest.validation import validate_category, validate_lesson, validate_topic

log = logging.getLogger(__name__)

EMBEDDED_MODULES = (
    "prep_ingest.content.architecture",
    "prep_ingest.content.backend",
    "prep_ingest.content.frontend",
)
CONTENT_SUFFIXES = (".json", ".yaml", ".yml")


class ContentFormatError(ValueError):
    pass


def _construct(cls, data: dict):
    if not isinstance(data, dict):
        raise ContentFormatError(f"expected a mapping for {cls.__name__}, got {type(data).__name__}")
    known = {f.name for f in fields(cls)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ContentFormatError(f"unknown field(s): {', '.join(unknown)}")
    try:
        return cls(**data)
    except TypeError as exc:
        raise ContentFormatError(str(exc)) from exc


def _order_key(item) -> tuple:
    """Sort by declared order index, ties by slug; errors sort first."""
    if isinstance(item, SourceError):
        return (-1, item.slug or "")
    if isinstance(item, dict):
        order, slug = item.get("order_index", 0), item.get("slug", "")
    else:
        order, slug = item.order_index, item.slug
    if isinstance(order, bool) or not isinstance(order, int):
        order = -1
    return (order, slug if isinstance(slug, str) else "")


def _child_key(item) -> int:
    return item.order_index


def _load_options(options):
    # options may arrive JSON-encoded
    if isinstance(options, str):
        try:
            return json.loads(options)
        except ValueError as exc:
            raise ContentFormatError(f"options is not valid JSON: {exc}") from exc
    return options


def _as_list(value, name: str) -> list:
    """A missing or null collection is empty; anything else must be a list."""
    if value is None:
        return []
    if not isinstance(value, (list, tuple)):
        raise ContentFormatError(f"{name} must be a list, got {type(value).__name__}")
    return list(value)


def _as_map(value, name: str) -> dict:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ContentFormatError(f"{name} must be a mapping keyed by lesson slug, got {type(value).__name__}")
    return value


def _load_question(q):
    if isinstance(q, QuizQuestion):
        return q
    if isinstance(q, dict) and "options" in q:
        q = dict(q, options=_load_options(q["options"]))
    return _construct(QuizQuestion, q)


def load_lesson(data, topic_slug: str, path: tuple, examples=None, quiz=None):
    """Build and validate one lesson bundle; returns it or a SourceError."""
    if isinstance(data, LessonBundle):
        lesson = data
        lesson.topic_slug = lesson.topic_slug or topic_slug
    elif not isinstance(data, dict):
        return SourceError("lesson", "", path, [f"expected a mapping for LessonBundle, got {type(data).__name__}"])
    else:
        slug = data.get("slug", "")
        try:
            raw = dict(data)
            raw_examples = _as_list(raw.pop("code_examples", None), "code_examples")
            raw_quiz = _as_list(raw.pop("quiz_questions", None), "quiz_questions")
            for name in ("key_points", "prerequisites"):
                if name in raw:
                    raw[name] = _as_list(raw[name], name)
            if isinstance(slug, str):
                raw_examples += _as_list((examples or {}).get(slug), f"examples[{slug}]")
                raw_quiz += _as_list((quiz or {}).get(slug), f"quiz[{slug}]")
            lesson = _construct(LessonBundle, raw)
            lesson.topic_slug = lesson.topic_slug or topic_slug
            lesson.code_examples = [
                e if isinstance(e, CodeExample) else _construct(CodeExample, e) for e in raw_examples
            ]
            lesson.quiz_questions = [_load_question(q) for q in raw_quiz]
        except ContentFormatError as exc:
            return SourceError("lesson", str(slug), path + (str(slug),), [str(exc)])

    errors = validate_lesson(lesson)
    if errors:
        return SourceError("lesson", str(lesson.slug), path + (str(lesson.slug),), errors)
    lesson.code_examples = sorted(lesson.code_examples, key=_child_key)
    lesson.quiz_questions = sorted(lesson.quiz_questions, key=_child_key)
    return lesson


def load_topic(data, category_slug: str, examples=None, quiz=None):
    """Build and validate one topic bundle and its lessons."""
    if not isinstance(data, (dict, TopicBundle)):
        return SourceError("topic", "", (category_slug,), [f"expected a mapping for TopicBundle, got {type(data).__name__}"])
    slug = data.slug if isinstance(data, TopicBundle) else data.get("slug", "")
    try:
        if isinstance(data, TopicBundle):
            topic, raw_lessons = data, _as_list(data.lessons, "lessons")
        else:
            raw = dict(data)
            raw_lessons = _as_list(raw.pop("lessons", None), "lessons")
            topic = _construct(TopicBundle, raw)
    except ContentFormatError as exc:
        return SourceError("topic", str(slug), (category_slug, str(slug)), [str(exc)])
    topic.category_slug = topic.category_slug or category_slug

    errors = validate_topic(topic)
    if errors:
        return SourceError("topic", str(topic.slug), (str(topic.category_slug), str(topic.slug)), errors)
    path = (topic.category_slug, topic.slug)
    lessons = [
        item if isinstance(item, SourceError) else load_lesson(item, topic.slug, path, examples, quiz)
        for item in raw_lessons
    ]
    topic.lessons = sorted(lessons, key=_order_key)
    return topic


def load_category(data):
    """Build and validate a category bundle from a nested mapping.

    Code examples and quiz questions may sit inline in each lesson or in
    top-level ``examples`` / ``quiz`` maps keyed by lesson slug.
    """
    if not isinstance(data, (dict, CategoryBundle)):
        return SourceError("category", "", (), [f"expected a mapping for CategoryBundle, got {type(data).__name__}"])
    slug = data.slug if isinstance(data, CategoryBundle) else data.get("slug", "")
    try:
        if isinstance(data, CategoryBundle):
            category, raw_topics, examples, quiz = data, _as_list(data.topics, "topics"), None, None
        else:
            raw = dict(data)
            raw_topics = _as_list(raw.pop("topics", None), "topics")
            examples = _as_map(raw.pop("examples", None), "examples")
            quiz = _as_map(raw.pop("quiz", None), "quiz")
            category = _construct(CategoryBundle, raw)
    except ContentFormatError as exc:
        return SourceError("category", str(slug), (str(slug),), [str(exc)])

    errors = validate_category(category)
    if errors:
        return SourceError("category", str(category.slug), (str(category.slug),), errors)
    topics = [
        item if isinstance(item, SourceError) else load_topic(item, category.slug, examples, quiz)
        for item in raw_topics
    ]
    category.topics = sorted(topics, key=_order_key)
    return category


class ContentSource:
    """Base class; subclasses yield raw category mappings from ``_raw_categories``."""

    def _raw_categories(self):
        raise NotImplementedError

    def enumerate(self):
        raw = list(self._raw_categories())
        for item in sorted(raw, key=_order_key):
            if isinstance(item, SourceError):
                yield item
            else:
                yield load_category(item)


class EmbeddedSource(ContentSource):
    """Categories defined as Python data in content modules.

    Each module exposes ``CATEGORY`` and optionally ``EXAMPLES`` and ``QUIZ``
    keyed by lesson slug. Tests may pass ready-made ``categories`` instead.
    """

    def __init__(self, modules=EMBEDDED_MODULES, categories=None):
        self.modules = modules
        self.categories = categories

    def _raw_categories(self):
        if self.categories is not None:
            yield from self.categories
            return
        for name in self.modules:
            module = importlib.import_module(name) if isinstance(name, str) else name
            yield {
                **module.CATEGORY,
                "examples": getattr(module, "EXAMPLES", {}),
                "quiz": getattr(module, "QUIZ", {}),
            }


def read_content_file(path: Path):
    """Parse one JSON or YAML content file into a mapping or a SourceError."""
    try:
        text = path.read_text(encoding="utf-8")
        if path.suffix.lower() == ".json":
            data = json.loads(text)
        else:
            data = yaml.safe_load(text)
    except (OSError, ValueError, yaml.YAMLError) as exc:
        return SourceError("category", path.stem, (path.name,), [f"unreadable: {exc}"])
    if not isinstance(data, dict):
        return SourceError("category", path.stem, (path.name,), ["file must hold one category mapping"])
    return data


class DirectorySource(ContentSource):
    """A directory tree with one JSON or YAML file per category."""

    def __init__(self, root):
        self.root = Path(root)

    def _raw_categories(self):
        if not self.root.is_dir():
            raise SourceUnavailable(f"content directory not found: {self.root}")
        for path in sorted(self.root.rglob("*")):
            if path.is_file() and path.suffix.lower() in CONTENT_SUFFIXES:
                log.debug("reading %s", path)
                yield read_content_file(path)


class ArchiveSource(ContentSource):
    """A zip or tar archive of a content directory, local or over HTTP."""

    def __init__(self, location: str, timeout: float = 30):
        self.location = location
        self.timeout = timeout

    def _fetch(self) -> bytes:
        if self.location.startswith(("http://", "https://")):
            try:
                resp = requests.get(self.location, timeout=self.timeout)
                resp.raise_for_status()
            except requests.RequestException as exc:
                raise SourceUnavailable(f"cannot download {self.location}: {exc}") from exc
            return resp.content
        try:
            return Path(self.location).read_bytes()
        except OSError as exc:
            raise SourceUnavailable(f"cannot read {self.location}: {exc}") from exc

    def _extract(self, payload: bytes, target: Path) -> None:
        buffer = io.BytesIO(payload)
        if zipfile.is_zipfile(buffer):
            buffer.seek(0)
            with zipfile.ZipFile(buffer) as archive:
                archive.extractall(target)
            return
        buffer.seek(0)
        try:
            with tarfile.open(fileobj=buffer, mode="r:*") as archive:
                archive.extractall(target, filter="data")
        except tarfile.TarError as exc:
            raise SourceUnavailable(f"{self.location} is not a zip or tar archive") from exc

    def _raw_categories(self):
        payload = self._fetch()
        with tempfile.TemporaryDirectory(prefix="prep_ingest_") as tmp:
            self._extract(payload, Path(tmp))
            yield from DirectorySource(tmp)._raw_categories()


def get_source(spec: str | None):
    """Pick a source from a CLI/env value: 'embedded', a directory, or an archive."""
    if not spec or spec == "embedded":
        return EmbeddedSource()
    if spec.startswith(("http://", "https://")) or Path(spec).is_file():
        return ArchiveSource(spec)
    return DirectorySource(spec)
