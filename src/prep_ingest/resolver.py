"""Slug to primary-key resolution with a write-through, batch-journaled cache."""
from sqlalchemy import select

from prep_ingest.db import Category, Lesson, Topic
from prep_ingest.errors import InvariantBreach
from prep_ingest.models import MissingParent

MODELS = {"category": Category, "topic": Topic, "lesson": Lesson}


class ReferenceResolver:
    """Maps category, topic and lesson slugs to ids.

    Misses fall through to the database. Entries learned while a batch is open
    are journaled and forgotten again if that batch rolls back, so later
    batches never see ids from rows that were never committed.
    """

    def __init__(self, session):
        self.session = session
        self._cache = {kind: {} for kind in MODELS}
        self._journal = None

    def begin_batch(self) -> None:
        self._journal = []

    def commit_batch(self) -> None:
        self._journal = None

    def rollback_batch(self) -> None:
        for kind, slug in self._journal or ():
            self._cache[kind].pop(slug, None)
        self._journal = None

    def _learn(self, kind: str, slug: str, row_id: int) -> None:
        self._cache[kind][slug] = row_id
        if self._journal is not None:
            self._journal.append((kind, slug))

    def remember(self, kind: str, slug: str, row_id: int) -> None:
        """Record a parent id right after it was upserted."""
        self.assert_consistent(kind, slug, row_id)
        self._learn(kind, slug, row_id)

    def assert_consistent(self, kind: str, slug: str, row_id: int) -> None:
        cached = self._cache[kind].get(slug)
        if cached is not None and cached != row_id:
            raise InvariantBreach(
                "resolver cache disagrees with the database",
                kind=kind, slug=slug, cached_id=cached, row_id=row_id,
            )

    def _lookup(self, kind: str, slug: str):
        cache = self._cache[kind]
        if slug in cache:
            return cache[slug]
        model = MODELS[kind]
        row_id = self.session.execute(
            select(model.id).where(model.slug == slug)
        ).scalar_one_or_none()
        if row_id is None:
            return MissingParent(kind, slug)
        self._learn(kind, slug, row_id)
        return row_id

    def lookup_category(self, slug: str):
        return self._lookup("category", slug)

    def lookup_topic(self, slug: str):
        return self._lookup("topic", slug)

    def lookup_lesson(self, slug: str):
        return self._lookup("lesson", slug)

    def cached(self, kind: str) -> dict:
        return dict(self._cache[kind])
