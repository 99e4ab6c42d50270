import pytest

from prep_ingest.db import Category, Topic
from prep_ingest.errors import InvariantBreach
from prep_ingest.models import MissingParent
from prep_ingest.resolver import ReferenceResolver


def _add_category(session, slug="backend"):
    row = Category(slug=slug, name=slug.title(), order_index=0)
    session.add(row)
    session.flush()
    return row.id


def test_lookup_unknown_slug_returns_missing_parent(db_session):
    resolver = ReferenceResolver(db_session)
    assert resolver.lookup_topic("ghost") == MissingParent("topic", "ghost")


def test_lookup_falls_through_to_database(db_session):
    category_id = _add_category(db_session)
    db_session.commit()
    resolver = ReferenceResolver(db_session)
    assert resolver.lookup_category("backend") == category_id
    assert resolver.cached("category") == {"backend": category_id}


def test_lookup_finds_topics_and_lessons(db_session):
    category_id = _add_category(db_session)
    topic = Topic(category_id=category_id, slug="hooks", name="Hooks", difficulty_level="beginner", order_index=0)
    db_session.add(topic)
    db_session.commit()
    resolver = ReferenceResolver(db_session)
    assert resolver.lookup_topic("hooks") == topic.id
    assert isinstance(resolver.lookup_lesson("hooks"), MissingParent)


def test_remember_is_write_through(db_session):
    resolver = ReferenceResolver(db_session)
    resolver.remember("category", "frontend", 42)
    # served from the cache, no row exists
    assert resolver.lookup_category("frontend") == 42


def test_remember_conflicting_id_is_invariant_breach(db_session):
    resolver = ReferenceResolver(db_session)
    resolver.remember("topic", "hooks", 1)
    with pytest.raises(InvariantBreach) as exc:
        resolver.remember("topic", "hooks", 2)
    assert exc.value.context == {"kind": "topic", "slug": "hooks", "cached_id": 1, "row_id": 2}


def test_rollback_batch_forgets_entries_learned_in_batch(db_session):
    resolver = ReferenceResolver(db_session)
    resolver.remember("category", "kept", 1)
    resolver.begin_batch()
    resolver.remember("category", "dropped", 2)
    resolver.rollback_batch()
    assert resolver.cached("category") == {"kept": 1}


def test_commit_batch_keeps_entries(db_session):
    resolver = ReferenceResolver(db_session)
    resolver.begin_batch()
    resolver.remember("lesson", "intro-jsx", 7)
    resolver.commit_batch()
    resolver.rollback_batch()  # no open batch, nothing to forget
    assert resolver.cached("lesson") == {"intro-jsx": 7}
