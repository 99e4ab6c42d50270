"""Ingestion coordinator: drives source, resolver and executor batch by batch.

One connection is held for the whole run and bundles are processed strictly
in sequence. Validation-class failures (a bad bundle, a missing parent, a
slug conflict) are contained in the batch that hit them; transport and
invariant failures roll back the open batch and propagate to the caller.
"""
import logging
import time

from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import Session

from prep_ingest.config import IngestConfig
from prep_ingest.db import init_db
from prep_ingest.errors import InvariantBreach, SchemaInitError, SourceUnavailable, TransportError
from prep_ingest.models import (
    KINDS, TABLES, MissingParent, ParentMissing, ProgressEvent, RunSummary, SourceError,
    Tally, TransportFail,
)
from prep_ingest.resolver import ReferenceResolver
from prep_ingest.upsert import (
    classify_db_error, upsert_category, upsert_code_example, upsert_lesson,
    upsert_quiz_question, upsert_topic,
)
from prep_ingest.verify import verify

log = logging.getLogger(__name__)

IDLE = "idle"
INITIALIZING = "initializing"
STREAMING = "streaming"
DRAINING = "draining"
SUMMARIZED = "summarized"
ABORTED = "aborted"

TRANSITIONS = {
    IDLE: (INITIALIZING,),
    INITIALIZING: (STREAMING, ABORTED),
    STREAMING: (DRAINING, ABORTED),
    DRAINING: (SUMMARIZED, ABORTED),
}

# _run_batch outcomes
COMMITTED = "committed"
FAILED = "failed"
STOP = "stop"


class _BundleFailed(Exception):
    def __init__(self, kind: str, slug: str, result):
        super().__init__(f"{kind} {slug}: {result.reason}")
        self.kind = kind
        self.slug = slug
        self.result = result


class _ValidationAbort(Exception):
    """A bad bundle was met while on_validation_error is abort_run."""


class _Cancelled(Exception):
    pass


class _Batch:
    def __init__(self, scope: str, slug: str):
        self.scope = scope
        self.slug = slug
        self.started = time.monotonic()
        self.tallies = {kind: Tally() for kind in KINDS}

    def counts(self) -> dict:
        counts = {}
        for kind, tally in self.tallies.items():
            for outcome in ("inserted", "updated", "unchanged"):
                value = getattr(tally, outcome)
                if value:
                    counts[f"{TABLES[kind]}_{outcome}"] = value
        return counts


class Coordinator:
    """Runs one ingestion of ``source`` into the database behind ``engine``."""

    def __init__(self, source, engine, config: IngestConfig | None = None):
        self.source = source
        self.engine = engine
        self.config = config or IngestConfig()
        self.state = IDLE
        self.summary = RunSummary(dry_run=self.config.dry_run)
        self.session = None
        self.resolver = None
        self._batch = None
        self._cancel_event = None

    # state and reporting

    def _transition(self, target: str) -> None:
        if target not in TRANSITIONS.get(self.state, ()):
            raise InvariantBreach("illegal coordinator transition", current=self.state, target=target)
        log.debug("coordinator %s -> %s", self.state, target)
        self.state = target
        self.summary.state = target

    def _emit(self, kind: str, scope: str = "", slug: str = "", detail: str = "", counts=None) -> None:
        event = ProgressEvent(kind=kind, scope=scope, slug=slug, detail=detail, counts=counts or {})
        log.debug("event %s %s %s %s", kind, scope, slug, detail)
        if self.config.progress_reporter is not None:
            self.config.progress_reporter(event)

    def _abort(self, reason: str, detail: str = "") -> None:
        self.summary.abort_reason = reason
        if self.state != ABORTED:
            self._transition(ABORTED)
        self._emit("run_aborted", detail=detail or reason)

    @property
    def scope(self) -> str:
        # Rolled-back parents are invisible to later batches, so a dry run
        # keeps each category tree in one transaction.
        if self.config.dry_run:
            return "per-category"
        return self.config.batch_scope

    # entry point

    def run(self, cancel_event=None) -> RunSummary:
        """Ingest everything the source yields and return the run summary.

        Raises SchemaInitError, TransportError, InvariantBreach or
        SourceUnavailable after moving to the Aborted state.
        """
        self._cancel_event = cancel_event
        self._transition(INITIALIZING)
        self._emit("run_started", detail=self.scope)
        try:
            conn = self.engine.connect()
        except DBAPIError as exc:
            self._abort("schema", str(exc))
            raise SchemaInitError(f"cannot connect to the database: {exc}") from exc
        try:
            self._run_on(conn)
        finally:
            conn.close()
        if self.state == SUMMARIZED:
            self._emit("run_finished", counts=self.summary.as_dict())
        return self.summary

    def _run_on(self, conn) -> None:
        try:
            init_db(conn)
        except SchemaInitError as exc:
            self._abort("schema", str(exc))
            raise
        except DBAPIError as exc:
            self._abort("transport", str(exc))
            raise TransportError(str(exc)) from exc
        self._emit("schema_ready")
        self._transition(STREAMING)

        self.session = Session(bind=conn, expire_on_commit=False)
        self.resolver = ReferenceResolver(self.session)
        try:
            self._stream()
        except _Cancelled:
            self._rollback_open()
            self.summary.abort_reason = "cancelled"
            self._transition(ABORTED)
            self._emit("run_cancelled")
        except (TransportError, InvariantBreach, SourceUnavailable) as exc:
            self._rollback_open()
            if isinstance(exc, InvariantBreach):
                reason = "invariant"
            elif isinstance(exc, SourceUnavailable):
                reason = "source"
            else:
                reason = "transport"
            self._abort(reason, str(exc))
            raise
        except DBAPIError as exc:
            # raised outside a batch, e.g. by a rollback on a dead connection
            self._rollback_open()
            self._abort("transport", str(exc))
            raise TransportError(str(exc)) from exc
        finally:
            self.session.close()

        if self.state == ABORTED:
            return

        self._transition(DRAINING)
        if self.config.verify:
            try:
                self.summary.verification = verify(conn)
            except DBAPIError as exc:
                self._abort("transport", str(exc))
                raise TransportError(str(exc)) from exc
            self._emit("verification_done", counts=self.summary.verification.table_counts)
        self._transition(SUMMARIZED)

    def _stream(self) -> None:
        for item in self.source.enumerate():
            self._check_cancel()
            if isinstance(item, SourceError):
                if not self._skip_outside_batch(item):
                    return
                continue
            if not self._ingest_category(item):
                return

    def _check_cancel(self) -> None:
        if self._cancel_event is not None and self._cancel_event.is_set():
            raise _Cancelled()

    # batch boundaries

    def _ingest_category(self, category) -> bool:
        """Write one category tree; False when the run must stop."""
        if self.scope == "per-category":
            return self._run_batch("category", category.slug, lambda b: self._category_tree(b, category)) != STOP

        status = self._run_batch("category", category.slug, lambda b: self._write_category(b, category))
        if status == STOP:
            return False
        if status == FAILED:
            self._note_skipped_subtree("category", category.slug, len(category.topics))
            return True
        for topic in category.topics:
            self._check_cancel()
            if isinstance(topic, SourceError):
                if not self._skip_outside_batch(topic):
                    return False
                continue
            if self.scope == "per-topic":
                status = self._run_batch("topic", topic.slug, lambda b: self._topic_tree(b, topic))
                if status == STOP:
                    return False
                continue
            status = self._run_batch("topic", topic.slug, lambda b: self._write_topic(b, topic))
            if status == STOP:
                return False
            if status == FAILED:
                self._note_skipped_subtree("topic", topic.slug, len(topic.lessons))
                continue
            for lesson in topic.lessons:
                self._check_cancel()
                if isinstance(lesson, SourceError):
                    if not self._skip_outside_batch(lesson):
                        return False
                    continue
                if self._run_batch("lesson", lesson.slug, lambda b: self._write_lesson(b, lesson)) == STOP:
                    return False
        return True

    def _run_batch(self, scope: str, slug: str, work) -> str:
        self._check_cancel()
        batch = _Batch(scope, slug)
        self._batch = batch
        self.resolver.begin_batch()
        try:
            work(batch)
            self._commit_batch(batch)
        except _BundleFailed as exc:
            self._fail_batch(batch, str(exc), exc.kind)
            if self.config.on_validation_error == "abort_run":
                self._abort("validation", str(exc))
                return STOP
            return FAILED
        except _ValidationAbort as exc:
            self._fail_batch(batch, str(exc), record=False)
            self._abort("validation", str(exc))
            return STOP
        except DBAPIError as exc:
            result = classify_db_error(exc, scope, slug)
            if isinstance(result, TransportFail):
                raise TransportError(result.reason) from exc
            self._fail_batch(batch, f"{scope} {slug}: {result.reason}", scope)
            if self.config.on_validation_error == "abort_run":
                self._abort("validation", result.reason)
                return STOP
            return FAILED
        finally:
            self._batch = None
        return COMMITTED

    def _commit_batch(self, batch: _Batch) -> None:
        if self.config.dry_run:
            self.session.rollback()
            self.resolver.rollback_batch()
            event = "batch_rolled_back"
        else:
            self.session.commit()
            self.resolver.commit_batch()
            self.summary.batches_committed += 1
            event = "batch_committed"
        for kind, tally in batch.tallies.items():
            self.summary.tallies[kind].merge(tally)
        self._emit(event, batch.scope, batch.slug, counts=batch.counts())

    def _fail_batch(self, batch: _Batch, reason: str, failed_kind: str | None = None, record: bool = True) -> None:
        self.session.rollback()
        self.resolver.rollback_batch()
        # nothing the batch wrote survives the rollback
        for kind, tally in batch.tallies.items():
            self.summary.tallies[kind].failed += tally.written()
        if failed_kind in self.summary.tallies:
            self.summary.tallies[failed_kind].failed += 1
        self.summary.batches_failed += 1
        if record:
            self.summary.skipped.append(reason)
        self._emit("batch_failed", batch.scope, batch.slug, detail=reason)

    def _rollback_open(self) -> None:
        if self.session is None:
            return
        try:
            self.session.rollback()
        except DBAPIError:
            log.warning("rollback failed after fatal error", exc_info=True)
        self.resolver.rollback_batch()
        self._batch = None

    def _check_deadline(self, batch: _Batch) -> None:
        limit = self.config.transaction_timeout
        if limit and time.monotonic() - batch.started > limit:
            raise TransportError(f"transaction for {batch.scope} {batch.slug} exceeded {limit}s")

    # skipping

    def _skip(self, item: SourceError) -> None:
        self.summary.tallies[item.kind].failed += 1
        self.summary.skipped.append(item.describe())
        if self.config.on_validation_error == "abort_run":
            raise _ValidationAbort(item.describe())
        self._emit("bundle_skipped", item.kind, item.slug, detail=item.describe())

    def _skip_outside_batch(self, item: SourceError) -> bool:
        try:
            self._skip(item)
        except _ValidationAbort as exc:
            self._abort("validation", str(exc))
            return False
        return True

    def _note_skipped_subtree(self, kind: str, slug: str, children: int) -> None:
        if children:
            self.summary.skipped.append(f"{kind} {slug}: {children} child bundle(s) not attempted")

    # writes

    def _settle(self, batch: _Batch, kind: str, slug: str, result) -> int:
        if isinstance(result, TransportFail):
            raise TransportError(result.reason)
        if not result.ok:
            raise _BundleFailed(kind, slug, result)
        batch.tallies[kind].record(result.outcome)
        self._check_deadline(batch)
        return result.id

    def _resolve(self, parent_kind: str, parent_slug: str, kind: str, slug: str) -> int:
        found = getattr(self.resolver, f"lookup_{parent_kind}")(parent_slug)
        if isinstance(found, MissingParent):
            raise _BundleFailed(kind, slug, ParentMissing(parent_kind, parent_slug))
        return found

    def _write_category(self, batch: _Batch, category) -> int:
        result = upsert_category(self.session, category, self.config.overwrite_existing)
        row_id = self._settle(batch, "category", category.slug, result)
        self.resolver.remember("category", category.slug, row_id)
        return row_id

    def _write_topic(self, batch: _Batch, topic) -> int:
        category_id = self._resolve("category", topic.category_slug, "topic", topic.slug)
        result = upsert_topic(self.session, topic, category_id, self.config.overwrite_existing)
        row_id = self._settle(batch, "topic", topic.slug, result)
        self.resolver.remember("topic", topic.slug, row_id)
        return row_id

    def _write_lesson(self, batch: _Batch, lesson) -> int:
        """Lesson first, then its code examples, then its quiz questions."""
        topic_id = self._resolve("topic", lesson.topic_slug, "lesson", lesson.slug)
        overwrite = self.config.overwrite_existing
        result = upsert_lesson(self.session, lesson, topic_id, overwrite)
        lesson_id = self._settle(batch, "lesson", lesson.slug, result)
        self.resolver.remember("lesson", lesson.slug, lesson_id)
        for example in lesson.code_examples:
            result = upsert_code_example(self.session, example, lesson_id, lesson.slug, overwrite)
            self._settle(batch, "code_example", lesson.slug, result)
        for question in lesson.quiz_questions:
            result = upsert_quiz_question(self.session, question, lesson_id, lesson.slug, overwrite)
            self._settle(batch, "quiz_question", lesson.slug, result)
        return lesson_id

    def _topic_tree(self, batch: _Batch, topic) -> None:
        self._write_topic(batch, topic)
        for lesson in topic.lessons:
            if isinstance(lesson, SourceError):
                self._skip(lesson)
                continue
            self._write_lesson(batch, lesson)

    def _category_tree(self, batch: _Batch, category) -> None:
        self._write_category(batch, category)
        for topic in category.topics:
            if isinstance(topic, SourceError):
                self._skip(topic)
                continue
            self._topic_tree(batch, topic)


def run_ingest(source, engine, config: IngestConfig | None = None, cancel_event=None) -> RunSummary:
    return Coordinator(source, engine, config).run(cancel_event)
