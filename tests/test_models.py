from prep_ingest.models import (
    Conflict, Ok, ParentMissing, RunSummary, SourceError, Tally, TransportFail,
    ValidationFail, VerificationReport,
)


def test_tally_record_and_written():
    t = Tally()
    t.record("inserted")
    t.record("inserted")
    t.record("unchanged")
    assert (t.inserted, t.unchanged, t.updated) == (2, 1, 0)
    assert t.written() == 3


def test_tally_merge():
    a = Tally(inserted=1, failed=2)
    a.merge(Tally(inserted=3, updated=1, unchanged=4, failed=1))
    assert a == Tally(inserted=4, updated=1, unchanged=4, failed=3)


def test_run_summary_as_dict_has_flat_keys_and_totals():
    summary = RunSummary()
    summary.tallies["category"].inserted = 1
    summary.tallies["code_example"].inserted = 2
    summary.tallies["lesson"].unchanged = 3
    summary.tallies["quiz_question"].failed = 1
    d = summary.as_dict()
    assert d["categories_inserted"] == 1
    assert d["code_examples_inserted"] == 2
    assert d["lessons_unchanged"] == 3
    assert d["quiz_questions_failed"] == 1
    assert d["inserted"] == 3
    assert d["unchanged"] == 3
    assert d["failed"] == 1
    assert d["updated"] == 0


def test_source_error_describe_uses_path():
    err = SourceError("lesson", "intro", ("frontend", "react-basics", "intro"), ["title is required"])
    assert err.describe() == "lesson frontend/react-basics/intro: title is required"


def test_source_error_describe_falls_back_to_slug():
    err = SourceError("category", "broken", (), ["a", "b"])
    assert err.describe() == "category broken: a; b"


def test_result_variants_report_ok():
    assert Ok(1, "inserted").ok
    assert not ValidationFail("bad").ok
    assert not Conflict("topic", "t", "taken").ok
    assert not TransportFail("down").ok
    missing = ParentMissing("topic", "ghost")
    assert not missing.ok
    assert missing.reason == "parent topic 'ghost' not found"


def test_verification_report_health():
    assert VerificationReport(orphans={"topics": 0}).healthy
    assert not VerificationReport(orphans={"topics": 2}).healthy
    assert not VerificationReport(unmatched_answers=[7]).healthy
