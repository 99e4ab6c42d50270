"""Data classes for content bundles, write results and run reporting."""
from dataclasses import dataclass, field
from typing import Optional

DIFFICULTIES = ("beginner", "intermediate", "advanced", "expert")
QUIZ_DIFFICULTIES = ("easy", "medium", "hard")
QUESTION_TYPES = ("multiple_choice", "true_false", "code_challenge")

# Entity kinds in write order, keyed to their table names.
KINDS = ("category", "topic", "lesson", "code_example", "quiz_question")
TABLES = {
    "category": "categories",
    "topic": "topics",
    "lesson": "lessons",
    "code_example": "code_examples",
    "quiz_question": "quiz_questions",
}


@dataclass
class CodeExample:
    title: str
    language: str
    code: str
    description: str = ""
    explanation: str = ""
    order_index: int = 0
    is_interactive: bool = False


@dataclass
class QuizQuestion:
    question_text: str
    correct_answer: str
    options: list = field(default_factory=list)
    question_type: str = "multiple_choice"
    explanation: str = ""
    difficulty: Optional[str] = "medium"
    points: int = 10
    order_index: int = 0


@dataclass
class LessonBundle:
    slug: str
    title: str
    content: str
    topic_slug: str = ""
    summary: str = ""
    difficulty_level: Optional[str] = None
    estimated_time: Optional[int] = None
    order_index: int = 0
    key_points: list = field(default_factory=list)
    prerequisites: list = field(default_factory=list)
    code_examples: list = field(default_factory=list)
    quiz_questions: list = field(default_factory=list)


@dataclass
class TopicBundle:
    slug: str
    name: str
    category_slug: str = ""
    description: str = ""
    difficulty_level: Optional[str] = None
    order_index: int = 0
    estimated_time: Optional[int] = None
    icon: Optional[str] = None
    lessons: list = field(default_factory=list)  # LessonBundle | SourceError


@dataclass
class CategoryBundle:
    slug: str
    name: str
    order_index: int = 0
    description: Optional[str] = None
    icon: Optional[str] = None
    topics: list = field(default_factory=list)  # TopicBundle | SourceError


@dataclass
class SourceError:
    """Stands in for a bundle that failed validation or could not be read."""
    kind: str
    slug: str
    path: tuple = ()
    messages: list = field(default_factory=list)

    def describe(self) -> str:
        where = "/".join(p for p in self.path if p) or self.slug
        return f"{self.kind} {where}: " + "; ".join(self.messages)


# Upsert Executor results

@dataclass
class Ok:
    id: int
    outcome: str  # inserted | updated | unchanged

    ok = True


@dataclass
class ValidationFail:
    reason: str

    ok = False


@dataclass
class ParentMissing:
    kind: str
    slug: str

    ok = False

    @property
    def reason(self) -> str:
        return f"parent {self.kind} '{self.slug}' not found"


@dataclass
class Conflict:
    kind: str
    slug: str
    reason: str

    ok = False


@dataclass
class TransportFail:
    reason: str

    ok = False


@dataclass
class MissingParent:
    """Resolver signal for a slug with no row behind it."""
    kind: str
    slug: str


# Reporting

@dataclass
class ProgressEvent:
    kind: str
    scope: str = ""
    slug: str = ""
    detail: str = ""
    counts: dict = field(default_factory=dict)


@dataclass
class Tally:
    inserted: int = 0
    updated: int = 0
    unchanged: int = 0
    failed: int = 0

    def record(self, outcome: str) -> None:
        setattr(self, outcome, getattr(self, outcome) + 1)

    def written(self) -> int:
        return self.inserted + self.updated + self.unchanged

    def merge(self, other: "Tally") -> None:
        self.inserted += other.inserted
        self.updated += other.updated
        self.unchanged += other.unchanged
        self.failed += other.failed


@dataclass
class VerificationReport:
    table_counts: dict = field(default_factory=dict)
    lessons_per_topic: dict = field(default_factory=dict)
    topics_per_category: dict = field(default_factory=dict)
    orphans: dict = field(default_factory=dict)
    unmatched_answers: list = field(default_factory=list)
    lessons_without_quiz: list = field(default_factory=list)

    @property
    def healthy(self) -> bool:
        return not any(self.orphans.values()) and not self.unmatched_answers


@dataclass
class RunSummary:
    tallies: dict = field(default_factory=lambda: {kind: Tally() for kind in KINDS})
    batches_committed: int = 0
    batches_failed: int = 0
    skipped: list = field(default_factory=list)
    state: str = "idle"
    abort_reason: Optional[str] = None
    dry_run: bool = False
    verification: Optional[VerificationReport] = None

    def total(self, outcome: str) -> int:
        return sum(getattr(t, outcome) for t in self.tallies.values())

    def as_dict(self) -> dict:
        result = {}
        for kind, tally in self.tallies.items():
            table = TABLES[kind]
            for outcome in ("inserted", "updated", "unchanged", "failed"):
                result[f"{table}_{outcome}"] = getattr(tally, outcome)
        for outcome in ("inserted", "updated", "unchanged", "failed"):
            result[outcome] = self.total(outcome)
        return result
