"""Pure dataclasses for the forecast council pipeline. No logic, no deps."""

from dataclasses import asdict, dataclass, field
from enum import Enum


@dataclass(frozen=True)
class Question:
    id: int
    title: str
    description: str
    resolution_criteria: str
    fine_print: str
    date: str
    resolution: str                      # "yes", "no" or "unresolved"
    information_fragments: tuple[str, ...] = ()


@dataclass(frozen=True)
class ParticipantSpec:
    agent: str               # "pro", "sonnet", "gpt5"
    info_label: str          # "full", "none", "info1", "info2", "info3"
    instance: int | None = None


@dataclass
class ModelResponse:
    provider: str
    model: str
    content: str
    latency_sec: float
    token_count: int | None


@dataclass
class IndependentResult:
    task_id: str
    question_id: int
    agent: str
    info_label: str
    instance: int | None
    probability: float
    rationale: str
    prompt: str
    information: str = ""
    forecast: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "IndependentResult":
        return cls(**data)


@dataclass
class DeliberativeResult:
    task_id: str
    question_id: int
    condition: str
    agent: str
    info_label: str
    position: int
    group_id: str
    own_result_id: str
    peer_result_ids: list[str]
    probability: float
    rationale: str
    review: str = ""
    token_count: int | None = None

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "DeliberativeResult":
        return cls(**data)


class TaskStatus(str, Enum):
    PENDING = "pending"
    CACHED = "cached"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    PERSISTENTLY_FAILED = "persistently_failed"


@dataclass
class TaskOutcome:
    task_id: str
    status: TaskStatus
    attempts: int = 0
    error: str | None = None


@dataclass
class QuestionReport:
    question_id: int
    question_index: int
    outcomes: list[TaskOutcome] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)   # task ids with missing dependencies

    def count(self, status: TaskStatus) -> int:
        return sum(1 for o in self.outcomes if o.status is status)

    @property
    def completed(self) -> int:
        return self.count(TaskStatus.SUCCEEDED)

    @property
    def cached(self) -> int:
        return self.count(TaskStatus.CACHED)

    @property
    def persistent_failures(self) -> int:
        return self.count(TaskStatus.PERSISTENTLY_FAILED)


@dataclass
class RunState:
    """Accumulator threaded through the scheduler's batch loop."""

    batches_done: int = 0
    completed: int = 0
    cached: int = 0
    skipped: int = 0
    persistent_failures: int = 0
    failed_questions: list[int] = field(default_factory=list)
    reports: list[QuestionReport] = field(default_factory=list)
    halted: bool = False
