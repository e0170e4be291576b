"""Task graph: expand a question into independent and deliberative tasks.

Independent tasks are the de-duplicated union of every condition's
participants. A deliberative task for position p needs the independent
results of all 3 group members; groups with a missing result are skipped
as a whole and reported, never attempted.
"""

import logging
from dataclasses import dataclass, field

from forecast_council.composition import compose
from forecast_council.corpus import information_for
from forecast_council.errors import InvalidRecordError
from forecast_council.forecasting import ForecastingService
from forecast_council.models import (
    DeliberativeResult,
    IndependentResult,
    ParticipantSpec,
    Question,
)
from forecast_council.records import independent_from_record
from forecast_council.store import ArtifactStore

logger = logging.getLogger(__name__)


def independent_task_id(question_id: int, spec: ParticipantSpec) -> str:
    suffix = f"-{spec.instance}" if spec.instance else ""
    return f"{question_id}-{spec.agent}-{spec.info_label}{suffix}"


def deliberative_task_id(question_id: int, condition: str, agent: str, position: int) -> str:
    return f"{question_id}-{condition}-{agent}-{position}"


def group_id(question_id: int, condition: str) -> str:
    return f"{question_id}-{condition}"


@dataclass
class IndependentTask:
    question: Question
    spec: ParticipantSpec

    @property
    def task_id(self) -> str:
        return independent_task_id(self.question.id, self.spec)

    async def run(self, service: ForecastingService) -> dict:
        information = information_for(self.question, self.spec.info_label, service.prompts.no_information)
        output, prompt = await service.forecast(self.question, information, self.spec.agent)
        return IndependentResult(
            task_id=self.task_id,
            question_id=self.question.id,
            agent=self.spec.agent,
            info_label=self.spec.info_label,
            instance=self.spec.instance,
            probability=output.probability,
            rationale=output.rationale,
            prompt=prompt,
            information=information,
            forecast=output.model_dump(),
        ).to_dict()


@dataclass
class DeliberativeTask:
    question: Question
    condition: str
    position: int                         # 1-based slot in the group
    group: list[ParticipantSpec]
    results: list[IndependentResult]      # independent results in group order

    @property
    def spec(self) -> ParticipantSpec:
        return self.group[self.position - 1]

    @property
    def own(self) -> IndependentResult:
        return self.results[self.position - 1]

    @property
    def peers(self) -> list[IndependentResult]:
        return [r for i, r in enumerate(self.results, start=1) if i != self.position]

    @property
    def task_id(self) -> str:
        return deliberative_task_id(self.question.id, self.condition, self.spec.agent, self.position)

    async def run(self, service: ForecastingService) -> dict:
        information = information_for(self.question, self.spec.info_label, service.prompts.no_information)
        output, token_count = await service.deliberate(
            self.question, information, self.own, self.peers, self.spec.agent
        )
        return DeliberativeResult(
            task_id=self.task_id,
            question_id=self.question.id,
            condition=self.condition,
            agent=self.spec.agent,
            info_label=self.spec.info_label,
            position=self.position,
            group_id=group_id(self.question.id, self.condition),
            own_result_id=self.own.task_id,
            peer_result_ids=[p.task_id for p in self.peers],
            probability=output.probability,
            rationale=output.rationale,
            review=output.review,
            token_count=token_count,
        ).to_dict()


@dataclass
class QuestionPlan:
    """Everything one question needs in one stage."""

    question: Question
    index: int
    tasks: list = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)


def required_participants(
    question_id: int,
    question_index: int,
    conditions: list[str],
) -> list[ParticipantSpec]:
    """De-duplicated independent participants across ``conditions``, first-seen order."""
    seen: set[tuple[str, str, int | None]] = set()
    required: list[ParticipantSpec] = []
    for condition in conditions:
        for spec in compose(condition, question_id, question_index):
            key = (spec.agent, spec.info_label, spec.instance)
            if key not in seen:
                seen.add(key)
                required.append(spec)
    return required


def build_independent_plan(question: Question, index: int, conditions: list[str]) -> QuestionPlan:
    specs = required_participants(question.id, index, conditions)
    return QuestionPlan(
        question=question,
        index=index,
        tasks=[IndependentTask(question, spec) for spec in specs],
    )


def _load_independent(store: ArtifactStore, task_id: str) -> IndependentResult | None:
    """Stored independent result, or None when absent or unreadable."""
    try:
        record = store.get(task_id)
        if record is None:
            return None
        return independent_from_record(task_id, record)
    except InvalidRecordError as exc:
        logger.warning("Unreadable independent forecast, treating as missing: %s", exc)
        return None


def build_deliberative_plan(
    question: Question,
    index: int,
    conditions: list[str],
    independent_store: ArtifactStore,
) -> QuestionPlan:
    """Build the 3 deliberative tasks of every condition whose group is complete."""
    plan = QuestionPlan(question=question, index=index)
    for condition in conditions:
        group = compose(condition, question.id, index)
        results = [
            _load_independent(independent_store, independent_task_id(question.id, spec)) for spec in group
        ]

        if any(r is None for r in results):
            missing = [
                independent_task_id(question.id, spec)
                for spec, r in zip(group, results) if r is None
            ]
            skipped = [
                deliberative_task_id(question.id, condition, spec.agent, position)
                for position, spec in enumerate(group, start=1)
            ]
            logger.info(
                "Q%s skipping %s: missing independent forecasts %s",
                question.id, condition, ", ".join(missing),
            )
            plan.skipped.extend(skipped)
            continue

        plan.tasks.extend(
            DeliberativeTask(question, condition, position, group, results)
            for position in (1, 2, 3)
        )
    return plan
