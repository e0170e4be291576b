"""Stage scheduler: batched concurrent dispatch, retry rounds, circuit breaker.

Each task moves pending -> cached | succeeded | failed. Failed tasks are
redispatched together after a fixed delay, for at most ``max_attempts``
rounds, then marked persistently failed. Questions in a batch run
concurrently; batches run strictly in sequence.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable
from typing import Any

from forecast_council.errors import CircuitBreakerTripped, ConfigurationError
from forecast_council.models import Question, QuestionReport, RunState, TaskOutcome, TaskStatus
from forecast_council.store import ArtifactStore
from forecast_council.tasks import QuestionPlan

logger = logging.getLogger(__name__)

Executor = Callable[[Any], Awaitable[dict]]
Planner = Callable[[Question, int], QuestionPlan]
Sleep = Callable[[float], Awaitable[None]]


def batched(questions: list[Question], batch_size: int) -> Iterable[list[tuple[int, Question]]]:
    """Yield fixed-size batches of (corpus index, question)."""
    for start in range(0, len(questions), batch_size):
        yield list(enumerate(questions[start:start + batch_size], start=start))


class StageScheduler:
    """Runs one pipeline stage against an artifact store.

    Args:
        store: Where results are cached and written.
        execute: Coroutine turning a task into a result record.
        batch_size: Questions dispatched concurrently.
        max_attempts: Dispatch rounds per question before giving up on a task.
        retry_delay_sec: Fixed pause between rounds.
        max_failed_questions: Circuit breaker threshold.
        sleep: Injected delay, ``asyncio.sleep`` by default.
        on_question_complete: Optional callback per finished question.
    """

    def __init__(
        self,
        store: ArtifactStore,
        execute: Executor,
        *,
        batch_size: int,
        max_attempts: int,
        retry_delay_sec: float,
        max_failed_questions: int,
        sleep: Sleep = asyncio.sleep,
        on_question_complete: Callable[[QuestionReport], None] | None = None,
    ) -> None:
        if batch_size < 1 or max_attempts < 1 or max_failed_questions < 1:
            raise ConfigurationError("batch_size, max_attempts and max_failed_questions must be >= 1")
        self._store = store
        self._execute = execute
        self._batch_size = batch_size
        self._max_attempts = max_attempts
        self._retry_delay_sec = retry_delay_sec
        self._max_failed_questions = max_failed_questions
        self._sleep = sleep
        self._on_question_complete = on_question_complete

    async def _attempt(self, task, attempt: int) -> TaskOutcome:
        """Dispatch a single task once. Never raises for service failures."""
        task_id = task.task_id
        if self._store.exists(task_id):
            logger.debug("Cached: %s", task_id)
            return TaskOutcome(task_id, TaskStatus.CACHED, attempts=attempt - 1)

        try:
            record = await self._execute(task)
        except ConfigurationError:
            raise
        except Exception as exc:
            logger.warning("Attempt %d failed for %s: %s", attempt, task_id, exc)
            return TaskOutcome(task_id, TaskStatus.FAILED, attempts=attempt, error=str(exc))

        self._store.put(task_id, record)
        return TaskOutcome(task_id, TaskStatus.SUCCEEDED, attempts=attempt)

    async def run_question(self, plan: QuestionPlan) -> QuestionReport:
        """Run every pending task of one question through the retry rounds."""
        report = QuestionReport(
            question_id=plan.question.id,
            question_index=plan.index,
            skipped=list(plan.skipped),
        )
        pending = list(plan.tasks)
        attempt = 0
        last_errors: dict[str, str | None] = {}

        while pending and attempt < self._max_attempts:
            if attempt > 0:
                logger.info(
                    "Q%s retry %d/%d: waiting %ss before redispatching %d task(s)",
                    plan.question.id, attempt, self._max_attempts - 1,
                    self._retry_delay_sec, len(pending),
                )
                await self._sleep(self._retry_delay_sec)
            attempt += 1

            outcomes = await asyncio.gather(*(self._attempt(t, attempt) for t in pending))

            still_pending = []
            for task, outcome in zip(pending, outcomes):
                if outcome.status is TaskStatus.FAILED:
                    still_pending.append(task)
                    last_errors[task.task_id] = outcome.error
                else:
                    report.outcomes.append(outcome)
            pending = still_pending

        for task in pending:
            logger.error("Persistent failure after %d attempt(s): %s", attempt, task.task_id)
            report.outcomes.append(
                TaskOutcome(
                    task.task_id,
                    TaskStatus.PERSISTENTLY_FAILED,
                    attempts=attempt,
                    error=last_errors.get(task.task_id),
                )
            )

        if self._on_question_complete:
            self._on_question_complete(report)
        return report

    def _absorb(self, state: RunState, reports: list[QuestionReport]) -> RunState:
        """Fold one batch's reports into the accumulator; trip the breaker at threshold."""
        state.batches_done += 1
        for report in reports:
            state.reports.append(report)
            state.completed += report.completed
            state.cached += report.cached
            state.skipped += len(report.skipped)
            state.persistent_failures += report.persistent_failures
            if report.persistent_failures:
                state.failed_questions.append(report.question_id)
        if len(state.failed_questions) >= self._max_failed_questions:
            state.halted = True
            raise CircuitBreakerTripped(state, self._max_failed_questions)
        return state

    async def run(
        self,
        questions: list[Question],
        planner: Planner,
        state: RunState | None = None,
    ) -> RunState:
        """Run the stage over ``questions``.

        Raises:
            CircuitBreakerTripped: Once ``max_failed_questions`` questions have
                persistent failures. No later batch is dispatched.
        """
        state = state or RunState()
        total_batches = -(-len(questions) // self._batch_size)

        for batch in batched(questions, self._batch_size):
            first, last = batch[0][0] + 1, batch[-1][0] + 1
            logger.info(
                "Batch %d/%d: questions %d-%d",
                state.batches_done + 1, total_batches, first, last,
            )
            plans = [planner(question, index) for index, question in batch]
            reports = await asyncio.gather(*(self.run_question(p) for p in plans))
            state = self._absorb(state, list(reports))
            logger.info(
                "Batch %d complete: %d completed, %d failed question(s) so far",
                state.batches_done,
                sum(r.completed for r in reports),
                len(state.failed_questions),
            )

        return state
