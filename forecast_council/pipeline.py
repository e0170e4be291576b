"""Wire each pipeline stage to the scheduler, stores and Forecasting Service."""

import logging
from collections.abc import Callable
from pathlib import Path

from config.config_loader import AppConfig
from forecast_council.dataset import Dataset, build_dataset, write_dataset
from forecast_council.errors import InvalidRecordError
from forecast_council.forecasting import ForecastingService
from forecast_council.models import (
    Question,
    QuestionReport,
    RunState,
)
from forecast_council.records import deliberative_from_record, independent_from_record
from forecast_council.scheduler import Sleep, StageScheduler
from forecast_council.store import ArtifactStore, JsonDirStore
from forecast_council.tasks import build_deliberative_plan, build_independent_plan

logger = logging.getLogger(__name__)

INDEPENDENT = "independent"
DELIBERATIVE = "deliberative"


def _scheduler(
    config: AppConfig,
    store: ArtifactStore,
    service: ForecastingService,
    batch_size: int | None,
    sleep: Sleep | None,
    on_question_complete: Callable[[QuestionReport], None] | None,
) -> StageScheduler:
    async def execute(task) -> dict:
        return await task.run(service)

    kwargs = {"sleep": sleep} if sleep is not None else {}
    return StageScheduler(
        store,
        execute,
        batch_size=batch_size if batch_size is not None else config.defaults.batch_size,
        max_attempts=config.defaults.max_attempts,
        retry_delay_sec=config.defaults.retry_delay_sec,
        max_failed_questions=config.defaults.max_failed_questions,
        on_question_complete=on_question_complete,
        **kwargs,
    )


async def run_independent_stage(
    config: AppConfig,
    questions: list[Question],
    service: ForecastingService,
    store: ArtifactStore | None = None,
    *,
    batch_size: int | None = None,
    sleep: Sleep | None = None,
    on_question_complete: Callable[[QuestionReport], None] | None = None,
) -> RunState:
    """Produce every independent forecast the configured conditions need.

    Raises:
        CircuitBreakerTripped: When too many questions fail persistently.
    """
    store = store or JsonDirStore(config.paths.independent_dir)
    scheduler = _scheduler(config, store, service, batch_size, sleep, on_question_complete)
    logger.info(
        "Independent stage: %d questions, conditions %s",
        len(questions), ", ".join(config.defaults.conditions),
    )
    conditions = config.defaults.conditions
    return await scheduler.run(
        questions,
        lambda question, index: build_independent_plan(question, index, conditions),
    )


async def run_deliberative_stage(
    config: AppConfig,
    questions: list[Question],
    service: ForecastingService,
    store: ArtifactStore | None = None,
    independent_store: ArtifactStore | None = None,
    *,
    batch_size: int | None = None,
    sleep: Sleep | None = None,
    on_question_complete: Callable[[QuestionReport], None] | None = None,
) -> RunState:
    """Produce the deliberative forecasts of every complete condition group.

    Raises:
        CircuitBreakerTripped: When too many questions fail persistently.
    """
    store = store or JsonDirStore(config.paths.deliberative_dir)
    independent_store = independent_store or JsonDirStore(config.paths.independent_dir)
    scheduler = _scheduler(config, store, service, batch_size, sleep, on_question_complete)
    logger.info(
        "Deliberative stage: %d questions, conditions %s",
        len(questions), ", ".join(config.defaults.conditions),
    )
    conditions = config.defaults.conditions
    return await scheduler.run(
        questions,
        lambda question, index: build_deliberative_plan(question, index, conditions, independent_store),
    )


def _load_results(store: ArtifactStore, parse) -> list:
    """Parse every stored record, skipping (and logging) unreadable ones."""
    results = []
    for key in store.keys():
        try:
            record = store.get(key)
            if record is not None:
                results.append(parse(key, record))
        except InvalidRecordError as exc:
            logger.warning("Skipping unreadable record %s", exc)
    return results


def build_analysis_dataset(
    questions: list[Question],
    independent_store: ArtifactStore,
    deliberative_store: ArtifactStore,
    output_dir: Path | None = None,
) -> Dataset:
    """Load every stored result, reduce to tables and optionally write CSVs."""
    independent = _load_results(independent_store, independent_from_record)
    deliberative = _load_results(deliberative_store, deliberative_from_record)
    logger.info(
        "Loaded %d independent and %d deliberative forecasts",
        len(independent), len(deliberative),
    )
    dataset = build_dataset(questions, independent, deliberative)
    if output_dir is not None:
        write_dataset(dataset, output_dir)
    return dataset
