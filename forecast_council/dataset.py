"""Reduce the artifact corpus into flat CSV tables for offline analysis."""

import csv
import logging
from dataclasses import dataclass, field
from pathlib import Path

from forecast_council.models import DeliberativeResult, IndependentResult, Question

logger = logging.getLogger(__name__)

FORECAST_COLUMNS = (
    "question_id", "resolution", "forecast_id", "stage", "condition",
    "agent", "info_label", "position", "probability", "rationale",
)
CONDITION_PAIR_COLUMNS = (
    "question_id", "resolution", "condition", "agent", "info_label", "position",
    "independent_forecast_id", "deliberative_forecast_id",
    "independent_prob", "deliberative_prob",
)
QUESTION_COLUMNS = ("question_id", "resolution", "title")

_RESOLUTION_CODES = {"yes": 1, "no": 0}


@dataclass
class Dataset:
    forecast_rows: list[dict] = field(default_factory=list)
    condition_rows: list[dict] = field(default_factory=list)
    question_rows: list[dict] = field(default_factory=list)


def encode_resolution(resolution: str) -> int | str:
    """yes -> 1, no -> 0, anything else (unresolved) -> empty."""
    return _RESOLUTION_CODES.get(resolution, "")


def build_dataset(
    questions: list[Question],
    independent: list[IndependentResult],
    deliberative: list[DeliberativeResult],
) -> Dataset:
    """Join results against question resolutions.

    Results for questions outside the corpus are dropped. Condition-pair rows
    additionally require the referenced independent result; forecast rows do not.
    """
    order = {q.id: i for i, q in enumerate(questions)}
    resolution = {q.id: encode_resolution(q.resolution) for q in questions}
    independent_by_id = {r.task_id: r for r in independent}
    dataset = Dataset()

    for r in sorted(independent, key=lambda r: (order.get(r.question_id, -1), r.task_id)):
        if r.question_id not in order:
            continue
        dataset.forecast_rows.append({
            "question_id": r.question_id,
            "resolution": resolution[r.question_id],
            "forecast_id": r.task_id,
            "stage": "independent",
            "condition": "",
            "agent": r.agent,
            "info_label": r.info_label,
            "position": "",
            "probability": r.probability,
            "rationale": r.rationale,
        })

    ordered_deliberative = sorted(
        (r for r in deliberative if r.question_id in order),
        key=lambda r: (order[r.question_id], r.task_id),
    )
    for d in ordered_deliberative:
        dataset.forecast_rows.append({
            "question_id": d.question_id,
            "resolution": resolution[d.question_id],
            "forecast_id": d.task_id,
            "stage": "deliberative",
            "condition": d.condition,
            "agent": d.agent,
            "info_label": d.info_label,
            "position": d.position,
            "probability": d.probability,
            "rationale": d.rationale,
        })

        own = independent_by_id.get(d.own_result_id)
        if own is None:
            logger.debug("No independent result %s for %s", d.own_result_id, d.task_id)
            continue
        dataset.condition_rows.append({
            "question_id": d.question_id,
            "resolution": resolution[d.question_id],
            "condition": d.condition,
            "agent": d.agent,
            "info_label": d.info_label,
            "position": d.position,
            "independent_forecast_id": own.task_id,
            "deliberative_forecast_id": d.task_id,
            "independent_prob": own.probability,
            "deliberative_prob": d.probability,
        })

    dataset.question_rows = [
        {"question_id": q.id, "resolution": resolution[q.id], "title": q.title}
        for q in questions
    ]
    return dataset


def _format(value) -> str:
    """Integral floats print without a trailing .0 so 70.0 reads as 70."""
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def write_table(path: Path, columns: tuple[str, ...], rows: list[dict]) -> Path:
    """Write rows as CSV with a header, quoting fields that need it."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8", newline="") as f:
        writer = csv.writer(f, quoting=csv.QUOTE_MINIMAL)
        writer.writerow(columns)
        for row in rows:
            writer.writerow([_format(row.get(c)) for c in columns])
    logger.info("Saved %d rows to %s", len(rows), path)
    return path


def write_dataset(dataset: Dataset, output_dir: Path) -> dict[str, Path]:
    return {
        "forecasts": write_table(output_dir / "forecasts.csv", FORECAST_COLUMNS, dataset.forecast_rows),
        "condition_pairs": write_table(
            output_dir / "condition_pairs.csv", CONDITION_PAIR_COLUMNS, dataset.condition_rows
        ),
        "questions": write_table(output_dir / "questions.csv", QUESTION_COLUMNS, dataset.question_rows),
    }
