"""Question corpus loading and the information-label mapping."""

import json
import logging
from pathlib import Path

from forecast_council.errors import ConfigurationError
from forecast_council.models import Question

logger = logging.getLogger(__name__)

_FRAGMENT_COUNT = 3


def question_from_dict(raw: dict) -> Question:
    """Build a Question from one processed corpus entry.

    Accepts the processed corpus keys (``questionTitle``, ``informationPackages``,
    ...) as well as the field names of ``Question`` itself.
    """
    fragments = raw.get("informationPackages", raw.get("information_fragments", []))
    if len(fragments) != _FRAGMENT_COUNT:
        raise ConfigurationError(
            f"Question {raw.get('id')} has {len(fragments)} information fragments, expected {_FRAGMENT_COUNT}"
        )
    return Question(
        id=int(raw["id"]),
        title=raw.get("questionTitle", raw.get("title", "")),
        description=raw.get("questionDescription", raw.get("description", "")),
        resolution_criteria=raw.get("questionResolutionCriteria", raw.get("resolution_criteria", "")),
        fine_print=raw.get("questionFinePrint", raw.get("fine_print", "")) or "",
        date=raw.get("date", "") or "",
        resolution=raw.get("resolution") or "unresolved",
        information_fragments=tuple(fragments),
    )


def load_questions(path: Path, limit: int | None = None) -> list[Question]:
    """Read the full corpus before any scheduling begins.

    Raises FileNotFoundError if the corpus file is missing and
    ConfigurationError if ``limit`` is below 1.
    """
    if limit is not None and limit < 1:
        raise ConfigurationError(f"limit must be >= 1, got {limit}")
    if not path.exists():
        raise FileNotFoundError(f"Question corpus not found: {path}")

    with path.open("r", encoding="utf-8") as f:
        raw = json.load(f)

    questions = [question_from_dict(entry) for entry in raw]
    if limit is not None:
        questions = questions[:limit]
    logger.info("Loaded %d questions from %s", len(questions), path)
    return questions


def information_for(question: Question, info_label: str, no_information: str) -> str:
    """Return the supporting text a participant with ``info_label`` receives."""
    if info_label == "none":
        return no_information
    if info_label == "full":
        return "\n\n".join(question.information_fragments)
    if info_label in ("info1", "info2", "info3"):
        return question.information_fragments[int(info_label[-1]) - 1]
    raise ConfigurationError(f"Unknown info label: {info_label}")
