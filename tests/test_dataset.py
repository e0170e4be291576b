"""Tests for forecast_council/dataset.py."""

import csv

from forecast_council.dataset import (
    CONDITION_PAIR_COLUMNS,
    FORECAST_COLUMNS,
    QUESTION_COLUMNS,
    build_dataset,
    encode_resolution,
    write_dataset,
    write_table,
)
from forecast_council.models import DeliberativeResult

from tests.conftest import make_independent_result, make_question


def _deliberative(
    task_id: str = "38543-diverse_full-pro-1",
    own: str = "38543-pro-full",
    probability: float = 65.0,
    rationale: str = "Peers moved me down.",
) -> DeliberativeResult:
    question_id, condition, agent, position = task_id.split("-")
    return DeliberativeResult(
        task_id=task_id,
        question_id=int(question_id),
        condition=condition,
        agent=agent,
        info_label="full",
        position=int(position),
        group_id=f"{question_id}-{condition}",
        own_result_id=own,
        peer_result_ids=["38543-sonnet-full", "38543-gpt5-full"],
        probability=probability,
        rationale=rationale,
    )


def _read(path) -> list[list[str]]:
    with path.open(encoding="utf-8", newline="") as f:
        return list(csv.reader(f))


def test_encode_resolution():
    assert encode_resolution("yes") == 1
    assert encode_resolution("no") == 0
    assert encode_resolution("unresolved") == ""


def test_condition_pair_joins_independent_and_deliberative():
    questions = [make_question(38543, "yes")]
    dataset = build_dataset(questions, [make_independent_result(probability=70.0)], [_deliberative()])

    assert len(dataset.forecast_rows) == 2
    assert [r["stage"] for r in dataset.forecast_rows] == ["independent", "deliberative"]
    assert dataset.condition_rows == [{
        "question_id": 38543,
        "resolution": 1,
        "condition": "diverse_full",
        "agent": "pro",
        "info_label": "full",
        "position": 1,
        "independent_forecast_id": "38543-pro-full",
        "deliberative_forecast_id": "38543-diverse_full-pro-1",
        "independent_prob": 70.0,
        "deliberative_prob": 65.0,
    }]


def test_missing_independent_excluded_from_pairs_only():
    questions = [make_question(38543, "no")]
    dataset = build_dataset(questions, [], [_deliberative()])

    assert dataset.condition_rows == []
    assert len(dataset.forecast_rows) == 1
    assert dataset.forecast_rows[0]["resolution"] == 0


def test_results_outside_corpus_dropped():
    questions = [make_question(1)]
    dataset = build_dataset(questions, [make_independent_result("38543-pro-full")], [_deliberative()])
    assert dataset.forecast_rows == []
    assert dataset.condition_rows == []
    assert dataset.question_rows == [{"question_id": 1, "resolution": 1, "title": "Will event 1 happen?"}]


def test_rows_follow_corpus_order():
    questions = [make_question(20), make_question(10)]
    independent = [make_independent_result("10-pro-full"), make_independent_result("20-sonnet-full"),
                   make_independent_result("20-gpt5-full")]
    dataset = build_dataset(questions, independent, [])
    assert [r["forecast_id"] for r in dataset.forecast_rows] == ["20-gpt5-full", "20-sonnet-full", "10-pro-full"]


def test_unresolved_question_has_empty_resolution(tmp_path):
    questions = [make_question(3, "unresolved")]
    dataset = build_dataset(questions, [make_independent_result("3-pro-none")], [])

    paths = write_dataset(dataset, tmp_path)

    rows = _read(paths["forecasts"])
    assert rows[1][0] == "3"
    assert rows[1][1] == ""


def test_write_dataset_headers(tmp_path):
    paths = write_dataset(build_dataset([], [], []), tmp_path)

    assert _read(paths["forecasts"]) == [list(FORECAST_COLUMNS)]
    assert _read(paths["condition_pairs"]) == [list(CONDITION_PAIR_COLUMNS)]
    assert _read(paths["questions"]) == [list(QUESTION_COLUMNS)]


def test_csv_escapes_quotes_commas_and_newlines(tmp_path):
    rationale = 'He said "maybe", then\nchanged his mind; 50/50, really'
    questions = [make_question(38543, "yes")]
    dataset = build_dataset(questions, [make_independent_result(rationale=rationale)], [])

    paths = write_dataset(dataset, tmp_path)

    rows = _read(paths["forecasts"])
    assert len(rows) == 2
    assert rows[1][FORECAST_COLUMNS.index("rationale")] == rationale
    assert len(rows[1]) == len(FORECAST_COLUMNS)


def test_integral_probabilities_written_without_decimals(tmp_path):
    path = write_table(tmp_path / "t.csv", ("a", "b", "c"), [{"a": 70.0, "b": 62.5, "c": None}])
    assert _read(path)[1] == ["70", "62.5", ""]
