"""Read stored result records back into result dataclasses.

Two record shapes share the forecast directories: the one this package
writes (``IndependentResult.to_dict``) and the camelCase shape of records
produced by the earlier pipeline (``forecastId``, ``questionId``, ``model``,
``infoLabel`` and a nested ``forecast`` object).
"""

from forecast_council.errors import InvalidRecordError
from forecast_council.models import DeliberativeResult, IndependentResult


def independent_from_record(key: str, record: dict) -> IndependentResult:
    """Raises InvalidRecordError if ``record`` matches neither shape."""
    try:
        if "forecastId" not in record:
            return IndependentResult.from_dict(record)
        forecast = record.get("forecast") or {}
        return IndependentResult(
            task_id=record["forecastId"],
            question_id=int(record["questionId"]),
            agent=record["model"],
            info_label=record["infoLabel"],
            instance=record.get("instance"),
            probability=float(forecast["probability"]),
            rationale=forecast.get("rationale", ""),
            prompt=record.get("prompt", ""),
            information=record.get("information", ""),
            forecast=forecast,
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise InvalidRecordError(key, f"not an independent forecast record ({exc})") from exc


def deliberative_from_record(key: str, record: dict) -> DeliberativeResult:
    """Raises InvalidRecordError if ``record`` matches neither shape."""
    try:
        if "forecastId" not in record:
            return DeliberativeResult.from_dict(record)
        forecast = record.get("forecast") or {}
        usage = record.get("usage") or {}
        return DeliberativeResult(
            task_id=record["forecastId"],
            question_id=int(record["questionId"]),
            condition=record["condition"],
            agent=record["model"],
            info_label=record["infoLabel"],
            position=int(record["position"]),
            group_id=record.get("groupId", f"{record['questionId']}-{record['condition']}"),
            own_result_id=record["independentForecastId"],
            peer_result_ids=list(record.get("otherForecastIds") or []),
            probability=float(forecast["probability"]),
            rationale=forecast.get("rationale", ""),
            review=forecast.get("review", ""),
            token_count=usage.get("totalTokens"),
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise InvalidRecordError(key, f"not a deliberative forecast record ({exc})") from exc
