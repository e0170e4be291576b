"""Shared pytest fixtures."""

import json
from pathlib import Path
from unittest.mock import AsyncMock

import pytest
import yaml

from config.config_loader import AppConfig, DefaultsConfig, PathsConfig, PromptsConfig
from forecast_council.composition import CONDITIONS
from forecast_council.errors import TransientServiceError
from forecast_council.forecasting import DeliberativeForecastOutput, IndependentForecastOutput
from forecast_council.models import IndependentResult, ModelResponse, Question
from forecast_council.providers.base import AIProvider, Message

FORECAST_REPLY = json.dumps({
    "time_left_until_outcome_known": "3 months",
    "status_quo_outcome": "No",
    "no_outcome_scenario": "Nothing happens.",
    "yes_outcome_scenario": "Something happens.",
    "review": "The others make fair points.",
    "rationale": "Base rates favour the status quo.",
    "probability": 60,
})


def make_question(question_id: int = 38543, resolution: str = "yes") -> Question:
    return Question(
        id=question_id,
        title=f"Will event {question_id} happen?",
        description="Background text.",
        resolution_criteria="Resolves yes if it happens.",
        fine_print="",
        date="2025-05-01",
        resolution=resolution,
        information_fragments=("Fragment one.", "Fragment two.", "Fragment three."),
    )


def question_entry(question: Question) -> dict:
    """The processed corpus shape of a question."""
    return {
        "id": question.id,
        "questionTitle": question.title,
        "questionDescription": question.description,
        "questionResolutionCriteria": question.resolution_criteria,
        "questionFinePrint": question.fine_print,
        "date": question.date,
        "resolution": question.resolution,
        "informationPackages": list(question.information_fragments),
    }


def settings_dict(tmp_path: Path) -> dict:
    return {
        "defaults": {
            "batch_size": 2,
            "max_attempts": 3,
            "retry_delay_sec": 0,
            "max_failed_questions": 2,
            "conditions": list(CONDITIONS),
        },
        "paths": {
            "questions": str(tmp_path / "questions.json"),
            "independent_dir": str(tmp_path / "independent"),
            "deliberative_dir": str(tmp_path / "deliberative"),
            "analysis_dir": str(tmp_path / "analysis"),
        },
        "agents": {
            name: {
                "sdk": "openrouter",
                "model": f"vendor/{name}",
                "api_key_env": "TEST_OPENROUTER_KEY",
                "base_url": "https://openrouter.example/api/v1",
                "timeout_sec": 60,
                "max_tokens": 1000,
            }
            for name in ("pro", "sonnet", "gpt5")
        },
        "prompts": {
            "no_information": "No additional information available.",
            "independent": "Q: {title}\n{description}\n{resolution_criteria}\n{fine_print}\nInfo: {information}\nToday is {date}.",
            "prior_forecast": "{rationale}\n\n**Forecast: {probability}%**",
            "peer_analysis": "## Forecaster {number}'s Analysis\n\n{analysis}",
            "deliberation": "Peers:\n\n{peer_analyses}\n\nUpdate your forecast.",
        },
    }


@pytest.fixture
def settings_file(tmp_path: Path) -> Path:
    path = tmp_path / "settings.yaml"
    path.write_text(yaml.dump(settings_dict(tmp_path)), encoding="utf-8")
    return path


@pytest.fixture
def sample_prompts_config() -> PromptsConfig:
    return PromptsConfig(
        independent="Q: {title}\n{description}\n{resolution_criteria}\n{fine_print}\nInfo: {information}\nToday is {date}.",
        deliberation="Peers:\n\n{peer_analyses}\n\nUpdate your forecast.",
        prior_forecast="{rationale}\n\n**Forecast: {probability}%**",
        peer_analysis="## Forecaster {number}'s Analysis\n\n{analysis}",
    )


@pytest.fixture
def sample_app_config(tmp_path: Path, sample_prompts_config: PromptsConfig) -> AppConfig:
    return AppConfig(
        defaults=DefaultsConfig(
            batch_size=2,
            max_attempts=3,
            retry_delay_sec=0,
            max_failed_questions=100,
        ),
        paths=PathsConfig(
            questions=tmp_path / "questions.json",
            independent_dir=tmp_path / "independent",
            deliberative_dir=tmp_path / "deliberative",
            analysis_dir=tmp_path / "analysis",
        ),
        agents={},
        prompts=sample_prompts_config,
    )


@pytest.fixture
def sample_question() -> Question:
    return make_question()


@pytest.fixture
def corpus_file(tmp_path: Path) -> Path:
    questions = [make_question(100 + i, "yes" if i % 2 == 0 else "no") for i in range(3)]
    path = tmp_path / "questions.json"
    path.write_text(json.dumps([question_entry(q) for q in questions]), encoding="utf-8")
    return path


def make_independent_result(
    task_id: str = "38543-pro-full",
    probability: float = 70.0,
    rationale: str = "Status quo is sticky.",
) -> IndependentResult:
    question_id, agent, label, *rest = task_id.split("-")
    return IndependentResult(
        task_id=task_id,
        question_id=int(question_id),
        agent=agent,
        info_label=label,
        instance=int(rest[0]) if rest else None,
        probability=probability,
        rationale=rationale,
        prompt="prompt",
    )


def legacy_independent_record(forecast_id: str = "38543-pro-info2", probability: float = 70) -> dict:
    question_id, model, label, *rest = forecast_id.split("-")
    return {
        "forecastId": forecast_id,
        "questionId": int(question_id),
        "model": model,
        "infoLabel": label,
        "instance": int(rest[0]) if rest else None,
        "information": "Fragment two.",
        "forecast": {"rationale": f"{model} reasoning", "probability": probability},
        "prompt": "prompt",
    }


def legacy_deliberative_record(
    forecast_id: str = "38543-diverse_full-pro-1",
    own_id: str = "38543-pro-full",
    peer_ids: tuple[str, ...] = ("38543-sonnet-full", "38543-gpt5-full"),
    probability: float = 65,
) -> dict:
    question_id, condition, model, position = forecast_id.split("-")
    return {
        "forecastId": forecast_id,
        "questionId": int(question_id),
        "condition": condition,
        "model": model,
        "position": int(position),
        "infoLabel": own_id.split("-")[2],
        "groupId": f"{question_id}-{condition}",
        "independentForecastId": own_id,
        "otherForecastIds": list(peer_ids),
        "forecast": {"review": "Peers raised good points.", "rationale": "Updated.", "probability": probability},
        "usage": {"promptTokens": 900, "completionTokens": 100, "totalTokens": 1000},
    }


class FakeService:
    """Stands in for ForecastingService; records calls, fails on request."""

    def __init__(
        self,
        prompts: PromptsConfig,
        probability: float = 70.0,
        fail_agents: tuple[str, ...] = (),
        fail_questions: tuple[int, ...] = (),
    ) -> None:
        self.prompts = prompts
        self.probability = probability
        self.fail_agents = set(fail_agents)
        self.fail_questions = set(fail_questions)
        self.forecast_calls: list[tuple[int, str, str]] = []
        self.deliberate_calls: list[tuple[int, str, str, list[str]]] = []

    def _maybe_fail(self, question: Question, agent: str) -> None:
        if agent in self.fail_agents or question.id in self.fail_questions:
            raise TransientServiceError(agent, "503 Service Unavailable")

    async def forecast(self, question, information, agent):
        self.forecast_calls.append((question.id, agent, information))
        self._maybe_fail(question, agent)
        output = IndependentForecastOutput(rationale=f"{agent} reasoning", probability=self.probability)
        return output, f"prompt for {question.id}"

    async def deliberate(self, question, information, own, peers, agent):
        self.deliberate_calls.append((question.id, agent, own.task_id, [p.task_id for p in peers]))
        self._maybe_fail(question, agent)
        output = DeliberativeForecastOutput(
            review="Peers were persuasive.",
            rationale=f"{agent} updated",
            probability=own.probability - 5,
        )
        return output, 123


@pytest.fixture
def fake_service(sample_prompts_config: PromptsConfig) -> FakeService:
    return FakeService(sample_prompts_config)


class MockProvider(AIProvider):
    """Test double AIProvider."""

    def __init__(self, provider_name: str = "mock", response_content: str = FORECAST_REPLY) -> None:
        self._name = provider_name
        self._response_content = response_content
        # Shadow the class method with an AsyncMock at the instance level.
        self.generate = AsyncMock(  # type: ignore[assignment]
            return_value=ModelResponse(
                provider=provider_name,
                model="mock-model",
                content=response_content,
                latency_sec=0.1,
                token_count=10,
            )
        )

    def name(self) -> str:
        return self._name

    def model_string(self) -> str:
        return "mock-model"

    async def generate(self, messages: list[Message]) -> ModelResponse:  # type: ignore[override]
        """Default implementation; replaced by AsyncMock in __init__."""
        return ModelResponse(self._name, "mock-model", self._response_content, 0.1, 10)


@pytest.fixture
def mock_providers() -> dict[str, MockProvider]:
    return {name: MockProvider(name) for name in ("pro", "sonnet", "gpt5")}
