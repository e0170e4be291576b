"""Forecasting Service: render prompts, call an agent, validate its structured reply."""

import logging
import re

from pydantic import BaseModel, Field, ValidationError

from config.config_loader import PromptsConfig
from forecast_council.errors import ConfigurationError, TransientServiceError
from forecast_council.models import IndependentResult, ModelResponse, Question
from forecast_council.providers.base import AIProvider, Message

logger = logging.getLogger(__name__)

_JSON_OBJECT = re.compile(r"\{.*\}", re.DOTALL)


class IndependentForecastOutput(BaseModel):
    """Structured output of an independent forecast."""

    time_left_until_outcome_known: str = ""
    status_quo_outcome: str = ""
    no_outcome_scenario: str = ""
    yes_outcome_scenario: str = ""
    rationale: str
    probability: float = Field(ge=0.0, le=100.0, description="Minimum 0, maximum 100")


class DeliberativeForecastOutput(BaseModel):
    """Structured output of a deliberative forecast."""

    review: str = Field(default="", description="Thoughts on the other forecasters' reasoning")
    rationale: str
    probability: float = Field(ge=0.0, le=100.0, description="Minimum 0, maximum 100")


def _parse_reply(agent: str, content: str, schema: type[BaseModel]) -> BaseModel:
    """Pull the JSON object out of a reply (code fences and chatter tolerated)."""
    match = _JSON_OBJECT.search(content)
    if not match:
        raise TransientServiceError(agent, "Reply contains no JSON object")
    try:
        return schema.model_validate_json(match.group(0))
    except ValidationError as exc:
        raise TransientServiceError(agent, f"Invalid structured output: {exc.error_count()} error(s)") from exc


def render_independent_prompt(prompts: PromptsConfig, question: Question, information: str) -> str:
    try:
        return prompts.independent.format(
            title=question.title,
            description=question.description,
            resolution_criteria=question.resolution_criteria,
            fine_print=question.fine_print,
            information=information,
            date=question.date,
        )
    except (KeyError, IndexError, ValueError) as exc:
        raise ConfigurationError(f"Invalid independent prompt template: {exc!r}") from exc


def format_prior_forecast(prompts: PromptsConfig, result: IndependentResult) -> str:
    return prompts.prior_forecast.format(
        rationale=result.rationale,
        probability=result.probability,
    ).strip()


def build_deliberation_messages(
    prompts: PromptsConfig,
    question: Question,
    information: str,
    own: IndependentResult,
    peers: list[IndependentResult],
) -> list[Message]:
    """Reconstruct the agent's own forecast turn, then show it the two peers.

    The peers are numbered 2 and 3; the agent is always forecaster 1.
    """
    peer_analyses = "\n\n---\n\n".join(
        prompts.peer_analysis.format(
            number=i,
            analysis=format_prior_forecast(prompts, peer),
        ).strip()
        for i, peer in enumerate(peers, start=2)
    )
    return [
        {"role": "user", "content": render_independent_prompt(prompts, question, information)},
        {"role": "assistant", "content": format_prior_forecast(prompts, own)},
        {"role": "user", "content": prompts.deliberation.format(peer_analyses=peer_analyses)},
    ]


class ForecastingService:
    """Routes forecast and deliberation requests to the provider of each agent."""

    def __init__(self, providers: dict[str, AIProvider], prompts: PromptsConfig) -> None:
        self._providers = providers
        self._prompts = prompts

    @property
    def prompts(self) -> PromptsConfig:
        return self._prompts

    def _provider(self, agent: str) -> AIProvider:
        # Agents without a working provider fail like an outage so the breaker can trip.
        if agent not in self._providers:
            raise TransientServiceError(agent, "No working provider for this agent")
        return self._providers[agent]

    async def forecast(
        self,
        question: Question,
        information: str,
        agent: str,
    ) -> tuple[IndependentForecastOutput, str]:
        """Run one independent forecast. Returns (validated output, prompt text).

        Raises:
            TransientServiceError: On provider failure or invalid reply.
        """
        prompt = render_independent_prompt(self._prompts, question, information)
        response: ModelResponse = await self._provider(agent).generate(
            [{"role": "user", "content": prompt}]
        )
        output = _parse_reply(agent, response.content, IndependentForecastOutput)
        logger.debug("Q%s %s forecast %.1f%%", question.id, agent, output.probability)
        return output, prompt

    async def deliberate(
        self,
        question: Question,
        information: str,
        own: IndependentResult,
        peers: list[IndependentResult],
        agent: str,
    ) -> tuple[DeliberativeForecastOutput, int | None]:
        """Run one deliberative forecast. Returns (validated output, token count).

        Raises:
            TransientServiceError: On provider failure or invalid reply.
        """
        if len(peers) != 2:
            raise ConfigurationError(f"Deliberation needs exactly 2 peer forecasts, got {len(peers)}")
        messages = build_deliberation_messages(self._prompts, question, information, own, peers)
        response: ModelResponse = await self._provider(agent).generate(messages)
        output = _parse_reply(agent, response.content, DeliberativeForecastOutput)
        logger.debug(
            "Q%s %s deliberation %.1f%% -> %.1f%%",
            question.id, agent, own.probability, output.probability,
        )
        return output, response.token_count
