"""OpenRouter provider using openai SDK (OpenAI-compatible API)."""

from openai import AsyncOpenAI

from config.config_loader import AgentConfig
from forecast_council.errors import TransientServiceError
from forecast_council.providers.openai_provider import OpenAIProvider


class OpenRouterProvider(OpenAIProvider):
    """Any OpenRouter-hosted model via the OpenAI-compatible API."""

    _label = "OpenRouter"

    def __init__(self, config: AgentConfig) -> None:
        if not config.base_url:
            raise TransientServiceError(config.name, "base_url is required for OpenRouter provider")
        super().__init__(config)

    def _make_client(self, api_key: str) -> AsyncOpenAI:
        return AsyncOpenAI(api_key=api_key, base_url=self._config.base_url)
