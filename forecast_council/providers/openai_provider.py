"""OpenAI provider using openai SDK with native async."""

from openai import AsyncOpenAI

from forecast_council.errors import TransientServiceError
from forecast_council.providers.base import Message, SDKProvider


class OpenAIProvider(SDKProvider):
    """OpenAI provider via openai SDK."""

    _label = "OpenAI"

    def _make_client(self, api_key: str) -> AsyncOpenAI:
        return AsyncOpenAI(api_key=api_key)

    async def _complete(self, messages: list[Message]) -> tuple[str, int | None]:
        response = await self._client.chat.completions.create(
            model=self._config.model,
            messages=messages,
            max_completion_tokens=self._config.max_tokens,
        )
        choice = response.choices[0] if response.choices else None
        if not choice or not choice.message.content:
            raise TransientServiceError(self._config.name, "Empty response content")

        token_count = response.usage.total_tokens if response.usage else None
        return choice.message.content, token_count
