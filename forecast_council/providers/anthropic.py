"""Anthropic Claude provider using anthropic SDK with native async."""

import anthropic as anthropic_sdk

from forecast_council.errors import TransientServiceError
from forecast_council.providers.base import Message, SDKProvider


class AnthropicProvider(SDKProvider):
    """Anthropic Claude provider via anthropic SDK."""

    _label = "Anthropic"

    def _make_client(self, api_key: str) -> anthropic_sdk.AsyncAnthropic:
        return anthropic_sdk.AsyncAnthropic(api_key=api_key)

    async def _complete(self, messages: list[Message]) -> tuple[str, int | None]:
        response = await self._client.messages.create(
            model=self._config.model,
            max_tokens=self._config.max_tokens,
            messages=messages,
        )
        text_blocks = [b.text for b in response.content or [] if b.type == "text"]
        if not text_blocks:
            raise TransientServiceError(self._config.name, "No text blocks in response")

        token_count = None
        if response.usage:
            token_count = response.usage.input_tokens + response.usage.output_tokens
        return "\n".join(text_blocks), token_count
