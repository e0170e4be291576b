"""Gemini provider using google-genai SDK with native async."""

from google import genai
from google.genai import types as genai_types

from forecast_council.errors import TransientServiceError
from forecast_council.providers.base import Message, SDKProvider


def _to_contents(messages: list[Message]) -> list[genai_types.Content]:
    """Gemini names the assistant role 'model'."""
    return [
        genai_types.Content(
            role="model" if m["role"] == "assistant" else "user",
            parts=[genai_types.Part.from_text(text=m["content"])],
        )
        for m in messages
    ]


class GeminiProvider(SDKProvider):
    """Google Gemini provider via google-genai SDK."""

    _label = "Gemini"

    def _make_client(self, api_key: str) -> genai.Client:
        return genai.Client(api_key=api_key)

    async def _complete(self, messages: list[Message]) -> tuple[str, int | None]:
        response = await self._client.aio.models.generate_content(
            model=self._config.model,
            contents=_to_contents(messages),
            config=genai_types.GenerateContentConfig(max_output_tokens=self._config.max_tokens),
        )
        if not response.text:
            raise TransientServiceError(self._config.name, "Empty response text")

        token_count = response.usage_metadata.total_token_count if response.usage_metadata else None
        return response.text, token_count
