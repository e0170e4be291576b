"""Abstract base for all forecasting model providers."""

import asyncio
import logging
import os
import time
from abc import ABC, abstractmethod
from typing import Any

from config.config_loader import AgentConfig
from forecast_council.errors import TransientServiceError
from forecast_council.models import ModelResponse

logger = logging.getLogger(__name__)

# A chat message: {"role": "user" | "assistant", "content": str}
Message = dict[str, str]


class AIProvider(ABC):
    """Abstract base for all forecasting model providers."""

    @abstractmethod
    def name(self) -> str:
        """Return the agent identity this provider serves (e.g. 'pro', 'sonnet')."""
        ...

    @abstractmethod
    def model_string(self) -> str:
        """Return the actual model identifier string."""
        ...

    @abstractmethod
    async def generate(self, messages: list[Message]) -> ModelResponse:
        """Generate a reply to the given dialogue.

        Args:
            messages: Alternating user/assistant turns, ending with a user turn.

        Returns:
            ModelResponse dataclass with content and metadata.

        Raises:
            TransientServiceError: On API failure, timeout, or empty response.
        """
        ...


class SDKProvider(AIProvider):
    """A provider backed by a vendor SDK client configured from an AgentConfig.

    Subclasses build the client and map one request/response; timing, the
    timeout and error wrapping live here.
    """

    _label = "SDK"

    def __init__(self, config: AgentConfig) -> None:
        self._config = config
        api_key = os.environ.get(config.api_key_env, "").strip()
        if not api_key:
            raise TransientServiceError(config.name, f"Missing API key: {config.api_key_env}")
        self._client = self._make_client(api_key)

    @abstractmethod
    def _make_client(self, api_key: str) -> Any:
        ...

    @abstractmethod
    async def _complete(self, messages: list[Message]) -> tuple[str, int | None]:
        """Send one request. Returns (reply text, total token count or None)."""
        ...

    def name(self) -> str:
        return self._config.name

    def model_string(self) -> str:
        return self._config.model

    async def generate(self, messages: list[Message]) -> ModelResponse:
        start = time.monotonic()
        try:
            content, token_count = await asyncio.wait_for(
                self._complete(messages),
                timeout=self._config.timeout_sec,
            )
        except TransientServiceError:
            raise
        except TimeoutError as exc:
            raise TransientServiceError(
                self._config.name, f"Request timed out after {self._config.timeout_sec}s"
            ) from exc
        except Exception as exc:
            raise TransientServiceError(self._config.name, f"API call failed: {exc}") from exc

        latency = time.monotonic() - start
        logger.debug("%s %s: %.2fs, %s tokens", self._label, self._config.name, latency, token_count)

        return ModelResponse(
            provider=self._config.name,
            model=self._config.model,
            content=content,
            latency_sec=latency,
            token_count=token_count,
        )
