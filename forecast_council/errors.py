"""Error taxonomy for the forecast council pipeline."""

from forecast_council.models import RunState


class ConfigurationError(Exception):
    """Raised for unknown conditions, labels, agents or missing settings. Never retried."""


class TransientServiceError(Exception):
    """Raised when a Forecasting Service call fails. Always retryable."""

    def __init__(self, agent: str, message: str) -> None:
        self.agent = agent
        super().__init__(f"[{agent}] {message}")


class CircuitBreakerTripped(Exception):
    """Raised once too many questions end a stage with persistent failures."""

    def __init__(self, state: RunState, threshold: int) -> None:
        self.state = state
        self.threshold = threshold
        super().__init__(
            f"{len(state.failed_questions)} questions with persistent failures "
            f"(threshold {threshold}): {', '.join(str(q) for q in state.failed_questions)}"
        )


class InvalidRecordError(Exception):
    """Raised when a stored record cannot be read back as a result."""

    def __init__(self, key: str, message: str) -> None:
        self.key = key
        super().__init__(f"{key}: {message}")
