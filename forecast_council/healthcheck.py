"""Agent health checks: one short ping per provider before a stage starts.

An agent that fails here is dropped from the run (after confirmation), so
its tasks later fail like an outage and count toward the circuit breaker.
"""

import asyncio
import logging
import time

from forecast_council.providers.base import AIProvider, Message

logger = logging.getLogger(__name__)

PING: list[Message] = [{"role": "user", "content": "Reply with the word OK only."}]
PING_TIMEOUT_SEC = 30.0


async def ping(agent: str, provider: AIProvider) -> tuple[bool, str]:
    """Returns (ok, error_message); error_message is "" when ok."""
    start = time.monotonic()
    try:
        await asyncio.wait_for(provider.generate(PING), timeout=PING_TIMEOUT_SEC)
    except Exception as exc:
        error = str(exc) or type(exc).__name__
        logger.warning("Agent %s (%s) failed its health check: %s", agent, provider.model_string(), error)
        return False, error
    logger.debug("Agent %s (%s) answered in %.1fs", agent, provider.model_string(), time.monotonic() - start)
    return True, ""


async def run_health_checks(providers: dict[str, AIProvider]) -> dict[str, tuple[bool, str]]:
    """Ping every agent's provider concurrently, keyed by agent name."""
    agents = list(providers)
    results = await asyncio.gather(*(ping(agent, providers[agent]) for agent in agents))
    return dict(zip(agents, results))
