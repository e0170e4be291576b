"""Deterministic group composition: which agent gets which information slice.

Both stages call ``compose`` independently and must agree on the result
without any persisted mapping, so everything here is a pure function of its
arguments.
"""

import math

from forecast_council.errors import ConfigurationError
from forecast_council.models import ParticipantSpec

AGENTS: tuple[str, ...] = ("pro", "sonnet", "gpt5")
INFO_SLICES: tuple[str, ...] = ("info1", "info2", "info3")

CONDITIONS: tuple[str, ...] = (
    "diverse_full",
    "diverse_info",
    "homo_full",
    "diverse_none",
    "homo_none",
    "homo_info",
)


def seeded_random(seed: int) -> float:
    """Scalar hash of ``seed`` into [0, 1)."""
    x = math.sin(seed * 9999) * 10000
    return x - math.floor(x)


def seeded_shuffle(items, seed: int) -> list:
    """Fisher-Yates shuffle driven by ``seeded_random``; same seed, same order."""
    result = list(items)
    m = len(result)
    while m:
        i = math.floor(seeded_random(seed + m) * m)
        m -= 1
        result[m], result[i] = result[i], result[m]
    return result


def homogeneous_agent(question_index: int) -> str:
    """Rotate the single-agent conditions across the corpus."""
    return AGENTS[question_index % len(AGENTS)]


def compose(condition: str, question_id: int, question_index: int) -> list[ParticipantSpec]:
    """Return the 3 participants of ``condition`` for one question, in position order.

    Raises:
        ConfigurationError: If ``condition`` is not a known condition name.
    """
    if condition == "diverse_full":
        return [ParticipantSpec(agent, "full") for agent in AGENTS]

    if condition == "diverse_none":
        return [ParticipantSpec(agent, "none") for agent in AGENTS]

    if condition == "diverse_info":
        seed = int(question_id)
        labels = seeded_shuffle(INFO_SLICES, seed)
        agents = seeded_shuffle(AGENTS, seed + 1)
        return [ParticipantSpec(agent, label) for agent, label in zip(agents, labels)]

    if condition in ("homo_full", "homo_none"):
        agent = homogeneous_agent(question_index)
        label = condition.removeprefix("homo_")
        return [ParticipantSpec(agent, label, instance) for instance in (1, 2, 3)]

    if condition == "homo_info":
        agent = homogeneous_agent(question_index)
        return [
            ParticipantSpec(agent, label, instance)
            for instance, label in enumerate(INFO_SLICES, start=1)
        ]

    raise ConfigurationError(f"Unknown condition: {condition}")
