"""Load settings.yaml into typed dataclasses. Validates settings at startup."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from forecast_council.composition import AGENTS, CONDITIONS
from forecast_council.errors import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_SETTINGS_PATH = Path(__file__).parent / "settings.yaml"

_SUPPORTED_SDKS = {"anthropic", "openai", "gemini", "openrouter"}

# Sample values for the placeholders each prompt template is rendered with.
_TEMPLATE_SAMPLES = {
    "independent": dict.fromkeys(
        ("title", "description", "resolution_criteria", "fine_print", "information", "date"), ""
    ),
    "prior_forecast": {"rationale": "", "probability": 50.0},
    "peer_analysis": {"number": 2, "analysis": ""},
    "deliberation": {"peer_analyses": ""},
}


@dataclass
class AgentConfig:
    name: str
    sdk: str
    model: str
    api_key_env: str
    timeout_sec: int
    max_tokens: int
    base_url: str | None = None


@dataclass
class PromptsConfig:
    independent: str
    deliberation: str
    prior_forecast: str
    peer_analysis: str
    no_information: str = "No additional information available."


@dataclass
class DefaultsConfig:
    batch_size: int
    max_attempts: int
    retry_delay_sec: float
    max_failed_questions: int
    conditions: list[str] = field(default_factory=lambda: list(CONDITIONS))


@dataclass
class PathsConfig:
    questions: Path
    independent_dir: Path
    deliberative_dir: Path
    analysis_dir: Path


@dataclass
class AppConfig:
    defaults: DefaultsConfig
    paths: PathsConfig
    agents: dict[str, AgentConfig]
    prompts: PromptsConfig
    available_agents: set[str] = field(default_factory=set)


def _require(section: dict, key: str, where: str):
    if key not in section or section[key] is None:
        raise ConfigurationError(f"Missing required setting: {where}.{key}")
    return section[key]


def _positive_int(section: dict, key: str, where: str) -> int:
    value = int(_require(section, key, where))
    if value < 1:
        raise ConfigurationError(f"{where}.{key} must be >= 1, got {value}")
    return value


def _check_templates(prompts: PromptsConfig) -> None:
    for name, sample in _TEMPLATE_SAMPLES.items():
        try:
            getattr(prompts, name).format(**sample)
        except (KeyError, IndexError, ValueError, AttributeError) as exc:
            raise ConfigurationError(f"prompts.{name} is not a valid template: {exc!r}") from exc


def load_config(settings_path: Path = DEFAULT_SETTINGS_PATH) -> AppConfig:
    """Load and validate configuration from settings.yaml.

    Raises FileNotFoundError if settings file missing, ConfigurationError on
    missing or invalid values. Logs missing API keys but does not raise;
    callers check available_agents.
    """
    if not settings_path.exists():
        raise FileNotFoundError(f"Settings file not found: {settings_path}")

    with settings_path.open("r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}

    defaults_raw = _require(raw, "defaults", "settings")
    conditions = list(defaults_raw.get("conditions") or CONDITIONS)
    unknown = [c for c in conditions if c not in CONDITIONS]
    if unknown:
        raise ConfigurationError(f"Unknown condition(s) in settings: {', '.join(unknown)}")

    retry_delay = float(_require(defaults_raw, "retry_delay_sec", "defaults"))
    if retry_delay < 0:
        raise ConfigurationError(f"defaults.retry_delay_sec must be >= 0, got {retry_delay}")

    defaults = DefaultsConfig(
        batch_size=_positive_int(defaults_raw, "batch_size", "defaults"),
        max_attempts=_positive_int(defaults_raw, "max_attempts", "defaults"),
        retry_delay_sec=retry_delay,
        max_failed_questions=_positive_int(defaults_raw, "max_failed_questions", "defaults"),
        conditions=conditions,
    )

    paths_raw = _require(raw, "paths", "settings")
    paths = PathsConfig(
        questions=Path(_require(paths_raw, "questions", "paths")),
        independent_dir=Path(_require(paths_raw, "independent_dir", "paths")),
        deliberative_dir=Path(_require(paths_raw, "deliberative_dir", "paths")),
        analysis_dir=Path(_require(paths_raw, "analysis_dir", "paths")),
    )

    prompts_raw = _require(raw, "prompts", "settings")
    prompts = PromptsConfig(
        independent=_require(prompts_raw, "independent", "prompts"),
        deliberation=_require(prompts_raw, "deliberation", "prompts"),
        prior_forecast=_require(prompts_raw, "prior_forecast", "prompts"),
        peer_analysis=_require(prompts_raw, "peer_analysis", "prompts"),
        no_information=prompts_raw.get("no_information", PromptsConfig.no_information),
    )
    _check_templates(prompts)

    agents: dict[str, AgentConfig] = {}
    available_agents: set[str] = set()

    for agent_name, agent_raw in _require(raw, "agents", "settings").items():
        where = f"agents.{agent_name}"
        sdk = _require(agent_raw, "sdk", where)
        if sdk not in _SUPPORTED_SDKS:
            raise ConfigurationError(f"{where}.sdk '{sdk}' is not one of {sorted(_SUPPORTED_SDKS)}")
        agent_cfg = AgentConfig(
            name=agent_name,
            sdk=sdk,
            model=_require(agent_raw, "model", where),
            api_key_env=_require(agent_raw, "api_key_env", where),
            timeout_sec=_positive_int(agent_raw, "timeout_sec", where),
            max_tokens=_positive_int(agent_raw, "max_tokens", where),
            base_url=agent_raw.get("base_url"),
        )
        agents[agent_name] = agent_cfg

        api_key = os.environ.get(agent_cfg.api_key_env, "").strip()
        if api_key:
            available_agents.add(agent_name)
            logger.info("Agent available: %s (%s)", agent_name, agent_cfg.model)
        else:
            logger.info(
                "Agent skipped (no API key): %s, set %s in .env",
                agent_name,
                agent_cfg.api_key_env,
            )

    missing_agents = [a for a in AGENTS if a not in agents]
    if missing_agents:
        raise ConfigurationError(f"Missing agent settings for: {', '.join(missing_agents)}")

    return AppConfig(
        defaults=defaults,
        paths=paths,
        agents=agents,
        prompts=prompts,
        available_agents=available_agents,
    )
