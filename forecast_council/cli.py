"""Click CLI: loads config and corpus, builds providers, runs a stage, reports."""

import asyncio
import logging
import sys
from pathlib import Path

import click
from dotenv import load_dotenv
from rich.console import Console
from rich.markup import escape
from rich.logging import RichHandler

from config.config_loader import DEFAULT_SETTINGS_PATH, AppConfig, load_config
from forecast_council.corpus import load_questions
from forecast_council.dataset import write_dataset
from forecast_council.errors import CircuitBreakerTripped, ConfigurationError
from forecast_council.forecasting import ForecastingService
from forecast_council.healthcheck import run_health_checks
from forecast_council.models import RunState
from forecast_council.output import print_dataset_summary, print_question_report, print_stage_summary
from forecast_council.pipeline import (
    DELIBERATIVE,
    INDEPENDENT,
    build_analysis_dataset,
    run_deliberative_stage,
    run_independent_stage,
)
from forecast_council.providers.anthropic import AnthropicProvider
from forecast_council.providers.base import AIProvider
from forecast_council.providers.gemini import GeminiProvider
from forecast_council.providers.openai_provider import OpenAIProvider
from forecast_council.providers.openrouter import OpenRouterProvider
from forecast_council.store import JsonDirStore

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)

PROVIDER_CLASSES: dict[str, type[AIProvider]] = {
    "anthropic": AnthropicProvider,
    "openai": OpenAIProvider,
    "gemini": GeminiProvider,
    "openrouter": OpenRouterProvider,
}


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
    )


def _load(settings_path: Path) -> AppConfig:
    try:
        return load_config(settings_path)
    except (FileNotFoundError, ConfigurationError) as exc:
        console.print(f"[bold red]Config error:[/bold red] {escape(str(exc))}")
        sys.exit(1)


def _build_all_providers(config: AppConfig) -> dict[str, AIProvider]:
    """Build a provider for every agent with an API key. Returns dict keyed by agent."""
    providers: dict[str, AIProvider] = {}
    for name in sorted(config.available_agents):
        agent_cfg = config.agents[name]
        try:
            providers[name] = PROVIDER_CLASSES[agent_cfg.sdk](agent_cfg)
        except Exception as exc:
            logger.warning("Failed to instantiate provider for agent '%s': %s", name, exc)
    return providers


def _check_and_filter_providers(all_providers: dict[str, AIProvider]) -> dict[str, AIProvider]:
    """Run health checks, print results, and ask user what to do on failures.

    Returns the filtered dict of working providers. Exits if the user
    declines to continue or no providers pass.
    """
    console.print("\n[bold]Checking agents...[/bold]")
    results: dict[str, tuple[bool, str]] = asyncio.run(run_health_checks(all_providers))

    failed_names: list[str] = []
    for name in sorted(results):
        ok, err = results[name]
        if ok:
            console.print(f"  [green]OK  [/green] {name}")
        else:
            short_err = err.splitlines()[0][:120] if err else "unknown error"
            console.print(f"  [red]FAIL[/red] {name}: {escape(short_err)}")
            failed_names.append(name)

    if not failed_names:
        console.print()
        return all_providers

    working = {n: p for n, p in all_providers.items() if n not in failed_names}

    if not working:
        console.print("\n[bold red]Error:[/bold red] No agents passed the health check.")
        sys.exit(1)

    console.print(f"\n[yellow]{len(failed_names)} agent(s) failed:[/yellow] {', '.join(failed_names)}")
    console.print(f"Working agents: {', '.join(sorted(working))}")
    console.print("[dim]Tasks for failed agents will count as persistent failures.[/dim]")

    if not click.confirm("Continue with working agents only?", default=True):
        sys.exit(0)

    console.print()
    return working


def _prepare(settings_path: Path, verbose: bool, skip_health_check: bool, limit: int | None):
    load_dotenv()
    _setup_logging(verbose)
    config = _load(settings_path)

    providers = _build_all_providers(config)
    if not providers:
        console.print("[bold red]Error:[/bold red] No agents available. Check API keys in .env.")
        sys.exit(1)
    if not skip_health_check:
        providers = _check_and_filter_providers(providers)

    try:
        questions = load_questions(config.paths.questions, limit=limit)
    except (FileNotFoundError, ConfigurationError) as exc:
        console.print(f"[bold red]Corpus error:[/bold red] {escape(str(exc))}")
        sys.exit(1)
    if limit is not None:
        console.print(f"[yellow]Limited to the first {len(questions)} question(s)[/yellow]")

    return config, ForecastingService(providers, config.prompts), questions


def _finish(stage: str, run) -> None:
    """Run a stage coroutine and exit non-zero unless every question completed."""
    try:
        state: RunState = asyncio.run(run)
    except CircuitBreakerTripped as exc:
        logger.error("Circuit breaker tripped: %s", exc)
        print_stage_summary(stage, exc.state)
        sys.exit(1)
    except ConfigurationError as exc:
        console.print(f"[bold red]Config error:[/bold red] {escape(str(exc))}")
        sys.exit(1)

    print_stage_summary(stage, state)
    if state.failed_questions:
        sys.exit(1)


_settings_option = click.option(
    "--settings", "settings_path", type=click.Path(path_type=Path), default=DEFAULT_SETTINGS_PATH,
    show_default=True, help="Path to settings.yaml",
)
_limit_option = click.option(
    "--limit", type=click.IntRange(min=1), default=None, help="Only process the first N questions"
)
_batch_option = click.option(
    "--batch-size", type=click.IntRange(min=1), default=None,
    help="Questions per batch (default: from config)"
)
_verbose_option = click.option("--verbose", is_flag=True, help="Enable DEBUG-level logging")
_skip_check_option = click.option(
    "--skip-health-check", is_flag=True, default=False, help="Skip the API connectivity check at startup"
)


@click.group()
def main() -> None:
    """Forecast Council -- independent and deliberative forecasts across experimental conditions.

    \b
    Examples:
      forecast-council independent --limit 2
      forecast-council deliberative
      forecast-council dataset
    """


@main.command()
@_settings_option
@_limit_option
@_batch_option
@_verbose_option
@_skip_check_option
def independent(
    settings_path: Path,
    limit: int | None,
    batch_size: int | None,
    verbose: bool,
    skip_health_check: bool,
) -> None:
    """Collect every independent forecast the configured conditions need."""
    config, service, questions = _prepare(settings_path, verbose, skip_health_check, limit)
    console.print(
        f"Processing {len(questions)} questions in batches of {batch_size or config.defaults.batch_size} "
        f"({config.defaults.max_attempts} attempts/question, "
        f"{config.defaults.max_failed_questions} max failed questions)"
    )
    _finish(
        INDEPENDENT,
        run_independent_stage(
            config, questions, service,
            batch_size=batch_size,
            on_question_complete=print_question_report,
        ),
    )


@main.command()
@_settings_option
@_limit_option
@_batch_option
@_verbose_option
@_skip_check_option
def deliberative(
    settings_path: Path,
    limit: int | None,
    batch_size: int | None,
    verbose: bool,
    skip_health_check: bool,
) -> None:
    """Collect deliberative forecasts for every complete condition group."""
    config, service, questions = _prepare(settings_path, verbose, skip_health_check, limit)
    console.print(
        f"Processing {len(questions)} questions in batches of {batch_size or config.defaults.batch_size}"
    )
    _finish(
        DELIBERATIVE,
        run_deliberative_stage(
            config, questions, service,
            batch_size=batch_size,
            on_question_complete=print_question_report,
        ),
    )


@main.command()
@_settings_option
@_verbose_option
def dataset(settings_path: Path, verbose: bool) -> None:
    """Build forecasts.csv, condition_pairs.csv and questions.csv."""
    _setup_logging(verbose)
    config = _load(settings_path)
    try:
        questions = load_questions(config.paths.questions)
    except (FileNotFoundError, ConfigurationError) as exc:
        console.print(f"[bold red]Corpus error:[/bold red] {escape(str(exc))}")
        sys.exit(1)

    result = build_analysis_dataset(
        questions,
        JsonDirStore(config.paths.independent_dir),
        JsonDirStore(config.paths.deliberative_dir),
    )
    paths = write_dataset(result, config.paths.analysis_dir)
    print_dataset_summary(result, paths)


@main.command()
@_settings_option
@_verbose_option
def check(settings_path: Path, verbose: bool) -> None:
    """Ping every agent that has an API key."""
    load_dotenv()
    _setup_logging(verbose)
    config = _load(settings_path)
    providers = _build_all_providers(config)
    if not providers:
        console.print("[bold red]Error:[/bold red] No agents available. Check API keys in .env.")
        sys.exit(1)
    results = asyncio.run(run_health_checks(providers))
    for name in sorted(results):
        ok, err = results[name]
        console.print(f"  [green]OK  [/green] {name}" if ok else f"  [red]FAIL[/red] {name}: {escape(err)}")
    if not all(ok for ok, _ in results.values()):
        sys.exit(1)


if __name__ == "__main__":
    main()
