"""Rich console output for stage progress and summaries."""

from pathlib import Path

from rich.console import Console
from rich.markup import escape
from rich.rule import Rule
from rich.table import Table

from forecast_council.dataset import Dataset
from forecast_council.models import QuestionReport, RunState, TaskStatus

console = Console(legacy_windows=False)


def print_question_report(report: QuestionReport) -> None:
    """One line per question that did work or failed; quiet for fully cached ones."""
    if not (report.completed or report.persistent_failures):
        return
    colour = "red" if report.persistent_failures else "green"
    console.print(
        f"  [{colour}]Q{report.question_index + 1}[/{colour}] ({report.question_id}): "
        f"{report.completed} completed, {report.cached} cached, "
        f"{report.persistent_failures} failed"
        + (f", {len(report.skipped)} skipped" if report.skipped else "")
    )
    for outcome in report.outcomes:
        if outcome.status is TaskStatus.PERSISTENTLY_FAILED:
            console.print(f"    [red]FAIL[/red] {outcome.task_id}: {escape(str(outcome.error))}")


def print_stage_summary(stage: str, state: RunState) -> None:
    """Print totals for a finished (or halted) stage."""
    if state.halted:
        title = f"[bold red]{stage.title()} stage halted[/bold red]"
    elif state.failed_questions:
        title = f"[bold yellow]{stage.title()} stage completed with failures[/bold yellow]"
    else:
        title = f"[bold green]{stage.title()} stage done[/bold green]"
    console.print(Rule(title))

    table = Table(show_header=False, box=None)
    table.add_row("Batches", str(state.batches_done))
    table.add_row("Completed", str(state.completed))
    table.add_row("Cached", str(state.cached))
    table.add_row("Skipped (missing dependencies)", str(state.skipped))
    table.add_row("Persistent failures", str(state.persistent_failures))
    if state.failed_questions:
        table.add_row("Failed questions", ", ".join(str(q) for q in state.failed_questions))
    console.print(table)

    if state.failed_questions:
        console.print(
            "[red]Do not proceed to the next stage until failures are resolved. "
            "Re-run this stage; cached forecasts will be skipped.[/red]"
        )


def print_dataset_summary(dataset: Dataset, paths: dict[str, Path]) -> None:
    console.print(Rule("[bold cyan]Analysis dataset[/bold cyan]"))
    table = Table("Table", "Rows", "File")
    table.add_row("forecasts", str(len(dataset.forecast_rows)), str(paths["forecasts"]))
    table.add_row("condition_pairs", str(len(dataset.condition_rows)), str(paths["condition_pairs"]))
    table.add_row("questions", str(len(dataset.question_rows)), str(paths["questions"]))
    console.print(table)
