"""CLI commands for Sleep Log using Typer."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime
from pathlib import Path
from typing import TypeVar

import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from sleep_log import __version__
from sleep_log.classification.schemas import CATEGORY_ORDER, FEATURE_NAMES, Category, SleepSession
from sleep_log.core.config import Config, get_config
from sleep_log.core.session_service import SessionService
from sleep_log.storage.database import Database

T = TypeVar("T")

app = typer.Typer(
    name="sleep-log",
    help="Sleep session tracking with rule-based and learned classifiers.",
    add_completion=False,
)

console = Console()

CATEGORY_STYLES = {
    Category.SLEEP: "bold blue",
    Category.NAP: "magenta",
    Category.IDLE: "dim",
}


def setup_logging(log_level: str, log_file: Path | None = None) -> None:
    """Configure logging for the application."""
    level = getattr(logging, log_level.upper(), logging.INFO)

    handlers: list[logging.Handler] = [logging.StreamHandler()]

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=handlers,
    )

    # Reduce noise from external libraries
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)


def parse_time(value: str) -> int:
    """Parse a local ``YYYY-MM-DD HH:MM`` time into epoch milliseconds."""
    try:
        moment = datetime.fromisoformat(value)
    except ValueError:
        raise typer.BadParameter(f"Expected 'YYYY-MM-DD HH:MM', got '{value}'") from None
    return int(moment.timestamp() * 1000)


def parse_category(value: str) -> Category:
    try:
        return Category.parse(value)
    except ValueError as e:
        raise typer.BadParameter(str(e)) from None


def format_time(millis: int) -> str:
    return datetime.fromtimestamp(millis / 1000).strftime("%a %b %d, %H:%M")


def format_duration(seconds: int) -> str:
    """Format a duration as hours and minutes."""
    return f"{seconds // 3600}h {(seconds % 3600) // 60:02d}m"


def format_category(category: Category | None) -> str:
    if category is None:
        return "[dim]-[/dim]"
    return f"[{CATEGORY_STYLES[category]}]{category.value}[/{CATEGORY_STYLES[category]}]"


def format_flag(flag: bool | None) -> str:
    if flag is None:
        return "[dim]-[/dim]"
    return "[green]sleep[/green]" if flag else "[yellow]no[/yellow]"


def run_with_service(action: Callable[[SessionService], Awaitable[T]]) -> T:
    """Open the database, run ``action`` with a service and close again."""
    config = get_config()

    async def run() -> T:
        db = Database(config.db_path)
        await db.connect()
        try:
            return await action(SessionService(config, db))
        finally:
            await db.close()

    try:
        return asyncio.run(run())
    except Exception as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        raise typer.Exit(1)


def print_session(session: SleepSession, title: str) -> None:
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column("Key", style="cyan")
    table.add_column("Value")

    table.add_row("ID", session.id)
    table.add_row("Start", format_time(session.start_time_millis))
    table.add_row("End", format_time(session.end_time_millis))
    table.add_row("Duration", format_duration(session.duration_seconds))
    table.add_row("Target Bedtime", f"{session.target_bedtime_hour:02d}:00")
    table.add_row("Category", format_category(session.category))
    table.add_row("Naive Bayes", format_flag(session.pred_default_ml))
    table.add_row("Custom Model", format_flag(session.pred_custom_ml))

    console.print(Panel(table, title=title, border_style="blue"))


@app.command()
def record(
    start: str = typer.Argument(..., help="Lock time, 'YYYY-MM-DD HH:MM'"),
    end: str = typer.Argument(..., help="Unlock time, 'YYYY-MM-DD HH:MM'"),
) -> None:
    """Record a finished tracking session and classify it."""
    start_ms, end_ms = parse_time(start), parse_time(end)
    session = run_with_service(lambda service: service.finalize_session(start_ms, end_ms))

    if session is None:
        min_minutes = get_config().tracking.min_session_seconds // 60
        console.print(f"[yellow]Session shorter than {min_minutes} min, discarded[/yellow]")
        return
    print_session(session, "Session Recorded")


@app.command()
def add(
    start: str = typer.Argument(..., help="Start time, 'YYYY-MM-DD HH:MM'"),
    end: str = typer.Argument(..., help="End time, 'YYYY-MM-DD HH:MM'"),
    category: str = typer.Option("SLEEP", "--category", "-c", help="SLEEP, NAP or IDLE"),
) -> None:
    """Add a session manually with a known label."""
    start_ms, end_ms = parse_time(start), parse_time(end)
    label = parse_category(category)
    session = run_with_service(
        lambda service: service.add_manual_session(start_ms, end_ms, label)
    )
    print_session(session, "Session Added")


@app.command(name="list")
def list_sessions(
    limit: int = typer.Option(20, "--limit", "-n", help="Number of sessions to show"),
) -> None:
    """List recorded sessions, newest first."""
    sessions = run_with_service(lambda service: service.list_sessions(limit))

    if not sessions:
        console.print("[yellow]No sessions recorded yet[/yellow]")
        return

    table = Table(title="Sleep Sessions", show_header=True, header_style="bold cyan")
    table.add_column("ID")
    table.add_column("Start")
    table.add_column("Duration", justify="right")
    table.add_column("Target", justify="right")
    table.add_column("Base")
    table.add_column("Truth")
    table.add_column("NB")
    table.add_column("Custom")

    for session in sessions:
        table.add_row(
            session.id[:8],
            format_time(session.start_time_millis),
            format_duration(session.duration_seconds),
            f"{session.target_bedtime_hour:02d}:00",
            format_category(session.heuristic_category),
            format_category(session.category),
            format_flag(session.pred_default_ml),
            format_flag(session.pred_custom_ml),
        )

    console.print(table)


@app.command()
def label(
    session_id: str = typer.Argument(..., help="Session id or unique prefix"),
    category: str = typer.Argument(..., help="SLEEP, NAP or IDLE"),
) -> None:
    """Set the ground-truth label of a session."""
    new_category = parse_category(category)

    async def relabel(service: SessionService) -> SleepSession:
        full_id = await service.sessions.resolve_id(session_id)
        return await service.label_session(full_id, new_category)

    session = run_with_service(relabel)
    console.print(f"[green]Labeled {session.id[:8]} as {new_category.value}[/green]")


@app.command()
def edit(
    session_id: str = typer.Argument(..., help="Session id or unique prefix"),
    start: str = typer.Argument(..., help="New start, 'YYYY-MM-DD HH:MM'"),
    end: str = typer.Argument(..., help="New end, 'YYYY-MM-DD HH:MM'"),
    category: str = typer.Option(None, "--category", "-c", help="New label"),
) -> None:
    """Change the time bounds (and optionally the label) of a session."""
    start_ms, end_ms = parse_time(start), parse_time(end)
    new_category = parse_category(category) if category else None

    async def update(service: SessionService) -> SleepSession:
        full_id = await service.sessions.resolve_id(session_id)
        return await service.edit_session(full_id, start_ms, end_ms, new_category)

    print_session(run_with_service(update), "Session Updated")


@app.command()
def delete(
    session_id: str = typer.Argument(..., help="Session id or unique prefix"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """Delete a session."""
    if not yes:
        typer.confirm(f"Delete session {session_id}?", abort=True)

    async def remove(service: SessionService) -> str:
        full_id = await service.sessions.resolve_id(session_id)
        await service.delete_session(full_id)
        return full_id

    full_id = run_with_service(remove)
    console.print(f"[green]Deleted session {full_id[:8]}[/green]")


@app.command()
def classify(
    start: str = typer.Argument(..., help="Start time, 'YYYY-MM-DD HH:MM'"),
    hours: float = typer.Option(..., "--hours", "-h", min=0, help="Duration in hours"),
) -> None:
    """Classify an interval without storing it."""
    start_ms = parse_time(start)
    duration = int(hours * 3600)
    category = run_with_service(lambda service: service.classify(start_ms, duration))
    console.print(f"{format_time(start_ms)} for {format_duration(duration)}: {format_category(category)}")


@app.command()
def train() -> None:
    """Train the naive Bayes model on the recorded history."""
    model = run_with_service(lambda service: service.train_naive_bayes())

    if model is None:
        console.print("[yellow]No labeled sessions to train on[/yellow]")
        return

    console.print("[green]Naive Bayes model trained[/green]")
    for category in CATEGORY_ORDER:
        console.print(f"  {category.value:<6} prior {model.class_priors[category]:.3f}")


@app.command(name="forget-model")
def forget_model() -> None:
    """Delete the trained naive Bayes model."""
    deleted = run_with_service(lambda service: service.delete_naive_bayes_model())
    if deleted:
        console.print("[green]Naive Bayes model deleted[/green]")
    else:
        console.print("[yellow]No naive Bayes model to delete[/yellow]")


@app.command(name="model-info")
def model_info() -> None:
    """Show the parameters of the trained naive Bayes model."""

    async def gather(service: SessionService):
        return (
            service.load_naive_bayes(),
            await service.naive_bayes_trained_at(),
            await service.sessions.duration_stats(),
        )

    model, trained_at, stats = run_with_service(gather)

    if stats is not None:
        mean, std = stats
        console.print(f"History durations: mean {format_duration(int(mean))}, std {format_duration(int(std))}")

    if model is None:
        console.print("[yellow]No naive Bayes model trained. Run 'sleep-log train'.[/yellow]")
        return

    console.print(f"Trained: {trained_at or 'unknown'}")
    console.print(
        f"Duration normalization: mean {model.duration_mean:.0f}s, std {model.duration_std:.0f}s\n"
    )

    for category in CATEGORY_ORDER:
        table = Table(
            title=f"{category.value} (prior {model.class_priors[category]:.3f})",
            show_header=True,
            header_style="bold cyan",
        )
        table.add_column("Feature")
        table.add_column("μ", justify="right")
        table.add_column("σ", justify="right")
        for name, (mean, std) in zip(FEATURE_NAMES, model.feature_params[category]):
            table.add_row(name, f"{mean:.2f}", f"{std:.2f}")
        console.print(table)


@app.command()
def lab(
    as_json: bool = typer.Option(False, "--json", help="Print the report as JSON"),
    limit: int = typer.Option(30, "--limit", "-n", help="Rows to show in the comparison"),
) -> None:
    """Compare every classifier against the ground-truth labels."""
    report = run_with_service(lambda service: service.run_model_lab())

    if as_json:
        typer.echo(json.dumps(report.to_dict(), indent=2))
        return

    summary = Table(show_header=False, box=None, padding=(0, 2))
    summary.add_column("Model", style="cyan")
    summary.add_column("Accuracy", justify="right")
    summary.add_row("Baseline (rules)", f"{report.baseline_accuracy}%")
    if report.naive_bayes_accuracy is not None:
        summary.add_row("Naive Bayes", f"{report.naive_bayes_accuracy}%")
    if report.custom_accuracy is not None:
        summary.add_row("Custom Model", f"[bold]{report.custom_accuracy}%[/bold]")
    summary.add_row("Sessions", str(report.total))

    console.print(Panel(summary, title="Model Performance Lab", border_style="green"))

    if not report.rows:
        return

    table = Table(title="Comparison", show_header=True, header_style="bold cyan")
    table.add_column("Session")
    table.add_column("Duration", justify="right")
    table.add_column("Base")
    if report.naive_bayes_accuracy is not None:
        table.add_column("NB")
    if report.custom_accuracy is not None:
        table.add_column("ML")
    table.add_column("Truth", style="bold")

    for row in report.rows[:limit]:
        cells = [
            format_time(row.session.start_time_millis),
            format_duration(row.session.duration_seconds),
            format_category(row.baseline),
        ]
        if report.naive_bayes_accuracy is not None:
            cells.append(format_category(row.naive_bayes))
        if report.custom_accuracy is not None:
            cells.append(format_category(row.custom))
        cells.append(format_category(row.truth))
        table.add_row(*cells)

    console.print(table)


@app.command()
def stats(
    as_json: bool = typer.Option(False, "--json", help="Print the stats as JSON"),
) -> None:
    """Show sleep totals and averages against the nightly goal."""
    periods = run_with_service(lambda service: service.stats())

    if as_json:
        typer.echo(json.dumps([p.to_dict() for p in periods], indent=2))
        return

    goal = get_config().tracking.sleep_target_hours
    table = Table(title=f"Sleep Stats (goal {goal}h/night)", show_header=True, header_style="bold cyan")
    table.add_column("Period")
    table.add_column("Sessions", justify="right")
    table.add_column("Routine", justify="right")
    table.add_column("Avg Sleep", justify="right")
    table.add_column("Avg Wake", justify="right")
    table.add_column("Avg Nap", justify="right")
    table.add_column("Shortest", justify="right")
    table.add_column("Longest", justify="right")

    for p in periods:
        table.add_row(
            f"{p.period} ({p.days}d)",
            str(p.session_count),
            f"{p.consistency_percent}%",
            f"{p.avg_sleep_hours:.1f}h",
            p.avg_wake_time.display() if p.avg_wake_time else "--",
            f"{p.avg_nap_hours:.1f}h",
            f"{p.shortest_sleep_hours:.1f}h",
            f"{p.longest_sleep_hours:.1f}h",
        )

    console.print(table)


@app.command()
def backfill() -> None:
    """Recompute stored model predictions for all sessions."""
    updated = run_with_service(lambda service: service.backfill_predictions())
    console.print(f"[green]Updated predictions for {updated} sessions[/green]")


@app.command(name="settings")
def settings_cmd(
    bedtime: str = typer.Option(None, "--bedtime", "-b", help="Usual bedtime, HH:MM"),
    off_days: str = typer.Option(None, "--off-days", help="Comma-separated ISO weekdays, e.g. 6,7"),
    custom_model: Path = typer.Option(
        None,
        "--custom-model",
        help=(
            "ONNX classifier with a [N, features] float input and either a [N, 3] score "
            "output or a ZipMap probability output (skl2onnx default). Classes in "
            "order SLEEP, NAP, IDLE (labels 0, 1, 2)."
        ),
    ),
    means: str = typer.Option(None, "--means", help="Comma-separated feature means"),
    stds: str = typer.Option(None, "--stds", help="Comma-separated feature stddevs"),
    use_custom: bool = typer.Option(None, "--use-custom/--no-use-custom", help="Enable the custom model"),
) -> None:
    """Show or change bedtime and model settings."""
    config = get_config()
    changes = {}

    try:
        if bedtime is not None:
            changes["bedtime"] = config.bedtime.model_copy(update={"base_bedtime": bedtime})
        if off_days is not None:
            days = [int(d) for d in off_days.split(",") if d.strip()]
            changes["bedtime"] = changes.get("bedtime", config.bedtime).model_copy(
                update={"off_days": days}
            )

        model_updates = {}
        if custom_model is not None:
            model_updates["custom_model_path"] = custom_model.expanduser().resolve()
        if means is not None:
            model_updates["custom_means"] = [float(v) for v in means.split(",") if v.strip()]
        if stds is not None:
            model_updates["custom_stds"] = [float(v) for v in stds.split(",") if v.strip()]
        if use_custom is not None:
            model_updates["use_custom_model"] = use_custom
        if model_updates:
            changes["models"] = config.models.model_copy(update=model_updates)

        if changes:
            # model_copy skips validation, so rebuild the whole config
            data = config.model_dump()
            data.update({key: section.model_dump() for key, section in changes.items()})
            config = Config(**data)
            config.save()
            get_config.cache_clear()
            console.print(f"[green]Settings saved to {config.config_file}[/green]")
    except ValueError as e:
        console.print(f"[red]Invalid setting: {escape(str(e))}[/red]")
        raise typer.Exit(1)

    user_settings = config.user_settings

    table = Table(title="Settings", show_header=True, header_style="bold cyan")
    table.add_column("Setting")
    table.add_column("Value")
    table.add_row("Base Bedtime", user_settings.base_bedtime.display())
    table.add_row("Off Days", user_settings.off_day_names())
    table.add_row("Custom Model", str(config.models.custom_model_path or "[dim]not set[/dim]"))
    table.add_row("Use Custom Model", str(config.models.use_custom_model))
    table.add_row("Feature Means", ", ".join(f"{v:g}" for v in config.models.custom_means) or "-")
    table.add_row("Feature Stds", ", ".join(f"{v:g}" for v in config.models.custom_stds) or "-")

    console.print(table)


@app.command()
def config_show() -> None:
    """Show current configuration."""
    config = get_config()

    table = Table(title="Sleep Log Configuration", show_header=True, header_style="bold cyan")
    table.add_column("Setting")
    table.add_column("Value")

    # Paths
    table.add_row("[bold]Paths[/bold]", "")
    table.add_row("  Data Directory", str(config.data_dir))
    table.add_row("  Log Directory", str(config.log_dir))
    table.add_row("  Config File", str(config.config_file))
    table.add_row("  Database", str(config.db_path))
    table.add_row("  Naive Bayes Model", str(config.naive_bayes_model_path))

    # Tracking
    table.add_row("[bold]Tracking[/bold]", "")
    table.add_row("  Minimum Session", f"{config.tracking.min_session_seconds}s")
    table.add_row("  Sleep Goal", f"{config.tracking.sleep_target_hours}h")

    # Bedtime
    table.add_row("[bold]Bedtime[/bold]", "")
    table.add_row("  Base Bedtime", config.bedtime.base_bedtime)
    table.add_row("  Off Days", config.user_settings.off_day_names())

    # Models
    table.add_row("[bold]Models[/bold]", "")
    table.add_row("  Custom Model Enabled", str(config.models.use_custom_model))
    table.add_row("  Load Timeout", f"{config.models.load_timeout_seconds:g}s")

    console.print(table)


@app.command()
def version() -> None:
    """Show version information."""
    console.print(f"Sleep Log v{__version__}")


@app.callback()
def main_callback(
    log_level: str = typer.Option(
        None,
        "--log-level",
        "-l",
        help="Log level (DEBUG, INFO, WARNING, ERROR)",
    ),
) -> None:
    """Sleep Log - sleep session tracking and classification."""
    config = get_config()
    config.ensure_directories()
    setup_logging(log_level or config.log_level, config.log_dir / "sleep-log.log")


if __name__ == "__main__":
    app()
