"""
Typer CLI for the vstation assessment engine.

Commands:
    vstation score FILE              - Score a case submission (JSON)
    vstation classify MESSAGE        - Classify a learner error
    vstation heatmap FILE            - Build a step heatmap from error counts (JSON)
    vstation leaderboard FILE        - Rank competition entries (JSON list)
    vstation career show USER        - Show level, XP and achievements
    vstation progress show USER WS   - Show the cached snapshot and its backups
    vstation progress resume USER WS - Reconcile local and remote progress
    vstation progress restore-backup ID - Make a backup the current snapshot

Usage:
    vstation --help
    vstation score submission.json --case case_001
    vstation classify "pH value out of range" --field ph_value --field-type number
"""

from __future__ import annotations

import asyncio
import json
import sys
from pathlib import Path
from typing import Any

import typer
from loguru import logger
from rich import print as rprint
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from config import get_settings
from vstation.core.errors import EngineError, NotFoundError, ValidationError

app = typer.Typer(
    help="vstation: scoring, ranking, behavior analysis and progress sync for the virtual station",
    no_args_is_help=True,
)

console = Console()


# ========================================
# Context Builder (Dependency Injection)
# ========================================


class CLIContext:
    """
    Dependency injection container for CLI commands.

    Services are created lazily so commands that don't need the cache
    never touch the filesystem.
    """

    def __init__(self, db_path: Path | None = None):
        self.settings = get_settings()
        self.db_path = db_path or self.settings.local_cache_path
        self._local_cache = None

    @property
    def local_cache(self):
        """Lazy load LocalCache."""
        if self._local_cache is None:
            from vstation.sync import LocalCache

            self._local_cache = LocalCache(self.db_path)
        return self._local_cache

    def coordinator(self, remote=None):
        from vstation.sync import ProgressSyncCoordinator

        return ProgressSyncCoordinator.from_settings(self.settings, local=self.local_cache, remote=remote)


def _load_json(path: Path) -> Any:
    if not path.exists():
        rprint(f"[red]File not found:[/red] {path}")
        raise typer.Exit(code=1)
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        rprint(f"[red]Invalid JSON in {path}:[/red] {e}")
        raise typer.Exit(code=1)


def _fail(exc: EngineError) -> None:
    rprint(f"[red]✗ {exc}[/red]")
    if isinstance(exc, ValidationError):
        for field_name, message in sorted(exc.errors.items()):
            rprint(f"  [yellow]{field_name}[/yellow]: {message}")
    raise typer.Exit(code=1)


def _format_ms(timestamp: int) -> str:
    from datetime import datetime

    return datetime.fromtimestamp(timestamp / 1000).strftime("%Y-%m-%d %H:%M:%S") if timestamp else "-"


# ========================================
# SCORING
# ========================================


@app.command("score")
def score_command(
    file: Path = typer.Argument(..., help="JSON submission; full score input, or a judgment when --case is set"),
    case_id: str | None = typer.Option(None, "--case", help="Preset case id supplying the reference answer"),
) -> None:
    """
    Score a case submission and show the breakdown.

    With --case, the file holds {judgment, spent_budget, user_path, elapsed_seconds}
    and the case supplies budget, optimal path and reference answer.
    """
    from vstation.scoring import ScoreEngine, get_case

    data = _load_json(file)
    settings = get_settings()
    engine = ScoreEngine(default_time_limit=settings.default_time_limit_seconds)

    if case_id is not None:
        case = get_case(case_id)
        if case is None:
            _fail(NotFoundError("case", case_id))
        data = {
            "correct_answer": case.correct_answer,
            "total_budget": case.budget,
            "optimal_cost": case.optimal_cost,
            "optimal_path": list(case.optimal_path),
            "time_limit_seconds": case.time_limit_seconds,
            **data,
        }

    try:
        result = engine.score(data)
    except ValidationError as e:
        _fail(e)

    table = Table(title="Score Breakdown", show_header=True)
    table.add_column("Criterion", style="cyan")
    table.add_column("Weight", justify="right", style="dim")
    table.add_column("Score", justify="right", style="green")
    table.add_row("Accuracy", "40%", str(result.breakdown.accuracy))
    table.add_row("Budget", "30%", str(result.breakdown.budget))
    table.add_row("Path", "20%", str(result.breakdown.path))
    table.add_row("Time", "10%", str(result.breakdown.time))
    table.add_section()
    table.add_row("TOTAL", "", str(result.total), style="bold")
    console.print(table)

    verdict = "[green]correct[/green]" if result.is_correct else "[red]incorrect[/red]"
    rprint(f"\n  Grade: [bold]{result.grade.value}[/bold]   Verdict: {verdict}")
    if result.achievements:
        rprint(f"  Badges: {', '.join(result.achievements)}")
    if result.path_comparison and result.path_comparison.unnecessary_items:
        names = ", ".join(i.name for i in result.path_comparison.unnecessary_items)
        rprint(f"  [yellow]Unnecessary tests:[/yellow] {names} ({result.path_comparison.unnecessary_cost:.0f})")
    if result.feedback:
        body = result.feedback.message + "".join(f"\n  • {s}" for s in result.feedback.suggestions)
        console.print(Panel(body, title=result.feedback.title, border_style="cyan"))


# ========================================
# BEHAVIOR
# ========================================


@app.command("classify")
def classify_command(
    message: str = typer.Argument(..., help="Error message shown to the learner"),
    field_name: str | None = typer.Option(None, "--field", help="Form field name"),
    field_type: str | None = typer.Option(None, "--field-type", help="Declared field type"),
    value: str | None = typer.Option(None, "--value", help="Value the learner entered"),
    rule: str | None = typer.Option(None, "--rule", help="Validation rule that failed"),
) -> None:
    """Classify an error as concept, calculation, process or format."""
    from vstation.behavior import ErrorClassifier, ResourceRecommender
    from vstation.core.models import ErrorDescription

    fields: dict[str, Any] = {"message": message, "field": field_name, "field_type": field_type, "validation_rule": rule}
    if value is not None:
        fields["value"] = value

    classification = ErrorClassifier().classify(ErrorDescription(**fields))

    table = Table(title="Category Scores", show_header=True)
    table.add_column("Category", style="cyan")
    table.add_column("Score", justify="right")
    for category, score in sorted(classification.scores.items(), key=lambda kv: -kv[1]):
        style = "bold green" if category == classification.category else ""
        table.add_row(category.value, f"{score:g}", style=style)
    console.print(table)

    rprint(f"\n  Category: [bold]{classification.category.value}[/bold]")
    if classification.signals:
        rprint(f"  Signals: {', '.join(classification.signals)}")

    resources = ResourceRecommender().recommend(classification.category)
    if resources:
        rprint("\n  [cyan]Suggested resources:[/cyan]")
        for resource in resources:
            rprint(f"  • {resource.title} [dim]({resource.kind})[/dim]")


@app.command("heatmap")
def heatmap_command(
    file: Path = typer.Argument(..., help="JSON {step_errors: {...}, affected_students: {...}, total_students: N}"),
) -> None:
    """Show error heat per task step."""
    from vstation.behavior import build_heatmap

    data = _load_json(file)
    settings = get_settings()
    rows = build_heatmap(
        data.get("step_errors", {}),
        data.get("affected_students"),
        data.get("total_students", 0),
        heat_threshold=settings.high_frequency_heat_threshold,
        common_error_threshold=settings.common_error_threshold,
    )

    colors = {"critical": "red", "high": "yellow", "medium": "cyan", "low": "green", "minimal": "dim"}
    table = Table(title="Step Heatmap", show_header=True)
    table.add_column("Step", style="cyan")
    table.add_column("Errors", justify="right")
    table.add_column("Heat", justify="right")
    table.add_column("Level")
    table.add_column("High-frequency", justify="center")
    for row in rows:
        color = colors.get(row.heat_level.value, "")
        table.add_row(
            row.step_id,
            str(row.error_count),
            f"{row.heat_value:.2f}",
            f"[{color}]{row.heat_level.value}[/{color}]",
            "✓" if row.is_high_frequency else "-",
        )
    console.print(table)


# ========================================
# LEADERBOARD
# ========================================


@app.command("leaderboard")
def leaderboard_command(
    file: Path = typer.Argument(..., help="JSON list of leaderboard entries"),
    limit: int | None = typer.Option(None, "--limit", "-n", help="Show only the top N"),
    report: bool = typer.Option(False, "--report", help="Also print the competition report"),
) -> None:
    """Rank competition entries by score, then time."""
    import pydantic

    from vstation.core.models import LeaderboardEntry
    from vstation.ranking import generate_report, sort_leaderboard

    raw = _load_json(file)
    try:
        entries = [LeaderboardEntry.model_validate(item) for item in raw]
    except pydantic.ValidationError as exc:
        _fail(ValidationError.from_pydantic(exc, "Invalid leaderboard entry"))

    ranked = sort_leaderboard(entries)
    shown = ranked[:limit] if limit else ranked

    table = Table(title="Leaderboard", show_header=True)
    table.add_column("Rank", justify="right", style="bold")
    table.add_column("User", style="cyan")
    table.add_column("Score", justify="right", style="green")
    table.add_column("Time (s)", justify="right")
    for entry in shown:
        table.add_row(str(entry.rank), entry.user_name or entry.user_id, f"{entry.score:g}", f"{entry.time_spent_seconds:g}")
    console.print(table)

    if report and ranked:
        summary = generate_report(ranked[0].competition_id, ranked)
        rprint(
            f"\n  Participants: {summary.participant_count}   "
            f"Avg score: {summary.average_score:.1f}   Avg time: {summary.average_time:.0f}s"
        )
        for bucket, count in summary.score_distribution.items():
            rprint(f"  {bucket:>7} {'█' * count} {count}")


# ========================================
# CAREER
# ========================================

career_app = typer.Typer(help="Career level, XP and achievements")
app.add_typer(career_app, name="career")


@career_app.command("show")
def career_show(
    user_id: str = typer.Argument(..., help="Learner id"),
    db_path: Path | None = typer.Option(None, "--db", help="Local cache file"),
) -> None:
    """Show a learner's level, XP progress and achievements."""
    from vstation.career import AchievementEngine

    ctx = CLIContext(db_path)
    engine = AchievementEngine(store=ctx.local_cache)
    profile = engine.get_profile(user_id)

    rprint(f"\n[bold cyan]{user_id}[/bold cyan]  Level {profile.level} · {profile.title}")
    rprint(f"  XP: {profile.total_xp} total, {profile.current_xp} in level, {profile.xp_to_next_level} to next")
    rprint(f"  Tasks: {profile.completed_tasks}   Streak: {profile.streak_days} days\n")

    table = Table(title="Achievements", show_header=True)
    table.add_column("", justify="center")
    table.add_column("Achievement", style="cyan")
    table.add_column("Rarity")
    table.add_column("XP", justify="right")
    for status in engine.get_achievements(user_id):
        mark = "[green]✓[/green]" if status.unlocked else "[dim]·[/dim]"
        table.add_row(mark, status.definition.name, status.definition.rarity.value, str(status.definition.xp_reward))
    console.print(table)


# ========================================
# PROGRESS
# ========================================

progress_app = typer.Typer(help="Local progress cache and remote sync")
app.add_typer(progress_app, name="progress")


@progress_app.command("show")
def progress_show(
    user_id: str = typer.Argument(..., help="Learner id"),
    workstation_id: str = typer.Argument(..., help="Workstation id"),
    db_path: Path | None = typer.Option(None, "--db", help="Local cache file"),
) -> None:
    """Show the cached snapshot and its backups, newest first."""
    from vstation.sync import has_unfinished_progress

    ctx = CLIContext(db_path)
    snapshot = ctx.local_cache.load_snapshot(user_id, workstation_id)
    if snapshot is None:
        rprint(f"[yellow]No saved progress for {user_id}/{workstation_id}[/yellow]")
    else:
        pending = ctx.local_cache.is_pending_push(user_id, workstation_id)
        rprint(f"\n[bold cyan]{user_id}/{workstation_id}[/bold cyan]")
        rprint(f"  Progress: {snapshot.progress_percent:.0f}% ({snapshot.completed_tasks}/{snapshot.total_tasks} tasks)")
        rprint(f"  Last task: {snapshot.last_task_id or '-'}  stage: {snapshot.last_stage_id or '-'}")
        rprint(f"  Updated: {_format_ms(snapshot.updated_at)}  {'[yellow]pending push[/yellow]' if pending else '[green]synced[/green]'}")
        if has_unfinished_progress(snapshot):
            rprint("  [bold yellow]Unfinished task can be resumed[/bold yellow]")

    backups = ctx.local_cache.list_backups(user_id, workstation_id)
    if backups:
        table = Table(title="Backups", show_header=True)
        table.add_column("ID", justify="right", style="bold")
        table.add_column("Saved", style="cyan")
        table.add_column("Progress", justify="right")
        table.add_column("Last task")
        for backup in backups:
            table.add_row(
                str(backup.id),
                _format_ms(backup.created_at),
                f"{backup.snapshot.progress_percent:.0f}%",
                backup.snapshot.last_task_id or "-",
            )
        console.print(table)


@progress_app.command("resume")
def progress_resume(
    user_id: str = typer.Argument(..., help="Learner id"),
    workstation_id: str = typer.Argument(..., help="Workstation id"),
    db_path: Path | None = typer.Option(None, "--db", help="Local cache file"),
) -> None:
    """Reconcile local and remote progress and converge both copies."""
    from vstation.sync import HttpRemoteStore, RemoteApiConfig

    ctx = CLIContext(db_path)

    async def _resume():
        async with HttpRemoteStore(RemoteApiConfig.from_settings(ctx.settings)) as remote:
            coordinator = ctx.coordinator(remote)
            snapshot = await coordinator.restore_progress(user_id, workstation_id)
            await coordinator.sync_now()
            return snapshot, coordinator.get_status_line()

    snapshot, status_line = asyncio.run(_resume())
    if snapshot is None:
        rprint(f"[yellow]No progress found for {user_id}/{workstation_id}[/yellow]")
    else:
        rprint(f"[green]✓[/green] Resumed {user_id}/{workstation_id} at {snapshot.progress_percent:.0f}% ({_format_ms(snapshot.updated_at)})")
    rprint(f"  {status_line}")


@progress_app.command("restore-backup")
def progress_restore_backup(
    backup_id: int = typer.Argument(..., help="Backup id from 'progress show'"),
    db_path: Path | None = typer.Option(None, "--db", help="Local cache file"),
) -> None:
    """Make a backup the current snapshot; it is pushed on the next sync."""
    ctx = CLIContext(db_path)
    try:
        snapshot = ctx.coordinator().restore_from_backup(backup_id)
    except NotFoundError as e:
        _fail(e)
    rprint(f"[green]✓[/green] Restored backup {backup_id} for {snapshot.user_id}/{snapshot.workstation_id}")


# =============================================================================
# Entry Point
# =============================================================================


def main() -> None:
    """CLI entry point."""
    # Configure logging
    logger.remove()
    logger.add(
        sys.stderr,
        level=get_settings().log_level,
        format="<level>{message}</level>",
    )

    app()


if __name__ == "__main__":
    main()
