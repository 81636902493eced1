"""
Command-line interface for the training analytics engine.

Provides commands for:
- Full analytics snapshots (load, fitness-fatigue, personal fatigue model)
- Muscle-group recovery
- Stimulus-to-fatigue leaderboards
- Next-set fatigue prediction

Session files are JSON arrays of raw records: offline-cache exports for
--local and remote store rows for --remote.
"""

import json
from datetime import datetime
from pathlib import Path
from typing import List, Optional

import typer
from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from training_analytics.config import AnalyticsContext, EngineConfig, configure_logging
from training_analytics.database import init_database
from training_analytics.engine import AnalyticsEngine, load_sessions
from training_analytics.hierarchical import predict_fatigue_next_set
from training_analytics.recovery import overall_readiness
from training_analytics.schemas import (
    AnalyticsSnapshot,
    AnalyticsView,
    FitnessFatigueState,
    InsightType,
    LoadMetrics,
    LoadStatus,
    RecoveryProfile,
    RecoveryStatus,
    SFRInsight,
    SFRInterpretation,
    WorkoutSession,
)

# Initialize Typer app and Rich console
app = typer.Typer(
    help="Training Analytics - load, fatigue and recovery insights from workout history"
)
console = Console()

STATUS_COLORS = {
    LoadStatus.LOW: "yellow",
    LoadStatus.MAINTENANCE: "cyan",
    LoadStatus.OPTIMAL: "green",
    LoadStatus.BUILDING: "yellow",
    LoadStatus.OVERREACHING: "orange3",
    LoadStatus.DANGER: "red",
}

RECOVERY_COLORS = {
    RecoveryStatus.FRESH: "green",
    RecoveryStatus.RECOVERING: "yellow",
    RecoveryStatus.FATIGUED: "red",
}

SFR_COLORS = {
    SFRInterpretation.EXCELLENT: "green",
    SFRInterpretation.GOOD: "cyan",
    SFRInterpretation.MODERATE: "yellow",
    SFRInterpretation.POOR: "orange3",
    SFRInterpretation.EXCESSIVE: "red",
}

INSIGHT_ICONS = {
    InsightType.GOOD: "[green]✓[/green]",
    InsightType.WARNING: "[yellow]![/yellow]",
    InsightType.DANGER: "[red]✗[/red]",
    InsightType.INFO: "[cyan]i[/cyan]",
}


# ===== LOADING HELPERS =====


def _read_records(path: Optional[Path]) -> list:
    if path is None:
        return []
    with open(path, "r") as f:
        data = json.load(f)
    if not isinstance(data, list):
        raise ValueError(f"{path} must contain a JSON array of session records")
    return data


def _load_history(
    local: Optional[Path],
    remote: Optional[Path],
    config: EngineConfig,
    quiet: bool = False,
) -> List[WorkoutSession]:
    """Read session files, exiting with code 1 on unusable input."""
    if local is None and remote is None:
        console.print("[red]✗ Provide at least one of --local or --remote[/red]")
        raise typer.Exit(1)
    try:
        local_records = _read_records(local)
        remote_records = _read_records(remote)
    except Exception as e:
        console.print(f"[red]✗ Failed to load sessions: {e}[/red]")
        raise typer.Exit(1)

    sessions = load_sessions(lambda: local_records, lambda: remote_records, config)
    if not quiet:
        console.print(f"✓ Loaded [green]{len(sessions)}[/green] valid sessions")
    return sessions


def _build_engine(
    user_id: Optional[str], database: Optional[str], as_of: Optional[datetime]
) -> AnalyticsEngine:
    cache = None
    if database:
        try:
            cache = init_database(database)
        except Exception as e:
            console.print(f"[yellow]Model cache unavailable ({e}); fitting without cache[/yellow]")
    context = AnalyticsContext(
        user_id=user_id,
        model_cache=cache,
        **({"as_of": as_of} if as_of is not None else {}),
    )
    return AnalyticsEngine(context)


# ===== DISPLAY HELPER FUNCTIONS =====


def _display_load_metrics(metrics: LoadMetrics):
    """
    Display ACWR, monotony and strain with the status recommendation.

    Args:
        metrics: LoadMetrics from the aggregator
    """
    color = STATUS_COLORS[metrics.status]
    console.print(f"\n[bold]Workload Ratio (ACWR): [{color}]{metrics.ratio:.2f}[/{color}] "
                  f"({metrics.status.value})[/bold]")
    if not metrics.has_chronic_baseline:
        console.print("  [dim]No chronic baseline yet; ratio shown as neutral[/dim]")

    table = Table(box=box.ROUNDED, show_header=False)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right", style="yellow")
    table.add_row("Acute load (7d)", f"{metrics.acute_load:,.0f}")
    table.add_row("Chronic load (weekly avg)", f"{metrics.chronic_load:,.0f}")
    table.add_row("Monotony", f"{metrics.monotony:.2f}")
    table.add_row("Strain", f"{metrics.strain:,.0f}")
    console.print(table)
    console.print(f"  {metrics.recommendation}")


def _display_fitness_fatigue(state: FitnessFatigueState):
    console.print(f"\n[bold]Readiness: {state.readiness.value}[/bold] "
                  f"(performance {state.net_performance:.1f}/100)")
    console.print(f"  Fitness: {state.current_fitness:.1f}  Fatigue: {state.current_fatigue:.1f}  "
                  f"Sessions modeled: {state.sessions_modeled}")


def _display_recovery(profiles: List[RecoveryProfile]):
    """
    Display recovery table, least recovered muscle group first.

    Args:
        profiles: RecoveryProfile list from the estimator
    """
    table = Table(title="Muscle Group Recovery", box=box.ROUNDED)
    table.add_column("Muscle Group", style="cyan")
    table.add_column("Readiness", justify="right")
    table.add_column("Status", justify="center")
    table.add_column("Days Since", justify="right")

    for profile in profiles:
        color = RECOVERY_COLORS[profile.status]
        days = "never" if profile.last_trained_at is None else str(profile.days_since_last_trained)
        table.add_row(
            profile.muscle_group.title(),
            f"{profile.readiness_score:.1f}/10",
            f"[{color}]{profile.status.value}[/{color}]",
            days,
        )

    console.print(table)
    console.print(f"Overall readiness: [bold]{overall_readiness(profiles):.1f}/10[/bold]")


def _display_sfr(insights: List[SFRInsight]):
    table = Table(title="Stimulus-to-Fatigue Leaderboard", box=box.ROUNDED)
    table.add_column("#", justify="right")
    table.add_column("Exercise", style="cyan")
    table.add_column("Avg SFR", justify="right")
    table.add_column("Best", justify="right")
    table.add_column("Worst", justify="right")
    table.add_column("Sessions", justify="right")
    table.add_column("Rating", justify="center")

    for i, insight in enumerate(insights, 1):
        color = SFR_COLORS[insight.interpretation]
        table.add_row(
            str(i),
            insight.exercise_name,
            f"{insight.avg_sfr:.0f}",
            f"{insight.best_sfr:.0f}",
            f"{insight.worst_sfr:.0f}",
            str(insight.times_performed),
            f"[{color}]{insight.interpretation.value}[/{color}]",
        )
    console.print(table)


def _display_snapshot(snapshot: AnalyticsSnapshot):
    if snapshot.acwr:
        _display_load_metrics(snapshot.acwr)
    if snapshot.fitness_fatigue:
        _display_fitness_fatigue(snapshot.fitness_fatigue)

    if snapshot.personal_stats:
        stats = snapshot.personal_stats
        console.print("\n[bold]Personal Fatigue Profile:[/bold]")
        console.print(f"  Fatigue resistance: {stats.fatigue_resistance:.0f}/100")
        console.print(f"  Recovery rate: {stats.recovery_rate:.2f}x")
        console.print(f"  Workouts: {stats.total_workouts}  Sets: {stats.total_sets}")

    if snapshot.acwr is None and snapshot.fitness_fatigue is None:
        console.print("\n[yellow]Log at least 3 workouts with working sets to unlock load analytics.[/yellow]")

    if snapshot.insights:
        body = "\n".join(
            f"{INSIGHT_ICONS[i.type]} {i.message}" + (f" [dim]{i.action}[/dim]" if i.action else "")
            for i in snapshot.insights
        )
        console.print(Panel(body, title="Insights", border_style="cyan", padding=(1, 2)))


# ===== COMMANDS =====


LocalOption = typer.Option(None, "--local", "-l", help="Offline-cache session export (JSON)", exists=True)
RemoteOption = typer.Option(None, "--remote", "-r", help="Remote store session rows (JSON)", exists=True)
UserOption = typer.Option(None, "--user-id", "-u", help="User id used as the model cache key")
DatabaseOption = typer.Option(None, "--database", help="SQLAlchemy URL for the model cache")
AsOfOption = typer.Option(None, "--as-of", help="Reference time (ISO 8601); defaults to now")
LogLevelOption = typer.Option(None, "--log-level", help="Log level (defaults to $TRAINING_ANALYTICS_LOG_LEVEL)")


@app.command()
def analyze(
    local: Optional[Path] = LocalOption,
    remote: Optional[Path] = RemoteOption,
    user_id: Optional[str] = UserOption,
    database: Optional[str] = DatabaseOption,
    as_of: Optional[datetime] = AsOfOption,
    as_json: bool = typer.Option(False, "--json", help="Print the snapshot as JSON"),
    log_level: Optional[str] = LogLevelOption,
):
    """
    Full analytics snapshot: load, fitness-fatigue, fatigue model and insights.
    """
    configure_logging(log_level)
    engine = _build_engine(user_id, database, as_of)
    sessions = _load_history(local, remote, engine.config, quiet=as_json)
    snapshot = engine.snapshot(sessions)

    if as_json:
        typer.echo(snapshot.model_dump_json(indent=2))
        return
    _display_snapshot(snapshot)


@app.command()
def recovery(
    local: Optional[Path] = LocalOption,
    remote: Optional[Path] = RemoteOption,
    user_id: Optional[str] = UserOption,
    database: Optional[str] = DatabaseOption,
    as_of: Optional[datetime] = AsOfOption,
    log_level: Optional[str] = LogLevelOption,
):
    """
    Per-muscle-group recovery, adjusted by the personal recovery rate.
    """
    configure_logging(log_level)
    engine = _build_engine(user_id, database, as_of)
    sessions = _load_history(local, remote, engine.config)
    snapshot = engine.snapshot(sessions, views=[AnalyticsView.HIERARCHICAL, AnalyticsView.RECOVERY])
    if snapshot.recovery_profiles is None:
        console.print("[red]✗ Recovery could not be computed[/red]")
        raise typer.Exit(1)
    _display_recovery(snapshot.recovery_profiles)


@app.command()
def efficiency(
    local: Optional[Path] = LocalOption,
    remote: Optional[Path] = RemoteOption,
    user_id: Optional[str] = UserOption,
    database: Optional[str] = DatabaseOption,
    limit: int = typer.Option(20, "--limit", "-n", min=1, help="Leaderboard size"),
    log_level: Optional[str] = LogLevelOption,
):
    """
    Rank exercises by stimulus-to-fatigue ratio.
    """
    configure_logging(log_level)
    engine = _build_engine(user_id, database, None)
    engine.context.config = engine.config.model_copy(update={"sfr_leaderboard_size": limit})
    sessions = _load_history(local, remote, engine.config)
    snapshot = engine.snapshot(sessions, views=[AnalyticsView.HIERARCHICAL, AnalyticsView.EFFICIENCY])
    if not snapshot.sfr_insights:
        console.print("[yellow]No working sets to rank yet.[/yellow]")
        return
    _display_sfr(snapshot.sfr_insights)


@app.command()
def predict(
    exercise: str = typer.Option(..., "--exercise", "-e", help="Exercise id"),
    sets_done: int = typer.Option(0, "--sets-done", "-s", min=0, help="Sets already completed today"),
    local: Optional[Path] = LocalOption,
    remote: Optional[Path] = RemoteOption,
    user_id: Optional[str] = UserOption,
    database: Optional[str] = DatabaseOption,
    log_level: Optional[str] = LogLevelOption,
):
    """
    Predict fatigue after the next set of an exercise.
    """
    configure_logging(log_level)
    engine = _build_engine(user_id, database, None)
    sessions = _load_history(local, remote, engine.config)
    model = engine.fatigue_model(sessions)
    if model is None:
        console.print("[red]✗ Not enough sessions to fit a fatigue model (need 3)[/red]")
        raise typer.Exit(1)

    prediction = predict_fatigue_next_set(model, exercise, sets_done, engine.config)
    console.print(f"\n[bold]Expected fatigue: {prediction.expected_fatigue:.0f}%[/bold] "
                  f"(95% interval {prediction.lower:.0f}-{prediction.upper:.0f}%)")
    console.print(f"  Confidence: {prediction.confidence:.2f}")
    console.print(f"  {prediction.recommendation}")


if __name__ == "__main__":
    app()
