"""
dotacoach CLI - Command Line Interface for Dota 2 match coaching

Provides commands for:
- Analyzing a match for one player
- Grouping a match history into play sessions
- Tilt and time-of-day reports
- Long-term improvement tracking
- Per-hero coaching and rankings
- Inspecting and seeding hero benchmarks
"""

import json
import logging
import time
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from dotacoach import __version__
from dotacoach.analysis.benchmarks import ROLE_TEMPLATES, HeroBenchmarkStore
from dotacoach.analysis.hero_coaching import HeroCoach
from dotacoach.analysis.highlights import match_page_link, replay_deep_link
from dotacoach.analysis.improvement import improvement_metrics, weekly_focus_area
from dotacoach.analysis.sessions import SessionMatch, SessionTiltAnalyzer
from dotacoach.analysis.timeline import format_clock
from dotacoach.core.config import (
    configure_logging,
    generate_default_config,
    get_config,
    load_config,
    set_config,
)
from dotacoach.core.errors import DotaCoachError
from dotacoach.core.parser import load_history, load_match
from dotacoach.infra.database import DatabaseManager, SqlBenchmarkBackend
from dotacoach.pipeline.orchestrator import AnalysisOrchestrator, AnalysisResult

app = typer.Typer(
    name="dotacoach",
    help="Dota 2 match coaching - insights, key moments, item reviews and tilt tracking",
    add_completion=False,
)
console = Console()

logger = logging.getLogger(__name__)

SEVERITY_STYLES = {
    "critical": "bold red",
    "high": "red",
    "medium": "yellow",
    "low": "dim",
}


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:
        console.print(f"[bold blue]dotacoach[/bold blue] v{__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    version: bool = typer.Option(
        None,
        "--version",
        "-v",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-V", help="Enable verbose output"),
    config_file: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to a YAML/JSON/TOML config file",
        exists=True,
        dir_okay=False,
        resolve_path=True,
    ),
) -> None:
    """dotacoach - Dota 2 Match Coaching"""
    try:
        config = load_config(config_file)
    except DotaCoachError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)
    set_config(config)
    configure_logging(config.logging)
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)


def _open_db(db_path: Optional[Path]) -> DatabaseManager:
    config = get_config()
    return DatabaseManager(db_path or config.storage.db_path, echo=config.storage.echo_sql)


def _history(history_file: Optional[Path], db_path: Optional[Path], user: Optional[str]) -> list[SessionMatch]:
    if history_file is not None:
        return load_history(history_file)
    return _open_db(db_path).get_match_history(user)


def _print_result(result: AnalysisResult) -> None:
    outcome = "[green]Won[/green]" if result.won else "[red]Lost[/red]"
    player = result.player
    header = (
        f"[bold]{result.hero_name}[/bold] ({result.role.value}) - {outcome}\n"
        f"K/D/A {player.get('kills', 0)}/{player.get('deaths', 0)}/{player.get('assists', 0)}"
        f"  GPM {player.get('gold_per_min', 0):.0f}  XPM {player.get('xp_per_min', 0):.0f}"
    )
    header += f"\n[dim]{match_page_link(result.match_id)}[/dim]"
    if result.cached:
        header += "\n[dim]Loaded from cache[/dim]"
    console.print(Panel(header, title=f"Match {result.match_id}", border_style="blue"))

    if result.insights:
        table = Table(title="Insights")
        table.add_column("Severity")
        table.add_column("Category", style="cyan")
        table.add_column("Title")
        table.add_column("Recommendation")
        for insight in result.insights:
            severity = insight.severity.value
            style = SEVERITY_STYLES.get(severity, "")
            table.add_row(
                f"[{style}]{severity}[/{style}]",
                insight.category.value,
                insight.title,
                insight.recommendation,
            )
        console.print(table)
    else:
        console.print("[green]No issues found.[/green]")

    if result.key_moments is not None and result.key_moments.top_moments:
        table = Table(title="Key Moments")
        table.add_column("Time", justify="right")
        table.add_column("Type", style="cyan")
        table.add_column("Moment")
        table.add_column("Importance")
        for moment in result.key_moments.top_moments:
            table.add_row(
                format_clock(moment.timestamp),
                moment.type.value,
                moment.title,
                moment.importance.value,
            )
        console.print(table)
        console.print(f"[dim]Replay: {replay_deep_link(result.match_id)}[/dim]")

    if result.item_build is not None:
        build = result.item_build
        lines = [f"Score: [bold]{build.score}[/bold]/100", "Items: " + (", ".join(build.items) or "none")]
        lines += [f"[green]+[/green] {p}" for p in build.positives]
        lines += [f"[red]-[/red] {k}" for k in build.key_issues]
        console.print(Panel("\n".join(lines), title="Item Build", border_style="magenta"))

    if result.skipped_components:
        console.print(f"[yellow]Skipped components:[/yellow] {', '.join(result.skipped_components)}")
    if result.missing_telemetry:
        console.print(f"[dim]Missing telemetry: {', '.join(result.missing_telemetry)}[/dim]")


@app.command()
def analyze(
    match_file: Path = typer.Argument(
        ...,
        help="Path to a match JSON payload (OpenDota format)",
        exists=True,
        dir_okay=False,
        resolve_path=True,
    ),
    slot: Optional[int] = typer.Option(None, "--slot", "-s", help="Player slot (0-4 radiant, 128-132 dire)"),
    account_id: Optional[int] = typer.Option(None, "--account-id", "-a", help="Player account id"),
    user: Optional[str] = typer.Option(None, "--user", "-u", help="Owner recorded with the stored result"),
    no_cache: bool = typer.Option(False, "--no-cache", help="Ignore any cached analysis"),
    db_path: Optional[Path] = typer.Option(None, "--db", help="Path to the analysis database"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write the result as JSON"),
) -> None:
    """
    Analyze one player in a match.

    Produces rule-based insights, timeline findings, an item build review
    and the ranked key moments. Results are cached per (match, slot).
    """
    if slot is None and account_id is None:
        console.print("[red]Error:[/red] pass --slot or --account-id")
        raise typer.Exit(1)

    try:
        match = load_match(match_file)
        db = _open_db(db_path)
        orchestrator = AnalysisOrchestrator(
            benchmarks=HeroBenchmarkStore(SqlBenchmarkBackend(db)),
            result_store=db,
            config=get_config(),
            history=db,
        )
        result = orchestrator.analyze_match(match, slot, account_id, force=no_cache, user_id=user)
    except (DotaCoachError, ValueError, KeyError) as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    _print_result(result)

    if output:
        output.write_text(json.dumps(result.to_dict(), indent=2))
        console.print(f"\n[green]Result written to:[/green] {output}")


@app.command()
def sessions(
    history_file: Optional[Path] = typer.Argument(
        None,
        help="JSON list of analyzed matches; defaults to the database history",
        exists=True,
        dir_okay=False,
        resolve_path=True,
    ),
    days: Optional[int] = typer.Option(None, "--days", "-d", help="Lookback window in days"),
    user: Optional[str] = typer.Option(None, "--user", "-u", help="User whose history to read"),
    db_path: Optional[Path] = typer.Option(None, "--db", help="Path to the analysis database"),
) -> None:
    """Group recent matches into play sessions."""
    matches = _history(history_file, db_path, user)
    analyzer = SessionTiltAnalyzer(get_config().sessions)
    play_sessions = analyzer.get_play_sessions(matches, days_back=days)

    if not play_sessions:
        console.print("[yellow]No matches in the lookback window.[/yellow]")
        return

    table = Table(title="Play Sessions")
    table.add_column("Session")
    table.add_column("Started")
    table.add_column("Matches", justify="right")
    table.add_column("W-L", justify="right")
    table.add_column("Win %", justify="right")
    table.add_column("KDA", justify="right")
    table.add_column("GPM", justify="right")
    table.add_column("Trend")
    for s in play_sessions:
        started = analyzer.local_time(s.start_time).strftime("%m-%d %H:%M")
        table.add_row(
            s.session_id,
            started,
            str(s.stats.total_matches),
            f"{s.stats.wins}-{s.stats.losses}",
            f"{s.stats.win_rate:.0f}",
            f"{s.stats.avg_kda:.2f}",
            f"{s.stats.avg_gpm:.0f}",
            s.stats.trend.value,
        )
    console.print(table)


@app.command()
def tilt(
    history_file: Optional[Path] = typer.Argument(
        None,
        help="JSON list of analyzed matches; defaults to the database history",
        exists=True,
        dir_okay=False,
        resolve_path=True,
    ),
    user: Optional[str] = typer.Option(None, "--user", "-u", help="User whose history to read"),
    db_path: Optional[Path] = typer.Option(None, "--db", help="Path to the analysis database"),
) -> None:
    """Show current tilt risk, active warnings and time-of-day patterns."""
    matches = _history(history_file, db_path, user)
    analyzer = SessionTiltAnalyzer(get_config().sessions)
    report = analyzer.get_tilt_report(matches)

    risk_style = {"low": "green", "medium": "yellow", "high": "bold red"}[report.current_tilt_risk.value]
    patterns = report.patterns
    console.print(
        Panel(
            f"Tilt risk: [{risk_style}]{report.current_tilt_risk.value.upper()}[/{risk_style}]\n"
            f"Current losing streak: {report.recent_losing_streak}\n"
            f"Win rate after a loss: {patterns['performance_after_loss']:.0f}%\n"
            f"Late-night win rate: {patterns['late_night_win_rate']:.0f}%\n"
            f"Long-session win rate: {patterns['long_session_win_rate']:.0f}%",
            title="Tilt Report",
            border_style=risk_style,
        )
    )
    for warning in report.active_warnings:
        style = "bold red" if warning.severity.value == "danger" else "yellow"
        console.print(f"[{style}]{warning.severity.value.upper()}[/{style}] {warning.message}")

    time_stats = analyzer.time_of_day_stats(matches)
    day_stats = analyzer.day_of_week_stats(matches)

    table = Table(title="When You Play")
    table.add_column("Bucket")
    table.add_column("Games", justify="right")
    table.add_column("Win %", justify="right")
    for name, bucket in list(time_stats.periods.items()) + list(day_stats.days.items()):
        table.add_row(name, str(bucket.games), f"{bucket.win_rate:.0f}")
    console.print(table)
    console.print(f"Best time to play: [bold]{time_stats.best_time_to_play}[/bold]")
    console.print(f"Best day: [bold]{day_stats.best_day}[/bold]  Worst day: [bold]{day_stats.worst_day}[/bold]")


@app.command()
def progress(
    days: int = typer.Option(30, "--days", "-d", help="Length of each comparison window"),
    user: Optional[str] = typer.Option(None, "--user", "-u", help="User whose history to read"),
    db_path: Optional[Path] = typer.Option(None, "--db", help="Path to the analysis database"),
) -> None:
    """Compare the recent window against the one before it and suggest a focus area."""
    db = _open_db(db_path)
    matches = db.get_match_history(user)
    insights = db.get_insights_by_match(user)
    now = time.time()
    metrics = improvement_metrics(matches, days_back=days, now=now, insights_by_match=insights)
    focus = weekly_focus_area(matches, insights, now=now)

    current = metrics.current
    lines = [
        f"Last {days} days: {current.total_matches} matches, {current.win_rate:.0f}% win rate",
        f"Avg KDA {current.avg_kda:.2f}  Avg GPM {current.avg_gpm:.0f}",
    ]
    if metrics.previous is not None:
        lines += [
            f"Win rate change: {metrics.win_rate_change:+.1f} pts",
            f"KDA change: {metrics.kda_change:+.1f}%  GPM change: {metrics.gpm_change:+.1f}%",
            f"Mistake reduction: {metrics.mistake_reduction:+.1f}%",
        ]
    lines.append(f"Trend: [bold]{metrics.trend.value}[/bold]")
    console.print(Panel("\n".join(lines), title="Improvement", border_style="blue"))

    if metrics.habits:
        table = Table(title="Recurring Mistakes")
        table.add_column("Category", style="cyan")
        table.add_column("Occurrences", justify="right")
        table.add_column("Matches", justify="right")
        for habit in metrics.habits:
            table.add_row(habit.category, str(habit.occurrences), str(habit.matches))
        console.print(table)

    console.print(
        Panel(
            f"{focus.description}\nGoal: {focus.goal}\n[dim]{focus.current_status}[/dim]",
            title=f"Weekly Focus: {focus.category}",
            border_style="green",
        )
    )


@app.command()
def heroes(
    history_file: Optional[Path] = typer.Argument(
        None,
        help="JSON list of analyzed matches; defaults to the database history",
        exists=True,
        dir_okay=False,
        resolve_path=True,
    ),
    hero_id: Optional[int] = typer.Option(None, "--hero", help="Compare one hero against its benchmark"),
    user: Optional[str] = typer.Option(None, "--user", "-u", help="User whose history to read"),
    db_path: Optional[Path] = typer.Option(None, "--db", help="Path to the analysis database"),
) -> None:
    """List per-hero performance and rankings, or compare one hero to its benchmark."""
    matches = _history(history_file, db_path, user)
    coach = HeroCoach(HeroBenchmarkStore(SqlBenchmarkBackend(_open_db(db_path))))

    if hero_id is not None:
        comparison = coach.get_hero_comparison(matches, hero_id)
        if comparison is None:
            console.print(f"[yellow]No analyzed matches on hero {hero_id}.[/yellow]")
            raise typer.Exit(1)

        table = Table(title=f"{comparison.hero_name} ({comparison.games_played} games)")
        table.add_column("Stat", style="cyan")
        table.add_column("You", justify="right")
        table.add_column("Benchmark", justify="right")
        for key, value in comparison.player_stats.items():
            table.add_row(key, f"{value:.1f}", f"{comparison.benchmarks[f'avg_{key}']:.1f}")
        console.print(table)

        lines = [f"Rating: [bold]{comparison.percentile_rating.value}[/bold]"]
        lines += [f"{key}: {diff:+.1f}%" for key, diff in comparison.comparison.items()]
        lines += [f"[green]+[/green] {s}" for s in comparison.strengths]
        lines += [f"[red]-[/red] {w}" for w in comparison.weaknesses]
        console.print(Panel("\n".join(lines), title="Against Benchmark", border_style="blue"))
        return

    performances = coach.get_all_heroes(matches)
    if not performances:
        console.print("[yellow]No analyzed matches.[/yellow]")
        return

    table = Table(title="Heroes")
    table.add_column("Hero")
    table.add_column("Games", justify="right")
    table.add_column("Win %", justify="right")
    table.add_column("Recent %", justify="right")
    table.add_column("KDA", justify="right")
    table.add_column("GPM", justify="right")
    table.add_column("Core/Support", justify="right")
    for hero in performances:
        table.add_row(
            hero.hero_name,
            str(hero.games_played),
            f"{hero.win_rate:.0f}",
            f"{hero.recent_win_rate:.0f}",
            f"{hero.avg_kda:.2f}",
            f"{hero.avg_gpm:.0f}",
            f"{hero.core_games}/{hero.support_games}",
        )
    console.print(table)

    ranking = coach.get_rankings(matches)
    for title, ranked, style in (
        ("Best Heroes", ranking.best_heroes, "green"),
        ("Needs Work", ranking.needs_work_heroes, "red"),
    ):
        if ranked:
            lines = [f"[bold]{h.hero_name}[/bold] - {h.reason}" for h in ranked]
            console.print(Panel("\n".join(lines), title=title, border_style=style))


@app.command()
def stats(
    db_path: Optional[Path] = typer.Option(None, "--db", help="Path to the analysis database"),
) -> None:
    """Show how many matches and heroes the database holds."""
    totals = _open_db(db_path).get_global_stats()
    console.print(
        Panel(
            f"Analyzed matches: {totals['analyzed_matches']}\nHeroes benchmarked: {totals['heroes_benchmarked']}",
            title="Database",
            border_style="blue",
        )
    )


@app.command()
def benchmark(
    hero_id: Optional[int] = typer.Argument(None, help="Hero id; omit to list every benchmarked hero"),
    db_path: Optional[Path] = typer.Option(None, "--db", help="Path to the analysis database"),
) -> None:
    """Show the running benchmark for a hero, or list all benchmarked heroes."""
    store = HeroBenchmarkStore(SqlBenchmarkBackend(_open_db(db_path)))
    if hero_id is None:
        benches = store.all_benchmarks()
        if not benches:
            console.print("[yellow]No hero benchmarks recorded.[/yellow]")
            return
        table = Table(title="Hero Benchmarks")
        table.add_column("Hero ID", justify="right")
        table.add_column("Hero")
        table.add_column("Matches", justify="right")
        table.add_column("Avg GPM", justify="right")
        table.add_column("Avg XPM", justify="right")
        for bench in benches:
            table.add_row(
                str(bench.hero_id),
                bench.hero_name or f"Hero {bench.hero_id}",
                str(bench.total_matches),
                f"{bench.avg_gpm:.0f}",
                f"{bench.avg_xpm:.0f}",
            )
        console.print(table)
        return

    try:
        bench = store.require_benchmark(hero_id)
    except DotaCoachError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    table = Table(title=f"{bench.hero_name or f'Hero {hero_id}'} ({bench.total_matches} matches)")
    table.add_column("Stat", style="cyan")
    table.add_column("Average", justify="right")
    for key, value in bench.to_dict().items():
        if key.startswith(("avg_", "p50_", "p75_")) and value is not None:
            table.add_row(key, f"{value:.2f}")
    console.print(table)


@app.command()
def seed(
    hero_id: int = typer.Argument(..., help="Hero id"),
    role: str = typer.Option(..., "--role", "-r", help=f"Template: {', '.join(ROLE_TEMPLATES)}"),
    name: str = typer.Option("", "--name", "-n", help="Hero display name"),
    db_path: Optional[Path] = typer.Option(None, "--db", help="Path to the analysis database"),
) -> None:
    """Seed a hero benchmark from a role template."""
    store = HeroBenchmarkStore(SqlBenchmarkBackend(_open_db(db_path)))
    try:
        seeded = store.seed_from_template(hero_id, name, role)
    except ValueError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    if seeded is None:
        console.print(f"[yellow]Hero {hero_id} already has benchmark data.[/yellow]")
    else:
        console.print(f"[green]Seeded hero {hero_id} from the '{role}' template.[/green]")


@app.command("init-config")
def init_config(
    path: Path = typer.Argument(Path("dotacoach.yaml"), help="Where to write the config file"),
    force: bool = typer.Option(False, "--force", "-f", help="Overwrite an existing file"),
) -> None:
    """Write a default configuration file."""
    if path.exists() and not force:
        console.print(f"[red]Error:[/red] {path} already exists (use --force)")
        raise typer.Exit(1)
    try:
        generate_default_config(path)
    except DotaCoachError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)
    console.print(f"[green]Config written to:[/green] {path}")


if __name__ == "__main__":
    app()
