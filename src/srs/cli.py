"""
SRS: terminal front-end for the review engine.

A Rich terminal interface over the scheduling engine. Items, settings
and daily counters are kept in the configured key-value store.

Commands:
- srs import    - Load items from a JSON file
- srs due       - Show what a session would contain today
- srs study     - Start a study session
- srs stats     - Show deck statistics, quotas and streak
- srs preview   - Show the interval each grade would give an item
- srs settings  - Show or change study settings
"""
from __future__ import annotations

import math
import sys
from pathlib import Path
from typing import Optional

import typer
from loguru import logger
from rich.console import Console
from rich.panel import Panel
from rich.prompt import Confirm, Prompt
from rich.table import Table

from config import get_settings

from .dates import today
from .deck import ALL_SCOPE, Item, ItemDeck
from .quota import QuotaTracker
from .scheduler import Grade, SM2Config, SM2Scheduler, srs_stage
from .session import ReviewSession, SessionMode, SessionStartError
from .settings import ConfigurationError, SRSSettings
from .store import KeyValueStore, open_store
from .streak import StreakTracker
from .telemetry import SessionStats, deck_stats, next_due_info

# =============================================================================
# CLI Setup
# =============================================================================

app = typer.Typer(
    name="srs",
    help="Spaced repetition review queue",
    no_args_is_help=True,
)
settings_app = typer.Typer(
    name="settings",
    help="Show or change study settings",
    no_args_is_help=True,
)
app.add_typer(settings_app, name="settings")

console = Console()

GRADE_STYLES = {
    Grade.AGAIN: "bold red",
    Grade.HARD: "yellow",
    Grade.GOOD: "green",
    Grade.EASY: "bold cyan",
}


def _open_store() -> KeyValueStore:
    return open_store(get_settings())


def _load_settings(store: KeyValueStore) -> SRSSettings:
    try:
        return SRSSettings.load(store)
    except ConfigurationError as e:
        console.print(f"[red]Error:[/red] {e}")
        console.print("Fix it with [bold]srs settings set[/bold].")
        raise typer.Exit(2)


def _parse_limit(value: Optional[str]) -> int | str | None:
    if value is None:
        return None
    if value.isdigit():
        return int(value)
    return value


# =============================================================================
# Display Helpers
# =============================================================================


def display_item_front(item: Item, position: int, total: int, practice: bool) -> None:
    header = f"Card {position}/{total}"
    if practice:
        header += "  |  [yellow]Practice - progress not saved[/yellow]"

    console.print(Panel(
        item.front or item.id,
        title=header,
        title_align="left",
        border_style="cyan",
        padding=(1, 2),
    ))


def display_item_back(item: Item) -> None:
    console.print(Panel(item.back or "[dim](no answer text)[/dim]", border_style="blue", padding=(1, 2)))


def _ask_grade(scheduler: SM2Scheduler, item: Item) -> Grade:
    preview = scheduler.interval_preview(item)
    options = "  ".join(
        f"[{GRADE_STYLES[g]}]{i}={g.value} ({preview[g]})[/{GRADE_STYLES[g]}]"
        for i, g in enumerate(Grade, 1)
    )
    console.print(options)
    answer = Prompt.ask("Grade", choices=["1", "2", "3", "4"])
    return Grade.parse(answer)


def _display_session_summary(stats: SessionStats) -> None:
    grades = "  ".join(
        f"[{GRADE_STYLES[g]}]{g.value}: {count}[/{GRADE_STYLES[g]}]"
        for g, count in stats.grade_counts.items()
    )
    title = "Practice Complete!" if stats.mode == SessionMode.PRACTICE.value else "Session Complete!"

    console.print("\n")
    console.print(Panel(
        f"[bold]{title}[/bold]\n\n"
        f"Duration: {stats.duration_minutes:.1f} minutes\n"
        f"Items completed: {stats.completed_count}\n"
        f"Grades given: {stats.total_graded}\n"
        f"{grades}\n\n"
        f"Due tomorrow: {stats.forecast.due_tomorrow}\n"
        f"Due this week: {stats.forecast.due_within_week}",
        title="Summary",
        border_style="green",
    ))


def _run_session(session: ReviewSession) -> None:
    """Drive an active session until it completes."""
    practice = session.mode is SessionMode.PRACTICE
    while True:
        item = session.current()
        if item is None:
            break

        position, total = session.progress
        console.print()
        display_item_front(item, position, total, practice)
        Prompt.ask("[dim]Press Enter to reveal[/dim]", default="", show_default=False)
        display_item_back(item)

        outcome = session.grade(_ask_grade(session.scheduler, item))
        if outcome.requeued:
            console.print("[red]Again[/red] - this card will come back later in the session.")


# =============================================================================
# Commands
# =============================================================================


@app.command("import")
def import_items(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="JSON file with items"),
    replace: bool = typer.Option(False, "--replace", help="Replace the stored items instead of merging"),
) -> None:
    """Load items from a JSON file into the store."""
    store = _open_store()
    try:
        incoming = ItemDeck.load_json(path)
    except (OSError, ValueError) as e:
        console.print(f"[red]Could not read {path}:[/red] {e}")
        raise typer.Exit(1)

    deck = ItemDeck() if replace else ItemDeck.load(store)
    for item in incoming:
        deck.apply_update(item)
    deck.save(store)

    console.print(f"[green]Imported {len(incoming)} items ({len(deck)} total)[/green]")


@app.command()
def due(
    scope: str = typer.Option(ALL_SCOPE, "--scope", "-s", help="Group key or 'all'"),
) -> None:
    """Show what a normal session would contain today."""
    store = _open_store()
    settings = _load_settings(store)
    deck = ItemDeck.load(store)
    quota = QuotaTracker(store)
    session = ReviewSession(deck, quota, settings)

    counts = quota.get_counts()
    console.print(f"\n[bold]Due in {scope}[/bold]: {len(deck.due(today(), scope))} items")
    console.print(
        f"Today: {counts.reviews} reviews / {settings.max_reviews_limit}, "
        f"{counts.new_cards} new / {settings.new_cards_limit}"
    )

    try:
        batch = session.build_batch(scope, SessionMode.NORMAL)
    except SessionStartError as e:
        console.print(f"[yellow]{e.message}[/yellow]")
        return

    new_count = sum(1 for item_id in batch if deck.get(item_id).is_new)
    console.print(
        f"Next session: {len(batch)} cards ({len(batch) - new_count} reviews, {new_count} new), "
        f"~{math.ceil(len(batch) * ReviewSession.SECONDS_PER_CARD / 60)} min"
    )


@app.command()
def study(
    scope: str = typer.Option(ALL_SCOPE, "--scope", "-s", help="Group key or 'all'"),
    practice: bool = typer.Option(False, "--practice", "-p", help="Practice without saving progress"),
    limit: Optional[str] = typer.Option(None, "--limit", "-l", help="Session size: 10, 20, 50 or unlimited"),
) -> None:
    """
    Start an interactive study session.

    Normal sessions show due items within today's quotas and save each
    grade immediately. Practice sessions show every item in scope and save
    nothing.
    """
    store = _open_store()
    settings = _load_settings(store)
    deck = ItemDeck.load(store)

    def persist(item: Item) -> None:
        deck.apply_update(item)
        deck.save(store)

    session = ReviewSession(
        deck,
        QuotaTracker(store),
        settings,
        on_graded=persist,
    )
    mode = SessionMode.PRACTICE if practice else SessionMode.NORMAL

    try:
        session.start(scope, mode, _parse_limit(limit))
    except SessionStartError as e:
        console.print(f"\n[yellow]{e.message}[/yellow]")
        raise typer.Exit(0)
    except ValueError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(2)

    console.print(f"\n[bold]Session: {len(session.batch)} cards[/bold] (~{session.estimated_minutes} min)")

    try:
        while True:
            _run_session(session)
            _display_session_summary(session.stats)
            if mode is SessionMode.NORMAL:
                StreakTracker(store).record_activity()
            if not Confirm.ask("Review these cards again (practice)?", default=False):
                break
            session.review_again()
            mode = SessionMode.PRACTICE
    except KeyboardInterrupt:
        session.abandon()
        console.print("\n\n[yellow]Session abandoned. Graded cards were saved.[/yellow]")


@app.command()
def stats() -> None:
    """Show deck statistics, today's quota usage and streak."""
    store = _open_store()
    settings = _load_settings(store)
    deck = ItemDeck.load(store)
    day = today()
    summary = deck_stats(deck, day)
    counts = QuotaTracker(store).get_counts(day)

    console.print("\n[bold cyan]Learning Statistics[/bold cyan]")
    console.print("=" * 40)

    table = Table(show_header=False, box=None)
    table.add_column("Metric", style="dim")
    table.add_column("Value", style="bold")

    due_text = str(summary.due)
    if summary.is_urgent:
        due_text = f"[red]{summary.due}[/red]"

    table.add_row("Total items", str(summary.total))
    table.add_row("Due today", due_text)
    table.add_row("Overdue", str(summary.overdue))
    table.add_row("New", str(summary.new))
    table.add_row("Learning", str(summary.learning))
    table.add_row("Mastered", f"{summary.mastered} ({summary.progress_percent}%)")
    table.add_row("Due tomorrow", str(summary.forecast.due_tomorrow))
    table.add_row("Due this week", str(summary.forecast.due_within_week))
    table.add_row("Reviews today", f"{counts.reviews} / {settings.max_reviews_limit}")
    table.add_row("New today", f"{counts.new_cards} / {settings.new_cards_limit}")
    table.add_row("Streak", f"{StreakTracker(store).current()} days")

    console.print(table)

    upcoming = next_due_info(deck, day)
    if upcoming:
        console.print(f"\nNext: {upcoming.count} items due {upcoming.time_text}")


@app.command()
def preview(
    item_id: str = typer.Argument(..., help="Item id"),
) -> None:
    """Show the interval each grade would give an item."""
    store = _open_store()
    settings = _load_settings(store)
    item = ItemDeck.load(store).get(item_id)
    if item is None:
        console.print(f"[red]No item with id {item_id!r}[/red]")
        raise typer.Exit(1)

    scheduler = SM2Scheduler(SM2Config.from_settings(settings))
    table = Table(title=f"{item.front or item.id} ({srs_stage(item).value})")
    table.add_column("Grade")
    table.add_column("Next interval")
    for grade, label in scheduler.interval_preview(item).items():
        table.add_row(f"[{GRADE_STYLES[grade]}]{grade.value}[/{GRADE_STYLES[grade]}]", label)

    console.print(table)


@settings_app.command("show")
def settings_show() -> None:
    """Show the current study settings."""
    store = _open_store()
    settings = _load_settings(store)

    table = Table(show_header=False, box=None)
    table.add_column("Setting", style="dim")
    table.add_column("Value", style="bold")
    for name, value in settings.model_dump(mode="json").items():
        table.add_row(name, str(value))
    console.print(table)


@settings_app.command("set")
def settings_set(
    name: str = typer.Argument(..., help="Setting name, e.g. new_cards_limit"),
    value: str = typer.Argument(..., help="New value, e.g. 20, unlimited, false, 1,6"),
) -> None:
    """Change one study setting."""
    store = _open_store()
    settings = _load_settings(store)
    try:
        updated = settings.with_value(name, value)
    except ConfigurationError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(2)

    updated.save(store)
    console.print(f"[green]{name} = {getattr(updated, name)}[/green]")


# =============================================================================
# Entry Point
# =============================================================================


def main() -> None:
    """CLI entry point."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=get_settings().log_level,
        format="<level>{message}</level>",
    )

    app()


if __name__ == "__main__":
    main()
