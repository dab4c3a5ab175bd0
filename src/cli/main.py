"""
Typer CLI for the solved-sync service.

Commands:
    solved-sync sync flashcards     - Ingest flashcards, then reconcile
    solved-sync sync catalog        - Refresh the question catalog
    solved-sync sync reconcile      - Recompute solved flags
    solved-sync sync all            - Catalog refresh + flashcard sync + reconcile
    solved-sync sync status         - Show recent job runs
    solved-sync db init             - Initialize database tables
    solved-sync db reset-solved     - Mark every question unsolved
    solved-sync questions list      - Filtered/sorted question table
    solved-sync flashcards list     - Stored flashcards
    solved-sync serve               - Run the API server (with scheduler)
    solved-sync worker              - Run the periodic scheduler without the API

Usage:
    solved-sync --help
    solved-sync sync all
    solved-sync questions list --rating-min 1500 --rating-max 2500 --sort-by rating --order asc
"""

from __future__ import annotations

import time

import typer
from loguru import logger
from rich import print as rprint
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from config import get_settings
from src.core.errors import SolvedSyncError
from src.core.logging_setup import configure_logging

app = typer.Typer(
    help="solved-sync CLI: question feed + flashcards -> solved-status catalog",
    no_args_is_help=True,
)

console = Console()


@app.callback()
def main_callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    """Keep a rated question catalog in sync with a flashcard deck."""
    configure_logging(level="DEBUG" if verbose else None)


# ========================================
# Context Builder (Dependency Injection)
# ========================================


class CLIContext:
    """
    Dependency injection container for CLI commands.

    Commands run the pipeline inline: deferred tasks go to an in-memory
    queue that is drained before the command returns.
    """

    def __init__(self):
        self.settings = get_settings()
        self._queue = None
        self._orchestrator = None

    @property
    def queue(self):
        """Lazy load the in-memory task queue."""
        if self._queue is None:
            from src.sync.tasks import InMemoryTaskQueue

            self._queue = InMemoryTaskQueue(
                max_attempts=self.settings.task_max_attempts,
                retry_backoff_seconds=self.settings.task_retry_backoff_seconds,
            )
        return self._queue

    @property
    def orchestrator(self):
        """Lazy load SyncOrchestrator bound to the inline queue."""
        if self._orchestrator is None:
            from src.db.database import init_db
            from src.sync.orchestrator import SyncOrchestrator

            init_db()
            self._orchestrator = SyncOrchestrator(scheduler=self.queue, settings=self.settings)
        return self._orchestrator

    def drain(self, honor_delay: bool = False) -> int:
        """Run queued tasks; waits out the settling delay when honor_delay is set."""
        if honor_delay:
            wait = self.queue.next_due_in()
            if wait:
                rprint(f"  Waiting {wait:.0f}s before reconciliation...")
                time.sleep(wait)
        return self.queue.drain(include_delayed=True)


def _build_context() -> CLIContext:
    """Build CLI context with dependency injection."""
    return CLIContext()


def _fail(exc: Exception) -> None:
    rprint(f"\n[bold red]✗ {escape(str(exc))}[/bold red]")
    raise typer.Exit(code=1)


def _stats_table(title: str, stats: dict) -> Table:
    table = Table(title=title, show_header=True)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    for key, value in stats.items():
        if isinstance(value, list):
            continue
        table.add_row(key, str(value))
    return table


# ========================================
# SYNC COMMANDS
# ========================================

sync_app = typer.Typer(help="Sync operations (feeds -> database -> solved flags)")
app.add_typer(sync_app, name="sync")


@sync_app.command("flashcards")
def sync_flashcards(
    honor_delay: bool = typer.Option(
        False, "--honor-delay", help="Wait the settling delay before reconciling"
    ),
) -> None:
    """
    Ingest flashcards, then reconcile solved flags.

    Requires FLASHCARD_API_KEY.
    """
    ctx = _build_context()
    rprint("\n[bold cyan]Flashcard Sync[/bold cyan]")

    try:
        result = ctx.orchestrator.sync_flashcards()
    except SolvedSyncError as e:
        _fail(e)

    console.print(_stats_table("Flashcards", result.to_dict()))
    ctx.drain(honor_delay=honor_delay)
    _print_reconcile_summary(ctx)


@sync_app.command("catalog")
def sync_catalog() -> None:
    """Fetch the question feed and insert unseen questions."""
    ctx = _build_context()
    rprint("\n[bold cyan]Question Catalog Refresh[/bold cyan]")

    try:
        result = ctx.orchestrator.refresh_catalog()
    except SolvedSyncError as e:
        _fail(e)

    # Retries run now too, so `failed` counts only inserts that used every attempt.
    executed = ctx.queue.drain(include_delayed=True)
    console.print(_stats_table("Catalog", result.to_dict()))
    failed = ctx.queue.failed
    if failed:
        rprint(f"\n[yellow]⚠[/yellow] {failed} inserts failed; check logs for details")
    else:
        rprint(f"\n[bold green]✓ Catalog refreshed ({executed} insert tasks run)[/bold green]")


@sync_app.command("reconcile")
def sync_reconcile() -> None:
    """Recompute every question's solved flag from stored flashcards."""
    ctx = _build_context()
    result = ctx.orchestrator.reconcile()
    console.print(_stats_table("Reconciliation", result.to_dict()))


@sync_app.command("all")
def sync_all(
    skip_catalog: bool = typer.Option(False, "--skip-catalog", help="Only sync flashcards"),
) -> None:
    """Full pipeline: catalog refresh, flashcard sync, reconciliation."""
    ctx = _build_context()

    try:
        if not skip_catalog:
            catalog = ctx.orchestrator.refresh_catalog()
            ctx.drain()
            rprint(f"  Catalog: {catalog.fetched} fetched, {catalog.scheduled} new")
        cards = ctx.orchestrator.sync_flashcards()
        rprint(f"  Flashcards: {cards.fetched} fetched, {cards.added} new")
    except SolvedSyncError as e:
        _fail(e)

    ctx.drain()
    _print_reconcile_summary(ctx)


def _print_reconcile_summary(ctx: CLIContext) -> None:
    runs = ctx.orchestrator.recent_runs(limit=1, job="reconcile_solved")
    if runs and runs[0]["status"] == "success":
        stats = runs[0]["stats"]
        rprint(
            f"\n[bold green]✓ {stats.get('matched', 0)} of {stats.get('total', 0)} "
            f"questions solved[/bold green]"
        )
    else:
        rprint("\n[yellow]⚠[/yellow] Reconciliation did not complete; check logs")


@sync_app.command("status")
def sync_status(limit: int = typer.Option(10, "--limit", "-n", help="Runs to show")) -> None:
    """Show recent pipeline runs."""
    ctx = _build_context()
    runs = ctx.orchestrator.recent_runs(limit=limit)

    table = Table(title="Recent Sync Runs", show_header=True)
    table.add_column("ID", justify="right", style="dim")
    table.add_column("Job", style="cyan")
    table.add_column("Status")
    table.add_column("Started")
    table.add_column("Stats / Error")

    colors = {"success": "green", "error": "red", "running": "yellow"}
    for run in runs:
        status = run["status"]
        detail = run["error"] or ", ".join(
            f"{k}={v}" for k, v in run["stats"].items() if not isinstance(v, list)
        )
        table.add_row(
            str(run["id"]),
            run["job"],
            f"[{colors.get(status, 'white')}]{status}[/]",
            run["started_at"] or "-",
            detail,
        )

    console.print(table)


# ========================================
# DATABASE COMMANDS
# ========================================

db_app = typer.Typer(help="Database management")
app.add_typer(db_app, name="db")


@db_app.command("init")
def db_init() -> None:
    """Create database tables."""
    from src.db.database import init_db

    init_db()
    rprint("[bold green]✓ Database initialized[/bold green]")


@db_app.command("reset-solved")
def db_reset_solved(
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """Mark every question unsolved (the next reconciliation recomputes them)."""
    if not yes:
        typer.confirm("Reset the solved flag on every question?", abort=True)

    from src.sync.reconciler import SolvedStatusReconciler

    changed = SolvedStatusReconciler().reset_solved()
    rprint(f"[green]✓[/green] Reset {changed} questions")


# ========================================
# QUERY COMMANDS
# ========================================

questions_app = typer.Typer(help="Question catalog queries")
app.add_typer(questions_app, name="questions")


@questions_app.command("list")
def questions_list(
    keyword: str | None = typer.Option(None, "--keyword", "-k", help="Title substring"),
    contest: str | None = typer.Option(None, "--contest", "-c", help="Contest number substring"),
    rating_min: float | None = typer.Option(None, "--rating-min", help="Inclusive lower bound"),
    rating_max: float | None = typer.Option(None, "--rating-max", help="Inclusive upper bound"),
    sort_by: str = typer.Option("id", "--sort-by", help="id or rating"),
    order: str = typer.Option("desc", "--order", help="asc or desc"),
    unsolved: bool = typer.Option(False, "--unsolved", help="Only unsolved questions"),
    limit: int = typer.Option(50, "--limit", "-n", help="Rows to display (0 for all)"),
) -> None:
    """Show the filtered, sorted question table."""
    from pydantic import ValidationError

    from src.query.engine import QuestionQuery, QuestionQueryService

    try:
        query = QuestionQuery(
            keyword=keyword,
            contest_number=contest,
            rating_min=rating_min,
            rating_max=rating_max,
            sort_by=sort_by,
            sort_order=order,
        )
    except ValidationError as e:
        _fail(e)

    rows = QuestionQueryService().search(query)
    if unsolved:
        rows = [r for r in rows if not r["solved"]]
    total = len(rows)
    if limit:
        rows = rows[:limit]

    table = Table(title=f"Questions ({len(rows)} of {total})", show_header=True)
    table.add_column("ID", justify="right")
    table.add_column("Title", style="cyan")
    table.add_column("Contest")
    table.add_column("Idx")
    table.add_column("Rating", justify="right")
    table.add_column("Solved", justify="center")

    for row in rows:
        table.add_row(
            str(row["question_id"]),
            escape(row["title"]),
            row["contest_name"],
            row["problem_index"],
            f"{row['rating']:.0f}",
            "[green]✓[/green]" if row["solved"] else "",
        )

    console.print(table)


flashcards_app = typer.Typer(help="Stored flashcards")
app.add_typer(flashcards_app, name="flashcards")


@flashcards_app.command("list")
def flashcards_list(
    limit: int = typer.Option(50, "--limit", "-n", help="Rows to display (0 for all)"),
) -> None:
    """Show stored flashcards with the titles they mark as solved."""
    from src.query.engine import QuestionQueryService
    from src.sync.titles import extract_card_titles

    cards = QuestionQueryService().list_flashcards()
    shown = cards[:limit] if limit else cards

    table = Table(title=f"Flashcards ({len(shown)} of {len(cards)})", show_header=True)
    table.add_column("Card ID", style="dim")
    table.add_column("Solved titles", style="cyan")
    for card in shown:
        titles = sorted(extract_card_titles(card["content"]))
        table.add_row(card["card_id"], ", ".join(titles) or "-")

    console.print(table)


# ========================================
# SERVICE COMMANDS
# ========================================


@app.command("serve")
def serve(
    host: str | None = typer.Option(None, "--host", help="Bind host (default from config)"),
    port: int | None = typer.Option(None, "--port", help="Bind port (default from config)"),
) -> None:
    """Run the API server; the periodic scheduler starts with it."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "src.api.main:app",
        host=host or settings.api_host,
        port=port or settings.api_port,
        log_level=settings.log_level.lower(),
    )


@app.command("worker")
def worker() -> None:
    """Run the periodic catalog and flashcard jobs without the API server."""
    from src.db.database import init_db
    from src.sync.orchestrator import SyncOrchestrator
    from src.sync.tasks import ThreadedScheduler

    settings = get_settings()
    init_db()

    scheduler = ThreadedScheduler(
        workers=settings.scheduler_workers,
        max_attempts=settings.task_max_attempts,
        retry_backoff_seconds=settings.task_retry_backoff_seconds,
    )
    orchestrator = SyncOrchestrator(scheduler=scheduler, settings=settings)
    orchestrator.register_jobs()
    scheduler.start()

    rprint("[bold cyan]Worker running[/bold cyan] (Ctrl+C to stop)")
    try:
        while scheduler.is_running:
            time.sleep(1)
    except KeyboardInterrupt:
        logger.info("Interrupted")
    finally:
        scheduler.stop()


def run() -> None:
    """Console script entry point."""
    app()


if __name__ == "__main__":
    run()
