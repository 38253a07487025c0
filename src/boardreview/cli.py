"""Command-line interface for the board review queues."""

from __future__ import annotations

from typing import Optional

import structlog
import typer
from rich.console import Console
from rich.table import Table
from sqlmodel import Session

from boardreview.db import get_engine
from boardreview.demo import seed_demo
from boardreview.errors import AccessDeniedError, InvalidDecisionCodeError, ReviewQueueError
from boardreview.log import configure_logging
from boardreview.models import QueueView, SubmitOutcome
from boardreview.services import ReviewQueueService, ensure_workflow_states
from boardreview.settings import get_settings

console = Console()
app = typer.Typer(help="Board review queues")
queue_app = typer.Typer(help="Review queue workflows")
app.add_typer(queue_app, name="queue")
logger = structlog.get_logger(__name__)


@app.callback()
def main() -> None:
    configure_logging(get_settings().log_level)


def _service() -> ReviewQueueService:
    return ReviewQueueService(get_settings())


def _fail(exc: ReviewQueueError) -> None:
    if isinstance(exc, AccessDeniedError):
        console.print(f"[red]Access denied:[/red] {exc}")
    else:
        logger.error("cli.failed", error=str(exc), kind=type(exc).__name__)
        console.print(f"[red]{exc}[/red]")
    raise typer.Exit(code=1) from exc


@app.command()
def init() -> None:
    """Create the database and register the workflow states."""
    settings = get_settings()
    engine = get_engine(str(settings.db_path))
    with Session(engine) as session:
        added = ensure_workflow_states(session)
    console.print(f"[green]Database ready:[/green] {settings.db_path}")
    console.print(f"{added} workflow states added.")


@app.command()
def config(
    json_output: bool = typer.Option(False, "--json", help="Output settings as JSON"),
) -> None:
    """Display the resolved settings."""
    settings = get_settings()
    if json_output:
        typer.echo(settings.model_dump_json(indent=2))
        return
    table = Table(title="Review Queue Settings")
    table.add_column("Key")
    table.add_column("Value", overflow="fold")
    for key, value in settings.model_dump().items():
        table.add_row(key, str(value))
    console.print(table)


@app.command()
def demo() -> None:
    """Load sample boards, reviewers and articles into an empty database."""
    settings = get_settings()
    engine = get_engine(str(settings.db_path))
    with Session(engine) as session:
        summary = seed_demo(session)
    if summary is None:
        console.print("[yellow]Database already has boards; demo data not loaded.")
        return
    console.print(
        f"[green]Demo loaded[/green]: {summary.boards} boards, {summary.topics} topics, "
        f"{summary.reviewers} reviewers, {summary.articles} articles"
    )


@queue_app.command("open")
def queue_open(user: int = typer.Option(..., help="Reviewer ID")) -> None:
    """Start a fresh queue using the reviewer's defaults."""
    try:
        queue_id = _service().reset_queue(user)
    except ReviewQueueError as exc:
        _fail(exc)
    console.print(f"[green]Queue {queue_id}[/green] created.")


@queue_app.command("show")
def queue_show(
    queue_id: int = typer.Argument(..., help="Queue ID"),
    user: int = typer.Option(..., help="Reviewer ID"),
    page: int = typer.Option(0, help="Zero-based page number"),
) -> None:
    """Show one page of a review queue."""
    try:
        view = _service().build_queue_view(queue_id, user, page)
    except ReviewQueueError as exc:
        _fail(exc)
    _print_queue(view)


@queue_app.command("filter")
def queue_filter(
    queue_id: int = typer.Argument(..., help="Queue ID"),
    user: int = typer.Option(..., help="Reviewer ID"),
    queue_type: Optional[str] = typer.Option(None, "--type", help="Queue type name"),
    board: Optional[int] = typer.Option(None, help="Board ID (0 clears)"),
    topic: Optional[list[int]] = typer.Option(None, "--topic", "-t", help="Topic ID"),
    cycle: Optional[int] = typer.Option(None, help="Review cycle ID (0 clears)"),
    tag: Optional[int] = typer.Option(None, help="Tag ID (0 clears)"),
    title: Optional[str] = typer.Option(None, help="Title fragment (librarian queue)"),
    journal: Optional[str] = typer.Option(None, help="Journal fragment (librarian queue)"),
    sort: Optional[str] = typer.Option(None, help="Sort key"),
    per_page: Optional[int] = typer.Option(None, help="Articles per page"),
    format: Optional[str] = typer.Option(None, help="brief|abstract"),
    review_boards: Optional[str] = typer.Option(None, help="all|mine"),
) -> None:
    """Store a filtered copy of a queue and print its new ID."""
    fields = {
        "queue_type": queue_type,
        "board": board,
        "topics": topic or None,
        "cycle": cycle,
        "tag": tag,
        "title": title,
        "journal": journal,
        "sort": sort,
        "page_size": per_page,
        "format": format,
        "review_boards": review_boards,
    }
    changes = {key: value for key, value in fields.items() if value is not None}
    try:
        new_id = _service().update_filters(queue_id, user, **changes)
    except ReviewQueueError as exc:
        _fail(exc)
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc
    console.print(f"[green]Queue {new_id}[/green] created from queue {queue_id}.")


@queue_app.command("decide")
def queue_decide(
    queue_id: int = typer.Argument(..., help="Queue ID"),
    article: int = typer.Argument(..., help="Article ID"),
    topic: int = typer.Argument(..., help="Topic ID"),
    code: int = typer.Argument(..., help="0=None 1=FYI 2=On Hold 3=Reject 4=Approve"),
    user: int = typer.Option(..., help="Reviewer ID"),
) -> None:
    """Queue (or clear) a decision for one article topic."""
    service = _service()
    try:
        spec = service.toggle_decision(queue_id, user, article, topic, code)
    except InvalidDecisionCodeError as exc:
        raise typer.BadParameter(str(exc)) from exc
    except ReviewQueueError as exc:
        _fail(exc)
    for item in service.queued_decision_items(spec) or ["No decisions have been queued."]:
        console.print(item)


@queue_app.command("submit")
def queue_submit(
    queue_id: int = typer.Argument(..., help="Queue ID"),
    user: int = typer.Option(..., help="Reviewer ID"),
) -> None:
    """Apply the queued decisions."""
    try:
        outcome = _service().submit_decisions(queue_id, user)
    except ReviewQueueError as exc:
        _fail(exc)
    _print_outcome(outcome)


@queue_app.command("defaults")
def queue_defaults(
    queue_id: int = typer.Argument(..., help="Queue ID"),
    user: int = typer.Option(..., help="Reviewer ID"),
) -> None:
    """Save the queue's display options as the reviewer's defaults."""
    try:
        _service().save_as_default(queue_id, user)
    except ReviewQueueError as exc:
        _fail(exc)
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc
    console.print("[green]Display options saved as default.")


def _print_queue(view: QueueView) -> None:
    console.print(f"[bold]{view.queue_type.value} Queue[/bold] (queue {view.queue_id})")
    if not view.articles:
        console.print("[yellow]No articles match the filtering criteria.")
        return
    table = Table(title=view.title)
    table.add_column("#")
    table.add_column("Article")
    table.add_column("PMID")
    table.add_column("Title", overflow="fold")
    table.add_column("Topics", overflow="fold")
    for ordinal, article in enumerate(view.articles, start=view.pager.start):
        topics = []
        for board in article.boards:
            for topic in board.topics:
                marker = ""
                if topic.buttons:
                    checked = next((b.label for b in topic.buttons if b.checked), "None")
                    marker = f" [{checked}]"
                topics.append(f"{board.name}: {topic.name}{marker}")
        table.add_row(
            str(ordinal),
            str(article.article_id),
            article.pmid,
            article.title,
            "\n".join(topics) or "-",
        )
    console.print(table)
    console.print(f"Page {view.pager.page + 1} of {max(view.pager.pages, 1)}")
    for item in view.queued_decisions:
        console.print(f"  queued: {item}")


def _print_outcome(outcome: SubmitOutcome) -> None:
    color = "green" if outcome.applied_count else "yellow"
    console.print(f"[{color}]{outcome.message}[/{color}] ({outcome.applied_count} applied)")
    for warning in outcome.warnings:
        console.print(f"[yellow]skipped:[/yellow] {warning}")
    console.print(f"Continue with queue {outcome.queue_id}.")


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", help="Host interface"),
    port: int = typer.Option(8000, help="Port to bind"),
    reload: bool = typer.Option(False, help="Enable auto-reload"),
) -> None:
    """Launch the HTTP API."""
    try:
        import uvicorn
    except ImportError as exc:  # pragma: no cover
        console.print("[red]uvicorn is not installed.[/red]")
        raise typer.Exit(code=1) from exc

    uvicorn.run(
        "boardreview.web.app:create_app",
        host=host,
        port=port,
        reload=reload,
        factory=True,
    )
