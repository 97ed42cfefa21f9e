"""
Command Line Interface for the article engine.
"""

import asyncio
from typing import Optional

import typer
import uvicorn
from rich import print as rprint
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..articles.enums import ArticleStatus, SortField, SortOrder
from ..articles.schemas import ArticleFilters, ServiceResult
from ..articles.service import ArticleService
from ..config import get_settings
from ..db.base import init_database
from ..logging_utils import configure_logging

app = typer.Typer(help="Article Engine - article persistence and maintenance")
console = Console()

STATUS_STYLE = {
    "draft": "🟡 Draft",
    "published": "🟢 Published",
    "archived": "⏹️ Archived",
}


def _run(coro):
    configure_logging(get_settings())
    return asyncio.run(coro)


def _fail(result: ServiceResult) -> None:
    console.print(f"❌ {result.error.code.value}: {result.error.message}")
    raise typer.Exit(code=1)


@app.command()
def serve(
    port: Optional[int] = typer.Option(None, help="Port to run the API server on"),
    host: Optional[str] = typer.Option(None, help="Host to bind the server to"),
    dev: bool = typer.Option(False, help="Run in development mode with reload"),
):
    """Start the HTTP API."""
    settings = get_settings()
    rprint(Panel.fit(f"🚀 Starting {settings.app_name}", style="bold blue"))
    uvicorn.run(
        "article_engine.main:app",
        host=host or settings.api_host,
        port=port or settings.api_port,
        reload=dev,
        workers=1 if dev else settings.api_workers,
    )


@app.command("init-db")
def init_db():
    """Create all tables in the configured database."""
    _run(init_database())
    console.print("✅ Database initialized")


@app.command("list")
def list_articles(
    page: int = typer.Option(1, min=1, help="Page number"),
    limit: int = typer.Option(20, min=1, help="Articles per page"),
    status: str = typer.Option("all", help="draft, published, archived or all"),
    search: Optional[str] = typer.Option(None, help="Match title, content or excerpt"),
    sort_by: SortField = typer.Option(SortField.CREATED_AT, help="Sort field"),
    sort_order: SortOrder = typer.Option(SortOrder.DESC, help="Sort direction"),
):
    """List articles."""
    if status != "all" and status not in {s.value for s in ArticleStatus}:
        console.print("❌ Invalid status. Use: draft, published, archived or all")
        raise typer.Exit(code=2)

    filters = ArticleFilters(search=search, status=status, sort_by=sort_by, sort_order=sort_order)
    result = _run(ArticleService().list_articles(page, limit, filters))
    if not result.ok:
        _fail(result)

    listing = result.data
    if not listing.articles:
        console.print("No articles found")
        return

    table = Table(
        title=f"Articles (page {listing.page}/{listing.total_pages}, {listing.total} total)",
        show_header=True,
        header_style="bold cyan",
    )
    table.add_column("ID", style="dim")
    table.add_column("Title", style="yellow")
    table.add_column("Slug", style="blue")
    table.add_column("Status", style="green")
    table.add_column("Reading", justify="right")
    table.add_column("Tags", style="magenta")

    for article in listing.articles:
        title = article["title"]
        table.add_row(
            article["id"],
            title[:50] + "..." if len(title) > 50 else title,
            article["slug"],
            STATUS_STYLE.get(article["status"], article["status"]),
            f"{article['reading_time']} min",
            ", ".join(article["tag_names"]),
        )

    console.print(table)


@app.command("check-slug")
def check_slug(
    slug: str = typer.Argument(..., help="Slug to check"),
    exclude_id: Optional[str] = typer.Option(None, help="Article id to ignore"),
):
    """Check whether a slug is still free."""
    result = _run(ArticleService().validate_slug(slug, exclude_id))
    if not result.ok:
        _fail(result)
    if result.data:
        console.print(f"✅ '{slug}' is available")
    else:
        console.print(f"❌ '{slug}' is taken")
        raise typer.Exit(code=1)


@app.command("recalculate-reading-time")
def recalculate_reading_time(
    batch_size: Optional[int] = typer.Option(None, min=1, help="Articles per batch"),
):
    """Recompute word count and reading time for every article."""
    result = _run(ArticleService().recalculate_reading_time(batch_size))
    if not result.ok:
        _fail(result)

    report = result.data
    console.print(
        f"✅ Processed {report.processed} articles, updated {report.updated}, "
        f"failed batches: {report.failed_batches}"
    )
    if report.failed_batches:
        raise typer.Exit(code=1)


@app.command()
def stats():
    """Show article statistics."""
    result = _run(ArticleService().get_stats())
    if not result.ok:
        _fail(result)

    data = result.data
    table = Table(title="Article Statistics", show_header=True, header_style="bold magenta")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("Total", str(data.total))
    table.add_row("Published", str(data.published))
    table.add_row("Draft", str(data.draft))
    table.add_row("Archived", str(data.archived))
    table.add_row("Total views", str(data.total_views))
    table.add_row("Avg reading time", f"{data.avg_reading_time} min")
    table.add_row("Created last 7 days", str(data.recent_articles))
    console.print(table)


@app.command()
def version():
    """Show version information."""
    from .. import __version__

    rprint(Panel.fit(f"Article Engine v{__version__}", style="bold green"))


def main():
    """Main CLI entry point."""
    app()


if __name__ == "__main__":
    main()
