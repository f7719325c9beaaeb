"""
Command Line Interface for Pipeline Dashboard.
"""

import json
from pathlib import Path
from typing import List, Optional

import typer
import uvicorn
from rich import print as rprint
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .. import __version__
from ..config import get_settings
from ..db.base import Database
from ..errors import DashboardError
from ..log import configure_logging
from ..pipeline import ReportFilters, ReportIngestor, ReportQueryEngine

app = typer.Typer(help="Pipeline Dashboard - pipeline report storage and search")
console = Console(soft_wrap=True)


def _database(database_url: Optional[str]) -> Database:
    settings = get_settings()
    configure_logging(settings.log_level, "console")
    return Database(database_url or settings.database_url, settings.statement_timeout_ms)


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, help="Host to bind the server to"),
    port: Optional[int] = typer.Option(None, help="Port to run the API server on"),
    reload: bool = typer.Option(False, help="Reload on code changes"),
):
    """Run the API server."""
    settings = get_settings()
    host = host or settings.api_host
    port = port or settings.api_port
    rprint(Panel.fit(f"🚀 Starting {settings.app_name} on http://{host}:{port}", style="bold blue"))
    uvicorn.run(
        "pipeline_dashboard.main:app",
        host=host,
        port=port,
        reload=reload,
        workers=1 if reload else settings.api_workers,
    )


@app.command("init-db")
def init_db(
    database_url: Optional[str] = typer.Option(None, help="Database URL, defaults to DATABASE_URL"),
):
    """Create every table."""
    database = _database(database_url)
    try:
        database.create_all()
    finally:
        database.dispose()
    console.print("✅ Database initialized")


@app.command()
def ingest(
    files: List[Path] = typer.Argument(..., exists=True, dir_okay=False, help="JSON report files"),
    database_url: Optional[str] = typer.Option(None, help="Database URL, defaults to DATABASE_URL"),
):
    """Ingest pipeline report files."""
    settings = get_settings()
    database = _database(database_url)
    failed = 0
    try:
        database.create_all()
        for path in files:
            try:
                raw = json.loads(path.read_text(encoding="utf-8"))
            except ValueError as exc:
                console.print(f"❌ {path}: invalid JSON ({exc})")
                failed += 1
                continue

            with database.session() as db:
                ingestor = ReportIngestor(db, store_source_branch=settings.scm_store_source_branch)
                try:
                    report_id = ingestor.ingest(raw)
                except DashboardError as exc:
                    console.print(f"❌ {path}: {exc.message}")
                    failed += 1
                    continue
            console.print(f"✅ {path} → {report_id}")
    finally:
        database.dispose()

    if failed:
        raise typer.Exit(code=1)


@app.command()
def reports(
    scm_id: str = typer.Option("", help="SCM id, or none for reports without one"),
    latest: bool = typer.Option(False, help="Only the latest report per pipeline"),
    limit: int = typer.Option(0, help="Page size, 0 for every match"),
    page: int = typer.Option(1, help="Page number"),
    days: Optional[int] = typer.Option(None, help="Lookback window in days"),
    database_url: Optional[str] = typer.Option(None, help="Database URL, defaults to DATABASE_URL"),
):
    """Show stored reports."""
    settings = get_settings()
    database = _database(database_url)
    try:
        with database.session() as db:
            engine = ReportQueryEngine(db, recency_days=settings.monitoring_duration_days)
            try:
                rows, total_count = engine.search(
                    ReportFilters(scm_id=scm_id),
                    limit=limit,
                    page=page,
                    recency_days=days,
                    latest=latest,
                )
            except DashboardError as exc:
                console.print(f"❌ {exc.message}")
                raise typer.Exit(code=1)

            table = Table(
                title=f"Pipeline Reports ({len(rows)} of {total_count})",
                show_header=True,
                header_style="bold magenta",
            )
            table.add_column("ID", style="cyan")
            table.add_column("Pipeline", style="yellow")
            table.add_column("Name")
            table.add_column("Result", style="green")
            table.add_column("Updated")

            for row in rows:
                data = row.to_dict()
                table.add_row(data["id"], data["pipeline_id"] or "", data["name"] or "", data["result"] or "", data["updated_at"])
    finally:
        database.dispose()

    console.print(table)


@app.command()
def version():
    """Show the package version."""
    console.print(f"pipeline-dashboard {__version__}")


if __name__ == "__main__":
    app()
