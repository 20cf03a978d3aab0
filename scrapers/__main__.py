"""CLI entry-point: python -m scrapers [run|list|cleanup|logs|normalize-text|init-db]."""

from __future__ import annotations

import asyncio
import logging

import typer

from api.database import EventStore, init_db
from scrapers.base import get_scrapers
from scrapers.config import Settings, get_settings
from scrapers.orchestrator import Orchestrator

app = typer.Typer(help="Nyack Today – scraper CLI")


def _setup(settings: Settings) -> None:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@app.command()
def run(
    source: str | None = typer.Option(
        None, "--source", "-s", help="Scraper name to run. Omit for all."
    ),
    cleanup: bool = typer.Option(False, "--cleanup", help="Delete old events first."),
) -> None:
    """Run scrapers and save their events."""
    settings = get_settings()
    _setup(settings)

    async def _run() -> None:
        async with EventStore(settings.database_path) as store:
            orchestrator = Orchestrator(settings, store)
            if cleanup:
                removed = await orchestrator.cleanup()
                typer.echo(f"Removed {removed} old event(s).")

            if source:
                result = await orchestrator.run_one(source)
                if result is None:
                    typer.echo(f"Scraper not found: {source}", err=True)
                    raise typer.Exit(1)
                typer.echo(
                    f"{result.source_name}: {result.status.value}, "
                    f"found={result.events_found} added={result.events_added} "
                    f"updated={result.events_updated} duplicates={result.events_duplicate}"
                )
                if result.error_message:
                    typer.echo(f"  {result.error_message}")
                return

            summary = await orchestrator.run_all()
            for r in summary.results:
                line = f"  {r.source_name}: {r.status.value} ({r.events_found} found)"
                if r.error_message:
                    line += f" - {r.error_message}"
                typer.echo(line)
            typer.echo(
                f"Found {summary.total_events_found}, added {summary.total_events_added}, "
                f"updated {summary.total_events_updated}, "
                f"duplicates {summary.total_events_duplicate}."
            )

    asyncio.run(_run())


@app.command(name="list")
def list_scrapers() -> None:
    """List registered scrapers in run order."""
    registry = get_scrapers()
    if not registry:
        typer.echo("No scrapers registered.")
        raise typer.Exit()
    for scraper in registry:
        suffix = " (slow)" if scraper.slow else ""
        typer.echo(f"  {scraper.name}{suffix}")


@app.command()
def cleanup() -> None:
    """Delete events older than the retention window."""
    settings = get_settings()
    _setup(settings)

    async def _cleanup() -> int:
        async with EventStore(settings.database_path) as store:
            return await Orchestrator(settings, store, scrapers=[]).cleanup()

    removed = asyncio.run(_cleanup())
    typer.echo(f"Removed {removed} old event(s).")


@app.command()
def logs(
    limit: int = typer.Option(20, "--limit", "-n", min=1, max=200),
    status: str | None = typer.Option(None, "--status"),
    source: str | None = typer.Option(None, "--source", "-s"),
) -> None:
    """Show recent scraper runs, newest first."""
    settings = get_settings()

    async def _logs() -> list[dict]:
        async with EventStore(settings.database_path) as store:
            return await store.list_logs(status=status, source_name=source, limit=limit)

    rows = asyncio.run(_logs())
    if not rows:
        typer.echo("No scraper runs logged.")
        return
    for row in rows:
        line = (
            f"{row['run_at']}  {row['source_name']:<20} {row['status']:<8} "
            f"found={row['events_found']} added={row['events_added']}"
        )
        if row["error_message"]:
            line += f"  {row['error_message']}"
        typer.echo(line)


@app.command(name="normalize-text")
def normalize_text() -> None:
    """Decode HTML entities left in stored event text."""
    settings = get_settings()
    _setup(settings)

    async def _normalize() -> int:
        async with EventStore(settings.database_path) as store:
            return await store.normalize_text()

    updated = asyncio.run(_normalize())
    typer.echo(f"Updated {updated} event(s).")


@app.command(name="init-db")
def init_database() -> None:
    """Create the database tables."""
    settings = get_settings()
    asyncio.run(init_db(settings.database_path))
    typer.echo(f"Initialized {settings.database_path}")


if __name__ == "__main__":
    app()
