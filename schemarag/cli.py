"""
SchemaRAG CLI

Command-line interface for SchemaRAG.

Usage:
    schemarag serve                              # Run the API server
    schemarag ask CONNECTION_ID "who are the users"
    schemarag sync CONNECTION_ID                 # Re-run schema sync and wait
    schemarag connections --owner alice          # List an owner's connections
"""

import asyncio
import logging
import sys
from typing import Any

import click
import uvicorn
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.table import Table

from schemarag.config import get_settings
from schemarag.service import SchemaRAGService, build_service

console = Console()


def configure_cli_logging() -> None:
    logging.basicConfig(level=logging.WARNING, force=True)
    for logger_name in ("schemarag", "httpx", "openai", "anthropic", "chromadb", "asyncio"):
        logging.getLogger(logger_name).setLevel(logging.WARNING)


def format_answer(answer: str, sql: str | None = None, rows: list[dict[str, Any]] | None = None) -> None:
    """Format and display an answer."""
    console.print(Panel(Markdown(answer), title="[bold green]Answer[/bold green]"))

    if sql:
        console.print("\n[bold cyan]Generated SQL:[/bold cyan]")
        console.print(Panel(sql, title="SQL", border_style="cyan", highlight=True))

    if rows:
        console.print("\n[bold cyan]Results:[/bold cyan]")
        table = Table(show_header=True, header_style="bold cyan")
        columns = list(rows[0].keys())
        for column in columns:
            table.add_column(column)
        for row in rows:
            table.add_row(*[str(row.get(column, "")) for column in columns])
        console.print(table)


async def _with_service(action):
    service = build_service()
    await service.start()
    try:
        return await action(service)
    finally:
        await service.close()


# ============================================================================
# Commands
# ============================================================================


@click.group()
@click.version_option(version="0.1.0", prog_name="SchemaRAG")
def cli():
    """SchemaRAG - natural language questions over relational databases."""
    pass


@cli.command()
@click.option("--host", default=None, help="Bind host (default from API_HOST).")
@click.option("--port", default=None, type=int, help="Bind port (default from API_PORT).")
@click.option("--reload", is_flag=True, help="Reload on code changes.")
def serve(host: str | None, port: int | None, reload: bool):
    """Run the API server."""
    settings = get_settings()
    uvicorn.run(
        "schemarag.api.main:app",
        host=host or settings.api_host,
        port=port or settings.api_port,
        reload=reload,
    )


@cli.command()
@click.argument("connection_id")
@click.argument("question")
def ask(connection_id: str, question: str):
    """Ask a single question about a connection and exit."""
    configure_cli_logging()

    async def run_query(service: SchemaRAGService):
        with console.status("[cyan]Processing query...[/cyan]", spinner="dots"):
            return await service.ask(connection_id, question)

    try:
        answer = asyncio.run(_with_service(run_query))
    except KeyError:
        console.print(f"[red]Connection not found: {connection_id}[/red]")
        sys.exit(1)
    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)

    rows = answer.query_result.rows if answer.query_result else None
    format_answer(answer.narrative_answer, answer.sql_query, rows)
    if answer.error:
        sys.exit(2)


@cli.command()
@click.argument("connection_id")
def sync(connection_id: str):
    """Re-run introspection, indexing and graph sync for a connection."""
    configure_cli_logging()

    async def run_sync(service: SchemaRAGService):
        await service.resync_connection(connection_id)
        with console.status("[cyan]Syncing schema...[/cyan]", spinner="dots"):
            await service.sync_supervisor.wait(connection_id)
        return await service.sync_status(connection_id)

    try:
        status = asyncio.run(_with_service(run_sync))
    except KeyError:
        console.print(f"[red]Connection not found: {connection_id}[/red]")
        sys.exit(1)
    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)

    summary = Table(show_header=False, box=None)
    color = "green" if status["status"] == "completed" else "red"
    summary.add_row("Status:", f"[{color}]{status['status']}[/{color}]")
    summary.add_row("Attempts:", f"[cyan]{status['attempts']}[/cyan]")
    summary.add_row("Tables indexed:", f"[cyan]{status['tables_indexed']}[/cyan]")
    summary.add_row("Vector records:", f"[cyan]{status['records_written']}[/cyan]")
    summary.add_row("Graph tables:", f"[cyan]{status['tables_synced']}[/cyan]")
    if status["tables_failed"]:
        summary.add_row("Graph failures:", f"[yellow]{', '.join(status['tables_failed'])}[/yellow]")
    if status["error"]:
        summary.add_row("Error:", f"[red]{status['error']}[/red]")
    console.print(summary)

    if status["status"] != "completed":
        sys.exit(1)


@cli.command()
@click.option("--owner", "owner_id", required=True, help="Owner whose connections to list.")
def connections(owner_id: str):
    """List an owner's connections."""
    configure_cli_logging()

    async def run_list(service: SchemaRAGService):
        return await service.list_connections(owner_id)

    try:
        profiles = asyncio.run(_with_service(run_list))
    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)

    if not profiles:
        console.print("[yellow]No connections found.[/yellow]")
        return

    table = Table(title="Connections", show_header=True, header_style="bold cyan")
    table.add_column("ID", style="dim")
    table.add_column("Name")
    table.add_column("Host")
    table.add_column("Database")
    table.add_column("Created")
    for profile in profiles:
        table.add_row(
            str(profile.connection_id),
            profile.name,
            f"{profile.host}:{profile.port}",
            profile.database,
            profile.created_at.isoformat(),
        )
    console.print(table)


# ============================================================================
# Entry Point
# ============================================================================


def main():
    """Main entry point for CLI."""
    cli()


if __name__ == "__main__":
    main()
