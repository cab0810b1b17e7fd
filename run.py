"""Entry-point for the CourseDesk records service."""

from __future__ import annotations

import logging
from pathlib import Path

import typer
import uvicorn
from rich import box
from rich.console import Console
from rich.table import Table

from coursedesk.bootstrap import initialize_app
from coursedesk.logging_utils import DEFAULT_LOG_FORMAT, configure_logging, get_log_file_path
from coursedesk.services.persistence import PersistenceLayer
from coursedesk.services.records import COLLECTIONS, NotFoundError, get_schema
from coursedesk.web import create_app


LOGGER = logging.getLogger("coursedesk.cli")

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 5001

_SOURCE_STYLES = {
    "primary": "green",
    "journal": "yellow",
    "placeholder": "red",
}


CONSOLE = Console()

cli = typer.Typer(add_completion=False, help="CourseDesk records service commands")


def _prepare_logging(storage_root: Path) -> None:
    formatter = logging.Formatter(DEFAULT_LOG_FORMAT)
    file_handler = logging.FileHandler(get_log_file_path(storage_root), encoding="utf-8")
    file_handler.setFormatter(formatter)
    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(formatter)
    configure_logging(handlers=[file_handler, stream_handler])


@cli.callback(invoke_without_command=True)
def main(ctx: typer.Context) -> None:
    """Launch the web server when no explicit command is provided."""

    if ctx.invoked_subcommand is None:
        ctx.invoke(serve, host=DEFAULT_HOST, port=DEFAULT_PORT)


@cli.command()
def serve(
    host: str = typer.Option(DEFAULT_HOST, help="Host interface for the web server"),
    port: int = typer.Option(DEFAULT_PORT, help="Port for the web server"),
) -> None:
    """Run the HTTP API."""

    app_config = initialize_app()
    _prepare_logging(app_config.storage_root)

    persistence = PersistenceLayer(app_config)
    app = create_app(persistence, config=app_config)

    server_config = uvicorn.Config(app, host=host, port=port, log_config=None)
    server = uvicorn.Server(server_config)
    app.state.server = server
    LOGGER.info("CourseDesk listening on http://%s:%s", host, port)
    server.run()


@cli.command()
def status() -> None:
    """Show primary reachability and which tier each collection is served from."""

    config = initialize_app()
    configure_logging(level=logging.WARNING)
    console = CONSOLE

    persistence = PersistenceLayer(config)
    reachable = persistence.start()
    try:
        console.rule("[bold magenta]CourseDesk status")
        state = "[green]reachable" if reachable else "[red]unreachable"
        console.print(f"Primary store: {config.database_file} ({state}[/])")
        console.print(f"Journal root: {config.journal_root}")

        table = Table(box=box.SIMPLE_HEAVY)
        table.add_column("Collection")
        table.add_column("Served from")
        table.add_column("Records", justify="right")
        table.add_column("Journal entries", justify="right")
        for schema in COLLECTIONS.values():
            if not schema.journaled:
                continue
            result = persistence.reader.read_all(schema)
            journal_count = len(persistence.journal.read_all(schema))
            style = _SOURCE_STYLES.get(result.source, "white")
            table.add_row(
                schema.name,
                f"[{style}]{result.source}[/]",
                str(len(result.records)),
                str(journal_count),
            )
        console.print(table)
    finally:
        persistence.stop()


@cli.command()
def journal(
    collection: str = typer.Argument(..., help="Collection name, e.g. assignments"),
) -> None:
    """Print the fallback journal of *collection* in insertion order."""

    try:
        schema = get_schema(collection)
    except NotFoundError as error:
        raise typer.BadParameter(str(error), param_hint="COLLECTION") from error
    if not schema.journaled:
        raise typer.BadParameter(
            f"Collection '{collection}' has no fallback journal.",
            param_hint="COLLECTION",
        )

    config = initialize_app()
    configure_logging(level=logging.WARNING)
    console = CONSOLE

    persistence = PersistenceLayer(config)
    entries = persistence.journal.read_all(schema)
    if not entries:
        console.print(f"[yellow]Journal for {schema.name} is empty.")
        return

    columns = list(schema.column_map())
    table = Table(title=str(persistence.journal.path_for(schema)), box=box.SIMPLE_HEAVY)
    for key in columns:
        table.add_column(key)
    for entry in entries:
        table.add_row(*("" if entry.get(key) is None else str(entry.get(key)) for key in columns))
    console.print(table)


if __name__ == "__main__":
    cli()
