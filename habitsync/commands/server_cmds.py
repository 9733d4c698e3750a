from __future__ import annotations

import logging

import typer
from rich import print

from ..config import HabitSyncConfig
from ..server import start_server
from ..store import LogStore
from .common import call_or_exit


def serve_cmd(*, config: HabitSyncConfig, host: str, port: int, verbose: bool) -> None:
    """Run the API and push channel in the foreground."""

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    print(f"[green]habitsync serving http://{host}:{port} (db {config.db_path})[/green]")
    try:
        server = start_server(host, port, config=config)
    except KeyboardInterrupt:
        print("Stopped")
        return
    if server is None:
        print(f"[yellow]Something is already listening on {host}:{port}[/yellow]")
        raise typer.Exit(code=1)


def init_db_cmd(*, config: HabitSyncConfig) -> None:
    store = call_or_exit(lambda: LogStore(config.db_path))
    store.close()
    print(f"Initialized database at {store.db_path}")
