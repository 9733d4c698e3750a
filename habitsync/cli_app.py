from __future__ import annotations

import typer
from rich import print

from . import __version__
from .client import HabitApiClient
from .commands.habit_cmds import (
    add_habit_cmd,
    edit_habit_cmd,
    list_habits_cmd,
    remove_habit_cmd,
    seed_habits_cmd,
)
from .commands.log_cmds import daily_note_cmd, global_note_cmd, mark_perfect_cmd, set_log_cmd
from .commands.server_cmds import init_db_cmd, serve_cmd
from .commands.stats_cmds import stats_cmd, watch_cmd
from .config import HabitSyncConfig, get_config_path, load_config

app = typer.Typer(help="habitsync: daily habit tracking shared live across devices")
habit_app = typer.Typer(help="Manage habits")
note_app = typer.Typer(help="Daily and global notes")
app.add_typer(habit_app, name="habit")
app.add_typer(note_app, name="note")


def _config(db_path: str | None = None) -> HabitSyncConfig:
    cfg = load_config()
    if db_path:
        cfg.db_path = db_path
    return cfg


def _client(url: str | None) -> HabitApiClient:
    return HabitApiClient(url or _config().server_url)


@app.command()
def version() -> None:
    """Print the installed version."""

    print(__version__)


@app.command()
def config() -> None:
    """Show the effective configuration."""

    cfg = _config()
    print(f"config file: {get_config_path()}")
    for key, value in vars(cfg).items():
        print(f"  {key} = {value!r}")


@app.command("init-db")
def init_db(db_path: str = typer.Option(None, help="Path to SQLite database")) -> None:
    """Create the database schema if missing."""

    init_db_cmd(config=_config(db_path))


@app.command()
def serve(
    db_path: str = typer.Option(None, help="Path to SQLite database"),
    host: str = typer.Option(None, help="Interface to bind"),
    port: int = typer.Option(None, help="Port to bind"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    """Serve the HTTP API and the live change feed."""

    cfg = _config(db_path)
    serve_cmd(
        config=cfg,
        host=host or cfg.server_host,
        port=port or cfg.server_port,
        verbose=verbose,
    )


@app.command()
def stats(
    url: str = typer.Option(None, help="Server URL"),
    date: str = typer.Option(None, help="Reference day (YYYY-MM-DD), default today"),
) -> None:
    """Show progress, streaks and milestones."""

    stats_cmd(_client(url), config=_config(), date_key=date)


@app.command()
def watch(url: str = typer.Option(None, help="Server URL")) -> None:
    """Follow live changes from every connected device."""

    watch_cmd(_client(url), config=_config())


@app.command()
def log(
    habit_id: str = typer.Argument(..., help="Habit id"),
    undo: bool = typer.Option(False, "--undo", help="Mark as not done"),
    date: str = typer.Option(None, help="Day (YYYY-MM-DD), default today"),
    url: str = typer.Option(None, help="Server URL"),
) -> None:
    """Mark a habit done (or not done) for a day."""

    set_log_cmd(
        _client(url),
        habit_id=habit_id,
        completed=not undo,
        date_key=date,
        timezone=_config().timezone,
    )


@app.command()
def perfect(
    date: str = typer.Option(None, help="Day (YYYY-MM-DD), default today"),
    url: str = typer.Option(None, help="Server URL"),
) -> None:
    """Mark every habit done for a day."""

    mark_perfect_cmd(_client(url), date_key=date, timezone=_config().timezone)


@habit_app.command("list")
def habit_list(url: str = typer.Option(None, help="Server URL")) -> None:
    """List habits."""

    list_habits_cmd(_client(url))


@habit_app.command("add")
def habit_add(
    habit_id: str = typer.Argument(..., help="Stable habit id"),
    name: str = typer.Argument(..., help="Display name"),
    icon: str = typer.Option(None, help="Icon"),
    category: str = typer.Option(None, help="Category"),
    url: str = typer.Option(None, help="Server URL"),
) -> None:
    """Create a habit."""

    add_habit_cmd(_client(url), habit_id=habit_id, name=name, icon=icon, category=category)


@habit_app.command("edit")
def habit_edit(
    habit_id: str = typer.Argument(..., help="Habit id"),
    name: str = typer.Argument(..., help="New display name"),
    icon: str = typer.Option(None, help="Icon"),
    category: str = typer.Option(None, help="Category"),
    url: str = typer.Option(None, help="Server URL"),
) -> None:
    """Rename a habit or change its icon/category."""

    edit_habit_cmd(_client(url), habit_id=habit_id, name=name, icon=icon, category=category)


@habit_app.command("rm")
def habit_rm(
    habit_id: str = typer.Argument(..., help="Habit id"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
    url: str = typer.Option(None, help="Server URL"),
) -> None:
    """Delete a habit and all of its logged days."""

    if not yes and not typer.confirm(f"Delete habit {habit_id!r}? Its data will be removed."):
        raise typer.Exit(code=1)
    remove_habit_cmd(_client(url), habit_id=habit_id)


@habit_app.command("seed")
def habit_seed(url: str = typer.Option(None, help="Server URL")) -> None:
    """Create the starter habit set."""

    seed_habits_cmd(_client(url))


@note_app.command("day")
def note_day(
    text: str = typer.Argument(None, help="New note; omit to print the current one"),
    date: str = typer.Option(None, help="Day (YYYY-MM-DD), default today"),
    url: str = typer.Option(None, help="Server URL"),
) -> None:
    """Read or write a day's note."""

    daily_note_cmd(_client(url), note=text, date_key=date, timezone=_config().timezone)


@note_app.command("global")
def note_global(
    text: str = typer.Argument(None, help="New content; omit to print the current one"),
    url: str = typer.Option(None, help="Server URL"),
) -> None:
    """Read or replace the global note."""

    global_note_cmd(_client(url), content=text)


def main() -> None:
    app()
