"""CLI document commands: tp show, tp timer, tp add."""

from __future__ import annotations

import asyncio
import json
from datetime import date
from pathlib import Path
from typing import Awaitable, Callable

import click

from timepilot.core.config import load_config, resolve_home
from timepilot.core.models import Document, new_entry
from timepilot.store.base import StoreReadError
from timepilot.store.registry import get_store
from timepilot.sync.orchestrator import SyncOrchestrator

_home_option = click.option(
    "--home",
    type=click.Path(path_type=Path),
    default=None,
    help="Override TIMEPILOT_HOME path.",
)


def run_session(
    home: Path | None,
    action: Callable[[SyncOrchestrator, dict], Awaitable[object]],
) -> object:
    """Load the document, run action(orchestrator, config), then close.

    Raises:
        click.ClickException: The stored document could not be read.
    """
    home_path = home or resolve_home()
    config = load_config(home_path / "config.yaml", home=home_path)

    async def _main():
        orchestrator = SyncOrchestrator(
            get_store(config),
            debounce_seconds=config.get("sync", {}).get("debounce_seconds", 1.0),
        )
        try:
            await orchestrator.load()
        except StoreReadError as e:
            raise click.ClickException(f"Could not load document: {e}") from e
        try:
            return await action(orchestrator, config)
        finally:
            await orchestrator.close()

    return asyncio.run(_main())


def _mutate(home: Path | None, fn: Callable[[Document], object]) -> None:
    async def _action(orchestrator: SyncOrchestrator, config: dict):
        try:
            persisted = await orchestrator.mutate(fn)
        except ValueError as e:
            raise click.ClickException(str(e)) from e
        if not persisted:
            click.echo("Warning: change kept locally but not saved.", err=True)

    run_session(home, _action)


def _format_duration(seconds: int) -> str:
    hours, rest = divmod(int(seconds), 3600)
    minutes, secs = divmod(rest, 60)
    return f"{hours:d}:{minutes:02d}:{secs:02d}"


# --- tp show ---


@click.command("show")
@click.option("--json", "as_json", is_flag=True, help="Print the raw document.")
@_home_option
def show_cmd(as_json: bool, home: Path | None) -> None:
    """Show the stored document."""

    async def _action(orchestrator: SyncOrchestrator, config: dict):
        return orchestrator.document.to_dict()

    data = run_session(home, _action)
    if as_json:
        click.echo(json.dumps(data, ensure_ascii=False, indent=2))
        return

    doc = Document.from_dict(data)
    if doc.is_running:
        state = "paused" if doc.is_paused else "running"
        click.echo(f"Timer: {doc.current_task} ({state} since {doc.start_time})")
        if doc.current_task_description:
            click.echo(f"  {doc.current_task_description}")
    else:
        click.echo("Timer: idle")

    click.echo(f"\nRecords ({len(doc.records)}):")
    for r in doc.records[-10:]:
        click.echo(f"  {r.get('task', '')}  {_format_duration(r.get('duration', 0))}")

    click.echo(f"\nTodos ({len(doc.todos)}):")
    for t in doc.todos:
        mark = "x" if t.get("done") else " "
        click.echo(f"  [{mark}] {t.get('text', '')}  ({str(t.get('id', ''))[:8]})")

    click.echo(f"\nPlans: {len(doc.daily_plans)}  Questions: {len(doc.questions)}")


# --- tp timer ---


@click.group("timer")
def timer_group() -> None:
    """Start, pause, resume or stop the timer session."""


@timer_group.command("start")
@click.argument("task")
@click.option("--description", "-d", default="", help="Task description.")
@click.option("--todo", "todo_id", default=None, help="Link to a todo id.")
@click.option("--plan", "plan_id", default=None, help="Link to a daily plan id.")
@_home_option
def timer_start(
    task: str,
    description: str,
    todo_id: str | None,
    plan_id: str | None,
    home: Path | None,
) -> None:
    """Start a timer session for TASK."""
    _mutate(
        home,
        lambda doc: doc.start_timer(task, description, plan_id=plan_id, todo_id=todo_id),
    )
    click.echo(f"Started: {task}")


@timer_group.command("pause")
@_home_option
def timer_pause(home: Path | None) -> None:
    """Pause the running session."""
    _mutate(home, lambda doc: doc.pause_timer())
    click.echo("Paused.")


@timer_group.command("resume")
@_home_option
def timer_resume(home: Path | None) -> None:
    """Resume a paused session."""
    _mutate(home, lambda doc: doc.resume_timer())
    click.echo("Resumed.")


@timer_group.command("stop")
@_home_option
def timer_stop(home: Path | None) -> None:
    """Stop the session and save it as a record."""
    stopped: list[dict] = []
    _mutate(home, lambda doc: stopped.append(doc.stop_timer()))
    record = stopped[0]
    click.echo(f"Stopped: {record['task']} ({_format_duration(record['duration'])})")


# --- tp add ---

_KINDS = {
    "todo": ("todos", lambda text: new_entry(text=text, done=False)),
    "plan": ("dailyPlans", lambda text: new_entry(text=text, date=date.today().isoformat())),
    "question": ("questions", lambda text: new_entry(text=text)),
}


@click.command("add")
@click.argument("kind", type=click.Choice(sorted(_KINDS)))
@click.argument("text")
@_home_option
def add_cmd(kind: str, text: str, home: Path | None) -> None:
    """Add a todo, daily plan or question."""
    key, factory = _KINDS[kind]
    entry = factory(text)
    _mutate(home, lambda doc: doc.get(key).append(entry))
    click.echo(f"Added {kind}: {text} ({entry['id'][:8]})")
