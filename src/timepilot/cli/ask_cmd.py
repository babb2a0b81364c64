"""CLI assistant command: tp ask."""

from __future__ import annotations

import json
from pathlib import Path

import click

from timepilot.cli.doc_cmd import run_session
from timepilot.core.models import AiMode
from timepilot.gateway.service import AssistantGateway
from timepilot.sync.applier import PatchApplier, preview_patch
from timepilot.sync.assistant import AssistantClient
from timepilot.sync.orchestrator import SyncOrchestrator


def _make_client(config: dict) -> AssistantClient:
    """Use the configured gateway URL, or an in-process gateway."""
    gateway_cfg = config.get("gateway", {})
    url = config.get("api", {}).get("gateway_url")
    timeout = gateway_cfg.get("timeout", 120.0)
    if url:
        return AssistantClient(url=url, timeout=timeout)
    return AssistantClient(gateway=AssistantGateway(gateway_cfg), timeout=timeout)


def _short(value: object, limit: int = 80) -> str:
    text = json.dumps(value, ensure_ascii=False)
    return text if len(text) <= limit else text[: limit - 3] + "..."


@click.command("ask")
@click.argument("instruction")
@click.option("--apply", "apply_patch", is_flag=True, help="Apply a proposed patch without asking.")
@click.option("--patch", "require_patch", is_flag=True, help="Ask the assistant for a patch.")
@click.option(
    "--home",
    type=click.Path(path_type=Path),
    default=None,
    help="Override TIMEPILOT_HOME path.",
)
def ask_cmd(instruction: str, apply_patch: bool, require_patch: bool, home: Path | None) -> None:
    """Ask the assistant about the document, or to change it."""

    async def _action(orchestrator: SyncOrchestrator, config: dict):
        client = _make_client(config)
        response = await client.ask(instruction, orchestrator.document, require_patch=require_patch)
        click.echo(response.message)

        if response.mode is not AiMode.PREVIEW_PATCH or not response.patch:
            return

        changes = preview_patch(orchestrator.document, response.patch)
        if not changes:
            click.echo("\nProposed patch changes nothing.")
            return

        click.echo("\nProposed changes:")
        for key, (current, proposed) in changes.items():
            click.echo(f"  {key}: {_short(current)} -> {_short(proposed)}")

        if not apply_patch and not click.confirm("\nApply these changes?", default=False):
            click.echo("Discarded.")
            return

        result = await PatchApplier(orchestrator).apply(response)
        if result.persisted:
            click.echo(f"Applied: {', '.join(result.keys)}")
        else:
            click.echo("Applied locally, but saving failed.", err=True)

    run_session(home, _action)
