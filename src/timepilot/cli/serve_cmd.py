"""CLI serve command: tp serve."""

from __future__ import annotations

from pathlib import Path

import click

from timepilot.core.config import load_config, resolve_home


@click.command("serve")
@click.option("--port", "-p", default=None, type=int, help="Port (default: 8430).")
@click.option("--host", default=None, help="Host (default: 127.0.0.1).")
@click.option(
    "--home",
    type=click.Path(path_type=Path),
    default=None,
    help="Override TIMEPILOT_HOME path.",
)
def serve_cmd(port: int | None, host: str | None, home: Path | None) -> None:
    """Start the assistant gateway HTTP server."""
    try:
        import uvicorn
    except ImportError:
        click.echo(
            "FastAPI and uvicorn are required. "
            "Install with: pip install timepilot[api]"
        )
        return

    home_path = home or resolve_home()
    config = load_config(home_path / "config.yaml", home=home_path)
    api_config = config.get("api", {})
    gateway_config = config.get("gateway", {})

    final_host = host or api_config.get("host", "127.0.0.1")
    final_port = port or api_config.get("port", 8430)

    from timepilot.api.server import create_app

    app = create_app(gateway_config=gateway_config)

    click.echo(f"Starting timepilot gateway at http://{final_host}:{final_port}/api/assistant")
    if not (gateway_config.get("api_key") and gateway_config.get("base_url")):
        click.echo("Warning: AI_API_KEY / AI_BASE_URL not set, requests will fail with 500.")

    uvicorn.run(app, host=final_host, port=final_port, log_level="info")
