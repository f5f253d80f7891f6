"""Traffic flow gateway command line interface."""

from __future__ import annotations

import json
import os
import subprocess
import sys
from pathlib import Path
from typing import Optional

import typer
import uvicorn

from tfgw.serving.errors import GatewayError
from tfgw.serving.relay import RelayEngine
from tfgw.utils.config import GatewayConfig, load_gateway_config
from tfgw.utils.logging import configure_logging, get_logger

configure_logging()
LOG = get_logger(__name__)

app = typer.Typer(add_completion=False)


def load_config(config: Optional[str]) -> GatewayConfig:
    try:
        return load_gateway_config(config)
    except (OSError, ValueError) as exc:
        typer.echo(f"Could not load gateway config: {exc}", err=True)
        raise typer.Exit(code=2) from exc


def run(cmd: list[str]) -> None:
    LOG.info("Running command", extra={"cmd": " ".join(cmd)})
    subprocess.run(cmd, check=True)


@app.command()
def serve(
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Gateway YAML config"),
    host: Optional[str] = typer.Option(None, help="Bind address override"),
    port: Optional[int] = typer.Option(None, help="Port override"),
    reload: bool = typer.Option(False, help="Reload on code changes"),
) -> None:
    """Run the gateway with uvicorn."""
    cfg = load_config(config)
    if config:
        # The app factory runs in the server process and reads the path from here.
        os.environ["GATEWAY_CONFIG"] = config
    uvicorn.run(
        "tfgw.serving.gateway:create_app",
        factory=True,
        host=host or cfg.host,
        port=port or cfg.port,
        reload=reload,
    )


@app.command()
def models(config: Optional[str] = typer.Option(None, "--config", "-c", help="Gateway YAML config")) -> None:
    """List the configured model services."""
    cfg = load_config(config)
    for name, base_url in cfg.models.items():
        marker = "*" if name == cfg.default_model else " "
        typer.echo(f"{marker} {name}\t{base_url}")


@app.command()
def health(config: Optional[str] = typer.Option(None, "--config", "-c", help="Gateway YAML config")) -> None:
    """Probe every configured service once and print the report."""
    engine = RelayEngine.from_config(load_config(config))
    try:
        report = engine.health_check()
    finally:
        engine.close()
    typer.echo(json.dumps({"services": {k: v.model_dump() for k, v in report.items()}}, indent=2))


@app.command()
def predict(
    payload_file: Path = typer.Argument(..., exists=True, dir_okay=False, help="JSON request body"),
    model: Optional[str] = typer.Option(None, help="Model to call; defaults to the configured default"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Gateway YAML config"),
) -> None:
    """Relay one request body the same way the gateway does."""
    engine = RelayEngine.from_config(load_config(config))
    with open(payload_file, "r", encoding="utf-8") as f:
        payload = json.load(f)
    try:
        result = engine.relay(model, payload, route="cli")
    except GatewayError as err:
        typer.echo(json.dumps({"status": err.status_code, **err.to_dict()}, indent=2), err=True)
        raise typer.Exit(code=1) from err
    finally:
        engine.close()
    typer.echo(json.dumps(result, indent=2))


@app.command()
def loadgen(
    rps: int = typer.Option(20, help="Requests per second"),
    duration: int = typer.Option(30, help="Duration in seconds"),
    gateway_url: str = typer.Option("http://localhost:3000/api"),
    expert: bool = typer.Option(False, help="Use the expert route, cycling over the models in the payloads"),
) -> None:
    cmd = [
        sys.executable,
        "scripts/send_load.py",
        "--rps",
        str(rps),
        "--duration",
        str(duration),
        "--gateway",
        gateway_url,
    ]
    if expert:
        cmd.append("--expert")
    run(cmd)


if __name__ == "__main__":
    app()
