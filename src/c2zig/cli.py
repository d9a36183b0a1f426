from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path
from typing import Optional

import typer
import uvicorn

from .client import ChatStreamClient
from .config import RootConfig, ServiceCfg, default_config_path, load_config, load_config_or_default
from .converter import Converter
from .errors import C2ZigError
from .logsetup import configure_logging

app = typer.Typer(
    name="c2zig",
    help="Convert C/C++ sources to Zig through an OpenAI-compatible chat endpoint.",
    add_completion=False,
)


@app.command()
def serve() -> None:
    """Run the web API with uvicorn."""
    from .web import app as web_app  # noqa: PLC0415

    try:
        cfg: RootConfig | None = load_config(default_config_path())
    except (FileNotFoundError, ValueError):
        cfg = None

    port = cfg.service.port if cfg and cfg.service else ServiceCfg().port

    ssl_kwargs: dict[str, str] = {}
    certfile = os.getenv("C2ZIG_CERTFILE")
    keyfile = os.getenv("C2ZIG_KEYFILE")
    ca_certs = os.getenv("C2ZIG_CA_CERTS")
    if certfile:
        ssl_kwargs["ssl_certfile"] = certfile
    if keyfile:
        ssl_kwargs["ssl_keyfile"] = keyfile
    if ca_certs:
        ssl_kwargs["ssl_ca_certs"] = ca_certs

    uvicorn.run(web_app, host="0.0.0.0", port=port, **ssl_kwargs)


@app.command()
def convert(
    source: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True, help="C/C++ file to convert"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write the Zig code here"),
    analysis_out: Optional[Path] = typer.Option(None, "--analysis-out", help="Write the conversion plan here"),
    config: Optional[Path] = typer.Option(None, "--config", help="Settings file (default ~/.c2zig.yaml)"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
) -> None:
    """Analyze SOURCE, then generate Zig from the resulting plan."""
    configure_logging(logging.INFO if verbose else logging.WARNING)

    try:
        cfg = load_config(config) if config else load_config_or_default()
    except (FileNotFoundError, ValueError) as exc:
        typer.echo(f"Invalid configuration: {exc}", err=True)
        raise typer.Exit(2) from exc

    code = source.read_text(encoding="utf-8")
    if not code.strip():
        typer.echo(f"{source} is empty", err=True)
        raise typer.Exit(2)

    analysis, zig = asyncio.run(_convert(cfg, code))

    if analysis_out:
        analysis_out.write_text(analysis, encoding="utf-8")
    if output:
        output.write_text(zig, encoding="utf-8")
        typer.echo(f"Wrote {output}", err=True)


class _Echo:
    """Prints only the newly arrived tail of each snapshot."""

    def __init__(self) -> None:
        self.printed = 0

    def __call__(self, text: str) -> None:
        typer.echo(text[self.printed :], nl=False)
        self.printed = len(text)


async def _convert(cfg: RootConfig, code: str) -> tuple[str, str]:
    client = ChatStreamClient()
    converter = Converter(cfg, client, source=code)
    try:
        typer.echo("== Analysis & conversion plan ==", err=True)
        analysis = await converter.analyze(_Echo())
        typer.echo("")
        typer.echo("== Zig code ==", err=True)
        zig = await converter.generate(_Echo())
        typer.echo("")
    except C2ZigError as exc:
        typer.echo("")
        typer.echo(converter.state.error, err=True)
        raise typer.Exit(1) from exc
    finally:
        await client.aclose()
    return analysis, zig


def main() -> None:
    app()
