# src/channelflow/cli.py
"""channelflow Command Line Interface.

Entry point for the channelflow CLI tool.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

import typer
from dynaconf.vendor.ruamel.yaml.parser import ParserError as YamlParserError
from dynaconf.vendor.ruamel.yaml.scanner import ScannerError as YamlScannerError
from pydantic import ValidationError

from channelflow import __version__
from channelflow.contracts.enums import NodeCategory
from channelflow.core.config import ChannelFlowSettings, load_settings
from channelflow.core.document import (
    ChannelDocument,
    DocumentImportError,
    import_document,
    persisted_state,
    read_document,
    write_document,
)
from channelflow.core.graph.registry import capacity_for, kinds_in
from channelflow.core.graph.validator import ConnectionValidator

__all__ = [
    "app",
]

app = typer.Typer(
    name="channelflow",
    help="channelflow: compile channel graphs into pipeline configurations.",
    no_args_is_help=True,
)


@dataclass
class _CliState:
    settings: ChannelFlowSettings = field(default_factory=ChannelFlowSettings)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"channelflow version {__version__}")
        raise typer.Exit()


def _load_cli_settings(settings_path: Path) -> ChannelFlowSettings:
    try:
        return load_settings(settings_path)
    except (YamlParserError, YamlScannerError) as e:
        typer.echo(f"YAML syntax error in {settings_path}: {e.problem}", err=True)
        raise typer.Exit(1) from None
    except FileNotFoundError:
        typer.echo(f"Error: Settings file not found: {settings_path}", err=True)
        raise typer.Exit(1) from None
    except ValidationError as e:
        typer.echo("Configuration errors:", err=True)
        for error in e.errors():
            loc = ".".join(str(x) for x in error["loc"])
            typer.echo(f"  - {loc}: {error['msg']}", err=True)
        raise typer.Exit(1) from None


def _state(ctx: typer.Context) -> _CliState:
    if isinstance(ctx.obj, _CliState):
        return ctx.obj
    return _CliState()


def _open_channel(path: Path, settings: ChannelFlowSettings) -> ChannelDocument:
    """Read and import a channel document, exiting with a message on failure."""
    if not path.exists():
        typer.echo(f"Error: Channel file not found: {path}", err=True)
        raise typer.Exit(1)
    try:
        return import_document(read_document(path), defaults=settings.defaults)
    except DocumentImportError as e:
        typer.echo(f"Error: Cannot import {path}: {e}", err=True)
        raise typer.Exit(1) from None


@app.callback()
def main(
    ctx: typer.Context,
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    settings: Path | None = typer.Option(
        None,
        "--settings",
        "-s",
        help="Path to settings YAML file.",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose/debug logging.",
    ),
    json_logs: bool = typer.Option(
        False,
        "--json-logs",
        help="Output structured JSON logs (for machine processing).",
    ),
) -> None:
    """channelflow: compile channel graphs into pipeline configurations."""
    from channelflow.core.logging import configure_logging

    loaded = _load_cli_settings(settings.expanduser()) if settings is not None else ChannelFlowSettings()

    log_level = "DEBUG" if verbose else loaded.logging.level
    configure_logging(json_output=json_logs or loaded.logging.json_output, level=log_level)

    ctx.obj = _CliState(settings=loaded)


@app.command("compile")
def compile_command(
    ctx: typer.Context,
    channel_file: Path = typer.Argument(..., help="Exported channel document (JSON)."),
    output: Path | None = typer.Option(
        None,
        "--output",
        "-o",
        help="Write the compiled pipeline here instead of stdout.",
    ),
    fingerprint: bool = typer.Option(
        False,
        "--fingerprint",
        help="Print only the canonical hash of the compiled pipeline.",
    ),
) -> None:
    """Compile a channel document into the backend pipeline configuration."""
    document = _open_channel(channel_file, _state(ctx).settings)
    spec = document.compile()

    if fingerprint:
        typer.echo(spec.fingerprint())
        return

    if output is not None:
        write_document(output, spec.to_wire())
        typer.echo(f"Compiled '{spec.name}' to {output}", err=True)
        return

    typer.echo(json.dumps(spec.to_wire(), indent=2))


@app.command()
def validate(
    ctx: typer.Context,
    channel_file: Path = typer.Argument(..., help="Exported channel document (JSON)."),
    output_format: Literal["console", "json"] = typer.Option(
        "console",
        "--format",
        "-f",
        help="Output format: 'console' (human-readable) or 'json' (structured JSON).",
    ),
) -> None:
    """Re-check every edge of a channel against the connection rules.

    Exits 1 if any edge would be refused by the editor.
    """
    document = _open_channel(channel_file, _state(ctx).settings)
    store = document.store
    violations = ConnectionValidator().audit(store)

    if output_format == "json":
        typer.echo(
            json.dumps(
                {
                    "valid": not violations,
                    "nodes": store.node_count,
                    "edges": store.edge_count,
                    "violations": [
                        {
                            "edge": violation.edge.id,
                            "source": violation.edge.source,
                            "target": violation.edge.target,
                            "reason": violation.reason,
                        }
                        for violation in violations
                    ],
                },
                indent=2,
            )
        )
    elif violations:
        typer.echo(f"{len(violations)} invalid connection(s):", err=True)
        for violation in violations:
            edge = violation.edge
            typer.echo(f"  - {edge.id} ({edge.source} -> {edge.target}): {violation.reason}", err=True)
    else:
        typer.echo(f"Channel valid: {store.node_count} nodes, {store.edge_count} edges")

    if violations:
        raise typer.Exit(1)


@app.command()
def nodes() -> None:
    """List registered node kinds by category."""
    for category in NodeCategory:
        typer.echo(f"{category.value}:")
        for kind in kinds_in(category):
            capacity = capacity_for(kind)
            typer.echo(f"  {kind.value:<16} in={capacity.max_in} out={capacity.max_out}")


@app.command()
def sanitize(
    ctx: typer.Context,
    channel_file: Path = typer.Argument(..., help="Exported channel document (JSON)."),
    output: Path = typer.Option(
        ...,
        "--output",
        "-o",
        help="Where to write the sanitized channel state.",
    ),
) -> None:
    """Write the persisted form of a channel with sensitive fields removed."""
    settings = _state(ctx).settings
    document = _open_channel(channel_file, settings)
    payload = persisted_state(document, sensitive_fields=settings.persistence.sensitive_fields)
    write_document(output, payload)
    typer.echo(f"Sanitized channel written to {output}")


if __name__ == "__main__":
    app()
