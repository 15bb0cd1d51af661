"""CLI application entrypoint built with Typer."""

from __future__ import annotations

import json
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterator, Optional

import typer
from rich.console import Console
from rich.table import Table

from AccessWhitelist.ledger import LedgerLoadError, format_timestamp
from AccessWhitelist.policy import RemotePolicyError
from AccessWhitelist.resolver import InvalidAddressError
from AccessWhitelist.service import (
    Runtime,
    Settings,
    build_runtime,
    create_app,
    format_time_remaining,
    load_settings,
    log_settings,
)

from .logging import configure_logging

CLI_VERSION = "0.1.0"

app = typer.Typer(help="Temporary IP whitelisting against a Cloudflare Access policy")


def _settings(ctx: typer.Context) -> Settings:
    return ctx.obj["settings"]


def _echo_json(payload: Dict[str, Any]) -> None:
    typer.echo(json.dumps(payload, indent=2, sort_keys=True))


def _fail(exc: Exception) -> None:
    typer.echo(f"[error] {exc}", err=True)
    raise typer.Exit(code=1)


@contextmanager
def _runtime(ctx: typer.Context) -> Iterator[Runtime]:
    try:
        runtime = build_runtime(_settings(ctx))
    except LedgerLoadError as exc:
        _fail(exc)
    try:
        yield runtime
    finally:
        runtime.close()


@app.callback()
def main_callback(
    ctx: typer.Context,
    store: Optional[Path] = typer.Option(None, "--store", help="Ledger file (overrides WHITELIST_STORE_PATH)"),
    log_format: Optional[str] = typer.Option(None, "--log-format", help="text or json"),
    log_file: Optional[Path] = typer.Option(None, "--log-file", help="Also write logs to this file"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    try:
        settings = load_settings(store_path=store, log_format=log_format.lower() if log_format else None)
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc
    if settings.log_format not in {"text", "json"}:
        raise typer.BadParameter("--log-format must be 'text' or 'json'")
    configure_logging(settings.log_format, verbose, log_file)
    ctx.obj = {"settings": settings}


@app.command()
def serve(
    ctx: typer.Context,
    host: str = typer.Option("0.0.0.0", help="Interface to bind"),
    port: Optional[int] = typer.Option(None, help="Port to listen on (overrides PORT)"),
) -> None:
    """Run the HTTP service and the expiry daemon."""

    import uvicorn

    settings = _settings(ctx)
    log_settings(settings)
    with _runtime(ctx) as runtime:
        application = create_app(runtime)
        uvicorn.run(application, host=host, port=port or settings.port, log_config=None)


@app.command()
def entries(
    ctx: typer.Context,
    as_json: bool = typer.Option(False, "--json", help="Emit JSON instead of a table"),
) -> None:
    """List ledger entries and their remaining time."""

    with _runtime(ctx) as runtime:
        now = datetime.now(timezone.utc)
        rows = runtime.ledger.entries()
        if as_json:
            _echo_json({entry.address: format_timestamp(entry.expires_at) for entry in rows})
            return
        table = Table(title="Whitelisted addresses")
        table.add_column("Address")
        table.add_column("Expires at")
        table.add_column("Remaining")
        for entry in rows:
            table.add_row(
                entry.address,
                format_timestamp(entry.expires_at),
                format_time_remaining(entry.expires_at - now),
            )
        Console().print(table)


@app.command()
def status(ctx: typer.Context, address: str = typer.Argument(..., help="Address to check")) -> None:
    """Report whether an address is whitelisted."""

    with _runtime(ctx) as runtime:
        try:
            result = runtime.service.status(address)
        except InvalidAddressError as exc:
            _fail(exc)
        payload: Dict[str, Any] = {"ip": result.address, "whitelisted": result.whitelisted}
        if result.expires_at is not None:
            payload["expiresAt"] = format_timestamp(result.expires_at)
            payload["timeRemaining"] = result.time_remaining
        _echo_json(payload)


@app.command()
def admit(
    ctx: typer.Context,
    address: str = typer.Argument(..., help="Address to whitelist"),
    duration: str = typer.Option("60", "--duration", "-d", help="Minutes, or a duration such as 30s or 1h30m"),
) -> None:
    """Whitelist an address, or extend its current entry."""

    with _runtime(ctx) as runtime:
        try:
            result = runtime.service.admit(address, duration)
        except (InvalidAddressError, RemotePolicyError) as exc:
            _fail(exc)
        _echo_json(
            {
                "ip": result.address,
                "expiresAt": format_timestamp(result.expires_at),
                "extended": result.extended,
            }
        )


@app.command()
def revoke(ctx: typer.Context, address: str = typer.Argument(..., help="Address to remove")) -> None:
    """Remove an address from the policy and the ledger."""

    with _runtime(ctx) as runtime:
        try:
            removed = runtime.service.revoke(address)
        except (InvalidAddressError, RemotePolicyError) as exc:
            _fail(exc)
        _echo_json({"ip": address, "removed": removed})


@app.command()
def sweep(ctx: typer.Context) -> None:
    """Run one expiry sweep now."""

    with _runtime(ctx) as runtime:
        removed = runtime.daemon.sweep()
        _echo_json({"removed": removed})


@app.command("config")
def show_config(ctx: typer.Context) -> None:
    """Print the effective configuration with credentials masked."""

    _echo_json(_settings(ctx).describe())


@app.command()
def version() -> None:
    typer.echo(CLI_VERSION)


def main() -> None:
    app()


__all__ = ["app", "main"]
