"""Typer CLI entrypoint."""

from __future__ import annotations

import logging
import threading
from pathlib import Path

import typer

from webcsv.core.config import load_config
from webcsv.core.errors import WebcsvError
from webcsv.core.model import Binding, TypedValue, ValueKind, parse_kind
from webcsv.core.service import WebcsvService

app = typer.Typer(help="Poll CSV telemetry from web-enabled devices via declarative profiles")


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log debug output to stderr"),
) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _build_service(prefer_strong: bool = False) -> WebcsvService:
    service = WebcsvService(prefer_strong=prefer_strong)
    for warning in getattr(service, "load_warnings", ()):
        typer.echo(f"Warning: {warning}", err=True)
    return service


def _parse_kind(kind: str) -> ValueKind:
    try:
        return parse_kind(kind)
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from None


@app.command("profiles")
def list_profiles() -> None:
    """List available device profiles and their variables."""
    try:
        service = _build_service()
        profiles = service.list_profiles()
        if not profiles:
            typer.echo("No profiles loaded")
            raise typer.Exit(code=1)

        for source in profiles:
            profile = service.describe_profile(source)
            typer.echo(f"{profile.name} ({profile.maturity}): {source.origin}")
            for group_name, group in sorted(profile.groups.items()):
                typer.echo(f"  {group_name}: {', '.join(group.variables)}")
    except WebcsvError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("probe")
def probe_host(
    host: str,
    strong: bool = typer.Option(False, "--strong", help="Prefer profiles with a response pattern"),
    show_all: bool = typer.Option(False, "--all", help="Probe every profile and print each result"),
) -> None:
    """Find the profile matching HOST."""
    try:
        service = _build_service(prefer_strong=strong)
        if show_all:
            for name, result in service.probe_all(host).items():
                typer.echo(f"{name}: {result}")
            return
        source = service.discover(host)
        typer.echo(f"{host} -> {source.name}")
    except WebcsvError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("get")
def get_value(
    server: str,
    variable: str,
    kind: str = typer.Option("text", "--kind", help="number, text, percent, switch, contact or datetime"),
    config: Path | None = typer.Option(None, "--config", help="Configuration file"),
) -> None:
    """Print the current value of VARIABLE on SERVER."""
    value_kind = _parse_kind(kind)
    try:
        service = _build_service()
        service.configure(load_config(config))
        value = service.current_typed_value(server, variable, value_kind)
        if value is None:
            typer.echo(f"No value available for {server}:{variable}", err=True)
            raise typer.Exit(code=1)
        typer.echo(f"{server}:{variable} = {value}")
    except WebcsvError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("poll")
def poll(
    config: Path | None = typer.Option(None, "--config", help="Configuration file"),
    once: bool = typer.Option(False, "--once", help="Run a single tick and exit"),
) -> None:
    """Poll all configured items and print every update."""

    def _publish(binding: Binding, value: TypedValue) -> None:
        typer.echo(f"{binding.name}={value}")

    try:
        service = _build_service()
        service.configure(load_config(config))
        if once:
            service.poller(_publish).tick()
            return
        stop = threading.Event()
        try:
            service.run(_publish, stop)
        except KeyboardInterrupt:
            stop.set()
    except WebcsvError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


def run() -> None:
    app()


if __name__ == "__main__":
    run()
