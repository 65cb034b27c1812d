#!/usr/bin/env python3

from __future__ import annotations
import asyncio
import json
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional, TypeVar

import typer
from rich.console import Console
from rich.table import Table

from client.errors import HubError, HubRequestError
from client.hub import HubClient
from shared.config import ConfigError, HubConfig, load_config
from shared.envelope import Forward
from shared.log import get_logger, set_level

app = typer.Typer(help="Hub signalling client")
console = Console()
logger = get_logger(__name__)

T = TypeVar("T")

_server_option = typer.Option(None, "--server", "-s", help="WebSocket URL of the hub (default from hub.yaml / HUB_URL)")
_config_option = typer.Option(None, "--config", "-c", help="YAML config file")


def _load(server: Optional[str], config: Optional[Path]) -> HubConfig:
    try:
        cfg = load_config(config, url=server)
    except ConfigError as e:
        console.print(f"[red]Config error[/]: {e}")
        raise typer.Exit(code=2)
    if cfg.log_level:
        set_level(cfg.log_level)
    return cfg


def _parse_data(data: str) -> Any:
    """JSON if it parses, otherwise the raw string."""
    try:
        return json.loads(data)
    except json.JSONDecodeError:
        return data


def _with_hub(cfg: HubConfig, operation: Callable[[HubClient], Awaitable[T]]) -> T:
    async def main_loop() -> T:
        async with await HubClient.connect(cfg) as hub:
            return await operation(hub)

    try:
        return asyncio.run(main_loop())
    except HubRequestError as e:
        console.print(f"[red]Hub refused request[/]: {e.reason}")
        raise typer.Exit(code=1)
    except (HubError, OSError) as e:
        console.print(f"[red]Error[/]: {e}")
        raise typer.Exit(code=1)


def _print_payload(title: str, payload: dict) -> None:
    table = Table(title=title)
    table.add_column("Field")
    table.add_column("Value")
    for key, value in sorted(payload.items()):
        table.add_row(key, json.dumps(value))
    console.print(table)


@app.command()
def address(
    server: Optional[str] = _server_option,
    config: Optional[Path] = _config_option,
):
    """Print the address the hub assigns to this connection."""
    cfg = _load(server, config)

    async def op(hub: HubClient):
        return await hub.address(), await hub.configuration()

    addr, configuration = _with_hub(cfg, op)
    console.print(f"[bold green]Address[/] {addr}")
    if configuration:
        console.print_json(json.dumps(configuration))


@app.command()
def register(
    hostname: str = typer.Argument(..., help="Hostname to register"),
    server: Optional[str] = _server_option,
    config: Optional[Path] = _config_option,
):
    """Register a hostname with the hub."""
    cfg = _load(server, config)
    result = _with_hub(cfg, lambda hub: hub.register(hostname))
    _print_payload(f"Registered {hostname}", result.payload)


@app.command()
def lookup(
    hostname: str = typer.Argument(..., help="Hostname to look up"),
    server: Optional[str] = _server_option,
    config: Optional[Path] = _config_option,
):
    """Look up the addresses registered under a hostname."""
    cfg = _load(server, config)
    result = _with_hub(cfg, lambda hub: hub.lookup(hostname))
    _print_payload(f"Lookup {hostname}", result.payload)


@app.command()
def forward(
    to: str = typer.Argument(..., help="Destination address"),
    data: str = typer.Argument(..., help="Payload, JSON or plain text"),
    server: Optional[str] = _server_option,
    config: Optional[Path] = _config_option,
):
    """Forward a payload to another peer through the hub."""
    cfg = _load(server, config)
    _with_hub(cfg, lambda hub: hub.forward(to, _parse_data(data)))
    console.print(f"Forwarded to {to}")


@app.command()
def listen(
    hostname: Optional[str] = typer.Option(None, help="Register this hostname before listening"),
    server: Optional[str] = _server_option,
    config: Optional[Path] = _config_option,
):
    """Print forwarded messages until interrupted."""
    cfg = _load(server, config)

    async def op(hub: HubClient) -> None:
        closed = asyncio.Event()

        def on_forward(message: Forward) -> None:
            console.print(f"[bold cyan]Forward[/] from {message.from_}: {json.dumps(message.data)}")

        hub.on("forward", on_forward)
        hub.on("error", lambda e: console.print(f"[red]error[/]: {e}"))
        hub.on("close", lambda _: closed.set())

        console.print(f"[bold green]Listening[/] as {await hub.address()} on {cfg.url}")
        if hostname:
            await hub.register(hostname)
            console.print(f"Registered {hostname}")
        await closed.wait()
        console.print("[yellow]Connection closed by hub[/]")

    try:
        _with_hub(cfg, op)
    except KeyboardInterrupt:
        pass


def main() -> None:
    app()


if __name__ == "__main__":
    main()
