"""
mcrelay CLI

Commands:
    init      write ~/.mcrelay/config.json
    status    show resolved configuration
    run       start the bridge
    classify  dry-run the log line classifier
"""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path
from typing import Final, Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from mcrelay import __logo__, __version__
from mcrelay.errors import ConfigError


# ============================================================================
# CLI App
# ============================================================================

APP_NAME: Final[str] = "mcrelay"

app = typer.Typer(
    name=APP_NAME,
    help=f"{__logo__} mcrelay - Discord <-> Minecraft chat bridge",
    no_args_is_help=True,
)

console = Console()


def _load_or_exit(config_file: Optional[Path], env_file: Optional[Path]):
    from mcrelay.config.loader import load_config

    try:
        return load_config(config_file, env_file=env_file)
    except ConfigError as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        raise typer.Exit(1)


# ============================================================================
# Version
# ============================================================================

def version_callback(value: bool):
    if value:
        console.print(f"{__logo__} mcrelay v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None, "--version", callback=version_callback, is_eager=True
    ),
):
    """mcrelay - Discord <-> Minecraft chat bridge."""
    pass


# ============================================================================
# Init
# ============================================================================


@app.command()
def init(
    config_file: Optional[Path] = typer.Option(None, "--config", "-c"),
):
    """Create a config file with the required credentials."""
    from pydantic import ValidationError

    from mcrelay.config.loader import get_config_path, save_config
    from mcrelay.config.schema import Config

    config_path = config_file or get_config_path()

    if config_path.exists():
        console.print(f"[yellow]Config already exists at {config_path}[/yellow]")
        if not typer.confirm("Overwrite?"):
            raise typer.Exit()

    token = typer.prompt("Discord bot token", hide_input=True)
    channel = typer.prompt("Discord channel id", type=int)
    api_base = typer.prompt("Minecraft API base URL", default="http://localhost:8080")

    try:
        config = Config(
            _env_file=None,
            discord_token=token,
            discord_channel=channel,
            mc_api_base=api_base,
        )
    except ValidationError as e:
        console.print(f"[red]Invalid value: {escape(str(e))}[/red]")
        raise typer.Exit(1)

    save_config(config, config_path)

    console.print(f"[green]✓[/green] Created config at {config_path}")
    console.print(f"  Chat stream: [cyan]{config.ws_url}[/cyan]")
    console.print("\nNext: [cyan]mcrelay run[/cyan]")


# ============================================================================
# Status
# ============================================================================


@app.command()
def status(
    config_file: Optional[Path] = typer.Option(None, "--config", "-c"),
    env_file: Optional[Path] = typer.Option(Path(".env"), "--env-file"),
):
    """Show the resolved configuration."""
    from mcrelay.config.loader import get_config_path

    config_path = config_file or get_config_path()
    config = _load_or_exit(config_file, env_file)

    table = Table(title=f"{__logo__} mcrelay status", show_header=False)
    table.add_column("Key", style="cyan")
    table.add_column("Value")

    table.add_row("Config file", f"{config_path} {'[green]✓[/green]' if config_path.exists() else '[dim]absent[/dim]'}")
    table.add_row("Discord token", "[green]set[/green]" if config.discord_token else "[red]missing[/red]")
    table.add_row("Discord channel", str(config.discord_channel))
    table.add_row("API base", config.mc_api_base)
    table.add_row("Chat stream", config.ws_url)
    table.add_row("Queue size", str(config.relay.queue_size))
    table.add_row("Reconnect delay", f"{config.relay.reconnect_delay}s")
    table.add_row("Log level", config.log_level)

    console.print(table)


# ============================================================================
# Run
# ============================================================================


@app.command()
def run(
    verbose: bool = typer.Option(False, "--verbose", "-v"),
    config_file: Optional[Path] = typer.Option(None, "--config", "-c"),
    env_file: Optional[Path] = typer.Option(Path(".env"), "--env-file"),
):
    """Start the bridge and run until interrupted."""
    from mcrelay.channels.discord import DiscordChannel
    from mcrelay.relay.bridge import start
    from mcrelay.server.api import ServerApiClient
    from mcrelay.utils.log import setup_logging

    config = _load_or_exit(config_file, env_file)
    setup_logging("DEBUG" if verbose else config.log_level, config.log_file)

    console.print(f"{__logo__} Bridging channel {config.discord_channel} <-> {config.ws_url}")

    async def bridge():
        server_api = ServerApiClient(config.mc_api_base)
        channel = DiscordChannel(
            config.discord,
            token=config.discord_token,
            chat_id=config.discord_channel,
            server_api=server_api,
        )
        relay = start(
            config.mc_api_base,
            config.discord_channel,
            channel,
            queue_size=config.relay.queue_size,
            reconnect_delay=config.relay.reconnect_delay,
            chats_path=config.relay.chats_path,
        )
        channel.relay = relay

        channel_task = asyncio.create_task(channel.start(), name="discord-channel")
        relay_task = asyncio.create_task(relay.wait(), name="relay-watch")

        try:
            done, _ = await asyncio.wait(
                {channel_task, relay_task},
                return_when=asyncio.FIRST_COMPLETED,
            )
            if relay_task in done:
                relay_task.result()
                raise RuntimeError("relay stopped unexpectedly")
        finally:
            await channel.stop()
            channel_task.cancel()
            relay_task.cancel()
            await asyncio.gather(channel_task, relay_task, return_exceptions=True)
            await relay.close()
            await server_api.aclose()

    try:
        asyncio.run(bridge())
    except KeyboardInterrupt:
        console.print("\nShutting down...")
    except Exception as e:
        console.print(f"[red]Bridge failed: {escape(str(e))}[/red]")
        raise typer.Exit(1)


# ============================================================================
# Classify
# ============================================================================


@app.command()
def classify(
    file: Optional[Path] = typer.Argument(None, help="Log file to read (default: stdin)"),
    show_all: bool = typer.Option(False, "--all", "-a", help="Also list ignored lines"),
):
    """Show how server log lines would be relayed."""
    from mcrelay.relay.classifier import ChatLine, SystemLine, classify as classify_line, render

    if file is not None and not file.exists():
        console.print(f"[red]No such file: {file}[/red]")
        raise typer.Exit(1)

    lines = file.read_text(encoding="utf-8").splitlines() if file else sys.stdin.read().splitlines()

    table = Table(title=f"{__logo__} Classification")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Kind")
    table.add_column("Relayed as")

    forwarded = 0
    for n, line in enumerate(lines, start=1):
        event = classify_line(line)
        text = render(event)

        if isinstance(event, ChatLine):
            kind = "[green]chat[/green]"
        elif isinstance(event, SystemLine):
            kind = "[yellow]system[/yellow]"
        else:
            kind = "[dim]ignored[/dim]"

        if text is not None:
            forwarded += 1
        elif not show_all:
            continue

        shown = escape(text) if text is not None else f"[dim]{escape(line)}[/dim]"
        table.add_row(str(n), kind, shown)

    console.print(table)
    console.print(f"{forwarded} of {len(lines)} lines would be relayed")


if __name__ == "__main__":
    app()
