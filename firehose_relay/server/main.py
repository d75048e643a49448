"""CLI entry point for the firehose relay server.

This module provides the command-line interface for running the relay with
configuration overrides, a startup summary and error handling.
"""

import sys
from pathlib import Path
from typing import Optional

import click
import uvicorn
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from firehose_relay import __version__
from firehose_relay.models.config import ConfigManager, RelayConfig
from firehose_relay.server.app import create_app


console = Console()


@click.command()
@click.option(
    "--config",
    "-c",
    type=click.Path(dir_okay=False, path_type=Path),
    default="config/config.yaml",
    help="Path to configuration YAML file (skipped if missing)",
)
@click.option("--host", type=str, help="Bind address (overrides config)")
@click.option("--port", "-p", type=int, help="Bind port (overrides config)")
@click.option("--primary-url", type=str, help="JSON (JetStream) feed URL (overrides config)")
@click.option("--fallback-url", type=str, help="Binary (firehose) feed URL (overrides config)")
@click.option(
    "--log-level",
    "-l",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    help="Logging level (overrides config)",
)
@click.option(
    "--autostart/--no-autostart",
    default=None,
    help="Connect upstream as soon as the server starts",
)
@click.option("--quiet", "-q", is_flag=True, help="Skip the configuration summary")
@click.version_option(version=__version__, prog_name="firehose-relay")
def main(
    config: Path,
    host: Optional[str],
    port: Optional[int],
    primary_url: Optional[str],
    fallback_url: Optional[str],
    log_level: Optional[str],
    autostart: Optional[bool],
    quiet: bool,
) -> None:
    """
    Bluesky Firehose Relay - stream the Bluesky firehose to browsers.

    Connects to the JetStream JSON feed (falling back once to the CBOR repo
    firehose), and pushes status, stats and events to every browser connected
    on /ws. Browsers control the shared upstream with start/pause/resume/stop.

    Examples:

        # Run with default configuration
        $ firehose-relay

        # Different port, connect immediately
        $ firehose-relay --port 8080 --autostart

        # Use a custom config file
        $ firehose-relay --config custom_config.yaml
    """
    try:
        cli_overrides = {
            "host": host,
            "port": port,
            "primary_url": primary_url,
            "fallback_url": fallback_url,
            "log_level": log_level.upper() if log_level else None,
            "autostart": autostart,
        }

        config_manager = ConfigManager(config)
        relay_config = config_manager.load_config(cli_overrides)
    except (ValidationError, ValueError, OSError) as e:
        console.print(f"\n[red]Configuration error:[/red] {e}", style="bold red")
        sys.exit(1)

    if not quiet:
        _display_config_summary(relay_config)

    try:
        uvicorn.run(
            create_app(relay_config),
            host=relay_config.host,
            port=relay_config.port,
            log_level=relay_config.log_level.lower(),
        )
    except KeyboardInterrupt:
        console.print("\n[yellow]Relay interrupted by user[/yellow]")
        sys.exit(130)

    sys.exit(0)


def _display_config_summary(config: RelayConfig) -> None:
    """Display configuration summary before serving."""
    table = Table(title="Relay Configuration", show_header=False)
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Listen", f"http://{config.host}:{config.port}")
    table.add_row("Primary", f"{config.primary.label} ({config.primary.url})")
    table.add_row("Fallback", f"{config.fallback.label} ({config.fallback.url})")
    table.add_row("Fallback Delay", f"{config.fallback_delay}s")
    table.add_row("Stats Interval", f"{config.stats_interval}s")
    table.add_row("Autostart", "yes" if config.autostart else "no")

    console.print()
    console.print(table)
    console.print()


if __name__ == "__main__":
    main()
