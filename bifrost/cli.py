"""Bifrost CLI - language server tools for AI assistants."""

import asyncio
import os
import sys
from pathlib import Path
from typing import Optional

import click
import structlog
from rich.console import Console

from bifrost import __version__
from bifrost.config import LOG_LEVEL_ENV, BifrostConfig
from bifrost.core.errors import BifrostError, EngineNotFoundError
from bifrost.logging import setup_logging
from bifrost.lsp.discovery import engine_command

log = structlog.get_logger()

console = Console()
# stdout belongs to MCP while serving
err_console = Console(stderr=True)

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR"]


@click.group()
@click.version_option(version=__version__)
@click.option(
    "--config", "config_path", type=click.Path(dir_okay=False), help="Path to bifrost.toml"
)
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    help="Override the configured log level",
)
@click.pass_context
def cli(ctx: click.Context, config_path: Optional[str], log_level: Optional[str]):
    """Bifrost - bridge AI assistants to a language server"""

    # Provisional until the config names the final log settings
    setup_logging(log_level or os.environ.get(LOG_LEVEL_ENV, "INFO"), cache_loggers=False)

    try:
        config = BifrostConfig.load(config_path)
    except (OSError, ValueError) as e:
        raise click.ClickException(f"Invalid configuration: {e}")

    if log_level:
        config.log_level = log_level.upper()
    setup_logging(
        config.log_level,
        log_file=str(config.log_file) if config.log_file else None,
        json_format=config.json_logs,
    )
    ctx.obj = config


@cli.command()
@click.option(
    "--workspace",
    "-w",
    type=click.Path(file_okay=False),
    help="Workspace root declared to the language server",
)
@click.pass_obj
def serve(config: BifrostConfig, workspace: Optional[str] = None):
    """Serve the language tools over MCP on stdio.

    Starts the language server first; if it cannot be started or does not
    complete the handshake, exits with status 1 without serving.

    Examples:
        bifrost serve

        LPC_WORKSPACE_ROOT=~/mud/lib bifrost serve

        bifrost --log-level debug serve --workspace ~/mud/lib
    """
    from bifrost.server import serve as serve_stdio

    if workspace:
        config.workspace_root = Path(workspace).resolve()

    try:
        command = engine_command(config)
    except EngineNotFoundError as e:
        err_console.print(f"[red]✗ {e}[/red]")
        err_console.print("[dim]Run 'bifrost doctor' for details[/dim]")
        sys.exit(1)

    err_console.print(f"[dim]Starting language server: {' '.join(command)}[/dim]")

    try:
        asyncio.run(serve_stdio(config, command))
    except KeyboardInterrupt:
        err_console.print("[dim]Bifrost stopped[/dim]")
    except BifrostError as e:
        log.error("serve_failed", error=str(e))
        err_console.print(f"[red]✗ {e}[/red]")
        sys.exit(1)


@cli.command()
@click.pass_obj
def locate(config: BifrostConfig):
    """Print the language server command that would be started."""
    try:
        command = engine_command(config)
    except EngineNotFoundError as e:
        err_console.print(f"[red]✗ {e}[/red]")
        sys.exit(1)
    click.echo(" ".join(command))


@cli.command()
@click.option("--verbose", "-v", is_flag=True, help="Show detailed information")
@click.pass_obj
def doctor(config: BifrostConfig, verbose: bool = False):
    """Check Bifrost installation and configuration."""

    from bifrost.core.doctor import get_all_checks

    console.print("[bold cyan]Bifrost Doctor[/bold cyan]\n")

    results = get_all_checks(config)
    for num, check in enumerate(results["checks"].values(), start=1):
        _print_check(num, check, verbose or not check.passed)

    console.print()
    if results["all_passed"]:
        console.print("[bold green]✓ All checks passed - Bifrost is ready![/bold green]")
    else:
        console.print("[bold red]✗ Some checks failed - Bifrost may not start[/bold red]")
        console.print("[dim]Fix the issues above and run 'bifrost doctor' again[/dim]")
        sys.exit(1)


def _print_check(num: int, check, show_details: bool):
    """Helper to print a health check result."""

    status = "[green]✓[/green]" if check.passed else "[red]✗[/red]"
    console.print(f"[bold]{num}. {check.name}:[/] {status} {check.message}")

    if check.details and show_details:
        for line in check.details.split("\n"):
            console.print(f"   [dim]{line}[/dim]")


def main():
    cli()


if __name__ == "__main__":
    main()
