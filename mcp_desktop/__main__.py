"""CLI entry point for MCP Desktop."""

import asyncio
import logging
import sys

import click
from rich.console import Console
from rich.table import Table as RichTable

from mcp_desktop.config import Config
from mcp_desktop.exceptions import MCPDesktopError
from mcp_desktop.messages import format_failure
from mcp_desktop.models import PortRange
from mcp_desktop.orchestrator import StartupOrchestrator
from mcp_desktop.ports import find_available_port
from mcp_desktop.resolver import ExecutableResolver, resolve_executable
from mcp_desktop.supervisor import ProcessSupervisor

console = Console()


def setup_logging(level: str = "INFO", log_file: str = None):
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
        filename=log_file,
    )


@click.group(invoke_without_command=True)
@click.option("--config", "-c", default=None, help="Path to config file")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
@click.pass_context
def cli(ctx, config, verbose):
    """MCP Desktop - run the backend service in a desktop window."""
    ctx.ensure_object(dict)
    try:
        ctx.obj["config"] = Config.load(config)
    except MCPDesktopError as e:
        raise click.ClickException(str(e))
    setup_logging("DEBUG" if verbose else ctx.obj["config"].app.log_level)

    if ctx.invoked_subcommand is None:
        ctx.invoke(run)


@cli.command()
@click.pass_context
def run(ctx):
    """Start the backend and open the desktop window."""
    from mcp_desktop.shell import DesktopShell

    sys.exit(DesktopShell(ctx.obj["config"]).run())


@cli.command()
@click.pass_context
def check(ctx):
    """Start the backend headless, wait until healthy, then stop it."""
    config = ctx.obj["config"]

    async def _check():
        supervisor = ProcessSupervisor.from_config(config)
        orchestrator = StartupOrchestrator(config, supervisor)
        try:
            return await orchestrator.startup(), orchestrator.attempts
        finally:
            await supervisor.stop()

    with console.status("[bold green]Starting backend..."):
        outcome, attempts = asyncio.run(_check())

    if outcome.ready:
        console.print(f"[bold green]Backend healthy[/bold green] on port {outcome.port} "
                      f"after {attempts} health check(s)")
        return

    console.print(f"[bold red]Startup failed:[/bold red] {outcome.category.value}")
    console.print(f"Detail: {outcome.detail}")
    console.print()
    console.print(format_failure(outcome))
    sys.exit(1)


@cli.command()
@click.pass_context
def locate(ctx):
    """Show every candidate backend location and the one that would be used."""
    resolver = ExecutableResolver.from_config(ctx.obj["config"])
    ctx_info = resolver.context
    console.print(f"Frozen: {ctx_info.frozen}")
    console.print(f"Bundle dir: {ctx_info.bundle_dir}")
    console.print(f"Executable dir: {ctx_info.executable_dir}")
    console.print(f"Working dir: {ctx_info.cwd}")

    candidates = resolver.candidates()
    table = RichTable(title="Backend Candidates")
    table.add_column("#", style="dim")
    table.add_column("Path", style="cyan")
    table.add_column("Exists")
    table.add_column("Executable")
    for i, c in enumerate(candidates, 1):
        table.add_row(
            str(i),
            str(c.path),
            "[green]yes[/green]" if c.exists() else "[red]no[/red]",
            "yes" if c.executable else "no",
        )
    console.print(table)

    try:
        path = resolve_executable(candidates)
    except MCPDesktopError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)
    console.print(f"\nResolved: [blue]{path}[/blue]")


@cli.command()
@click.option("--start", "-s", type=click.IntRange(1, 65535), default=None,
              help="Preferred first port")
@click.pass_context
def port(ctx, start):
    """Print the first free port the backend would be given."""
    ports = ctx.obj["config"].ports
    if start is None:
        start = ports.preferred_start
    ranges = [PortRange(start, ports.range_size), PortRange(ports.fallback_start, ports.range_size)]
    try:
        console.print(find_available_port(start, ranges))
    except MCPDesktopError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)


if __name__ == "__main__":
    cli()
