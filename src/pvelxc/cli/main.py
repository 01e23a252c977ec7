"""Main CLI implementation using Typer."""

import asyncio
from pathlib import Path
from typing import Any, Callable, List, Optional

import typer
from rich.console import Console

from pvelxc.cli.commands import (
    FailurePolicy,
    apply_recipe,
    build_provisioner,
    create_container,
    destroy_container,
    list_recipes,
    parse_settings,
    resolve_template,
    show_notes,
)
from pvelxc.errors import ProvisionError


# Create Typer app
app = typer.Typer(
    name="pvelxc",
    help="pvelxc - Recipe-driven LXC provisioning for Proxmox VE",
    add_completion=False,
)

# Console for rich output
console = Console()


def _run_cli_command(
    handler: Callable[..., Any],
    config: Optional[Path],
    log_level: Optional[str],
    **kwargs: Any,
):
    """Helper to run a CLI command against a provisioner with error handling."""

    async def runner():
        provisioner = await build_provisioner(config, log_level)
        await handler(provisioner, **kwargs)

    try:
        asyncio.run(runner())
    except ProvisionError as e:
        console.print(f"[red]Error:[/red] {e}")
        for hint in e.hints:
            console.print(f"  {hint}", markup=False)
        raise typer.Exit(1) from e
    except KeyboardInterrupt:
        console.print("[yellow]Interrupted[/yellow]")
        raise typer.Exit(130)


@app.command("create")
def create_command(
    recipe: str = typer.Argument(..., help="Recipe to install (see 'pvelxc recipes')"),
    ctid: Optional[int] = typer.Option(None, "--ctid", help="Container ID [env: CT_ID]"),
    hostname: Optional[str] = typer.Option(None, "--hostname", help="Container hostname [env: CT_HOSTNAME]"),
    cores: Optional[int] = typer.Option(None, "--cores", help="CPU cores [env: CT_CORES]"),
    memory: Optional[int] = typer.Option(None, "--memory", help="RAM in MB [env: CT_MEMORY]"),
    swap: Optional[int] = typer.Option(None, "--swap", help="Swap in MB [env: CT_SWAP]"),
    disk_size: Optional[int] = typer.Option(None, "--disk-size", help="Root disk in GB [env: CT_DISK_SIZE]"),
    ip: Optional[str] = typer.Option(None, "--ip", help="'dhcp' or CIDR address [env: CT_IP]"),
    gateway: Optional[str] = typer.Option(None, "--gateway", help="Gateway for a static address [env: CT_GATEWAY]"),
    bridge: Optional[str] = typer.Option(None, "--bridge", help="Network bridge [env: CT_BRIDGE]"),
    storage: Optional[str] = typer.Option(None, "--storage", help="Root disk storage [env: CT_STORAGE]"),
    settings: Optional[List[str]] = typer.Option(None, "--set", help="Recipe setting as KEY=VALUE"),
    on_failure: FailurePolicy = typer.Option(
        FailurePolicy.ASK, "--on-failure", help="Handling of a container whose install failed"
    ),
    dry_run: bool = typer.Option(False, "--dry-run", help="Show the plan without touching the host"),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Config file path"),
    log_level: Optional[str] = typer.Option(None, "--log-level", "-l", help="Log level"),
):
    """Create a container and install an application into it."""
    overrides = {
        "CT_ID": ctid,
        "CT_HOSTNAME": hostname,
        "CT_CORES": cores,
        "CT_MEMORY": memory,
        "CT_SWAP": swap,
        "CT_DISK_SIZE": disk_size,
        "CT_IP": ip,
        "CT_GATEWAY": gateway,
        "CT_BRIDGE": bridge,
        "CT_STORAGE": storage,
    }
    _run_cli_command(
        create_container,
        config,
        log_level,
        recipe=recipe,
        overrides={key: value for key, value in overrides.items() if value is not None},
        settings=parse_settings(settings),
        policy=on_failure,
        dry_run=dry_run,
    )


@app.command("apply")
def apply_command(
    recipe: str = typer.Argument(..., help="Recipe to install"),
    target: str = typer.Argument(..., help="Container ID, or 'all'"),
    settings: Optional[List[str]] = typer.Option(None, "--set", help="Recipe setting as KEY=VALUE"),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Config file path"),
    log_level: Optional[str] = typer.Option(None, "--log-level", "-l", help="Log level"),
):
    """Install an application into existing container(s)."""
    _run_cli_command(
        apply_recipe,
        config,
        log_level,
        recipe=recipe,
        target=target,
        settings=parse_settings(settings),
    )


@app.command("recipes")
def recipes_command(
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Config file path"),
    log_level: Optional[str] = typer.Option(None, "--log-level", "-l", help="Log level"),
):
    """List available recipes."""
    _run_cli_command(list_recipes, config, log_level)


@app.command("template")
def template_command(
    distribution: str = typer.Argument(..., help="Distribution, e.g. debian"),
    version: str = typer.Argument(..., help="Major version, e.g. 12"),
    storage: Optional[str] = typer.Option(None, "--storage", help="Template storage [env: TEMPLATE_STORAGE]"),
    download: bool = typer.Option(True, "--download/--no-download", help="Download when missing"),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Config file path"),
    log_level: Optional[str] = typer.Option(None, "--log-level", "-l", help="Log level"),
):
    """Resolve the newest template for a distribution."""
    _run_cli_command(
        resolve_template,
        config,
        log_level,
        distribution=distribution,
        version=version,
        storage=storage,
        download=download,
    )


@app.command("destroy")
def destroy_command(
    ctid: int = typer.Argument(..., help="Container ID"),
    force: bool = typer.Option(False, "--force", "-f", help="Destroy without confirmation"),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Config file path"),
    log_level: Optional[str] = typer.Option(None, "--log-level", "-l", help="Log level"),
):
    """Stop and destroy a container."""
    if not force:
        confirm = typer.confirm(f"Destroy container {ctid}?")
        if not confirm:
            raise typer.Abort()
    _run_cli_command(destroy_container, config, log_level, ctid=ctid)


@app.command("notes")
def notes_command(
    ctid: int = typer.Argument(..., help="Container ID"),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Config file path"),
    log_level: Optional[str] = typer.Option(None, "--log-level", "-l", help="Log level"),
):
    """Show a container's notes."""
    _run_cli_command(show_notes, config, log_level, ctid=ctid)


def main():
    """Main entry point for CLI."""
    app()
