"""Command implementations for CLI."""

import sys
from enum import Enum
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table
from rich.text import Text

from pvelxc.errors import ConfigError
from pvelxc.provision.config import ConfigManager
from pvelxc.provision.engine import FailureHandler, ProvisionResult, Provisioner
from pvelxc.providers import ProviderRegistry
from pvelxc.utils.logging import setup_logging


console = Console()


class FailurePolicy(str, Enum):
    """What to do with a container whose installation failed."""
    ASK = "ask"
    KEEP = "keep"
    DESTROY = "destroy"


async def build_provisioner(config_path: Optional[Path] = None, log_level: Optional[str] = None) -> Provisioner:
    """Load configuration and wire providers into a provisioner."""
    config_manager = ConfigManager(config_path)
    await config_manager.load()

    setup_logging(log_level or config_manager.config.logging.level)

    registry = ProviderRegistry()
    await registry.initialize(config_manager.config)

    return Provisioner(config_manager=config_manager, provider_registry=registry)


def parse_settings(values: Optional[List[str]]) -> Dict[str, str]:
    """Parse repeated ``KEY=VALUE`` options."""
    settings = {}
    for item in values or []:
        key, sep, value = item.partition("=")
        if not sep or not key:
            raise typer.BadParameter(f"Expected KEY=VALUE, got: {item}", param_hint="--set")
        settings[key.strip()] = value
    return settings


def failure_policy(policy: FailurePolicy) -> Optional[FailureHandler]:
    """Turn the --on-failure choice into a handler for the provisioner."""
    if policy == FailurePolicy.DESTROY:
        return lambda spec, error: True
    # Nobody to ask when running unattended
    if policy == FailurePolicy.KEEP or not sys.stdin.isatty():
        return None

    def ask(spec, error) -> bool:
        console.print(f"[red]Installation failed:[/red] {error}")
        return typer.confirm(f"Remove container {spec.ctid}?", default=False)

    return ask


async def _run_action(
    description: str,
    action: Callable[..., Awaitable[Any]],
    *args: Any,
    success_msg: Optional[str] = None,
    **kwargs: Any,
) -> Any:
    """Helper to await an action with a progress spinner."""
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
        transient=True,
    ) as progress:
        task = progress.add_task(description, total=None)

        result = await action(*args, **kwargs)

        progress.update(task, completed=True)

    if success_msg:
        console.print(success_msg)

    return result


def show_report(result: ProvisionResult):
    """Print the final report for a created container."""
    console.print(Panel(
        Text(result.notes.rstrip()),
        title=f"[green]✓[/green] {result.recipe.title} container {result.spec.ctid} ready",
        expand=False,
    ))
    if not result.notes_written:
        console.print("[yellow]Warning:[/yellow] notes could not be attached to the container")


async def create_container(
    provisioner: Provisioner,
    recipe: str,
    overrides: Mapping[str, Any],
    settings: Mapping[str, Any],
    policy: FailurePolicy = FailurePolicy.ASK,
    dry_run: bool = False,
):
    """Create a container from a recipe, or show what would be done."""
    if dry_run:
        show_plan(provisioner, recipe, overrides, settings)
        return

    result = await provisioner.provision(
        recipe,
        overrides=overrides,
        settings=settings,
        on_failure=failure_policy(policy),
    )
    show_report(result)


def show_plan(provisioner: Provisioner, recipe: str, overrides: Mapping[str, Any], settings: Mapping[str, Any]):
    """Print the resolved plan of a dry run."""
    plan = provisioner.plan(recipe, overrides=overrides, settings=settings)

    table = Table(title=f"{plan.recipe.title} (dry run)", show_header=False)
    table.add_column("Key", style="cyan")
    table.add_column("Value")

    spec = plan.spec
    table.add_row("Container ID", str(spec.ctid))
    table.add_row("Hostname", spec.hostname)
    table.add_row("Resources", f"{spec.cores} cores, {spec.memory}MB RAM, {spec.swap}MB swap, {spec.disk_size}GB disk")
    table.add_row("Network", spec.network.net0())
    table.add_row("Templates", " → ".join(t.label for t in plan.templates))
    for key, value in plan.settings.items():
        table.add_row(key, str(value))

    console.print(table)
    console.print()
    console.print("[bold]Create command:[/bold]")
    console.print(" ".join(plan.create_command), markup=False)
    console.print()
    console.print("[bold]Steps:[/bold]")
    for number, step in enumerate(plan.steps, 1):
        suffix = "" if step.required else " [dim](optional)[/dim]"
        console.print(f"  {number}. {step.name}{suffix}")
        for line in step.run.strip().splitlines():
            console.print(f"       {line}", markup=False, highlight=False)
    console.print()
    console.print(Panel(Text(plan.notes.rstrip()), title="Notes", expand=False))


async def apply_recipe(provisioner: Provisioner, recipe: str, target: str, settings: Mapping[str, Any]):
    """Install a recipe into one existing container, or into all of them."""
    if target == "all":
        results = await provisioner.apply_all(recipe, settings=settings)

        table = Table(title="Results")
        table.add_column("CT ID", style="cyan")
        table.add_column("Hostname")
        table.add_column("Result")
        for result in results:
            outcome = "[green]✓ installed[/green]" if result.success else f"[red]✗ {result.error}[/red]"
            table.add_row(str(result.ctid), result.hostname, outcome)
        console.print(table)

        failed = sum(1 for r in results if not r.success)
        console.print(f"Installed on {len(results) - failed}/{len(results)} containers")
        if failed:
            raise typer.Exit(1)
        return

    if not target.isdigit():
        raise ConfigError(f"Invalid container ID: {target}", hints=["Use a numeric ID or 'all'"])

    result = await provisioner.apply(recipe, int(target), settings=settings)
    console.print(f"[green]✓[/green] {recipe} installed on container {result.ctid} ({result.hostname})")


async def list_recipes(provisioner: Provisioner):
    """List available recipes."""
    table = Table(title="Recipes")
    table.add_column("Name", style="cyan")
    table.add_column("Application")
    table.add_column("OS", style="magenta")
    table.add_column("Resources")
    table.add_column("Required settings", style="yellow")

    for recipe in provisioner.list_recipes():
        defaults = recipe.container
        table.add_row(
            recipe.name,
            recipe.title,
            ", ".join(t.label for t in recipe.os),
            f"{defaults.cores} CPU / {defaults.memory}MB / {defaults.disk_size}GB",
            ", ".join(recipe.required_settings),
        )

    console.print(table)


async def resolve_template(
    provisioner: Provisioner,
    distribution: str,
    version: str,
    storage: Optional[str] = None,
    download: bool = True,
):
    """Resolve, and optionally download, the newest template."""
    ref = await _run_action(
        f"Resolving {distribution} {version} template...",
        provisioner.resolve_template,
        distribution,
        version,
        storage=storage,
        download=download,
    )
    console.print(f"[green]✓[/green] {ref.volid}")


async def destroy_container(provisioner: Provisioner, ctid: int):
    """Stop and destroy a container."""
    await _run_action(
        f"Destroying container {ctid}...",
        provisioner.destroy,
        ctid,
        success_msg=f"[green]✓[/green] Container {ctid} destroyed",
    )


async def show_notes(provisioner: Provisioner, ctid: int):
    """Print a container's notes."""
    notes = await provisioner.describe(ctid)
    if not notes.text:
        console.print(f"[yellow]Container {ctid} has no notes[/yellow]")
        return
    console.print(notes.text, markup=False)
