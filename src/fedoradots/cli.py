"""Command-line interface for fedoradots."""

from __future__ import annotations

from pathlib import Path
from typing import Iterable

import typer
from rich.console import Console
from rich.table import Table

from .config import DEFAULT_CONFIG_FILENAME, Config, ConfigError, load_config, render_config
from .deploy import DotfilesDeployer, describe_plan
from .errors import ProvisionError, StepFailure
from .logging_utils import configure_logging
from .models import DeployResult, LinkState, LinkStatus, PipelineResult, RemovalPlan, StepStatus
from .runner import Step, StepRunner
from .steps import StepContext, build_pipeline

app = typer.Typer(help="Provision a Fedora spectrwm desktop and deploy its dotfiles")
console = Console()

ConfigOption = typer.Option(None, "--config", "-c", help="Path to fedoradots.toml")
SourceRootOption = typer.Option(
    None,
    "--source-root",
    "-s",
    help="Directory holding the cloned sources (defaults to settings.source_root)",
)


def _load(config: Path | None, source_root: Path | None) -> Config:
    return load_config(config, source_root=source_root)


def _handle_error(exc: Exception) -> None:
    if isinstance(exc, PermissionError):
        console.print("[red]Permission denied.[/red] Re-run the command with elevated privileges (e.g. `sudo`).")
        raise typer.Exit(code=1)
    if isinstance(exc, ConfigError):
        message = str(exc)
        console.print(f"[red]{message}[/red]")
        if "does not exist" in message:
            console.print("[yellow]Use 'fedoradots init --config <path>' to create a configuration file.[/yellow]")
        raise typer.Exit(code=1)
    if isinstance(exc, StepFailure):
        console.print(f"[red]Error: {exc.step} failed[/red] ({exc.kind.value})")
        console.print(exc.message, markup=False)
        console.print(f"[yellow]Fix the problem and resume with 'fedoradots install --from {exc.step}'.[/yellow]")
        raise typer.Exit(code=1)
    if isinstance(exc, ProvisionError):
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1)
    raise exc


def _confirm_removals(plan: RemovalPlan) -> bool:
    console.print("[yellow]The following paths will be removed permanently:[/yellow]")
    for line in describe_plan(plan):
        console.print(f"  {line}", markup=False)
    return typer.confirm("Continue?", default=False)


def _format_steps(steps: Iterable[Step]) -> None:
    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("#", justify="right")
    table.add_column("Step")
    table.add_column("Kind")
    table.add_column("Requires", overflow="fold")

    for index, step in enumerate(steps, start=1):
        requires = ", ".join(str(path) for path in step.requires)
        table.add_row(str(index), step.name, step.kind.value, requires)

    console.print(table)


def _format_pipeline(result: PipelineResult) -> None:
    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Step")
    table.add_column("Status")
    table.add_column("Details", overflow="fold")

    for item in result.results:
        style = "green" if item.status is StepStatus.RAN else "yellow"
        table.add_row(item.name, f"[{style}]{item.status.value}[/{style}]", item.detail or "")

    console.print(table)


def _format_deploy_results(results: Iterable[DeployResult]) -> None:
    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Entry")
    table.add_column("Target", overflow="fold")
    table.add_column("Action")

    for result in results:
        table.add_row(result.target.name, str(result.target.target), result.action.value)

    console.print(table)


def _format_status(entries: Iterable[LinkStatus]) -> None:
    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Entry")
    table.add_column("Target", overflow="fold")
    table.add_column("State")
    table.add_column("Details", overflow="fold")

    styles = {
        LinkState.LINKED: "green",
        LinkState.MISSING: "yellow",
        LinkState.CONFLICT: "red",
    }

    for entry in entries:
        style = styles.get(entry.state, "white")
        table.add_row(
            entry.target.name,
            str(entry.target.target),
            f"[{style}]{entry.state.value}[/{style}]",
            entry.details or "",
        )

    console.print(table)


@app.command()
def init(
    config: Path = typer.Option(
        Path(DEFAULT_CONFIG_FILENAME),
        "--config",
        "-c",
        help="Path to write the configuration file",
        dir_okay=False,
        writable=True,
    ),
    force: bool = typer.Option(False, "--force", help="Overwrite existing config if present"),
) -> None:
    """Write the built-in configuration to a file for editing."""

    if config.exists() and not force:
        console.print(f"[red]Configuration '{config}' already exists. Use --force to overwrite.[/red]")
        raise typer.Exit(code=1)

    config.parent.mkdir(parents=True, exist_ok=True)
    config.write_text(render_config())
    console.print(f"[green]Created '{config}'.[/green]")


@app.command()
def plan(
    config: Path | None = ConfigOption,
    source_root: Path | None = SourceRootOption,
) -> None:
    """List the provisioning steps in execution order without running them."""

    try:
        ctx = StepContext(config=_load(config, source_root), dry_run=True)
        _format_steps(build_pipeline(ctx))
    except Exception as exc:  # noqa: BLE001
        _handle_error(exc)


@app.command()
def install(
    config: Path | None = ConfigOption,
    source_root: Path | None = SourceRootOption,
    start_at: str | None = typer.Option(None, "--from", help="Resume at this step"),
    stop_after: str | None = typer.Option(None, "--until", help="Stop after this step"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Log commands without running them"),
    yes: bool = typer.Option(
        True,
        "--yes/--confirm",
        help="Remove conflicting dotfiles without asking (default) or ask first",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show command output"),
    log_file: Path | None = typer.Option(None, "--log-file", help="Also write the log to this file"),
) -> None:
    """Run the whole provisioning pipeline, stopping at the first failure."""

    configure_logging(console, verbose=verbose, log_file=log_file)
    try:
        config_obj = _load(config, source_root)
        console.print(f"Base directory set to: {config_obj.layout.source_root}", markup=False)
        ctx = StepContext(
            config=config_obj,
            dry_run=dry_run,
            confirm=None if yes else _confirm_removals,
        )
        runner = StepRunner(build_pipeline(ctx))
        result = runner.run(start_at=start_at, stop_after=stop_after, dry_run=dry_run)
        _format_pipeline(result)
    except Exception as exc:  # noqa: BLE001
        _handle_error(exc)
        return

    if dry_run:
        console.print("[green]Dry run complete.[/green]")
        return
    console.print("[green]Installation complete.[/green]")
    console.print("You may need to log out and select spectrwm at the login screen to use your new window manager.")


@app.command()
def deploy(
    config: Path | None = ConfigOption,
    source_root: Path | None = SourceRootOption,
    dry_run: bool = typer.Option(False, "--dry-run", help="Show what would be removed and linked"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Remove conflicting paths without asking"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
) -> None:
    """Deploy the dotfiles tree, replacing anything already at the targets."""

    configure_logging(console, verbose=verbose)
    try:
        config_obj = _load(config, source_root)
        deployer = DotfilesDeployer(config_obj.dotfiles_dir, config_obj.layout)
        results = deployer.deploy(dry_run=dry_run, confirm=None if yes else _confirm_removals)
        _format_deploy_results(results)
    except Exception as exc:  # noqa: BLE001
        _handle_error(exc)


@app.command()
def status(
    config: Path | None = ConfigOption,
    source_root: Path | None = SourceRootOption,
) -> None:
    """Check that every dotfiles target links into the deployed tree."""

    try:
        config_obj = _load(config, source_root)
        entries = DotfilesDeployer(config_obj.dotfiles_dir, config_obj.layout).status()
        _format_status(entries)
        if any(entry.state is not LinkState.LINKED for entry in entries):
            console.print("[yellow]Some targets are not linked. Run 'fedoradots deploy' to fix them.[/yellow]")
            raise typer.Exit(code=1)
        console.print("[green]All dotfiles are linked.[/green]")
    except typer.Exit:
        raise
    except Exception as exc:  # noqa: BLE001
        _handle_error(exc)


def run() -> None:
    """Entry point used for console_script bindings."""

    app()
