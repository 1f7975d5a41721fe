"""Command-line interface for depatch.

Two commands cover the patch lifecycle: ``create`` captures local edits to
an installed package as a patch file and ``apply`` replays every stored patch
onto the installed packages. ``list`` shows what is stored. Running without a
command, or with an unknown one, prints the command banner.
"""

from __future__ import annotations

import warnings
from pathlib import Path

import click
import typer
from rich.console import Console
from rich.table import Table
from typer.core import TyperGroup

from coordinator import PatchCoordinator
from core import ApplyOutcome, ApplyStatus, Config, DepatchError, resolve_config
from core.logging_setup import setup_logging

BANNER = """
[bold]depatch[/bold] - Patch management for node_modules

Commands:
  depatch create <package>  Create a patch
  depatch apply             Apply all patches
  depatch list              List stored patches
"""

# Global options that consume the following token
OPTIONS_WITH_VALUE = ("--config", "-c")


class BannerGroup(TyperGroup):
    """Command group that shows the banner instead of failing on unknown commands."""

    def parse_args(self, ctx: click.Context, args: list[str]) -> list[str]:
        index, command_name = _first_positional(args)
        if command_name is not None and self.get_command(ctx, command_name) is None:
            args = args[:index]
        return super().parse_args(ctx, args)


def _first_positional(args: list[str]) -> tuple[int, str | None]:
    """Return the position and value of the first argument that is not an option."""
    skip_next = False
    for index, arg in enumerate(args):
        if skip_next:
            skip_next = False
            continue
        if arg in OPTIONS_WITH_VALUE:
            skip_next = True
            continue
        if arg.startswith("-"):
            continue
        return index, arg
    return len(args), None


app = typer.Typer(
    name="depatch",
    help="Patch management for installed node_modules packages",
    cls=BannerGroup,
    invoke_without_command=True,
    no_args_is_help=False,
    add_completion=False,
)
console = Console()
err_console = Console(stderr=True)


@app.callback()
def main_callback(
    ctx: typer.Context,
    config_path: str | None = typer.Option(
        None, "--config", "-c", help="Path to a depatch YAML configuration file"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Store global options and print the banner when no command is given."""
    ctx.obj = {"config_path": config_path, "verbose": verbose}

    if ctx.invoked_subcommand is None:
        console.print(BANNER)
        raise typer.Exit(0)


def _load(ctx: typer.Context) -> PatchCoordinator:
    """Resolve configuration, set up logging and build the coordinator."""
    options = ctx.obj or {}
    try:
        config: Config = resolve_config(options.get("config_path"), Path.cwd())
        setup_logging(config.logging, verbose=options.get("verbose", False))
        return PatchCoordinator(config)
    except (DepatchError, ValueError) as e:
        err_console.print(f"[red]Configuration error: {e}[/red]")
        raise typer.Exit(1)


def _report_warnings(caught: list[warnings.WarningMessage]) -> None:
    for warning in caught:
        console.print(f"[yellow]Warning: {warning.message}[/yellow]")


@app.command()
def create(
    ctx: typer.Context,
    package_name: str = typer.Argument(..., help="Installed package to capture"),
) -> None:
    """Create a patch from local edits to an installed package.

    Installs a clean copy of the exact installed release into a scratch
    directory, diffs it against the live package and writes the result to
    the patches directory. Nothing is written when there are no changes.

    Args:
        package_name: Name of the package under node_modules, possibly scoped.
    """
    coordinator = _load(ctx)
    console.print(f"[blue]Creating patch for {package_name}...[/blue]")

    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always")
        try:
            metadata = coordinator.create_patch(package_name)
        except DepatchError as e:
            err_console.print(f"[red]Error: {e}[/red]")
            raise typer.Exit(1)

    _report_warnings(caught)
    if metadata is None:
        return

    console.print(f"[green]✓ Patch created: {metadata.path}[/green]")
    console.print("Stats:")
    console.print(f"  Lines: {metadata.line_count}")
    console.print(f"  Size: {metadata.size_kb:.2f} KB")
    console.print(f"  Hash: {metadata.short_hash}...")


@app.command()
def apply(ctx: typer.Context) -> None:
    """Apply all stored patches to the installed packages.

    Patches that are already applied count as applied. A failing patch is
    reported and the remaining patches are still attempted; the exit status
    does not reflect individual failures.
    """
    coordinator = _load(ctx)
    console.print("[blue]Applying patches...[/blue]")

    patches_dir = coordinator.store.patches_dir
    if not patches_dir.is_dir():
        console.print(f"[yellow]No patches directory found: {patches_dir}[/yellow]")
        return
    if not coordinator.store.list_all():
        console.print(f"[yellow]No patches found in: {patches_dir}[/yellow]")
        return

    def report(outcome: ApplyOutcome) -> None:
        if outcome.status is ApplyStatus.APPLIED:
            console.print(f"  [green]✓[/green] {outcome.name}")
        elif outcome.status is ApplyStatus.ALREADY_APPLIED:
            console.print(f"  [green]✓[/green] {outcome.name} (already applied)")
        else:
            console.print(f"  [red]✗[/red] {outcome.name}")
            if outcome.detail:
                console.print(f"     {outcome.detail}", markup=False)

    summary = coordinator.apply_patches(on_outcome=report)
    console.print(f"\n[bold]Summary:[/bold] {summary.applied} applied, {summary.failed} failed")


@app.command(name="list")
def list_patches(ctx: typer.Context) -> None:
    """List stored patches with their size and content hash."""
    coordinator = _load(ctx)
    patches = coordinator.list_patches()

    if not patches:
        console.print(f"[yellow]No patches found in: {coordinator.store.patches_dir}[/yellow]")
        return

    table = Table(title="Stored Patches")
    table.add_column("Package", style="cyan")
    table.add_column("Version", style="magenta")
    table.add_column("Lines", justify="right")
    table.add_column("Size (KB)", justify="right")
    table.add_column("Hash")

    for identity, metadata in patches:
        table.add_row(
            identity.name if identity else metadata.path.name,
            identity.version if identity else "?",
            str(metadata.line_count),
            f"{metadata.size_kb:.2f}",
            metadata.short_hash,
        )

    console.print(table)


def main() -> None:
    """Main entry point for the command-line interface."""
    app()


if __name__ == "__main__":
    main()
