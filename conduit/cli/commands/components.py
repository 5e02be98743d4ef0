"""CLI commands for the component lifecycle.

Accessed via: ``conduit components <subcommand>``
"""

from __future__ import annotations

import asyncio

import typer
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

console = Console()


def _get_manager():
    """Create a ComponentManager from the process configuration."""
    from conduit.components import ComponentManager
    from conduit.config import config
    return ComponentManager.from_config(config)


def _print_error(exc: Exception) -> None:
    from conduit.components import failure_hint
    from conduit.exceptions import ProcessFailure

    console.print(f"[red]Error:[/red] {exc}")
    if isinstance(exc, ProcessFailure):
        hint = failure_hint(exc.stderr or str(exc))
        if hint:
            console.print(f"[yellow]Hint:[/yellow] {hint}")


# ─── list ─────────────────────────────────────────────────────────────────────


def components_list():
    """List all installed components."""

    async def _run():
        from conduit.exceptions import ConduitError
        manager = _get_manager()
        try:
            installed = await manager.list_installed()
        except ConduitError as exc:
            _print_error(exc)
            raise typer.Exit(1)
        finally:
            await manager.store.close()

        if not installed:
            console.print("[dim]No components installed.[/dim]")
            return

        table = Table("Name", "Package", "Commands", "Hooks", "Installed At")
        for name, component in installed.items():
            table.add_row(
                name,
                component.package,
                ", ".join(component.commands) or "-",
                str(len(component.service_hooks)),
                component.installed_at.isoformat()[:19] if component.installed_at else "",
            )
        console.print(table)

    asyncio.run(_run())


# ─── discover ─────────────────────────────────────────────────────────────────


def components_discover():
    """List components available for installation."""

    async def _run():
        from conduit.exceptions import ConduitError
        manager = _get_manager()
        try:
            with Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                transient=True,
            ) as progress:
                progress.add_task("Discovering components...", total=None)
                candidates = await manager.discover()
        except ConduitError as exc:
            _print_error(exc)
            raise typer.Exit(1)
        finally:
            await manager.store.close()

        if not candidates:
            console.print("[dim]No new components found.[/dim]")
            return

        table = Table("Name", "Package", "Stars", "Description")
        for c in candidates:
            table.add_row(c.name, c.full_name, str(c.stars), c.description[:60])
        console.print(table)

    asyncio.run(_run())


# ─── install ──────────────────────────────────────────────────────────────────


def components_install(
    name: str = typer.Argument(..., help="Component name or vendor/package."),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation prompt."),
):
    """Install a discovered component.

    Example:

        conduit components install widgets
    """
    confirm = None if yes else (lambda prompt: typer.confirm(prompt, default=True))

    async def _run():
        from conduit.exceptions import ConduitError, InstallCancelled
        manager = _get_manager()
        try:
            with Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                transient=True,
                disable=not yes,
            ) as progress:
                progress.add_task(f"Installing {name}...", total=None)
                result = await manager.install(name, confirm=confirm)
        except InstallCancelled:
            console.print("[dim]Installation cancelled.[/dim]")
            return
        except ConduitError as exc:
            _print_error(exc)
            raise typer.Exit(1)
        finally:
            await manager.store.close()

        component = result.component
        console.print(
            f"[green]✓[/green] Installed [bold]{component.name}[/bold] ({component.package})"
        )
        if component.commands:
            console.print(f"  Commands: {', '.join(component.commands)}")
        if component.service_hooks:
            console.print(f"  Service hooks: {', '.join(component.service_hooks)}")
        if component.env_vars:
            console.print(f"  Environment: {', '.join(component.env_vars)}")

    asyncio.run(_run())


# ─── uninstall ────────────────────────────────────────────────────────────────


def components_uninstall(
    name: str = typer.Argument(..., help="Installed component name."),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation prompt."),
):
    """Uninstall a component and drop its service hooks.

    Example:

        conduit components uninstall widgets
    """
    confirm = None if yes else (lambda prompt: typer.confirm(prompt, default=False))

    async def _run():
        from conduit.exceptions import ConduitError, InstallCancelled
        manager = _get_manager()
        try:
            await manager.uninstall(name, confirm=confirm)
        except InstallCancelled:
            console.print("[dim]Uninstall cancelled.[/dim]")
            return
        except ConduitError as exc:
            _print_error(exc)
            raise typer.Exit(1)
        finally:
            await manager.store.close()
        console.print(f"[green]✓[/green] Uninstalled [bold]{name}[/bold]")

    asyncio.run(_run())
