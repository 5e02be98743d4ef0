"""conduit storage init — create the component tables, optionally migrating legacy files."""

import asyncio

import typer
from rich.console import Console

console = Console()


def storage_init(
    migrate: bool = typer.Option(
        False, "--migrate", "-m", help="Import components.yaml / conduit.json from older versions."
    ),
):
    """Initialize component storage."""

    async def _run():
        from conduit.components import ComponentManager
        from conduit.config import config
        from conduit.exceptions import ConduitError

        manager = ComponentManager.from_config(config)
        try:
            report = await manager.initialize_storage(migrate=migrate)
        except ConduitError as exc:
            console.print(f"[red]Error:[/red] {exc}")
            raise typer.Exit(1)
        finally:
            await manager.store.close()

        console.print(f"[green]✓[/green] Storage ready at {manager.store.location}")
        if report is not None:
            if report.sources:
                console.print(
                    f"  Migrated {report.components_migrated} components, "
                    f"{report.settings_migrated} settings, {report.hooks_migrated} service hooks"
                )
            else:
                console.print("  [dim]No legacy files found.[/dim]")

    asyncio.run(_run())
