"""conduit settings get|set — global settings stored alongside components."""

import asyncio
import json

import typer
from rich.console import Console

console = Console()

_UNSET = object()


def _parse_value(raw: str):
    # Plain words are stored as strings; anything JSON-shaped keeps its type
    try:
        return json.loads(raw)
    except ValueError:
        return raw


def settings_get(key: str = typer.Argument(..., help="Setting key.")):
    """Print a setting as JSON."""

    async def _run():
        from conduit.config import config
        from conduit.db.store import ComponentStateStore
        from conduit.exceptions import ConduitError

        store = ComponentStateStore.from_config(config)
        try:
            value = await store.get_setting(key, _UNSET)
        except ConduitError as exc:
            console.print(f"[red]Error:[/red] {exc}")
            raise typer.Exit(1)
        finally:
            await store.close()

        if value is _UNSET:
            console.print(f"[dim]{key} is not set.[/dim]")
            raise typer.Exit(1)
        console.print(json.dumps(value), markup=False, highlight=False)

    asyncio.run(_run())


def settings_set(
    key: str = typer.Argument(..., help="Setting key."),
    value: str = typer.Argument(..., help="JSON value, or a plain string."),
):
    """Store a setting."""

    async def _run():
        from conduit.config import config
        from conduit.db.store import ComponentStateStore
        from conduit.exceptions import ConduitError

        store = ComponentStateStore.from_config(config)
        try:
            await store.set_setting(key, _parse_value(value))
        except ConduitError as exc:
            console.print(f"[red]Error:[/red] {exc}")
            raise typer.Exit(1)
        finally:
            await store.close()
        console.print(f"[green]✓[/green] {key} updated")

    asyncio.run(_run())
