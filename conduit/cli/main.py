"""Conduit CLI — Typer application."""

import typer
from rich.console import Console

from conduit.version import __version__

app = typer.Typer(
    name="conduit",
    help="Conduit — discover, install and manage Conduit components.",
    no_args_is_help=True,
    invoke_without_command=True,
)
console = Console()


@app.callback()
def main(
    ctx: typer.Context,
    version: bool = typer.Option(False, "--version", "-v", is_eager=True, help="Show version"),
):
    """Conduit CLI."""
    from conduit.config import config
    from conduit.logging_setup import configure_logging

    configure_logging(config.log_level)
    if version:
        console.print(f"Conduit v{__version__}")
        raise typer.Exit()
    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


# ── Components ─────────────────────────────────────────────────────────────────
from conduit.cli.commands import components as components_cmd  # noqa: E402

components_app = typer.Typer(name="components", help="Component lifecycle commands.")
components_app.command("list", help="List installed components")(components_cmd.components_list)
components_app.command("discover", help="List installable components")(components_cmd.components_discover)
components_app.command("install", help="Install a discovered component")(components_cmd.components_install)
components_app.command("uninstall", help="Uninstall a component")(components_cmd.components_uninstall)
app.add_typer(components_app)

# ── Storage + settings ─────────────────────────────────────────────────────────
from conduit.cli.commands import storage as storage_cmd, settings as settings_cmd  # noqa: E402

storage_app = typer.Typer(name="storage", help="Component storage commands.")
storage_app.command("init", help="Create the storage tables")(storage_cmd.storage_init)
app.add_typer(storage_app)

settings_app = typer.Typer(name="settings", help="Global setting commands.")
settings_app.command("get", help="Show a setting")(settings_cmd.settings_get)
settings_app.command("set", help="Store a setting")(settings_cmd.settings_set)
app.add_typer(settings_app)


if __name__ == "__main__":
    app()
