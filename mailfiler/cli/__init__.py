"""CLI commands: one module per mode (send, resolve-folder, login, validate-config)."""

from typer import Typer

from mailfiler.cli import folder_mode, login_mode, send_mode, validate_config as validate_config_module
from mailfiler.utils.tracing import init_tracing

init_tracing()

app = Typer(help="Send mail and file it in Microsoft 365 mailbox folders")


def register_commands() -> None:
    """Register all CLI commands on the global app."""
    app.command()(send_mode.send)
    app.command(name="resolve-folder")(folder_mode.resolve_folder)
    app.command()(login_mode.login)
    app.command(name="validate-config")(validate_config_module.validate_config)


register_commands()
