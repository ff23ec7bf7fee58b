"""CLI commands: one module per mode (summarize, daily, status, notify, account)."""

from typer import Typer

from inbox_digest.cli import (
    account_mode,
    daily_mode,
    notify_mode,
    status_mode,
    summarize_mode,
    validate_config as validate_config_module,
)
from inbox_digest.utils.tracing import init_tracing

init_tracing()

app = Typer(help="Daily LLM digests of your inbox")


def register_commands() -> None:
    """Register all CLI commands on the global app."""
    app.command()(summarize_mode.summarize)
    app.command(name="summarize-all")(summarize_mode.summarize_all)
    app.command()(daily_mode.daily)
    app.command()(status_mode.status)
    app.command()(status_mode.history)
    app.command()(notify_mode.notify)
    app.command(name="add-account")(account_mode.add_account)
    app.command(name="remove-account")(account_mode.remove_account)
    app.command(name="set-preferences")(account_mode.set_preferences)
    app.command(name="validate-config")(validate_config_module.validate_config)


register_commands()
