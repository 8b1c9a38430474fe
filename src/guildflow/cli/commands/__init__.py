"""CLI commands for GuildFlow."""

# Import command modules to register them with the app
# These imports have side effects (register commands via @app.command())
from guildflow.cli.commands import preview, schedules, serve

__all__ = ["preview", "schedules", "serve"]
