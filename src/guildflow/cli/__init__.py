"""GuildFlow CLI interface."""

from pathlib import Path

import typer
from rich.console import Console

# CLI App
app = typer.Typer(
    name="guildflow",
    help="Schedule and event triggers for guild workflows.",
    no_args_is_help=True,
)

# Console for rich output
console = Console()

# Default paths
GUILDFLOW_DIR = Path.home() / ".guildflow"
CONFIG_FILE = GUILDFLOW_DIR / "config.yaml"

# Import commands to register them
from guildflow.cli.commands import preview, schedules, serve  # noqa: E402, F401


@app.command()
def version() -> None:
    """Show GuildFlow version."""
    from guildflow import __version__

    console.print(f"GuildFlow v{__version__}")


if __name__ == "__main__":
    app()
