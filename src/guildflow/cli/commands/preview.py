"""Preview command for GuildFlow CLI."""

from datetime import UTC, datetime
from typing import Any
from zoneinfo import ZoneInfo

import typer
from rich.table import Table

from guildflow.cli import app, console
from guildflow.cron import upcoming_fire_times
from guildflow.errors import InvalidRecurrenceError
from guildflow.models import parse_recurrence


@app.command()
def preview(
    frequency: str = typer.Argument(
        ...,
        help="minutely, hourly, daily, weekly, monthly or custom",
    ),
    time: str | None = typer.Option(None, "--time", "-t", help="Time of day as HH:MM"),
    day_of_week: list[int] | None = typer.Option(
        None,
        "--day-of-week",
        "-w",
        help="Day of week, 0-7 with 0 and 7 meaning Sunday (repeatable)",
    ),
    day_of_month: list[int] | None = typer.Option(
        None,
        "--day-of-month",
        "-m",
        help="Day of month, 1-31 (repeatable)",
    ),
    cron: str | None = typer.Option(None, "--cron", "-c", help="Cron expression for custom"),
    timezone: str = typer.Option("UTC", "--timezone", "-z", help="IANA timezone name"),
    count: int = typer.Option(5, "--count", "-n", min=1, max=50, help="Executions to show"),
    json_output: bool = typer.Option(False, "--json", help="Output results as JSON"),
) -> None:
    """Show the cron expression and next executions for a recurrence.

    Examples:
        guildflow preview daily --time 07:30
        guildflow preview weekly -w 3 -t 14:30 -z Europe/Paris
        guildflow preview custom --cron "*/15 9-17 * * 1-5"
    """
    config: dict[str, Any] = {"frequency": frequency, "timezone": timezone}
    if time is not None:
        config["time"] = time
    if day_of_week:
        config["daysOfWeek"] = day_of_week
    if day_of_month:
        config["daysOfMonth"] = day_of_month
    if cron is not None:
        config["cronExpression"] = cron

    try:
        recurrence = parse_recurrence(config)
        expression = recurrence.to_cron()
        upcoming = upcoming_fire_times(
            expression, recurrence.timezone, datetime.now(UTC), count=count
        )
    except InvalidRecurrenceError as e:
        console.print(f"[red]Error:[/] {e.message}")
        raise typer.Exit(1)

    if json_output:
        console.print_json(
            data={
                "cron_expression": expression,
                "timezone": recurrence.timezone,
                "next_executions": [t.isoformat() for t in upcoming],
            }
        )
        return

    console.print(f"Cron expression: [cyan]{expression}[/] ({recurrence.timezone})")

    table = Table(title="Next Executions")
    table.add_column("#", style="dim")
    table.add_column("UTC")
    table.add_column(recurrence.timezone, style="cyan")

    zone = ZoneInfo(recurrence.timezone)
    for index, fire_time in enumerate(upcoming, start=1):
        local = fire_time.astimezone(zone)
        table.add_row(
            str(index),
            fire_time.strftime("%Y-%m-%d %H:%M"),
            local.strftime("%Y-%m-%d %H:%M %Z"),
        )

    console.print(table)
