"""Schedule listing command for GuildFlow CLI."""

import asyncio
from datetime import datetime

import typer
from rich.table import Table

from guildflow.cli import app, console
from guildflow.client import WorkflowClient
from guildflow.config import ConfigError, Settings
from guildflow.models import ScheduleEntry
from guildflow.scheduler import ScheduleManager
from guildflow.storage import Database, TriggerStore


def _format_datetime(dt: datetime | None) -> str:
    """Format datetime for display."""
    if dt is None:
        return "-"
    return dt.strftime("%Y-%m-%d %H:%M %Z")


def _load_schedules(settings: Settings, workflow_id: str) -> list[ScheduleEntry]:
    if settings.database_url is None:
        console.print("[red]Error:[/] No database configured.")
        console.print("Set [cyan]GUILDFLOW_DATABASE_URL[/] or pass [cyan]--database[/].")
        raise typer.Exit(1)

    db = Database(settings.database_url)
    db.create_tables()
    try:
        manager = ScheduleManager(
            WorkflowClient(settings.api_base_url),
            store=TriggerStore(db),
        )
        return asyncio.run(manager.list_schedules_for_workflow(workflow_id))
    finally:
        db.dispose()


@app.command()
def schedules(
    workflow_id: str = typer.Argument(..., help="Workflow to list schedules for"),
    database: str | None = typer.Option(
        None,
        "--database",
        "-d",
        help="Database URL or SQLite path (defaults to configuration)",
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Output results as JSON",
    ),
) -> None:
    """List the persisted schedules of a workflow.

    Examples:
        guildflow schedules wf-123
        guildflow schedules wf-123 --json
        guildflow schedules wf-123 --database ./guildflow.db
    """
    try:
        settings = Settings.load(database_url=database)
    except ConfigError as e:
        console.print(f"[red]Error:[/] {e}")
        raise typer.Exit(1)

    entries = _load_schedules(settings, workflow_id)

    if json_output:
        data = [
            {
                "id": entry.id,
                "cron_expression": entry.cron_expression,
                "timezone": entry.timezone,
                "next_execution": entry.next_execution.isoformat(),
                "last_execution": (
                    entry.last_execution.isoformat() if entry.last_execution else None
                ),
                "recurrence": entry.recurrence.to_config(),
            }
            for entry in entries
        ]
        console.print_json(data=data)
        return

    if not entries:
        console.print(f"[yellow]No schedules found for workflow:[/] {workflow_id}")
        return

    table = Table(title=f"Schedules for {workflow_id}")
    table.add_column("ID", style="dim")
    table.add_column("Frequency", style="cyan")
    table.add_column("Cron")
    table.add_column("Timezone")
    table.add_column("Next Execution")
    table.add_column("Last Execution")

    for entry in entries:
        table.add_row(
            entry.id,
            entry.recurrence.frequency,
            entry.cron_expression,
            entry.timezone,
            _format_datetime(entry.next_execution),
            _format_datetime(entry.last_execution),
        )

    console.print(table)
