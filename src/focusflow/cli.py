"""
FocusFlow command line.

Thin click wrapper over FocusFlowService for inspecting boards, scripting
simple edits, and taking or restoring backups.
"""

import asyncio
from pathlib import Path
from typing import Any, Awaitable, Callable

import click
from pydantic import ValidationError

from .codec import ImportValidationError
from .config import ConfigError, configure_logging, create_backend, load_config
from .reorder import ReorderError
from .service import FocusFlowService


def _run(ctx: click.Context, action: Callable[[FocusFlowService], Awaitable[Any]]) -> Any:
    service: FocusFlowService = ctx.obj

    async def runner():
        await service.open()
        return await action(service)

    try:
        return asyncio.run(runner())
    except (ImportValidationError, ReorderError, ValidationError, ValueError) as e:
        raise click.ClickException(str(e))


@click.group()
@click.option("--config", "config_path", type=click.Path(dir_okay=False), default=None,
              help="YAML configuration file.")
@click.option("--data-dir", type=click.Path(file_okay=False), default=None,
              help="Directory holding focusflow-data.json and focusflow-settings.json.")
@click.option("--log-level", default=None, help="Logging level (DEBUG, INFO, ...).")
@click.pass_context
def main(ctx: click.Context, config_path, data_dir, log_level):
    """FocusFlow personal kanban board."""
    try:
        config = load_config(config_path)
        overrides = {}
        if data_dir:
            overrides["data_dir"] = Path(data_dir)
        if log_level:
            overrides["log_level"] = log_level
        if overrides:
            config = config.model_validate({**config.model_dump(), **overrides})
    except (ConfigError, ValidationError) as e:
        raise click.ClickException(str(e))
    configure_logging(config.log_level)
    ctx.obj = FocusFlowService(create_backend(config))


@main.command("boards")
@click.pass_context
def list_boards(ctx):
    """List boards with column and task counts."""
    async def action(service: FocusFlowService):
        boards = service.boards.list()
        if not boards:
            click.echo("No boards.")
        for board in boards:
            columns = len(service.columns.list(board.id))
            tasks = len(service.tasks.list(board_id=board.id))
            click.echo(f"{board.id}\t{board.title}\t{columns} columns\t{tasks} tasks")
    _run(ctx, action)


@main.command("show")
@click.argument("board_id", type=int)
@click.pass_context
def show_board(ctx, board_id):
    """Print a board's columns and tasks in order."""
    async def action(service: FocusFlowService):
        board = service.boards.get(board_id)
        if board is None:
            raise click.ClickException(f"Board {board_id} not found")
        click.echo(board.title)
        for column in service.columns.ordered(board_id):
            click.echo(f"  [{column.id}] {column.title}")
            for task in service.tasks.ordered(column.id):
                click.echo(f"    {task.order}. #{task.id} {task.title} (U:{task.urgency}, I:{task.importance})")
    _run(ctx, action)


@main.command("add-board")
@click.argument("title")
@click.pass_context
def add_board(ctx, title):
    """Create a board."""
    async def action(service: FocusFlowService):
        return await service.boards.add(title=title)
    board_id = _run(ctx, action)
    if board_id is None:
        raise click.ClickException("Board was not saved")
    click.echo(f"Created board {board_id}")


@main.command("add-column")
@click.argument("board_id", type=int)
@click.argument("title")
@click.pass_context
def add_column(ctx, board_id, title):
    """Append a column to a board."""
    async def action(service: FocusFlowService):
        return await service.columns.add(board_id=board_id, title=title)
    column_id = _run(ctx, action)
    if column_id is None:
        raise click.ClickException(f"Could not add column to board {board_id}")
    click.echo(f"Created column {column_id}")


@main.command("add-task")
@click.argument("column_id", type=int)
@click.argument("title")
@click.option("--description", default="")
@click.option("--urgency", type=click.IntRange(0, 10), default=0)
@click.option("--importance", type=click.IntRange(0, 10), default=0)
@click.pass_context
def add_task(ctx, column_id, title, description, urgency, importance):
    """Append a task to a column."""
    async def action(service: FocusFlowService):
        return await service.tasks.add(
            column_id=column_id, title=title, description=description,
            urgency=urgency, importance=importance,
        )
    task_id = _run(ctx, action)
    if task_id is None:
        raise click.ClickException(f"Could not add task to column {column_id}")
    click.echo(f"Created task {task_id}")


@main.command("move-task")
@click.argument("task_id", type=int)
@click.argument("column_id", type=int)
@click.argument("index", type=int)
@click.pass_context
def move_task(ctx, task_id, column_id, index):
    """Move a task to INDEX within COLUMN_ID (same or another column)."""
    async def action(service: FocusFlowService):
        task = service.tasks.get(task_id)
        if task is None:
            raise click.ClickException(f"Task {task_id} not found")
        siblings = service.tasks.ordered(task.column_id)
        source_index = [t.id for t in siblings].index(task_id)
        return await service.reorder.move_task(task.column_id, source_index, column_id, index)
    if _run(ctx, action):
        click.echo(f"Moved task {task_id}")
    else:
        click.echo("Nothing to move.")


@main.command("delete-board")
@click.argument("board_id", type=int)
@click.pass_context
def delete_board(ctx, board_id):
    """Delete a board with all its columns and tasks."""
    async def action(service: FocusFlowService):
        return await service.boards.delete(board_id)
    if not _run(ctx, action):
        raise click.ClickException(f"Board {board_id} not deleted")
    click.echo(f"Deleted board {board_id}")


@main.command("export")
@click.argument("path", type=click.Path(dir_okay=False))
@click.option("--full", is_flag=True, help="Include settings (app-level export).")
@click.pass_context
def export_data(ctx, path, full):
    """Write a JSON backup to PATH."""
    async def action(service: FocusFlowService):
        return await service.export_to_file(path, full=full)
    written = _run(ctx, action)
    click.echo(f"Exported to {written}")


@main.command("import")
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
@click.option("--yes", is_flag=True, help="Do not ask for confirmation.")
@click.pass_context
def import_data(ctx, path, yes):
    """Replace all boards, columns, labels and tasks with a backup."""
    if not yes:
        click.confirm("This will overwrite all existing data. Continue?", abort=True)

    async def action(service: FocusFlowService):
        return await service.import_from_file(path)
    result = _run(ctx, action)
    if not result.success:
        raise click.ClickException(result.error or "Import failed")
    click.echo(
        f"Imported {result.boards} boards, {result.columns} columns, "
        f"{result.labels} labels, {result.tasks} tasks"
    )


@main.command("clear")
@click.option("--yes", is_flag=True, help="Do not ask for confirmation.")
@click.pass_context
def clear_data(ctx, yes):
    """Delete all boards, columns, labels and tasks."""
    if not yes:
        click.confirm("Delete all boards, columns, labels and tasks?", abort=True)

    async def action(service: FocusFlowService):
        return await service.clear_all_data()
    if not _run(ctx, action):
        raise click.ClickException("Failed to clear data")
    click.echo("All data cleared.")


if __name__ == "__main__":
    main()
