"""
Shared helpers for Worklite CLI commands.

Commands describe their work as an async function of an open WorkliteCore;
run_core() opens the core, runs startup, executes it and maps Worklite
errors to click errors.
"""
import asyncio
from pathlib import Path
from typing import Any, Awaitable, Callable, List, Optional

import click

from worklite.core import WorkliteCore
from worklite.exceptions import (
    ConflictError, InvalidOperationError, NotFoundError, ValidationError, WorkliteError
)
from worklite.managers.tree_builder import walk
from worklite.models.work_item import WorkItem, WorkItemNode

STATUS_MARKERS = {
    "done": " ✓",
    "in_progress": " ⏳",
    "blocked": " ✗",
    "cancelled": " –",
}


def run_core(
    data_dir: Optional[Path],
    operation: Callable[[WorkliteCore], Awaitable[Any]],
    startup: bool = True,
) -> Any:
    """Run an async operation against an open WorkliteCore.

    Args:
        data_dir: Data directory, or None for the default.
        operation: Coroutine function receiving the core.
        startup: Run migration and project loading first.

    Raises:
        click.ClickException: For any WorkliteError.
    """
    async def _run():
        async with WorkliteCore(data_dir) as core:
            if startup:
                await core.startup()
            return await operation(core)

    try:
        return asyncio.run(_run())
    except NotFoundError as e:
        raise click.ClickException(str(e))
    except ValidationError as e:
        raise click.ClickException(f"Validation Error: {e}")
    except InvalidOperationError as e:
        raise click.ClickException(f"Operation Error: {e}")
    except ConflictError as e:
        raise click.ClickException(f"Conflict: {e}. Reload and try again.")
    except WorkliteError as e:
        raise click.ClickException(f"Error: {e}")


def format_item(item: WorkItem) -> str:
    """One-line summary of a work item."""
    marker = STATUS_MARKERS.get(item.status, "")
    return f"[{item.type}] {item.title} ({item.id}){marker}"


def display_tree(nodes: List[WorkItemNode]) -> None:
    """Display a forest with two-space indentation per level."""
    for node, depth in walk(nodes):
        click.echo(f"{'  ' * depth}- {format_item(node.item)}")
