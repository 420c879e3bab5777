"""
Filter commands for the Worklite CLI.

Saved filters belong to the active project and apply to 'worklite item tree'.
"""
import json
from pathlib import Path
from typing import Optional

import click

from worklite.commands.common import run_core
from worklite.core import WorkliteCore
from worklite.managers import available_filters
from worklite.models.filters import FilterKind


@click.group(name="filter")
def filter_group():
    """Manage saved filters of the active project.

    A work item is shown when it matches all filters, or when one of its
    descendants does.
    """
    pass


@filter_group.command(name="add")
@click.argument("kind", type=click.Choice([k.value for k in FilterKind]))
@click.argument("value")
@click.pass_obj
def add_filter(data_dir: Optional[Path], kind: str, value: str):
    """Add a KIND=VALUE filter."""
    async def _add(core: WorkliteCore):
        return await core.add_filter(kind, value)

    if run_core(data_dir, _add):
        click.echo(f"Filter {kind}={value} added.")
    else:
        click.echo(f"Filter {kind}={value} is already active.")


@filter_group.command(name="remove")
@click.argument("filter_id")
@click.pass_obj
def remove_filter(data_dir: Optional[Path], filter_id: str):
    """Remove the filter with id FILTER_ID."""
    async def _remove(core: WorkliteCore):
        return await core.remove_filter(filter_id)

    if not run_core(data_dir, _remove):
        raise click.ClickException(f"Filter '{filter_id}' not found.")
    click.echo("Filter removed.")


@filter_group.command(name="clear")
@click.pass_obj
def clear_filters(data_dir: Optional[Path]):
    """Remove all filters."""
    async def _clear(core: WorkliteCore):
        await core.clear_filters()

    run_core(data_dir, _clear)
    click.echo("Filters cleared.")


@filter_group.command(name="list")
@click.option("--available", is_flag=True, help="List selectable values per filter kind instead.")
@click.option("-j", "--json", "json_output", is_flag=True, help="Output in JSON format.")
@click.pass_obj
def list_filters(data_dir: Optional[Path], available: bool, json_output: bool):
    """List the active filters."""
    async def _list(core: WorkliteCore):
        data = await core.current_project()
        if available:
            return available_filters(data.work_items)
        return list(core.filters.active)

    entries = run_core(data_dir, _list)

    if json_output:
        click.echo(json.dumps([entry.to_record() for entry in entries], indent=2))
        return

    if available:
        for options in entries:
            values = ", ".join(option.value for option in options.options) or "(none)"
            click.echo(f"{options.label}: {values}")
        return

    if not entries:
        click.echo("No active filters.")
        return
    for active in entries:
        click.echo(f"{active.kind}={active.value} ({active.id})")
