"""
Work item commands for the Worklite CLI.

All commands work on the active project. Edits are applied to the project
as last read and saved with a version check, so a concurrent change makes
the save fail instead of being overwritten.
"""
import json
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import click

from worklite.commands.common import display_tree, format_item, run_core
from worklite.core import WorkliteCore
from worklite.models.base import Priority, WorkItemStatus, WorkItemType
from worklite.models.filters import FilterKind, FilterValue

ITEM_TYPES = [t.value for t in WorkItemType]
ITEM_STATUSES = [s.value for s in WorkItemStatus]
PRIORITIES = [p.value for p in Priority]


def _parse_fields(fields: Tuple[str, ...]) -> Dict[str, Any]:
    """Parse KEY=VALUE custom field options.

    Values are read as JSON when possible, otherwise kept as strings.
    A JSON null removes the field.
    """
    parsed: Dict[str, Any] = {}
    for field in fields:
        key, sep, raw = field.partition("=")
        if not sep or not key:
            raise click.BadParameter(f"Expected KEY=VALUE, got '{field}'.", param_hint="--field")
        try:
            parsed[key] = json.loads(raw)
        except json.JSONDecodeError:
            parsed[key] = raw
    return parsed


@click.group()
def item():
    """Manage work items of the active project."""
    pass


@item.command(name="tree")
@click.option("-s", "--status", type=click.Choice(ITEM_STATUSES), help="Only items with this status.")
@click.option("-t", "--type", "item_type", type=click.Choice(ITEM_TYPES), help="Only items of this type.")
@click.option("-p", "--priority", type=click.Choice(PRIORITIES), help="Only items with this priority.")
@click.option("--tag", help="Only items carrying this tag.")
@click.option("-a", "--assignee", help="Only items assigned to this person.")
@click.option("-j", "--json", "json_output", is_flag=True, help="Output in JSON format.")
@click.pass_obj
def tree(data_dir: Optional[Path], status: Optional[str], item_type: Optional[str],
         priority: Optional[str], tag: Optional[str], assignee: Optional[str], json_output: bool):
    """Show the work item hierarchy.

    Without options the project's saved filters apply. Any option replaces
    them for this call. Ancestors of matching items are always shown.
    """
    given = [
        (FilterKind.STATUS, status),
        (FilterKind.TYPE, item_type),
        (FilterKind.PRIORITY, priority),
        (FilterKind.TAGS, tag),
        (FilterKind.ASSIGNEE, assignee),
    ]
    filters = [FilterValue(kind=kind, value=value) for kind, value in given if value]

    async def _tree(core: WorkliteCore):
        return await core.tree(filters or None)

    forest = run_core(data_dir, _tree)

    if json_output:
        click.echo(json.dumps([node.to_dict() for node in forest], indent=2))
    elif not forest:
        click.echo("No work items.")
    else:
        display_tree(forest)


@item.command(name="add")
@click.argument("title")
@click.option("-t", "--type", "item_type", type=click.Choice(ITEM_TYPES), default="task",
              show_default=True, help="Work item type.")
@click.option("-s", "--status", type=click.Choice(ITEM_STATUSES), default="backlog",
              show_default=True, help="Initial status.")
@click.option("-p", "--priority", type=click.Choice(PRIORITIES), default="medium",
              show_default=True, help="Priority.")
@click.option("--parent", "parent_id", help="Parent work item id.")
@click.option("-d", "--desc", help="Description.")
@click.option("-a", "--assignee", help="Assignee.")
@click.option("--tag", "tags", multiple=True, help="Tag (repeatable).")
@click.option("-f", "--field", "fields", multiple=True, help="Custom field KEY=VALUE (repeatable).")
@click.pass_obj
def add(data_dir: Optional[Path], title: str, item_type: str, status: str, priority: str,
        parent_id: Optional[str], desc: Optional[str], assignee: Optional[str],
        tags: Tuple[str, ...], fields: Tuple[str, ...]):
    """Add a work item titled TITLE."""
    extra: Dict[str, Any] = {"tags": list(tags)}
    if desc:
        extra["description"] = desc
    if assignee:
        extra["assignee"] = assignee
    custom = {k: v for k, v in _parse_fields(fields).items() if v is not None}
    if custom:
        extra["custom_fields"] = custom

    async def _add(core: WorkliteCore):
        items = await core.item_manager()
        new_item = items.add_item(
            title, type=item_type, status=status, priority=priority, parent_id=parent_id, **extra
        )
        await core.save_items(items)
        return new_item

    new_item = run_core(data_dir, _add)
    click.echo(f"Work item '{new_item.title}' created successfully ({new_item.id}).")


@item.command(name="update")
@click.argument("item_id")
@click.option("-n", "--title", help="New title.")
@click.option("-d", "--desc", help="New description.")
@click.option("-t", "--type", "item_type", type=click.Choice(ITEM_TYPES), help="New type.")
@click.option("-s", "--status", type=click.Choice(ITEM_STATUSES), help="New status.")
@click.option("-p", "--priority", type=click.Choice(PRIORITIES), help="New priority.")
@click.option("-a", "--assignee", help="New assignee.")
@click.option("--tag", "tags", multiple=True, help="Replace tags (repeatable).")
@click.option("-f", "--field", "fields", multiple=True,
              help="Set custom field KEY=VALUE; KEY=null removes it (repeatable).")
@click.pass_obj
def update(data_dir: Optional[Path], item_id: str, title: Optional[str], desc: Optional[str],
           item_type: Optional[str], status: Optional[str], priority: Optional[str],
           assignee: Optional[str], tags: Tuple[str, ...], fields: Tuple[str, ...]):
    """Update fields of work item ITEM_ID. Only given fields change."""
    changes: Dict[str, Any] = {
        key: value
        for key, value in (
            ("title", title),
            ("description", desc),
            ("type", item_type),
            ("status", status),
            ("priority", priority),
            ("assignee", assignee),
        )
        if value is not None
    }
    if tags:
        changes["tags"] = list(tags)
    if fields:
        changes["custom_fields"] = _parse_fields(fields)

    if not changes:
        raise click.ClickException(
            "No update parameters provided. "
            "Specify at least one of: -n/--title, -d/--desc, -t/--type, -s/--status, "
            "-p/--priority, -a/--assignee, --tag, -f/--field."
        )

    async def _update(core: WorkliteCore):
        items = await core.item_manager()
        updated = items.update_item(item_id, **changes)
        await core.save_items(items)
        return updated

    updated = run_core(data_dir, _update)
    click.echo(f"Work item '{updated.title}' updated successfully.")


@item.command(name="move")
@click.argument("item_id")
@click.argument("parent_id", required=False)
@click.pass_obj
def move(data_dir: Optional[Path], item_id: str, parent_id: Optional[str]):
    """Move ITEM_ID under PARENT_ID, or to the top level if PARENT_ID is omitted.

    A parent that is the item itself or one of its descendants is refused.
    """
    async def _move(core: WorkliteCore):
        items = await core.item_manager()
        moved = items.move_item(item_id, parent_id)
        await core.save_items(items)
        return moved

    moved = run_core(data_dir, _move)
    if parent_id:
        click.echo(f"Work item '{moved.title}' moved under '{parent_id}'.")
    else:
        click.echo(f"Work item '{moved.title}' moved to the top level.")


@item.command(name="delete")
@click.argument("item_id")
@click.option("--cascade", is_flag=True, help="Also delete all descendants.")
@click.confirmation_option(prompt="Are you sure you want to delete this work item?")
@click.pass_obj
def delete(data_dir: Optional[Path], item_id: str, cascade: bool):
    """Delete work item ITEM_ID.

    Without --cascade its children move up to its parent.
    """
    async def _delete(core: WorkliteCore):
        items = await core.item_manager()
        deleted = items.delete_item(item_id, cascade=cascade)
        await core.save_items(items)
        return deleted

    deleted = run_core(data_dir, _delete)
    click.echo(f"Deleted {len(deleted)} work item(s).")


@item.command(name="parents")
@click.argument("item_id", required=False)
@click.pass_obj
def parents(data_dir: Optional[Path], item_id: Optional[str]):
    """List the valid parents for ITEM_ID (or for a new item if omitted)."""
    async def _parents(core: WorkliteCore):
        if item_id is not None:
            (await core.item_manager()).get_item(item_id)
        return await core.valid_parents(item_id)

    candidates = run_core(data_dir, _parents)
    if not candidates:
        click.echo("No valid parents.")
        return
    for candidate in candidates:
        click.echo(format_item(candidate))
