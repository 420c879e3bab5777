"""
Project commands for the Worklite CLI.

List, import, export, switch and delete projects. Exactly one project is
active at a time; item and filter commands work on it.
"""
import json
from pathlib import Path
from typing import Optional

import click

from worklite.commands.common import run_core
from worklite.core import WorkliteCore


@click.group()
def project():
    """Manage projects (import, export, switch, delete)."""
    pass


@project.command(name="list")
@click.option("-j", "--json", "json_output", is_flag=True, help="Output in JSON format.")
@click.pass_obj
def list_projects(data_dir: Optional[Path], json_output: bool):
    """List all projects, most recently accessed first."""
    async def _list(core: WorkliteCore):
        return await core.store.get_all_projects()

    projects = run_core(data_dir, _list)

    if json_output:
        click.echo(json.dumps([p.to_record() for p in projects], indent=2))
        return

    if not projects:
        click.echo("No projects. Use 'worklite project import FILE' to add one.")
        return

    for p in projects:
        marker = "*" if p.is_active else " "
        click.echo(f"{marker} {p.name} ({p.id}) v{p.version}, last accessed {p.last_accessed}")


@project.command(name="import")
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("-n", "--name", help="Project name (overrides the name in the file).")
@click.option("--activate/--no-activate", default=True, show_default=True,
              help="Make the imported project active.")
@click.pass_obj
def import_project(data_dir: Optional[Path], file: Path, name: Optional[str], activate: bool):
    """Import a project from a JSON file.

    The file must contain a 'project' object and a 'workItems' array.
    """
    text = file.read_text()

    async def _import(core: WorkliteCore):
        return await core.import_project(text, name=name, activate=activate)

    project_id = run_core(data_dir, _import)
    click.echo(f"Project imported successfully ({project_id}).")


@project.command(name="show")
@click.argument("project_id", required=False)
@click.option("-j", "--json", "json_output", is_flag=True, help="Output in JSON format.")
@click.pass_obj
def show(data_dir: Optional[Path], project_id: Optional[str], json_output: bool):
    """Show a project and its metadata.

    PROJECT_ID defaults to the active project.
    """
    async def _show(core: WorkliteCore):
        if project_id:
            return await core.store.get_project(project_id)
        return await core.current_project()

    data = run_core(data_dir, _show)

    if json_output:
        click.echo(json.dumps(data.to_record(), indent=2))
        return

    p = data.project
    click.echo(f"Name: {p.name}")
    click.echo(f"Description: {p.description or ''}")
    click.echo(f"Type: {p.type}")
    click.echo(f"Status: {p.status}")
    click.echo(f"Priority: {p.priority}")
    if p.owner:
        click.echo(f"Owner: {p.owner}")
    if p.tags:
        click.echo(f"Tags: {', '.join(p.tags)}")

    meta = data.metadata
    if meta is not None:
        click.echo(
            f"\nWork items: {meta.total_work_items or 0} "
            f"({meta.completed_work_items or 0} completed)"
        )
        if meta.total_estimated_effort:
            effort = meta.total_estimated_effort
            click.echo(f"Estimated effort: {effort.value:g} {effort.unit}")
        click.echo(f"Last updated: {meta.last_updated}")


@project.command(name="switch")
@click.argument("project_id")
@click.pass_obj
def switch(data_dir: Optional[Path], project_id: str):
    """Make PROJECT_ID the active project."""
    async def _switch(core: WorkliteCore):
        return await core.switch_project(project_id)

    data = run_core(data_dir, _switch)
    click.echo(f"Switched to project '{data.project.name}'.")


@project.command(name="active")
@click.pass_obj
def active(data_dir: Optional[Path]):
    """Show the active project."""
    async def _active(core: WorkliteCore):
        return await core.store.get_active_project()

    current = run_core(data_dir, _active)
    if current is None:
        click.echo("No active project.")
    else:
        click.echo(f"{current.name} ({current.id})")


@project.command(name="delete")
@click.argument("project_id")
@click.confirmation_option(prompt="Are you sure you want to delete this project and all its work items?")
@click.pass_obj
def delete(data_dir: Optional[Path], project_id: str):
    """Delete a project with all its work items and metadata."""
    async def _delete(core: WorkliteCore):
        await core.delete_project(project_id)

    run_core(data_dir, _delete)
    click.echo(f"Project '{project_id}' deleted successfully.")


@project.command(name="export")
@click.argument("project_id", required=False)
@click.option("-o", "--output", type=click.Path(dir_okay=False, path_type=Path),
              help="Write to this file instead of stdout.")
@click.pass_obj
def export(data_dir: Optional[Path], project_id: Optional[str], output: Optional[Path]):
    """Export a project as JSON.

    PROJECT_ID defaults to the active project.
    """
    async def _export(core: WorkliteCore):
        target = project_id
        if target is None:
            await core.current_project()
            target = core.projects.current_project_id
        return await core.export_project(target)

    text = run_core(data_dir, _export)
    if output:
        output.write_text(text)
        click.echo(f"Project exported to {output}.")
    else:
        click.echo(text)
