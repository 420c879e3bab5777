"""
CLI for Worklite.

Uses WorkliteCore and managers exclusively. Data lives in --data-dir,
$WORKLITE_HOME, or .worklite/ in the current directory.
"""
from pathlib import Path
from typing import Optional

import click

from worklite import __version__
from worklite.commands.filter import filter_group
from worklite.commands.item import item
from worklite.commands.migrate import migrate
from worklite.commands.project import project
from worklite.constants import get_default_data_dir
from worklite.logs import setup_logging


@click.group()
@click.version_option(__version__, prog_name="worklite")
@click.option("--data-dir", type=click.Path(file_okay=False, path_type=Path),
              help="Data directory (default: $WORKLITE_HOME or ./.worklite).")
@click.option("--log-file", is_flag=True, help="Also write a debug log to <data dir>/worklite.log.")
@click.pass_context
def cli(ctx: click.Context, data_dir: Optional[Path], log_file: bool):
    """A local tracker for projects and hierarchical work items."""
    setup_logging((data_dir or get_default_data_dir()) if log_file else None)
    ctx.obj = data_dir


cli.add_command(project)
cli.add_command(item)
cli.add_command(filter_group)
cli.add_command(migrate)


if __name__ == '__main__':
    cli()
