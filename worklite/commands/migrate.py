"""
Migrate command for the Worklite CLI.

Legacy data is also migrated automatically by every other command; this
command runs the migration on its own and reports the outcome.
"""
from pathlib import Path
from typing import Optional

import click

from worklite.commands.common import run_core
from worklite.core import WorkliteCore
from worklite.managers import LegacyStorage


@click.command()
@click.option("--legacy-file", type=click.Path(dir_okay=False, path_type=Path),
              help="Legacy storage file (default: <data dir>/legacy_storage.json).")
@click.pass_obj
def migrate(data_dir: Optional[Path], legacy_file: Optional[Path]):
    """Import the legacy single-project storage into the project store."""
    async def _migrate(core: WorkliteCore):
        if legacy_file is not None:
            core.migration.legacy = LegacyStorage(legacy_file)
        if not core.migration.needs_migration():
            return False, None
        return True, await core.migration.migrate()

    found, project_id = run_core(data_dir, _migrate, startup=False)
    if not found:
        click.echo("No legacy data found.")
    elif project_id is None:
        raise click.ClickException(
            "Migration failed; legacy data was kept. Run with WORKLITE_DEBUG=1 for details."
        )
    else:
        click.echo(f"Migrated legacy project ({project_id}). It is now the active project.")
