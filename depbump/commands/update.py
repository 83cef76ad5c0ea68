"""Update command implementation for depbump.

Runs the same engine as ``depbump check`` and writes the upgraded
specifiers back into ``package.json``. Key order and indentation are kept,
the write is atomic, and a timestamped backup is created first unless
``--no-backup`` is given. Nothing is installed; run your package manager
afterwards.

Typical usage::

    # Preview the changes
    $ depbump update --dry-run

    # Apply minor upgrades without prompting
    $ depbump update --target minor -y

    # Apply only selected packages
    $ depbump update -p react -p react-dom
"""

from __future__ import annotations

import sys
import asyncio
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import click

from depbump.context import DepbumpContext, pass_context
from depbump.core import ManifestReader
from depbump.exceptions import DepbumpError
from depbump.models import PackageUpgrade
from depbump.commands.common import (
    RunSettings,
    engine_options,
    report_problems,
    resolve_settings,
    run_engine,
)
from depbump.utils import (
    colorize_update_type,
    confirm,
    get_logger,
    print_error,
    print_success,
    print_table,
    print_warning,
    safe_write_file,
)

logger = get_logger("commands.update")


@click.command()
@engine_options
@click.option(
    "--dry-run",
    is_flag=True,
    help="Preview changes without writing package.json.",
)
@click.option(
    "--yes",
    "-y",
    is_flag=True,
    help="Skip confirmation prompt.",
)
@click.option(
    "--backup/--no-backup",
    default=True,
    show_default=True,
    help="Create a timestamped backup before writing.",
)
@click.option(
    "--packages",
    "-p",
    multiple=True,
    help="Update only these packages (can be repeated).",
)
@pass_context
def update(
    ctx: DepbumpContext,
    package_json: Optional[Path],
    target: Optional[str],
    peer: Optional[bool],
    backend: Optional[str],
    registry: Optional[str],
    timeout: Optional[int],
    concurrency: Optional[int],
    allow_partial: Optional[bool],
    pre: Optional[bool],
    cwd: Optional[Path],
    dry_run: bool,
    yes: bool,
    backup: bool,
    packages: Tuple[str, ...],
) -> None:
    """Upgrade the specifiers in package.json.

    Exits:
        0 when the manifest was updated or nothing needed updating,
        1 if an error occurred.
    """
    try:
        settings = resolve_settings(
            ctx.config,
            package_json=package_json,
            cwd=cwd,
            target=target,
            peer=peer,
            backend=backend,
            registry=registry,
            timeout=timeout,
            concurrency=concurrency,
            allow_partial=allow_partial,
            pre=pre,
        )
        asyncio.run(_update_async(settings, dry_run, yes, backup, list(packages)))
    except DepbumpError as e:
        print_error(f"{e}")
        sys.exit(1)

    sys.exit(0)


# ---------------------------------------------------------------------------
# Async orchestration
# ---------------------------------------------------------------------------


async def _update_async(
    settings: RunSettings,
    dry_run: bool,
    skip_confirm: bool,
    backup: bool,
    package_filter: List[str],
) -> None:
    """Compute upgrades and write them to the manifest.

    Raises:
        DepbumpError: The engine failed or the manifest could not be
            written.
    """
    logger.info("Checking %s for upgrades...", settings.manifest)
    text, _, result = await run_engine(settings)

    report_problems(result)

    upgrades = _filter_upgrades(result.upgrades, package_filter)
    if not upgrades:
        print_success("All dependencies are up to date!")
        return

    _display_update_plan(list(upgrades.values()), dry_run)
    if dry_run:
        print_warning("Dry run mode - no changes applied")
        return

    if not skip_confirm and not confirm(f"Write {len(upgrades)} upgrade(s)?"):
        logger.info("Update cancelled by user")
        return

    updated = ManifestReader().apply_upgrades(text, upgrades)
    backup_path = safe_write_file(settings.manifest, updated, create_backup=backup)
    if backup_path is not None:
        logger.info("Created backup: %s", backup_path)

    print_success(f"Upgraded {len(upgrades)} dependenc(ies) in {settings.manifest.name}")
    for upgrade in upgrades.values():
        logger.debug("  %s: %s → %s", upgrade.name, upgrade.current, upgrade.upgraded)


# ---------------------------------------------------------------------------
# Helper functions
# ---------------------------------------------------------------------------


def _filter_upgrades(
    upgrades: Dict[str, PackageUpgrade], package_filter: List[str]
) -> Dict[str, PackageUpgrade]:
    """Keep only the named packages; an empty filter keeps everything."""
    if not package_filter:
        return dict(upgrades)

    wanted = set(package_filter)
    selected = {name: u for name, u in upgrades.items() if name in wanted}
    missing = sorted(wanted - set(selected))
    if missing:
        print_warning(f"No upgrade available for: {', '.join(missing)}")
    return selected


def _display_update_plan(upgrades: List[PackageUpgrade], dry_run: bool) -> None:
    """Show the specifier changes about to be written."""
    rows = [
        {
            "Package": upgrade.name,
            "Current": upgrade.current,
            "Upgraded": upgrade.upgraded,
            "Type": colorize_update_type(upgrade.update_type),
        }
        for upgrade in upgrades
    ]
    print_table(
        rows,
        title="Upgrade Plan (dry run)" if dry_run else "Upgrade Plan",
        column_styles={
            "Package": {"style": "bold", "no_wrap": True},
            "Current": {"style": "dim"},
            "Upgraded": {"style": "bold green"},
        },
    )
