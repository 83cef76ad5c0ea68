"""Check command implementation for depbump.

Reads a ``package.json``, asks the configured registry backend for every
dependency's published versions and reports the specifiers each one could
be upgraded to. The manifest is never modified; see ``depbump update``.

Output modes:

- ``table`` (default): one row per upgrade, with optional ``time``
  (publish time) and ``repo`` (repository URL) columns;
- ``group``: the same rows grouped by semver distance;
- ``lines``: ``name@specifier`` per line, ready for ``npm install``;
- ``--json-upgraded``: ``{"name": "specifier"}`` for upgrades only;
- ``--json-all``: the whole manifest with upgrades applied.

With ``--global`` the globally installed packages are checked instead of a
manifest, and ``--json-all`` prints ``{"name": "version"}`` for each of
them, upgraded where possible.

Typical usage::

    $ depbump check
    $ depbump check --target minor --format group,time
    $ depbump check --peer --format lines | xargs npm install
    $ depbump check --json-upgraded > upgrades.json
    $ depbump check --global --json-all --filter npm
"""

from __future__ import annotations

import sys
import asyncio
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

import click

from depbump.constants import OUTPUT_FORMATS
from depbump.context import DepbumpContext, pass_context
from depbump.core import ManifestReader
from depbump.exceptions import DepbumpError, OptionConflictError
from depbump.models import DependencyDeclaration, PackageUpgrade, ResolutionResult
from depbump.models.resolution import format_timestamp
from depbump.commands.common import (
    RunSettings,
    engine_options,
    report_problems,
    resolve_settings,
    run_engine,
)
from depbump.utils import (
    colorize_update_type,
    get_logger,
    print_error,
    print_heading,
    print_json,
    print_plain,
    print_success,
    print_table,
)

logger = get_logger("commands.check")

#: Order and captions of the ``group`` output.
GROUPS = (
    ("patch", "Patch   Backwards-compatible bug fixes"),
    ("minor", "Minor   Backwards-compatible features"),
    ("major", "Major   Potentially breaking API changes"),
    ("prerelease", "Pre-release   Unstable versions"),
)


def parse_formats(value: Optional[str]) -> List[str]:
    """Split a ``--format`` value into known format names.

    Raises:
        click.BadParameter: An unknown format name is given.
    """
    if not value:
        return []
    formats = [part.strip().lower() for part in value.split(",") if part.strip()]
    unknown = [f for f in formats if f not in OUTPUT_FORMATS]
    if unknown:
        raise click.BadParameter(
            f"Unknown format(s): {', '.join(unknown)}. "
            f"Choose from: {', '.join(OUTPUT_FORMATS)}.",
            param_hint="'--format'",
        )
    return list(dict.fromkeys(formats))


def validate_output_options(
    formats: Sequence[str], json_upgraded: bool, json_all: bool
) -> None:
    """Reject output option combinations that cannot be honoured together.

    Raises:
        OptionConflictError: With the message naming the conflict.
    """
    if "lines" in formats:
        if json_upgraded:
            raise OptionConflictError(
                "Cannot specify both --format lines and --jsonUpgraded."
            )
        if json_all:
            raise OptionConflictError("Cannot specify both --format lines and --jsonAll.")
        if len(formats) > 1:
            raise OptionConflictError(
                "Cannot use --format lines with other formatting options."
            )
    if json_upgraded and json_all:
        raise OptionConflictError("Cannot specify both --jsonUpgraded and --jsonAll.")


@click.command()
@engine_options
@click.option(
    "--format",
    "-f",
    "format_",
    metavar="FORMATS",
    help=f"Comma-separated output formats: {', '.join(OUTPUT_FORMATS)}.",
)
@click.option(
    "--json-upgraded",
    "--jsonUpgraded",
    "json_upgraded",
    is_flag=True,
    help="Print upgraded dependencies as a JSON object.",
)
@click.option(
    "--json-all",
    "--jsonAll",
    "json_all",
    is_flag=True,
    help="Print the whole manifest with upgrades applied, as JSON.",
)
@click.option(
    "--error-level",
    "-e",
    type=click.IntRange(1, 2),
    default=1,
    show_default=True,
    help="1: exit 0 when upgrades are available. 2: exit 1 when they are.",
)
@click.option(
    "--global",
    "-g",
    "global_mode",
    is_flag=True,
    help="Check globally installed packages instead of package.json.",
)
@click.option(
    "--global-dir",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    help="Global node_modules directory (defaults to the backend's).",
)
@click.option(
    "--filter",
    "package_filter",
    multiple=True,
    help="With --global, check only these packages (can be repeated).",
)
@pass_context
def check(
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
    format_: Optional[str],
    json_upgraded: bool,
    json_all: bool,
    error_level: int,
    global_mode: bool,
    global_dir: Optional[Path],
    package_filter: Tuple[str, ...],
) -> None:
    """Check package.json for dependencies that can be upgraded.

    Queries the registry for every dependency declared in PACKAGE_JSON
    (default: ./package.json) and lists the upgraded specifiers allowed by
    the upgrade policy. With ``--peer`` the upgrades are capped so every
    peer dependency range stays satisfied.

    With ``--global`` the packages installed globally by the backend are
    checked instead, each at its exact installed version.

    Exits:
        0 on success, 1 on error or, with ``--error-level 2``, when
        upgrades are available.
    """
    try:
        formats = parse_formats(format_)
        validate_output_options(formats, json_upgraded, json_all)

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
            global_mode=global_mode or global_dir is not None,
            global_dir=global_dir,
            package_filter=package_filter,
        )
        has_upgrades = asyncio.run(
            _check_async(settings, formats or ["table"], json_upgraded, json_all)
        )
    except DepbumpError as e:
        print_error(f"{e}")
        sys.exit(1)

    sys.exit(1 if has_upgrades and error_level >= 2 else 0)


# ---------------------------------------------------------------------------
# Async orchestration
# ---------------------------------------------------------------------------


async def _check_async(
    settings: RunSettings,
    formats: List[str],
    json_upgraded: bool,
    json_all: bool,
) -> bool:
    """Run the engine and render the result.

    Returns:
        ``True`` if at least one dependency can be upgraded.
    """
    source = "global packages" if settings.global_mode else settings.manifest
    logger.info("Checking %s...", source)
    text, declarations, result = await run_engine(settings)

    report_problems(result)

    if json_upgraded:
        print_json(result.to_mapping())
    elif json_all and settings.global_mode:
        print_json(_global_versions(declarations, result))
    elif json_all:
        print_plain(ManifestReader().apply_upgrades(text, result.upgrades).rstrip("\n"))
    elif "lines" in formats:
        _display_lines(result)
    elif not result.has_upgrades():
        if declarations:
            print_success(
                f"All dependencies match the {settings.target} package versions"
            )
        else:
            print_success("No dependencies declared")
    elif "group" in formats:
        _display_grouped(result, "time" in formats, "repo" in formats)
    else:
        _display_table(result, "time" in formats, "repo" in formats)

    return result.has_upgrades()


# ---------------------------------------------------------------------------
# Display renderers
# ---------------------------------------------------------------------------


def _global_versions(
    declarations: List[DependencyDeclaration], result: ResolutionResult
) -> Dict[str, str]:
    """Installed version of each global package, or its upgrade."""
    return {
        d.name: (
            result.upgrades[d.name].upgraded if d.name in result.upgrades else d.specifier
        )
        for d in declarations
    }


def _display_lines(result: ResolutionResult) -> None:
    """Print ``name@specifier`` per upgrade, verbatim."""
    for line in result.to_lines():
        print_plain(line)


def _display_table(
    result: ResolutionResult,
    show_time: bool,
    show_repo: bool,
    *,
    upgrades: Optional[List[PackageUpgrade]] = None,
    title: Optional[str] = "Available Upgrades",
) -> None:
    """Render upgrades as a Rich table.

    Example::

        ┏━━━━━━━━━━━━━┳━━━━━━━━━┳━━━┳━━━━━━━━━━┳━━━━━━━┓
        ┃ Package     ┃ Current ┃   ┃ Upgraded ┃ Type  ┃
        ┡━━━━━━━━━━━━━╇━━━━━━━━━╇━━━╇━━━━━━━━━━╇━━━━━━━┩
        │ ncu-test-v2 │ ^1.0.0  │ → │ ^2.0.0   │ major │
        └─────────────┴─────────┴───┴──────────┴───────┘
    """
    rows = [
        _create_table_row(upgrade, show_time, show_repo)
        for upgrade in (upgrades if upgrades is not None else result.upgrades.values())
    ]

    column_styles: Dict[str, Dict[str, Any]] = {
        "Package": {"style": "bold", "no_wrap": True},
        "Current": {"justify": "right", "style": "dim"},
        "": {"justify": "center", "style": "dim"},
        "Upgraded": {"style": "bold green"},
        "Type": {"justify": "center"},
        "Published": {"no_wrap": True},
        "Repository": {"no_wrap": True},
        "Peer": {"style": "yellow"},
    }
    headers = list(dict.fromkeys(key for row in rows for key in row))
    print_table(rows, headers=headers, title=title, column_styles=column_styles)


def _create_table_row(
    upgrade: PackageUpgrade, show_time: bool, show_repo: bool
) -> Dict[str, str]:
    """Build one table row; peer-capped upgrades name their constraint."""
    row = {
        "Package": upgrade.name,
        "Current": upgrade.current,
        "": "→",
        "Upgraded": upgrade.upgraded,
        "Type": colorize_update_type(upgrade.update_type),
    }
    if show_time:
        row["Published"] = (
            format_timestamp(upgrade.published_at) if upgrade.published_at else "-"
        )
    if show_repo:
        row["Repository"] = upgrade.repository_url or "-"
    if upgrade.is_constrained:
        row["Peer"] = "\n".join(c.to_display_string() for c in upgrade.constrained_by)
    return row


def _display_grouped(result: ResolutionResult, show_time: bool, show_repo: bool) -> None:
    """Render one table per semver distance, patch first."""
    groups = result.group_by_update_type()
    ordered = [(key, caption) for key, caption in GROUPS if key in groups]
    ordered += [(key, key.capitalize()) for key in groups if key not in dict(GROUPS)]

    for key, caption in ordered:
        print_heading(caption)
        _display_table(result, show_time, show_repo, upgrades=groups[key], title=None)
