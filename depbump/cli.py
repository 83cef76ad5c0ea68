"""
Command-line interface for depbump.

This module provides the main CLI entry point and handles global options,
configuration loading, and command registration.
"""

from __future__ import annotations

import os
import sys
import logging
from pathlib import Path
from typing import Optional

import click

from depbump.config import load_config
from depbump.__version__ import __version__
from depbump.context import DepbumpContext
from depbump.exceptions import ConfigError, DepbumpError
from depbump.utils.logger import get_logger, level_for, setup_logging
from depbump.utils.console import print_error, print_warning, reconfigure_console

logger = get_logger("cli")


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Path to configuration file.",
    envvar="DEPBUMP_CONFIG",
)
@click.option(
    "--verbose",
    "-v",
    count=True,
    help="Increase verbosity (can be repeated: -v, -vv, -vvv).",
)
@click.option(
    "--color/--no-color",
    default=True,
    help="Enable or disable colored output.",
    envvar="DEPBUMP_COLOR",
)
@click.version_option(
    version=__version__,
    prog_name="depbump",
    message="%(prog)s %(version)s",
)
@click.pass_context
def cli(
    ctx: click.Context,
    config: Optional[Path],
    verbose: int,
    color: bool,
) -> None:
    """depbump: upgrade recommendations for package.json dependencies.

    \b
    Available commands:
      depbump check               List dependencies that can be upgraded
      depbump update              Write upgraded specifiers to package.json

    \b
    Examples:
      depbump check
      depbump check --target minor --peer
      depbump update --dry-run

    Use ``depbump COMMAND --help`` for command-specific options.
    """
    # NO_COLOR must be set before the first console is created
    if color:
        os.environ.pop("NO_COLOR", None)
    else:
        os.environ["NO_COLOR"] = "1"
    reconfigure_console()

    setup_logging(verbose)
    logger.debug("Logging initialized at %s level", logging.getLevelName(level_for(verbose)))

    try:
        loaded_config = load_config(config)
    except ConfigError as exc:
        print_error(str(exc))
        raise SystemExit(1) from exc

    depbump_ctx = DepbumpContext()
    depbump_ctx.config_path = config or loaded_config.source_path
    depbump_ctx.color = color
    depbump_ctx.verbose = verbose
    depbump_ctx.config = loaded_config
    ctx.obj = depbump_ctx

    logger.debug("depbump v%s", __version__)
    logger.debug("Config path: %s", depbump_ctx.config_path)
    logger.debug("Verbosity: %s | Color: %s", verbose, color)


# Register CLI subcommands
from depbump.commands.check import check  # noqa: E402
from depbump.commands.update import update  # noqa: E402

cli.add_command(check)
cli.add_command(update)


def main() -> int:
    """Main entry point for the depbump CLI.

    Returns:
        Exit code:
            0   Success
            1   Application error
            2   Usage error (Click)
            130 Interrupted by user (Ctrl+C)
    """
    try:
        cli(standalone_mode=False)
        return 0

    except click.exceptions.Abort:
        print_warning("Operation cancelled by user")
        return 130

    except click.ClickException as exc:
        exc.show()
        return exc.exit_code

    except DepbumpError as exc:
        print_error(str(exc))
        logger.debug(
            "DepbumpError details: %s",
            exc.details or "<none>",
            exc_info=True,
        )
        return 1

    except KeyboardInterrupt:
        print_warning("Operation cancelled by user")
        return 130

    except Exception as exc:
        print_error(f"Unexpected error: {exc}")
        logger.exception("Unhandled exception in CLI")
        return 1


if __name__ == "__main__":
    sys.exit(main())
