"""Shared plumbing for the ``check`` and ``update`` commands.

Both commands accept the same engine options, merge them over the loaded
configuration, read the manifest and run the
:class:`~depbump.core.UpgradeOrchestrator`. This module holds that shared
path so the commands only differ in what they do with the result.
"""

from __future__ import annotations

import json
import asyncio
from pathlib import Path
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple, TypeVar

import click

from depbump.config import DepbumpConfig
from depbump.constants import BACKENDS, MANIFEST_FILENAME
from depbump.core import ManifestReader, UpgradeOrchestrator
from depbump.exceptions import FileOperationError
from depbump.models import DependencyDeclaration, ResolutionResult, UpgradePolicy
from depbump.models.policy import validate_target
from depbump.models.version import TagTieBreak
from depbump.registry import RegistryClient, create_registry_client
from depbump.utils import HTTPClient, get_logger, print_warning, safe_read_file

logger = get_logger("commands")

F = TypeVar("F", bound=Callable[..., Any])


@dataclass(frozen=True)
class RunSettings:
    """Effective engine settings after merging config, environment and CLI."""

    manifest: Path
    cwd: Path
    target: str
    peer: bool
    backend: str
    registry: Optional[str]
    timeout: int
    concurrency: int
    max_peer_iterations: int
    allow_partial: bool
    tag_tie_break: str
    pre: bool
    overrides: Dict[str, str]
    global_mode: bool = False
    global_dir: Optional[Path] = None
    package_filter: Tuple[str, ...] = ()

    def policy(self) -> UpgradePolicy:
        """Return the upgrade policy these settings describe."""
        return UpgradePolicy(
            target=self.target,
            overrides=self.overrides,
            include_prerelease=self.pre,
        )


def engine_options(func: F) -> F:
    """Attach the options shared by every engine-running command.

    Options left unset fall back to the configuration file; each can also
    be given through a ``DEPBUMP_*`` environment variable.
    """
    options = [
        click.argument(
            "package_json",
            required=False,
            type=click.Path(dir_okay=False, path_type=Path),
        ),
        click.option(
            "--target",
            "-t",
            envvar="DEPBUMP_TARGET",
            help="Upgrade policy: patch, minor, major, latest or a dist-tag.",
        ),
        click.option(
            "--peer/--no-peer",
            default=None,
            envvar="DEPBUMP_PEER",
            help="Respect peer dependency ranges of upgraded packages.",
        ),
        click.option(
            "--backend",
            "-b",
            type=click.Choice(list(BACKENDS), case_sensitive=False),
            envvar="DEPBUMP_BACKEND",
            help="Package manager backend.",
        ),
        click.option(
            "--registry",
            envvar="DEPBUMP_REGISTRY",
            help="Registry URL (defaults to the backend's public registry).",
        ),
        click.option(
            "--timeout",
            type=click.IntRange(min=1),
            envvar="DEPBUMP_TIMEOUT",
            help="Per-query timeout in seconds.",
        ),
        click.option(
            "--concurrency",
            type=click.IntRange(min=1),
            envvar="DEPBUMP_CONCURRENCY",
            help="Maximum concurrent registry queries.",
        ),
        click.option(
            "--allow-partial/--no-allow-partial",
            default=None,
            envvar="DEPBUMP_ALLOW_PARTIAL",
            help="Keep going when peer ranges conflict, flagging the package.",
        ),
        click.option(
            "--pre/--no-pre",
            default=None,
            envvar="DEPBUMP_PRE",
            help="Include pre-release versions.",
        ),
        click.option(
            "--cwd",
            type=click.Path(file_okay=False, path_type=Path),
            help="Project directory (defaults to the manifest's directory).",
        ),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def resolve_settings(
    config: DepbumpConfig,
    *,
    package_json: Optional[Path] = None,
    cwd: Optional[Path] = None,
    target: Optional[str] = None,
    peer: Optional[bool] = None,
    backend: Optional[str] = None,
    registry: Optional[str] = None,
    timeout: Optional[int] = None,
    concurrency: Optional[int] = None,
    allow_partial: Optional[bool] = None,
    pre: Optional[bool] = None,
    global_mode: bool = False,
    global_dir: Optional[Path] = None,
    package_filter: Tuple[str, ...] = (),
) -> RunSettings:
    """Merge command-line values over *config*.

    Raises:
        ConfigError: The target is not a level or dist-tag name.
    """
    if package_json is None:
        project = (cwd or Path.cwd()).resolve()
        manifest = project / MANIFEST_FILENAME
    else:
        manifest = package_json.resolve()
        project = (cwd or manifest.parent).resolve()

    return RunSettings(
        manifest=manifest,
        cwd=project,
        target=validate_target(target, option="--target") if target else config.target,
        peer=config.peer if peer is None else peer,
        backend=(backend or config.backend).lower(),
        registry=registry or config.registry,
        timeout=timeout or config.timeout,
        concurrency=concurrency or config.concurrency,
        max_peer_iterations=config.max_peer_iterations,
        allow_partial=config.allow_partial if allow_partial is None else allow_partial,
        tag_tie_break=TagTieBreak(config.tag_tie_break).value,
        pre=config.pre if pre is None else pre,
        overrides=dict(config.overrides),
        global_mode=global_mode,
        global_dir=global_dir.resolve() if global_dir is not None else None,
        package_filter=tuple(package_filter),
    )


async def run_engine(
    settings: RunSettings,
    *,
    cancel_event: Optional[asyncio.Event] = None,
) -> Tuple[str, List[DependencyDeclaration], ResolutionResult]:
    """Read the manifest and compute upgrades.

    In global mode the globally installed packages stand in for the
    manifest: each is declared at its exact installed version.

    Returns:
        The manifest text, its declarations and the resolution result.

    Raises:
        DepbumpError: Any failure that stops the run.
    """
    if settings.global_mode:
        return await _run_global(settings, cancel_event)

    if not settings.manifest.is_file():
        raise FileOperationError(
            f"{settings.manifest} not found. Run depbump in a directory "
            f"containing {MANIFEST_FILENAME} or pass its path.",
            file_path=str(settings.manifest),
            operation="read",
        )

    reader = ManifestReader()
    text = safe_read_file(settings.manifest)
    declarations = reader.parse(text, source=str(settings.manifest))
    logger.info("Found %d dependenc(ies) in %s", len(declarations), settings.manifest)

    if not declarations:
        return text, declarations, ResolutionResult()

    async with HTTPClient(
        timeout=settings.timeout, max_concurrency=settings.concurrency
    ) as http:
        client = _registry_client(settings, http)
        result = await _orchestrate(
            settings, client, declarations, settings.cwd, cancel_event
        )
    return text, declarations, result


async def _run_global(
    settings: RunSettings, cancel_event: Optional[asyncio.Event]
) -> Tuple[str, List[DependencyDeclaration], ResolutionResult]:
    """Compute upgrades for globally installed packages."""
    async with HTTPClient(
        timeout=settings.timeout, max_concurrency=settings.concurrency
    ) as http:
        client = _registry_client(settings, http)
        root = settings.global_dir
        if root is None:
            loop = asyncio.get_running_loop()
            root = await loop.run_in_executor(None, client.global_root)
        installed = await client.list_global(root)
        if settings.package_filter:
            installed = {
                name: version
                for name, version in installed.items()
                if name in settings.package_filter
            }
        logger.info("Found %d global package(s) in %s", len(installed), root)

        text = json.dumps({"dependencies": installed}, indent=2) + "\n"
        declarations = ManifestReader().parse(text, source=str(root))
        if not declarations:
            return text, declarations, ResolutionResult()

        # yarn keeps its global lockfile beside node_modules
        result = await _orchestrate(
            settings, client, declarations, root.parent, cancel_event
        )
    return text, declarations, result


def _registry_client(settings: RunSettings, http: HTTPClient) -> RegistryClient:
    return create_registry_client(
        settings.backend,
        http,
        registry_url=settings.registry,
        timeout=settings.timeout,
    )


async def _orchestrate(
    settings: RunSettings,
    client: RegistryClient,
    declarations: List[DependencyDeclaration],
    cwd: Path,
    cancel_event: Optional[asyncio.Event],
) -> ResolutionResult:
    orchestrator = UpgradeOrchestrator(
        client,
        concurrency=settings.concurrency,
        timeout=settings.timeout,
        max_peer_iterations=settings.max_peer_iterations,
        allow_partial=settings.allow_partial,
        tag_tie_break=settings.tag_tie_break,
    )
    return await orchestrator.run(
        declarations,
        settings.policy(),
        peer=settings.peer,
        cwd=cwd,
        cancel_event=cancel_event,
    )


def report_problems(result: ResolutionResult) -> None:
    """Print warnings and incomplete packages to stderr."""
    for warning in result.warnings:
        print_warning(warning)
    for name, reason in result.incomplete.items():
        print_warning(f"{name}: {reason}", prefix="[INCOMPLETE]")
    if result.partial:
        print_warning("Results are partial; some packages could not be checked.")
