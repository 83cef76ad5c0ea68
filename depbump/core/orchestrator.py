"""Upgrade orchestration for depbump.

:class:`UpgradeOrchestrator` drives one upgrade run end to end:

1. **Deduplicate** declarations by package name, preferring runtime over
   dev over optional over peer sections.
2. **Validate** every specifier before any registry traffic. Packages
   whose specifier cannot be parsed (``file:``, ``github:``, ``||`` unions)
   are listed as incomplete and never queried.
3. **Fetch** version sets concurrently through the registry client with a
   bounded worker pool and a per-query timeout.
4. **Select** upgrades, either independently per package or, in peer
   mode, through :class:`~depbump.core.peer_resolver.PeerConstraintResolver`
   once every fetch has finished.

Per-package failures degrade the result instead of aborting it: unknown
packages are skipped with a warning and unreachable ones are listed as
incomplete, as are unsupported specifiers. Only an environment problem
(:class:`~depbump.exceptions.BackendPreconditionError`) stops the run.

Typical usage::

    async with HTTPClient() as http:
        client = create_registry_client("npm", http)
        orchestrator = UpgradeOrchestrator(client, concurrency=8)
        result = await orchestrator.run(declarations, UpgradePolicy("minor"))
        for line in result.to_lines():
            print(line)
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Set, Tuple, Union

from depbump.constants import (
    DEFAULT_CONCURRENCY,
    DEFAULT_MAX_PEER_ITERATIONS,
    DEFAULT_TAG_TIE_BREAK,
)
from depbump.core.peer_resolver import PeerConstraintResolver
from depbump.core.selector import Selection, VersionSelector
from depbump.core.specifier import RangeSpecifier, parse_specifier
from depbump.exceptions import (
    BackendPreconditionError,
    BackendUnavailableError,
    InvalidSpecifierError,
    PackageNotFoundError,
    RegistryError,
)
from depbump.models.dependency import DependencyDeclaration
from depbump.models.policy import UpgradePolicy
from depbump.models.resolution import PackageUpgrade, PeerConstraint, ResolutionResult
from depbump.models.version import TagTieBreak, VersionSet
from depbump.registry.base import RegistryClient
from depbump.utils.logger import get_logger

logger = get_logger("orchestrator")

__all__ = ["UpgradeOrchestrator", "deduplicate"]


def deduplicate(
    declarations: Iterable[DependencyDeclaration],
) -> Tuple[List[DependencyDeclaration], List[str]]:
    """Keep one declaration per package name.

    The declaration from the most specific section wins; first-seen order
    is preserved. A warning is produced when the dropped declaration used
    a different specifier.

    Returns:
        The kept declarations and any warnings.
    """
    kept: Dict[str, DependencyDeclaration] = {}
    warnings: List[str] = []

    for declaration in declarations:
        existing = kept.get(declaration.name)
        if existing is None:
            kept[declaration.name] = declaration
            continue

        winner, loser = (
            (declaration, existing)
            if declaration.section.priority < existing.section.priority
            else (existing, declaration)
        )
        if winner.specifier != loser.specifier:
            warnings.append(
                f"{declaration.name} is declared as {winner.specifier} in "
                f"{winner.section.value} and {loser.specifier} in "
                f"{loser.section.value}; using {winner.specifier}"
            )
        kept[declaration.name] = winner

    return list(kept.values()), warnings


class UpgradeOrchestrator:
    """Run the upgrade pipeline against one registry backend.

    Args:
        registry_client: Backend to query. **Required**.
        concurrency: Maximum number of registry queries in flight.
        timeout: Per-query timeout in seconds. Defaults to the client's
            own timeout.
        max_peer_iterations: Iteration budget for peer resolution.
        allow_partial: Tolerate unsatisfiable peer ranges instead of
            failing the run.
        tag_tie_break: Rule for dist-tags that point at several versions.

    Raises:
        TypeError: If *registry_client* is ``None``.
        ValueError: If *concurrency* is not positive.
    """

    def __init__(
        self,
        registry_client: RegistryClient,
        *,
        concurrency: int = DEFAULT_CONCURRENCY,
        timeout: Optional[float] = None,
        max_peer_iterations: int = DEFAULT_MAX_PEER_ITERATIONS,
        allow_partial: bool = False,
        tag_tie_break: Union[TagTieBreak, str] = DEFAULT_TAG_TIE_BREAK,
    ) -> None:
        if registry_client is None:
            raise TypeError(
                "registry_client must not be None; pass a RegistryClient instance"
            )
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")

        self.registry_client = registry_client
        self.concurrency = concurrency
        self.timeout = timeout if timeout is not None else getattr(
            registry_client, "timeout", None
        )
        self.selector = VersionSelector(tag_tie_break)
        self.peer_resolver = PeerConstraintResolver(
            self.selector,
            max_iterations=max_peer_iterations,
            allow_partial=allow_partial,
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def run(
        self,
        declarations: Iterable[DependencyDeclaration],
        policy: UpgradePolicy,
        *,
        peer: bool = False,
        cwd: Optional[Union[str, Path]] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> ResolutionResult:
        """Compute upgrades for *declarations* under *policy*.

        Args:
            declarations: Dependencies as declared in the manifest.
            policy: How far packages may move.
            peer: Reconcile upgrades with peer dependency ranges.
            cwd: Project directory handed to the backend. In peer mode the
                backend also lists the versions installed there.
            cancel_event: Setting this event stops outstanding queries;
                the result then covers what was fetched and is partial.

        Returns:
            The upgrades with warnings and incomplete packages.

        Raises:
            BackendPreconditionError: The backend cannot run in *cwd*.
            PeerConflictError: Peer ranges cannot be satisfied and partial
                mode is off.
            PeerCycleError: Peer resolution did not converge.
        """
        unique, warnings = deduplicate(declarations)
        for warning in warnings:
            logger.warning(warning)

        result = ResolutionResult(warnings=list(warnings))

        specs: Dict[str, RangeSpecifier] = {}
        queryable: List[DependencyDeclaration] = []
        for declaration in unique:
            try:
                specs[declaration.name] = parse_specifier(
                    declaration.specifier, package_name=declaration.name
                )
            except InvalidSpecifierError as exc:
                logger.warning("Skipping %s: %s", declaration.name, exc.message)
                result.incomplete[declaration.name] = exc.message
                continue
            queryable.append(declaration)

        logger.info(
            "Checking %d package(s) with the %s backend",
            len(queryable),
            getattr(self.registry_client, "name", "registry"),
        )

        version_sets, cancelled = await self._fetch_all(
            queryable, cwd, cancel_event, result
        )
        if cancelled:
            logger.warning("Run cancelled; %d package(s) not fetched", len(cancelled))
            for name in cancelled:
                result.incomplete[name] = "cancelled"

        constrained: Dict[str, Tuple[PeerConstraint, ...]] = {}
        if peer:
            installed = await self._list_installed(cwd)
            resolution = self.peer_resolver.resolve(
                {name: specs[name] for name in version_sets},
                version_sets,
                policy,
                installed=installed,
            )
            selections: Dict[str, Selection] = resolution.selections
            constrained = resolution.constrained_by
            result.iterations = resolution.iterations
            result.warnings.extend(resolution.warnings)
            result.incomplete.update(resolution.incomplete)
        else:
            selections = {}
            for name, versions in version_sets.items():
                selection = self.selector.select_target(specs[name], versions, policy)
                if selection is not None:
                    selections[name] = selection

        for declaration in unique:
            selection = selections.get(declaration.name)
            if selection is None:
                continue
            reference = specs[declaration.name].reference
            record = selection.record
            result.upgrades[declaration.name] = PackageUpgrade(
                name=declaration.name,
                current=declaration.specifier,
                upgraded=selection.specifier,
                version=record.version,
                current_version=str(reference) if reference is not None else None,
                published_at=record.published_at,
                repository_url=record.repository_url,
                constrained_by=constrained.get(declaration.name, ()),
            )

        result.partial = bool(result.incomplete)
        logger.info(
            "%d upgrade(s) found%s",
            len(result.upgrades),
            " (partial)" if result.partial else "",
        )
        return result

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _fetch_all(
        self,
        declarations: List[DependencyDeclaration],
        cwd: Optional[Union[str, Path]],
        cancel_event: Optional[asyncio.Event],
        result: ResolutionResult,
    ) -> Tuple[Dict[str, VersionSet], List[str]]:
        """Fetch every version set, honouring cancellation.

        Returns:
            Fetched version sets in declaration order, and the names left
            unfetched because of cancellation.
        """
        semaphore = asyncio.Semaphore(self.concurrency)
        fetched: Dict[str, VersionSet] = {}

        tasks: Dict["asyncio.Future[VersionSet]", str] = {
            asyncio.ensure_future(self._fetch_one(d, cwd, semaphore)): d.name
            for d in declarations
        }
        pending: Set["asyncio.Future[VersionSet]"] = set(tasks)
        cancel_waiter = (
            asyncio.ensure_future(cancel_event.wait()) if cancel_event is not None else None
        )

        try:
            while pending:
                waitables = set(pending)
                if cancel_waiter is not None:
                    waitables.add(cancel_waiter)
                done, _ = await asyncio.wait(
                    waitables, return_when=asyncio.FIRST_COMPLETED
                )

                fatal: Optional[BaseException] = None
                for task in done:
                    if task is cancel_waiter:
                        continue
                    pending.discard(task)
                    try:
                        self._record_outcome(tasks[task], task, fetched, result)
                    except Exception as exc:
                        # keep retrieving the rest of the batch before raising
                        fatal = fatal or exc
                if fatal is not None:
                    raise fatal

                if cancel_waiter is not None and cancel_waiter.done():
                    break
        finally:
            for task in pending:
                task.cancel()
            if cancel_waiter is not None and not cancel_waiter.done():
                cancel_waiter.cancel()
            leftovers = list(pending)
            if cancel_waiter is not None:
                leftovers.append(cancel_waiter)
            if leftovers:
                await asyncio.gather(*leftovers, return_exceptions=True)

        unfinished = {tasks[task] for task in pending}
        ordered = {d.name: fetched[d.name] for d in declarations if d.name in fetched}
        cancelled = [d.name for d in declarations if d.name in unfinished]
        return ordered, cancelled

    async def _fetch_one(
        self,
        declaration: DependencyDeclaration,
        cwd: Optional[Union[str, Path]],
        semaphore: asyncio.Semaphore,
    ) -> VersionSet:
        async with semaphore:
            logger.debug("Fetching versions for %s", declaration.name)
            try:
                return await asyncio.wait_for(
                    self.registry_client.fetch_versions(
                        declaration.name, declaration.specifier, cwd=cwd
                    ),
                    timeout=self.timeout,
                )
            except asyncio.TimeoutError as exc:
                raise BackendUnavailableError(
                    f"Timed out after {self.timeout}s querying '{declaration.name}'",
                    package_name=declaration.name,
                    backend=getattr(self.registry_client, "name", None),
                ) from exc

    async def _list_installed(
        self, cwd: Optional[Union[str, Path]]
    ) -> Dict[str, str]:
        """Installed versions from the backend; empty when unreadable."""
        try:
            return await self.registry_client.list_installed(
                cwd if cwd is not None else Path.cwd()
            )
        except BackendPreconditionError:
            raise
        except (RegistryError, OSError) as exc:
            logger.warning("Cannot list installed packages: %s", exc)
            return {}

    @staticmethod
    def _record_outcome(
        name: str,
        task: "asyncio.Future[VersionSet]",
        fetched: Dict[str, VersionSet],
        result: ResolutionResult,
    ) -> None:
        """Store a finished fetch, or classify its failure."""
        if task.cancelled():
            result.incomplete[name] = "cancelled"
            return

        exc = task.exception()
        if exc is None:
            fetched[name] = task.result()
            return

        if isinstance(exc, BackendPreconditionError):
            raise exc
        if isinstance(exc, PackageNotFoundError):
            message = f"{name} was not found in the registry; skipping"
            logger.warning(message)
            result.warnings.append(message)
            return
        if isinstance(exc, (BackendUnavailableError, RegistryError)):
            logger.warning("Could not fetch %s: %s", name, exc.message)
            result.incomplete[name] = exc.message
            return
        raise exc
