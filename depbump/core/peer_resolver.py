"""Peer-dependency constraint resolution for depbump.

Upgrading one package can change the peer ranges it places on others:
``eslint-plugin-foo@3`` may require ``eslint@^8`` while the newest
``eslint`` is 9. :class:`PeerConstraintResolver` reconciles the
independently selected upgrades with those ranges by iterating to a
fixpoint:

1. Every package starts from its independent selection. Its *effective*
   version is the selected upgrade, else the installed version when the
   backend reports one, else the highest version its declared range
   already resolves to.
2. Each iteration reads ``peerDependencies`` from the effective version
   of every package in the current snapshot. Ranges declared by versions
   that are no longer chosen drop out.
3. A constrained package moves to the highest version in its policy pool
   that satisfies every incoming range, is not older than its declared
   version and is not above the version an earlier iteration capped it
   at. A package's ceiling only ever moves down.
4. The loop stops when an iteration leaves every package unchanged, or
   raises :class:`~depbump.exceptions.PeerCycleError` once the iteration
   budget is spent. Conflicts are judged on the converged snapshot.

The resolver is pure: it works on already-fetched
:class:`~depbump.models.VersionSet` objects and performs no I/O.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Set, Tuple

from semantic_version import NpmSpec

from depbump.constants import DEFAULT_MAX_PEER_ITERATIONS
from depbump.core.selector import Selection, SpecifierLike, VersionSelector
from depbump.core.specifier import RangeSpecifier, parse_range, parse_specifier
from depbump.exceptions import PeerConflictError, PeerCycleError
from depbump.models.policy import UpgradePolicy
from depbump.models.resolution import PeerConstraint
from depbump.models.version import VersionRecord, VersionSet
from depbump.utils.logger import get_logger

logger = get_logger("peer_resolver")

__all__ = ["PeerConstraintResolver", "PeerResolution"]


@dataclass(frozen=True)
class _Candidate:
    """Where one package stands after an iteration."""

    selection: Optional[Selection]
    effective: Optional[VersionRecord]


@dataclass
class PeerResolution:
    """Outcome of peer resolution.

    Attributes:
        selections: Package name to chosen upgrade; packages without an
            upgrade are omitted.
        effective: Package name to the version it resolves to after
            resolution, upgraded or not.
        constraints: Peer constraints declared by the final snapshot.
        constrained_by: Constraints that moved a package away from its
            independent selection.
        iterations: Iterations needed to reach the fixpoint.
        warnings: Conflicts tolerated in partial mode.
        incomplete: Package name to reason for tolerated conflicts.
    """

    selections: Dict[str, Selection] = field(default_factory=dict)
    effective: Dict[str, Optional[VersionRecord]] = field(default_factory=dict)
    constraints: List[PeerConstraint] = field(default_factory=list)
    constrained_by: Dict[str, Tuple[PeerConstraint, ...]] = field(default_factory=dict)
    iterations: int = 0
    warnings: List[str] = field(default_factory=list)
    incomplete: Dict[str, str] = field(default_factory=dict)


class PeerConstraintResolver:
    """Iterate peer constraints to a fixpoint.

    Args:
        selector: Selector used for policy pools and independent picks.
        max_iterations: Iteration budget before giving up.
        allow_partial: Keep the current candidate of a package whose peer
            ranges cannot all be satisfied (flagging it incomplete)
            instead of raising :class:`PeerConflictError`.

    Example::

        >>> resolver = PeerConstraintResolver(VersionSelector())
        >>> outcome = resolver.resolve(
        ...     {"react": "^17.0.0", "react-dom": "^17.0.0"},
        ...     version_sets,
        ...     UpgradePolicy("latest"),
        ... )
        >>> outcome.selections["react"].specifier
        '^18.2.0'
    """

    def __init__(
        self,
        selector: Optional[VersionSelector] = None,
        *,
        max_iterations: int = DEFAULT_MAX_PEER_ITERATIONS,
        allow_partial: bool = False,
    ) -> None:
        if max_iterations < 1:
            raise ValueError("max_iterations must be at least 1")

        self.selector = selector or VersionSelector()
        self.max_iterations = max_iterations
        self.allow_partial = allow_partial

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def resolve(
        self,
        specifiers: Mapping[str, SpecifierLike],
        version_sets: Mapping[str, VersionSet],
        policy: UpgradePolicy,
        *,
        installed: Optional[Mapping[str, str]] = None,
    ) -> PeerResolution:
        """Resolve upgrades for every package in *version_sets*.

        Args:
            specifiers: Declared specifier per package name.
            version_sets: Fetched versions per package name. Packages
                without a version set are left out of resolution.
            policy: Upgrade policy to apply.
            installed: Installed version per package name, as reported by
                the backend. Used as the effective version of packages
                that are not upgraded.

        Returns:
            The fixpoint selections with bookkeeping.

        Raises:
            PeerConflictError: A package has no version satisfying all of
                its incoming peer ranges and partial mode is off.
            PeerCycleError: No fixpoint within ``max_iterations``.
        """
        names = [name for name in specifiers if name in version_sets]
        name_set = set(names)
        installed = installed or {}
        selector = self.selector

        specs: Dict[str, RangeSpecifier] = {}
        independent: Dict[str, _Candidate] = {}
        allowed: Dict[str, List[VersionRecord]] = {}
        for name in names:
            spec = _parse(specifiers[name], name)
            versions = version_sets[name]
            selection = selector.select_target(spec, versions, policy)
            if selection is not None:
                effective: Optional[VersionRecord] = selection.record
            else:
                effective = _installed_record(versions, installed.get(name))
                if effective is None:
                    effective = selector.satisfied_version(spec, versions)
            specs[name] = spec
            independent[name] = _Candidate(selection, effective)
            allowed[name] = selector.allowed_versions(spec, versions, policy)

        outcome = PeerResolution()
        caps: Dict[str, VersionRecord] = {}
        bad_ranges: Set[str] = set()
        state = dict(independent)
        constraints: List[PeerConstraint] = []
        conflicts: Dict[str, PeerConflictError] = {}

        for iteration in range(1, self.max_iterations + 1):
            constraints = self._collect(state, name_set)
            conflicts = {}

            snapshot: Dict[str, _Candidate] = {}
            for name in names:
                incoming = [c for c in constraints if c.target == name]
                if not allowed[name] or (not incoming and name not in caps):
                    snapshot[name] = independent[name]
                    continue
                candidate = self._constrain(
                    specs[name], incoming, allowed[name], caps.get(name), bad_ranges
                )
                if candidate is None:
                    conflicts[name] = PeerConflictError(name, incoming)
                    snapshot[name] = state[name]
                    continue
                snapshot[name] = candidate
                if candidate.effective is not None:
                    caps[name] = candidate.effective

            if snapshot == state:
                outcome.iterations = iteration
                logger.debug("Peer resolution converged after %d iteration(s)", iteration)
                break

            changed = [name for name in names if snapshot[name] != state[name]]
            logger.debug("Iteration %d changed: %s", iteration, ", ".join(changed))
            state = snapshot
        else:
            raise PeerCycleError(changed, self.max_iterations)

        for name, conflict in conflicts.items():
            if not self.allow_partial:
                raise conflict
            outcome.warnings.append(str(conflict))
            outcome.incomplete[name] = "peer dependency conflict"

        for name in names:
            candidate = state[name]
            outcome.effective[name] = candidate.effective
            if candidate.selection is not None:
                outcome.selections[name] = candidate.selection
            if candidate != independent[name] and name not in outcome.incomplete:
                outcome.constrained_by[name] = tuple(
                    c for c in constraints if c.target == name
                )
        outcome.constraints = constraints
        return outcome

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _collect(
        state: Mapping[str, _Candidate], names: Set[str]
    ) -> List[PeerConstraint]:
        """Peer constraints declared by the effective versions in *state*."""
        collected: List[PeerConstraint] = []
        for source, candidate in state.items():
            record = candidate.effective
            if record is None:
                continue
            for target, required in sorted(record.peer_dependencies.items()):
                if target == source or target not in names:
                    continue
                collected.append(
                    PeerConstraint(
                        source=source,
                        source_version=record.version,
                        target=target,
                        required_range=required,
                    )
                )
        return collected

    def _constrain(
        self,
        spec: RangeSpecifier,
        incoming: List[PeerConstraint],
        pool: List[VersionRecord],
        cap: Optional[VersionRecord],
        bad_ranges: Set[str],
    ) -> Optional[_Candidate]:
        """Pick the highest pooled version satisfying every incoming range.

        Returns ``None`` when no version qualifies.
        """
        ranges: List[NpmSpec] = []
        for constraint in incoming:
            parsed = parse_range(constraint.required_range)
            if parsed is None:
                if constraint.required_range not in bad_ranges:
                    bad_ranges.add(constraint.required_range)
                    logger.warning(
                        "Ignoring unparseable peer range %r from %s",
                        constraint.required_range,
                        constraint.source,
                    )
                continue
            ranges.append(parsed)

        floor = spec.reference
        matching = [
            record
            for record in pool
            if (floor is None or record.semver >= floor)
            and (cap is None or record.semver <= cap.semver)
            and all(s.match(record.semver) for s in ranges)
        ]
        if not matching:
            return None

        best = matching[-1]
        return _Candidate(self.selector.selection_for(spec, best), best)


def _parse(specifier: SpecifierLike, name: str) -> RangeSpecifier:
    if isinstance(specifier, RangeSpecifier):
        return specifier
    return parse_specifier(specifier, package_name=name)


def _installed_record(
    versions: VersionSet, version: Optional[str]
) -> Optional[VersionRecord]:
    if not version:
        return None
    return versions.get(version.lstrip("v"))
