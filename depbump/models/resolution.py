"""
Resolution result models for depbump.

This module defines the peer constraints produced while resolving
peer dependencies, the per-package upgrade recommendation, and the
result of a whole run that is handed to the output layer.
"""

from __future__ import annotations

from datetime import datetime, timezone
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from depbump.utils.version_utils import get_update_type


def format_timestamp(value: datetime) -> str:
    """Render a publish time the way the registry does.

    Example::

        >>> format_timestamp(datetime(2020, 4, 27, 21, 48, 11, 660000, tzinfo=timezone.utc))
        '2020-04-27T21:48:11.660Z'
    """
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.replace(tzinfo=None).isoformat(timespec="milliseconds") + "Z"


@dataclass(frozen=True)
class PeerConstraint:
    """A peer range one resolved package places on another.

    Attributes:
        source: Package declaring the peer dependency.
        source_version: Version of *source* the range was read from.
        target: Package being constrained.
        required_range: npm range *target* must satisfy.
    """

    source: str
    source_version: str
    target: str
    required_range: str

    def to_display_string(self) -> str:
        """Return a human-readable description of the constraint."""
        return (
            f"{self.source}@{self.source_version} requires "
            f"{self.target}@{self.required_range}"
        )

    def to_json(self) -> Dict[str, str]:
        """Return a JSON-serializable representation."""
        return {
            "source": self.source,
            "source_version": self.source_version,
            "target": self.target,
            "required_range": self.required_range,
        }

    def __str__(self) -> str:
        return self.to_display_string()


@dataclass(frozen=True)
class PackageUpgrade:
    """The recommended upgrade for one dependency.

    Attributes:
        name: Package name.
        current: Specifier declared in the manifest.
        upgraded: Recommended replacement specifier.
        version: Concrete version the new specifier was built from.
        current_version: Version the declared specifier is anchored at.
        published_at: Publish time of *version*, if known.
        repository_url: Source repository of *version*, if known.
        constrained_by: Peer constraints that capped this upgrade.
    """

    name: str
    current: str
    upgraded: str
    version: str
    current_version: Optional[str] = None
    published_at: Optional[datetime] = None
    repository_url: Optional[str] = None
    constrained_by: Tuple[PeerConstraint, ...] = ()

    def __post_init__(self) -> None:
        # Output modes render "name@specifier" one per line, verbatim
        for label, value in (("name", self.name), ("specifier", self.upgraded)):
            if not value or "\n" in value or "\r" in value:
                raise ValueError(
                    f"Upgrade {label} must be a non-empty single line: {value!r}"
                )
        object.__setattr__(self, "constrained_by", tuple(self.constrained_by))

    @property
    def update_type(self) -> str:
        """Semver distance of the upgrade (``patch``, ``minor``, ``major``...)."""
        return get_update_type(self.current_version, self.version)

    @property
    def is_constrained(self) -> bool:
        """True when peer dependencies capped the upgrade."""
        return bool(self.constrained_by)

    def to_line(self) -> str:
        """Return the ``name@specifier`` form."""
        return f"{self.name}@{self.upgraded}"

    def to_json(self) -> Dict[str, Any]:
        """Return a JSON-serializable representation."""
        entry: Dict[str, Any] = {
            "name": self.name,
            "current": self.current,
            "upgraded": self.upgraded,
            "version": self.version,
            "update_type": self.update_type,
        }
        if self.published_at is not None:
            entry["published_at"] = format_timestamp(self.published_at)
        if self.repository_url:
            entry["repository_url"] = self.repository_url
        if self.constrained_by:
            entry["constrained_by"] = [c.to_json() for c in self.constrained_by]
        return entry


@dataclass
class ResolutionResult:
    """Outcome of one upgrade run.

    Packages without an available upgrade are omitted from
    :attr:`upgrades`, so an empty mapping means "nothing to do".

    Attributes:
        upgrades: Package name → recommended upgrade (one entry per name).
        warnings: Non-fatal problems encountered during the run.
        incomplete: Package name → reason, for packages whose result could
            not be computed (backend unavailable, cancelled, peer conflict
            tolerated in partial mode).
        partial: True when the run was cancelled or some packages are
            incomplete.
        iterations: Peer fixpoint iterations performed (0 without peer mode).
    """

    upgrades: Dict[str, PackageUpgrade] = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)
    incomplete: Dict[str, str] = field(default_factory=dict)
    partial: bool = False
    iterations: int = 0

    def to_mapping(self) -> Dict[str, str]:
        """Return ``name → new specifier`` for every upgrade."""
        return {name: upgrade.upgraded for name, upgrade in self.upgrades.items()}

    def to_lines(self) -> List[str]:
        """Return one ``name@specifier`` string per upgrade."""
        return [upgrade.to_line() for upgrade in self.upgrades.values()]

    def has_upgrades(self) -> bool:
        """Return True if at least one package can be upgraded."""
        return bool(self.upgrades)

    def group_by_update_type(self) -> Dict[str, List[PackageUpgrade]]:
        """Group upgrades by semver distance, preserving run order."""
        groups: Dict[str, List[PackageUpgrade]] = {}
        for upgrade in self.upgrades.values():
            groups.setdefault(upgrade.update_type, []).append(upgrade)
        return groups

    def to_json(self) -> Dict[str, Any]:
        """Return a JSON-serializable representation of the whole run."""
        return {
            "upgrades": [u.to_json() for u in self.upgrades.values()],
            "warnings": list(self.warnings),
            "incomplete": dict(self.incomplete),
            "partial": self.partial,
            "iterations": self.iterations,
        }

    def __len__(self) -> int:
        return len(self.upgrades)
