"""
Version metadata models for depbump.

:class:`VersionRecord` describes one published version of a package as
reported by a registry backend. :class:`VersionSet` is the semver-ordered,
de-duplicated collection of every record known for one package, with its
distribution-tag associations. Both are read-only once built.
"""

from __future__ import annotations

from enum import Enum
from datetime import datetime, timezone
from dataclasses import dataclass, field
from typing import (
    Dict,
    FrozenSet,
    Iterable,
    Iterator,
    List,
    Mapping,
    Optional,
)

from semantic_version import Version

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class TagTieBreak(str, Enum):
    """Rule used when several versions carry the same dist-tag."""

    NEWEST_PUBLISHED = "newest-published"
    HIGHEST_VERSION = "highest-version"


@dataclass(frozen=True)
class VersionRecord:
    """A single published version of a package.

    Attributes:
        name: Package name.
        version: Exact version string; must be valid semver.
        published_at: Publish timestamp (timezone-aware), if known.
        repository_url: Source repository URL, if the registry reports one.
        tags: Distribution tags pointing at this version.
        peer_dependencies: Peer ranges this version declares, by package.
    """

    name: str
    version: str
    published_at: Optional[datetime] = None
    repository_url: Optional[str] = None
    tags: FrozenSet[str] = frozenset()
    peer_dependencies: Mapping[str, str] = field(default_factory=dict, hash=False)

    semver: Version = field(init=False, repr=False, compare=False, hash=False)

    def __post_init__(self) -> None:
        # Raises ValueError for anything that is not strict semver
        object.__setattr__(self, "semver", Version(self.version))
        object.__setattr__(self, "tags", frozenset(self.tags))
        object.__setattr__(self, "peer_dependencies", dict(self.peer_dependencies))

    @property
    def is_prerelease(self) -> bool:
        """True for versions such as ``2.0.0-beta.1``."""
        return bool(self.semver.prerelease)

    def __str__(self) -> str:
        return f"{self.name}@{self.version}"


class VersionSet:
    """Every known version of one package, ordered ascending by semver.

    Records are de-duplicated by exact version string; when the same
    version is supplied twice their tags are merged and the first record's
    metadata wins.

    Args:
        name: Package name.
        records: Version records in any order.

    Example::

        >>> vs = VersionSet("left-pad", [VersionRecord("left-pad", "1.0.0"),
        ...                              VersionRecord("left-pad", "1.3.0")])
        >>> vs.greatest().version
        '1.3.0'
    """

    def __init__(self, name: str, records: Iterable[VersionRecord] = ()) -> None:
        self.name = name

        unique: Dict[str, VersionRecord] = {}
        for record in records:
            existing = unique.get(record.version)
            if existing is None:
                unique[record.version] = record
            elif not record.tags <= existing.tags:
                unique[record.version] = VersionRecord(
                    name=existing.name,
                    version=existing.version,
                    published_at=existing.published_at,
                    repository_url=existing.repository_url,
                    tags=existing.tags | record.tags,
                    peer_dependencies=existing.peer_dependencies,
                )

        self._records: List[VersionRecord] = sorted(
            unique.values(), key=lambda r: r.semver
        )
        self._by_version: Dict[str, VersionRecord] = {
            r.version: r for r in self._records
        }

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get(self, version: str) -> Optional[VersionRecord]:
        """Return the record for an exact version string."""
        return self._by_version.get(version)

    def versions(self, *, include_prerelease: bool = False) -> List[VersionRecord]:
        """Return records in ascending order, optionally with pre-releases."""
        if include_prerelease:
            return list(self._records)
        return [r for r in self._records if not r.is_prerelease]

    def greatest(self, *, include_prerelease: bool = False) -> Optional[VersionRecord]:
        """Return the highest version, or ``None`` for an empty set."""
        candidates = self.versions(include_prerelease=include_prerelease)
        return candidates[-1] if candidates else None

    def tagged(self, tag: str) -> List[VersionRecord]:
        """Return every record carrying *tag*."""
        return [r for r in self._records if tag in r.tags]

    def resolve_tag(
        self,
        tag: str,
        tie_break: TagTieBreak = TagTieBreak.NEWEST_PUBLISHED,
    ) -> Optional[VersionRecord]:
        """Return the version a dist-tag points at.

        A well-formed registry maps each tag to a single version; when it
        does not, *tie_break* picks one instead of failing.
        """
        candidates = self.tagged(tag)
        if not candidates:
            return None
        if len(candidates) == 1:
            return candidates[0]

        if tie_break is TagTieBreak.HIGHEST_VERSION:
            return max(candidates, key=lambda r: r.semver)
        return max(candidates, key=lambda r: (r.published_at or _EPOCH, r.semver))

    @property
    def latest(self) -> Optional[VersionRecord]:
        """The version the registry tags ``latest``, if any."""
        return self.resolve_tag("latest")

    @property
    def tags(self) -> Dict[str, List[str]]:
        """Map of dist-tag to the version strings carrying it."""
        result: Dict[str, List[str]] = {}
        for record in self._records:
            for tag in sorted(record.tags):
                result.setdefault(tag, []).append(record.version)
        return result

    # ------------------------------------------------------------------
    # Dunder helpers
    # ------------------------------------------------------------------

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[VersionRecord]:
        return iter(self._records)

    def __contains__(self, version: object) -> bool:
        return version in self._by_version

    def __repr__(self) -> str:
        return f"VersionSet(name={self.name!r}, versions={len(self._records)})"
