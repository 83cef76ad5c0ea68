"""Upgrade target selection for depbump.

Given a declared specifier, the published versions of a package and an
:class:`~depbump.models.UpgradePolicy`, :class:`VersionSelector` decides
which version (if any) the dependency should move to and renders the new
specifier in the same style as the declared one.

The selection algorithm:

1. **Parse** the specifier (unsupported forms raise
   :class:`~depbump.exceptions.InvalidSpecifierError`).
2. **Pool** the versions the policy allows: pre-releases only when the
   declared version is itself a pre-release, the policy opts in, or the
   target is a dist-tag; ``patch`` keeps major.minor of the reference
   version and ``minor`` keeps its major.
3. **Ceiling**: the highest pooled version for levels, the ``latest``
   dist-tag for ``latest`` (falling back to the highest version) and the
   tagged version for any other dist-tag.
4. **Render** a specifier for the ceiling; no selection when the version
   is not newer than the reference or the specifier would not change.

Typical usage::

    selector = VersionSelector()
    selection = selector.select_target("^1.0.0", version_set, UpgradePolicy("latest"))
    if selection:
        print(selection.specifier)   # "^2.0.0"
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Union

from depbump.core.specifier import RangeSpecifier, SpecifierKind, parse_specifier
from depbump.models.policy import Target, UpgradePolicy
from depbump.models.version import TagTieBreak, VersionRecord, VersionSet
from depbump.utils.logger import get_logger

logger = get_logger("selector")

__all__ = ["Selection", "VersionSelector", "select_target"]

SpecifierLike = Union[str, RangeSpecifier]


@dataclass(frozen=True)
class Selection:
    """An upgrade target chosen for one package.

    Attributes:
        record: The version record selected.
        specifier: The rewritten specifier pointing at *record*.
    """

    record: VersionRecord
    specifier: str

    @property
    def version(self) -> str:
        """Selected version string."""
        return self.record.version


class VersionSelector:
    """Choose upgrade targets under an upgrade policy.

    Args:
        tag_tie_break: Rule applied when a dist-tag points at several
            versions. Defaults to the most recently published one.
    """

    def __init__(
        self,
        tag_tie_break: Union[TagTieBreak, str] = TagTieBreak.NEWEST_PUBLISHED,
    ) -> None:
        self.tag_tie_break = TagTieBreak(tag_tie_break)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def select_target(
        self,
        specifier: SpecifierLike,
        version_set: VersionSet,
        policy: UpgradePolicy,
    ) -> Optional[Selection]:
        """Return the upgrade for *specifier*, or ``None`` when there is none.

        Args:
            specifier: Declared specifier (text or already parsed).
            version_set: Every known version of the package.
            policy: Upgrade policy to apply.

        Raises:
            InvalidSpecifierError: *specifier* uses an unsupported form.

        Example::

            >>> selector.select_target("^1.0.0", versions, UpgradePolicy("minor"))
            Selection(record=..., specifier='^1.4.0')
        """
        spec = self._parse(specifier, version_set.name)
        ceiling = self._ceiling(spec, version_set, policy)
        if ceiling is None:
            logger.debug("No candidate version for %s", version_set.name)
            return None
        return self.selection_for(spec, ceiling)

    def allowed_versions(
        self,
        specifier: SpecifierLike,
        version_set: VersionSet,
        policy: UpgradePolicy,
    ) -> List[VersionRecord]:
        """Return the policy pool capped at the policy ceiling, ascending.

        The peer resolver searches this list for the highest version that
        also satisfies every incoming peer range.
        """
        spec = self._parse(specifier, version_set.name)
        ceiling = self._ceiling(spec, version_set, policy)
        if ceiling is None:
            return []
        return [
            record
            for record in self._pool(spec, version_set, policy)
            if record.semver <= ceiling.semver
        ]

    def satisfied_version(
        self,
        specifier: SpecifierLike,
        version_set: VersionSet,
    ) -> Optional[VersionRecord]:
        """Return the highest version matching the declared range as-is.

        This is the version a package effectively resolves to when it is
        not upgraded. Dist-tag specifiers resolve through the tag; a bare
        wildcard resolves to the highest stable version.
        """
        spec = self._parse(specifier, version_set.name)
        if spec.kind is SpecifierKind.TAG:
            return version_set.resolve_tag(spec.tag or "", self.tag_tie_break)

        matching = [
            record
            for record in version_set.versions(include_prerelease=True)
            if spec.matches(record.semver)
        ]
        return matching[-1] if matching else None

    def selection_for(
        self,
        specifier: SpecifierLike,
        record: VersionRecord,
    ) -> Optional[Selection]:
        """Render *record* as an upgrade of *specifier*.

        Returns ``None`` when *record* is not newer than the specifier's
        reference version or the rendered specifier equals the declared
        one (wildcards and dist-tags).
        """
        spec = self._parse(specifier, record.name)
        reference = spec.reference
        if reference is None or record.semver <= reference:
            return None

        rendered = spec.render(record.semver)
        if rendered == spec.raw:
            return None
        return Selection(record=record, specifier=rendered)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _parse(specifier: SpecifierLike, name: str) -> RangeSpecifier:
        if isinstance(specifier, RangeSpecifier):
            return specifier
        return parse_specifier(specifier, package_name=name)

    def _pool(
        self,
        spec: RangeSpecifier,
        version_set: VersionSet,
        policy: UpgradePolicy,
    ) -> List[VersionRecord]:
        """Versions the policy lets *spec* move to, ascending."""
        target = policy.for_package(version_set.name)
        named_tag = policy.tag_for(version_set.name) not in (None, Target.LATEST.value)

        include_prerelease = (
            policy.include_prerelease or spec.is_prerelease or named_tag
        )
        records = version_set.versions(include_prerelease=include_prerelease)

        reference = spec.reference
        if reference is None:
            return records

        if target == Target.PATCH.value:
            return [
                r
                for r in records
                if (r.semver.major, r.semver.minor) == (reference.major, reference.minor)
            ]
        if target == Target.MINOR.value:
            return [r for r in records if r.semver.major == reference.major]
        return records

    def _ceiling(
        self,
        spec: RangeSpecifier,
        version_set: VersionSet,
        policy: UpgradePolicy,
    ) -> Optional[VersionRecord]:
        """The highest version *spec* may move to under *policy*."""
        pool = self._pool(spec, version_set, policy)
        tag = policy.tag_for(version_set.name)

        if tag is None:
            return pool[-1] if pool else None

        tagged = version_set.resolve_tag(tag, self.tag_tie_break)
        if tag == Target.LATEST.value:
            reference = spec.reference
            pooled = {r.version for r in pool}
            if tagged is not None and tagged.version in pooled and (
                reference is None or tagged.semver >= reference
            ):
                return tagged
            return pool[-1] if pool else None

        return tagged


_default_selector = VersionSelector()


def select_target(
    specifier: SpecifierLike,
    version_set: VersionSet,
    policy: UpgradePolicy,
) -> Optional[Selection]:
    """Module-level shortcut for :meth:`VersionSelector.select_target`."""
    return _default_selector.select_target(specifier, version_set, policy)
