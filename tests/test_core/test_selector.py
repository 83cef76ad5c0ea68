from __future__ import annotations

import pytest
from datetime import datetime, timezone
from typing import Dict, Iterable, Optional

from depbump.core.selector import Selection, VersionSelector, select_target
from depbump.core.specifier import parse_specifier
from depbump.exceptions import InvalidSpecifierError
from depbump.models import TagTieBreak, UpgradePolicy, VersionRecord, VersionSet


def make_set(
    versions: Iterable[str],
    tags: Optional[Dict[str, str]] = None,
    name: str = "pkg",
) -> VersionSet:
    """Build a VersionSet; *tags* maps tag name to version."""
    tags = tags or {}
    records = []
    for index, version in enumerate(versions):
        records.append(
            VersionRecord(
                name=name,
                version=version,
                published_at=datetime(2024, 1, 1 + index, tzinfo=timezone.utc),
                tags=frozenset(t for t, v in tags.items() if v == version),
            )
        )
    return VersionSet(name, records)


@pytest.fixture
def versions() -> VersionSet:
    return make_set(
        ["1.0.0", "1.0.1", "1.0.5", "1.1.0", "1.4.2", "2.0.0", "2.1.0", "3.0.0-beta.1"],
        tags={"latest": "2.1.0", "next": "3.0.0-beta.1"},
    )


@pytest.mark.unit
class TestSelectTargetLevels:
    """Tests for patch, minor and major targets."""

    def test_patch_keeps_major_minor(self, versions: VersionSet) -> None:
        selection = select_target("^1.0.0", versions, UpgradePolicy("patch"))

        assert selection is not None
        assert selection.version == "1.0.5"
        assert selection.specifier == "^1.0.5"

    def test_minor_keeps_major(self, versions: VersionSet) -> None:
        selection = select_target("~1.0.0", versions, UpgradePolicy("minor"))

        assert selection is not None
        assert selection.version == "1.4.2"
        assert selection.specifier == "~1.4.2"

    def test_major_takes_highest_stable(self, versions: VersionSet) -> None:
        selection = select_target("^1.0.0", versions, UpgradePolicy("major"))

        assert selection is not None
        assert selection.specifier == "^2.1.0"

    def test_already_at_ceiling(self, versions: VersionSet) -> None:
        assert select_target("^2.1.0", versions, UpgradePolicy("major")) is None

    def test_patch_with_no_newer_patch(self, versions: VersionSet) -> None:
        assert select_target("1.4.2", versions, UpgradePolicy("patch")) is None

    def test_prerelease_policy_opt_in(self, versions: VersionSet) -> None:
        policy = UpgradePolicy("major", include_prerelease=True)
        selection = select_target("^1.0.0", versions, policy)

        assert selection is not None
        assert selection.specifier == "^3.0.0-beta.1"

    def test_prerelease_specifier_sees_prereleases(self) -> None:
        vs = make_set(["2.0.0-beta.1", "2.0.0-beta.4"])
        selection = select_target("^2.0.0-beta.1", vs, UpgradePolicy("major"))

        assert selection is not None
        assert selection.specifier == "^2.0.0-beta.4"

    def test_partial_precision_rendered(self, versions: VersionSet) -> None:
        selection = select_target("^1.0", versions, UpgradePolicy("major"))

        assert selection is not None
        assert selection.specifier == "^2.1"


@pytest.mark.unit
class TestSelectTargetTags:
    """Tests for the latest and named dist-tag targets."""

    def test_latest_follows_dist_tag(self) -> None:
        """A newer stable version than the latest tag is ignored."""
        vs = make_set(["1.0.0", "2.0.0", "2.5.0"], tags={"latest": "2.0.0"})
        selection = select_target("^1.0.0", vs, UpgradePolicy("latest"))

        assert selection is not None
        assert selection.specifier == "^2.0.0"

    def test_latest_without_tag_falls_back_to_greatest(self) -> None:
        vs = make_set(["1.0.0", "1.2.0"])
        selection = select_target("^1.0.0", vs, UpgradePolicy())

        assert selection is not None
        assert selection.version == "1.2.0"

    def test_latest_below_reference_falls_back(self) -> None:
        vs = make_set(["1.0.0", "2.0.0-rc.1", "2.0.0-rc.2"], tags={"latest": "1.0.0"})
        selection = select_target("^2.0.0-rc.1", vs, UpgradePolicy())

        assert selection is not None
        assert selection.version == "2.0.0-rc.2"

    def test_named_tag(self, versions: VersionSet) -> None:
        selection = select_target("^2.0.0", versions, UpgradePolicy("next"))

        assert selection is not None
        assert selection.specifier == "^3.0.0-beta.1"

    def test_unknown_named_tag(self, versions: VersionSet) -> None:
        assert select_target("^1.0.0", versions, UpgradePolicy("canary")) is None

    def test_per_package_override(self, versions: VersionSet) -> None:
        policy = UpgradePolicy("major", overrides={"pkg": "patch"})
        selection = select_target("^1.0.0", versions, policy)

        assert selection is not None
        assert selection.version == "1.0.5"

    def test_ambiguous_tag_tie_break(self) -> None:
        vs = VersionSet(
            "pkg",
            [
                VersionRecord(
                    "pkg",
                    "3.0.0",
                    published_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
                    tags=frozenset({"next"}),
                ),
                VersionRecord(
                    "pkg",
                    "2.5.0",
                    published_at=datetime(2024, 6, 1, tzinfo=timezone.utc),
                    tags=frozenset({"next"}),
                ),
            ],
        )

        newest = VersionSelector().select_target("^1.0.0", vs, UpgradePolicy("next"))
        highest = VersionSelector("highest-version").select_target(
            "^1.0.0", vs, UpgradePolicy("next")
        )

        assert newest is not None and newest.version == "2.5.0"
        assert highest is not None and highest.version == "3.0.0"


@pytest.mark.unit
class TestSelectTargetEdgeCases:
    """Tests for specifiers that never produce an upgrade."""

    @pytest.mark.parametrize("spec", ["*", "x", "", "latest", "next"])
    def test_wildcards_and_tags(self, versions: VersionSet, spec: str) -> None:
        assert select_target(spec, versions, UpgradePolicy("major")) is None

    def test_empty_version_set(self) -> None:
        assert select_target("^1.0.0", VersionSet("pkg"), UpgradePolicy()) is None

    def test_invalid_specifier_raises(self, versions: VersionSet) -> None:
        with pytest.raises(InvalidSpecifierError):
            select_target("<2.0.0", versions, UpgradePolicy())

    def test_accepts_parsed_specifier(self, versions: VersionSet) -> None:
        selection = select_target(parse_specifier("1.x"), versions, UpgradePolicy("major"))

        assert selection is not None
        assert selection.specifier == "2.x"

    def test_wildcard_minor_within_major(self, versions: VersionSet) -> None:
        """1.x already covers every 1.* release under the minor target."""
        assert select_target("1.x", versions, UpgradePolicy("minor")) is None

    def test_selection_version_property(self, versions: VersionSet) -> None:
        record = versions.get("2.0.0")
        assert record is not None
        assert Selection(record=record, specifier="^2.0.0").version == "2.0.0"


@pytest.mark.unit
class TestSelectorHelpers:
    """Tests for allowed_versions, satisfied_version and selection_for."""

    def test_allowed_versions_capped_at_ceiling(self) -> None:
        vs = make_set(["1.0.0", "1.1.0", "2.0.0", "2.5.0"], tags={"latest": "2.0.0"})
        allowed = VersionSelector().allowed_versions("^1.0.0", vs, UpgradePolicy())

        assert [r.version for r in allowed] == ["1.0.0", "1.1.0", "2.0.0"]

    def test_allowed_versions_empty_without_ceiling(self, versions: VersionSet) -> None:
        allowed = VersionSelector().allowed_versions(
            "^1.0.0", versions, UpgradePolicy("canary")
        )
        assert allowed == []

    def test_satisfied_version(self, versions: VersionSet) -> None:
        selector = VersionSelector()

        assert selector.satisfied_version("^1.0.0", versions).version == "1.4.2"  # type: ignore[union-attr]
        assert selector.satisfied_version("next", versions).version == "3.0.0-beta.1"  # type: ignore[union-attr]
        assert selector.satisfied_version("^9.0.0", versions) is None

    def test_selection_for_not_newer(self, versions: VersionSet) -> None:
        record = versions.get("1.0.0")
        assert record is not None
        assert VersionSelector().selection_for("^1.0.0", record) is None

    def test_selection_for_same_rendering(self, versions: VersionSet) -> None:
        """1.0.5 rendered at major precision is unchanged."""
        record = versions.get("1.0.5")
        assert record is not None
        assert VersionSelector().selection_for("^1", record) is None

    def test_invalid_tie_break(self) -> None:
        with pytest.raises(ValueError):
            VersionSelector("oldest")

    def test_tie_break_enum_accepted(self) -> None:
        selector = VersionSelector(TagTieBreak.HIGHEST_VERSION)
        assert selector.tag_tie_break is TagTieBreak.HIGHEST_VERSION
