from __future__ import annotations

import pytest
from datetime import datetime, timezone

from depbump.models import TagTieBreak, VersionRecord, VersionSet


def _record(version: str, *tags: str, day: int = 1) -> VersionRecord:
    return VersionRecord(
        name="pkg",
        version=version,
        published_at=datetime(2024, 1, day, tzinfo=timezone.utc),
        tags=frozenset(tags),
    )


@pytest.mark.unit
class TestVersionRecord:
    """Tests for VersionRecord."""

    def test_semver_is_parsed(self) -> None:
        record = VersionRecord("pkg", "1.2.3")
        assert (record.semver.major, record.semver.minor, record.semver.patch) == (1, 2, 3)
        assert record.is_prerelease is False

    def test_prerelease(self) -> None:
        assert VersionRecord("pkg", "2.0.0-beta.1").is_prerelease is True

    def test_invalid_version_rejected(self) -> None:
        with pytest.raises(ValueError):
            VersionRecord("pkg", "1.2")

    def test_tags_normalised_to_frozenset(self) -> None:
        record = VersionRecord("pkg", "1.0.0", tags={"latest"})  # type: ignore[arg-type]
        assert record.tags == frozenset({"latest"})

    def test_str(self) -> None:
        assert str(VersionRecord("pkg", "1.0.0")) == "pkg@1.0.0"


@pytest.mark.unit
class TestVersionSet:
    """Tests for VersionSet ordering and queries."""

    def test_semver_ordering(self) -> None:
        """Versions sort numerically, not lexically."""
        vs = VersionSet("pkg", [_record("1.10.0"), _record("1.2.0"), _record("1.9.0")])
        assert [r.version for r in vs] == ["1.2.0", "1.9.0", "1.10.0"]

    def test_prerelease_sorts_before_release(self) -> None:
        vs = VersionSet("pkg", [_record("2.0.0"), _record("2.0.0-rc.1")])
        assert [r.version for r in vs.versions(include_prerelease=True)] == [
            "2.0.0-rc.1",
            "2.0.0",
        ]

    def test_duplicates_merge_tags(self) -> None:
        """The first record wins but tags from duplicates are kept."""
        vs = VersionSet(
            "pkg",
            [_record("1.0.0", "latest", day=1), _record("1.0.0", "stable", day=9)],
        )

        assert len(vs) == 1
        record = vs.get("1.0.0")
        assert record is not None
        assert record.tags == frozenset({"latest", "stable"})
        assert record.published_at == datetime(2024, 1, 1, tzinfo=timezone.utc)

    def test_versions_excludes_prereleases_by_default(self) -> None:
        vs = VersionSet("pkg", [_record("1.0.0"), _record("1.1.0-beta.0")])
        assert [r.version for r in vs.versions()] == ["1.0.0"]

    def test_greatest(self) -> None:
        vs = VersionSet("pkg", [_record("1.0.0"), _record("2.0.0-alpha.1")])
        assert vs.greatest().version == "1.0.0"  # type: ignore[union-attr]
        assert vs.greatest(include_prerelease=True).version == "2.0.0-alpha.1"  # type: ignore[union-attr]

    def test_greatest_of_empty_set(self) -> None:
        assert VersionSet("pkg").greatest() is None

    def test_contains(self) -> None:
        vs = VersionSet("pkg", [_record("1.0.0")])
        assert "1.0.0" in vs
        assert "1.0.1" not in vs

    def test_tags_property(self) -> None:
        vs = VersionSet(
            "pkg", [_record("1.0.0", "latest"), _record("2.0.0-rc.0", "next", "beta")]
        )
        assert vs.tags == {"latest": ["1.0.0"], "beta": ["2.0.0-rc.0"], "next": ["2.0.0-rc.0"]}

    def test_latest_follows_dist_tag(self) -> None:
        vs = VersionSet("pkg", [_record("1.0.0", "latest"), _record("2.0.0")])
        assert vs.latest.version == "1.0.0"  # type: ignore[union-attr]
        assert VersionSet("pkg", [_record("2.0.0")]).latest is None


@pytest.mark.unit
class TestResolveTag:
    """Tests for VersionSet.resolve_tag."""

    def test_single_tagged_version(self) -> None:
        vs = VersionSet("pkg", [_record("1.0.0", "latest"), _record("1.1.0")])
        assert vs.resolve_tag("latest").version == "1.0.0"  # type: ignore[union-attr]

    def test_unknown_tag(self) -> None:
        assert VersionSet("pkg", [_record("1.0.0")]).resolve_tag("next") is None

    def test_ambiguous_tag_newest_published(self) -> None:
        """By default the most recently published version wins."""
        vs = VersionSet(
            "pkg", [_record("3.0.0", "next", day=1), _record("2.5.0", "next", day=20)]
        )
        assert vs.resolve_tag("next").version == "2.5.0"  # type: ignore[union-attr]

    def test_ambiguous_tag_highest_version(self) -> None:
        vs = VersionSet(
            "pkg", [_record("3.0.0", "next", day=1), _record("2.5.0", "next", day=20)]
        )
        resolved = vs.resolve_tag("next", TagTieBreak.HIGHEST_VERSION)
        assert resolved.version == "3.0.0"  # type: ignore[union-attr]

    def test_missing_publish_time_sorts_first(self) -> None:
        vs = VersionSet(
            "pkg",
            [
                VersionRecord("pkg", "9.0.0", tags=frozenset({"next"})),
                _record("1.0.0", "next"),
            ],
        )
        assert vs.resolve_tag("next").version == "1.0.0"  # type: ignore[union-attr]
