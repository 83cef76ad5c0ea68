"""Unit tests for depbump.utils.version_utils."""

from __future__ import annotations

import pytest

from depbump.utils.version_utils import get_update_type, parse_version


@pytest.mark.unit
class TestGetUpdateType:
    """Tests for get_update_type classification."""

    def test_both_none_returns_unknown(self) -> None:
        assert get_update_type(None, None) == "unknown"

    def test_current_none_returns_new(self) -> None:
        assert get_update_type(None, "1.0.0") == "new"

    def test_target_none_returns_unknown(self) -> None:
        assert get_update_type("1.0.0", None) == "unknown"

    def test_same_version_returns_same(self) -> None:
        assert get_update_type("1.2.3", "1.2.3") == "same"

    def test_downgrade(self) -> None:
        assert get_update_type("2.0.0", "1.9.9") == "downgrade"

    @pytest.mark.parametrize(
        "current,target,expected",
        [
            ("1.0.0", "2.0.0", "major"),
            ("1.0.0", "5.3.1", "major"),
            ("1.0.0", "1.1.0", "minor"),
            ("1.2.3", "1.9.0", "minor"),
            ("1.0.0", "1.0.1", "patch"),
            ("1.0.0-beta.1", "1.0.0", "prerelease"),
            ("1.0.0-alpha", "1.0.0-beta", "prerelease"),
        ],
    )
    def test_upgrade_distances(self, current: str, target: str, expected: str) -> None:
        """Each upgrade is classified by its most significant change."""
        assert get_update_type(current, target) == expected

    def test_invalid_versions_return_unknown(self) -> None:
        assert get_update_type("not-a-version", "1.0.0") == "unknown"
        assert get_update_type("1.0.0", "garbage") == "unknown"


@pytest.mark.unit
class TestParseVersion:
    """Tests for parse_version."""

    def test_strict_version(self) -> None:
        version = parse_version("1.2.3")
        assert version is not None
        assert (version.major, version.minor, version.patch) == (1, 2, 3)

    def test_leading_v_and_equals_are_ignored(self) -> None:
        assert str(parse_version("v1.2.3")) == "1.2.3"
        assert str(parse_version("=1.2.3")) == "1.2.3"

    def test_partial_version_is_padded(self) -> None:
        assert str(parse_version("1.2")) == "1.2.0"

    def test_prerelease_kept(self) -> None:
        version = parse_version("2.0.0-rc.1")
        assert version is not None
        assert version.prerelease == ("rc", "1")

    def test_invalid_returns_none(self) -> None:
        assert parse_version("latest") is None
