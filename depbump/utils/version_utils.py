"""
Version comparison utilities for depbump.

This module provides helpers for classifying version changes using
semantic-version parsing.
"""

from __future__ import annotations

from typing import Optional

from semantic_version import Version


def get_update_type(
    current_version: Optional[str],
    target_version: Optional[str],
) -> str:
    """Determine the semantic update type between two versions.

    Args:
        current_version: Current version, or ``None`` if not known.
        target_version: Target version to compare against.

    Returns:
        One of:
            - ``"new"``        : No current version exists
            - ``"same"``       : Versions are identical
            - ``"downgrade"``  : Target version is lower than current
            - ``"major"``      : Major version change
            - ``"minor"``      : Minor version change
            - ``"patch"``      : Patch-level change
            - ``"prerelease"`` : Only the pre-release segment changed
            - ``"unknown"``    : Invalid or unsupported version comparison

    Examples:
        >>> get_update_type("1.0.0", "2.0.0")
        'major'
        >>> get_update_type(None, "1.0.0")
        'new'
        >>> get_update_type("1.2.3", "1.2.3")
        'same'
    """
    if current_version is None and target_version is None:
        return "unknown"

    if current_version is None:
        return "new"

    if target_version is None:
        return "unknown"

    current = parse_version(current_version)
    target = parse_version(target_version)
    if current is None or target is None:
        return "unknown"

    if target == current:
        return "same"

    if target < current:
        return "downgrade"

    return _classify_upgrade(current, target)


def parse_version(value: str) -> Optional[Version]:
    """Parse a semantic version, tolerating a leading ``v`` or ``=``.

    Partial versions (``1.2``) are padded with zeros.

    Returns:
        The parsed :class:`Version`, or ``None`` when *value* is not a
        valid semantic version.
    """
    text = value.strip().lstrip("=v").strip()
    try:
        return Version(text)
    except ValueError:
        pass

    try:
        return Version.coerce(text)
    except ValueError:
        return None


def _classify_upgrade(current: Version, target: Version) -> str:
    """Classify an upgrade between two valid versions."""
    if current.major != target.major:
        return "major"

    if current.minor != target.minor:
        return "minor"

    if current.patch != target.patch:
        return "patch"

    # Covers pre-release → release or pre-release → pre-release
    return "prerelease"
