"""
Upgrade policy model for depbump.

An upgrade policy decides how far a dependency may move: to the newest
patch, minor or major release, to the version tagged ``latest``, or to the
version carrying any other distribution tag (``next``, ``beta``...). The
policy can be overridden per package.
"""

from __future__ import annotations

import re
from enum import Enum
from dataclasses import dataclass, field
from typing import Mapping, Optional

from depbump.constants import DEFAULT_TARGET
from depbump.exceptions import ConfigError

_TAG_PATTERN = re.compile(r"^[A-Za-z][A-Za-z0-9._-]*$")


class Target(str, Enum):
    """Built-in upgrade levels."""

    PATCH = "patch"
    MINOR = "minor"
    MAJOR = "major"
    LATEST = "latest"


def is_builtin_target(target: str) -> bool:
    """Return True if *target* is one of the built-in levels."""
    return target in {t.value for t in Target}


def validate_target(target: str, *, option: str = "target") -> str:
    """Validate an upgrade target and return it normalised.

    Built-in levels are case-insensitive; dist-tag names are kept as-is.

    Raises:
        ConfigError: *target* is neither a level nor a valid tag name.
    """
    text = (target or "").strip()
    if is_builtin_target(text.lower()):
        return text.lower()
    if _TAG_PATTERN.match(text):
        return text
    raise ConfigError(
        f"Invalid upgrade target '{target}'. Use patch, minor, major, latest "
        "or a distribution tag name.",
        option=option,
    )


@dataclass(frozen=True)
class UpgradePolicy:
    """How far dependencies may be upgraded.

    Attributes:
        target: ``patch``, ``minor``, ``major``, ``latest`` or a dist-tag.
        overrides: Per-package targets that replace *target*.
        include_prerelease: Consider pre-release versions even when the
            declared specifier is not itself a pre-release.
    """

    target: str = DEFAULT_TARGET
    overrides: Mapping[str, str] = field(default_factory=dict, hash=False)
    include_prerelease: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "target", validate_target(self.target))
        object.__setattr__(
            self,
            "overrides",
            {
                name: validate_target(value, option=f"overrides.{name}")
                for name, value in dict(self.overrides).items()
            },
        )

    def for_package(self, name: str) -> str:
        """Return the target that applies to *name*."""
        return self.overrides.get(name, self.target)

    def tag_for(self, name: str) -> Optional[str]:
        """Return the dist-tag *name* is pinned to, or ``None`` for levels."""
        target = self.for_package(name)
        if target == Target.LATEST.value or not is_builtin_target(target):
            return target
        return None

    def __str__(self) -> str:
        return self.target
