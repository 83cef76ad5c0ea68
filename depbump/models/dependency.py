"""
Dependency declaration model for depbump.

This module defines the immutable representation of a single dependency
as declared in a manifest, together with the manifest section it was
declared in.
"""

from __future__ import annotations

from enum import Enum
from dataclasses import dataclass


class DependencySection(str, Enum):
    """Manifest section a dependency was declared in."""

    RUNTIME = "runtime"
    DEV = "dev"
    OPTIONAL = "optional"
    PEER = "peer"

    @property
    def priority(self) -> int:
        """Rank used when one package is declared in several sections.

        Lower is more specific: runtime wins over dev, dev over optional,
        optional over peer.
        """
        return _SECTION_PRIORITY[self]


_SECTION_PRIORITY = {
    DependencySection.RUNTIME: 0,
    DependencySection.DEV: 1,
    DependencySection.OPTIONAL: 2,
    DependencySection.PEER: 3,
}


@dataclass(frozen=True)
class DependencyDeclaration:
    """A dependency as declared in the manifest.

    Attributes:
        name: Package name, e.g. ``"react"`` or ``"@types/node"``.
        specifier: Declared range specifier, e.g. ``"^1.0.0"``.
        section: Manifest section the declaration came from.
    """

    name: str
    specifier: str
    section: DependencySection = DependencySection.RUNTIME

    def __post_init__(self) -> None:
        if not self.name or not self.name.strip():
            raise ValueError("Dependency name must be a non-empty string")
        if not isinstance(self.section, DependencySection):
            object.__setattr__(self, "section", DependencySection(self.section))

    def __str__(self) -> str:
        return f"{self.name}@{self.specifier}"
