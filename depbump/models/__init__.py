"""
Unified data model exports for depbump.

This module re-exports all core data models to provide a stable and
convenient public API. Users can import models directly from
``depbump.models`` instead of individual submodules.

Example:
    >>> from depbump.models import DependencyDeclaration, VersionSet, UpgradePolicy
"""

from __future__ import annotations

from depbump.models.dependency import DependencyDeclaration, DependencySection
from depbump.models.policy import Target, UpgradePolicy
from depbump.models.version import TagTieBreak, VersionRecord, VersionSet
from depbump.models.resolution import PackageUpgrade, PeerConstraint, ResolutionResult

__all__ = [
    "DependencyDeclaration",
    "DependencySection",
    "PackageUpgrade",
    "PeerConstraint",
    "ResolutionResult",
    "TagTieBreak",
    "Target",
    "UpgradePolicy",
    "VersionRecord",
    "VersionSet",
]
