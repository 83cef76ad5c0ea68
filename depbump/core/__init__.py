"""
Core functionality exports for depbump.

This module provides convenient access to the upgrade resolution engine.
Importing from here keeps user-facing imports clean and stable:

    from depbump.core import UpgradeOrchestrator, VersionSelector
"""

from __future__ import annotations

from depbump.core.manifest import ManifestReader
from depbump.core.selector import Selection, VersionSelector, select_target
from depbump.core.specifier import RangeSpecifier, SpecifierKind, parse_specifier
from depbump.core.peer_resolver import PeerConstraintResolver, PeerResolution
from depbump.core.orchestrator import UpgradeOrchestrator

__all__ = [
    "ManifestReader",
    "PeerConstraintResolver",
    "PeerResolution",
    "RangeSpecifier",
    "Selection",
    "SpecifierKind",
    "UpgradeOrchestrator",
    "VersionSelector",
    "parse_specifier",
    "select_target",
]
