"""
depbump: upgrade recommendations for package.json dependencies

depbump reads the dependencies declared in a ``package.json`` manifest,
queries an npm-compatible registry through a pluggable backend (npm or
yarn), and recommends upgraded version specifiers for every package that
has a newer release within the requested upgrade policy.

Features include:
    • Patch / minor / major / latest / dist-tag upgrade policies
    • Operator-preserving specifier rewriting (``^1.0.0`` → ``^2.0.0``)
    • Iterative peer-dependency resolution to a fixpoint
    • Bounded concurrent registry queries with per-query timeouts
    • Line, JSON, grouped and table reports

Typical usage::

    from depbump import UpgradeOrchestrator, UpgradePolicy
    from depbump.registry import NpmRegistryClient
"""

from __future__ import annotations

from depbump.__version__ import __version__
from depbump.core.orchestrator import UpgradeOrchestrator
from depbump.models import (
    DependencyDeclaration,
    DependencySection,
    ResolutionResult,
    UpgradePolicy,
)

# ---------------------------------------------------------------------------
# Package Metadata
# ---------------------------------------------------------------------------

__author__ = "depbump Contributors"
__license__ = "Apache-2.0"
__description__ = "Upgrade recommendations for package.json dependencies."

# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

__all__ = [
    "__version__",
    "DependencyDeclaration",
    "DependencySection",
    "ResolutionResult",
    "UpgradeOrchestrator",
    "UpgradePolicy",
]
