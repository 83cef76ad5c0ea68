"""
Centralized constants for depbump.

This module defines immutable configuration values used across depbump,
including registry endpoints, network settings, resolution limits, manifest
sections, and logging formats. All values are intended to be treated as
read-only.
"""

from typing import Final, Mapping, Sequence

# ---------------------------------------------------------------------------
# Project metadata
# ---------------------------------------------------------------------------

#: HTTP User-Agent template used for outbound requests.
USER_AGENT_TEMPLATE: Final[str] = "depbump/{version}"

# ---------------------------------------------------------------------------
# Registry endpoints
# ---------------------------------------------------------------------------

#: Default npm registry.
NPM_REGISTRY_URL: Final[str] = "https://registry.npmjs.org"

#: Default yarn registry (mirrors the npm registry).
YARN_REGISTRY_URL: Final[str] = "https://registry.yarnpkg.com"

#: Supported backend identifiers.
BACKENDS: Final[Sequence[str]] = ("npm", "yarn")

#: Backend used when nothing else is configured.
DEFAULT_BACKEND: Final[str] = "npm"

#: Lockfile each backend depends on (``None`` when not required).
LOCKFILES: Final[Mapping[str, str]] = {
    "yarn": "yarn.lock",
}

#: Literal error raised by lockfile-requiring backends.
NO_LOCKFILE_MESSAGE: Final[str] = (
    "No lockfile in this directory. Run `{install_command}` to generate one."
)

# ---------------------------------------------------------------------------
# HTTP configuration
# ---------------------------------------------------------------------------

#: Default network timeout in seconds.
DEFAULT_TIMEOUT: Final[int] = 30

#: Maximum number of retries for failed HTTP requests.
DEFAULT_MAX_RETRIES: Final[int] = 3

#: Maximum number of concurrent registry queries.
DEFAULT_CONCURRENCY: Final[int] = 10

# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------

#: Default upgrade policy.
DEFAULT_TARGET: Final[str] = "latest"

#: Maximum number of peer fixpoint iterations before giving up.
DEFAULT_MAX_PEER_ITERATIONS: Final[int] = 100

#: Default for peer-dependency resolution.
DEFAULT_PEER: Final[bool] = False

#: Default for tolerating peer conflicts.
DEFAULT_ALLOW_PARTIAL: Final[bool] = False

#: Default for including pre-releases.
DEFAULT_PRE: Final[bool] = False

#: Default tie-break when several versions share a dist-tag.
DEFAULT_TAG_TIE_BREAK: Final[str] = "newest-published"

# ---------------------------------------------------------------------------
# Manifest
# ---------------------------------------------------------------------------

#: Default manifest file name.
MANIFEST_FILENAME: Final[str] = "package.json"

#: Manifest keys mapped to dependency sections, most specific first.
MANIFEST_SECTIONS: Final[Mapping[str, str]] = {
    "dependencies": "runtime",
    "devDependencies": "dev",
    "optionalDependencies": "optional",
    "peerDependencies": "peer",
}

#: Maximum allowed file size (in bytes) when reading manifests.
MAX_FILE_SIZE: Final[int] = 10 * 1024 * 1024  # 10 MB

# ---------------------------------------------------------------------------
# Output formats
# ---------------------------------------------------------------------------

#: Values accepted by ``--format``.
OUTPUT_FORMATS: Final[Sequence[str]] = ("table", "group", "lines", "time", "repo")

# ---------------------------------------------------------------------------
# Logging configuration
# ---------------------------------------------------------------------------

#: Timestamp format for verbose logging.
LOG_DATE_FORMAT: Final[str] = "%Y-%m-%d %H:%M:%S"

#: Default log format (non-verbose).
LOG_DEFAULT_FORMAT: Final[str] = "%(levelname)s: %(message)s"

#: Verbose log format including timestamp and logger name.
LOG_VERBOSE_FORMAT: Final[str] = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
