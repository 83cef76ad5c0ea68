"""Configuration file loader for depbump.

Handles discovery, loading, parsing, and validation of configuration files.
Supports two formats:

- ``depbump.toml``: settings under a ``[depbump]`` table
- ``pyproject.toml``: settings under a ``[tool.depbump]`` table

Discovery order:

1. Explicit path from ``--config`` or ``DEPBUMP_CONFIG``
2. ``depbump.toml`` in the current directory
3. ``pyproject.toml`` with a ``[tool.depbump]`` section

Configuration precedence: defaults < config file < environment < CLI args.

Typical usage::

    config = load_config()  # Auto-discover
    config = load_config(Path("custom.toml"))  # Explicit path

Example (``depbump.toml``)::

    [depbump]
    target = "minor"
    peer = true
    backend = "yarn"
    timeout = 20

    [depbump.overrides]
    typescript = "patch"
"""

from __future__ import annotations

import tomli
from pathlib import Path
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

from depbump.exceptions import ConfigError
from depbump.models.policy import validate_target
from depbump.models.version import TagTieBreak
from depbump.utils.logger import get_logger
from depbump.constants import (
    BACKENDS,
    DEFAULT_ALLOW_PARTIAL,
    DEFAULT_BACKEND,
    DEFAULT_CONCURRENCY,
    DEFAULT_MAX_PEER_ITERATIONS,
    DEFAULT_PEER,
    DEFAULT_PRE,
    DEFAULT_TAG_TIE_BREAK,
    DEFAULT_TARGET,
    DEFAULT_TIMEOUT,
)

logger = get_logger("config")

CONFIG_FILENAME = "depbump.toml"


@dataclass
class DepbumpConfig:
    """Parsed and validated depbump configuration.

    All fields have defaults, so empty config files are valid.

    Attributes:
        target: Upgrade policy (``patch``, ``minor``, ``major``,
            ``latest`` or a dist-tag).
        peer: Reconcile upgrades with peer dependency ranges.
        backend: Package manager backend (``npm`` or ``yarn``).
        registry: Registry URL, or ``None`` for the backend default.
        timeout: Per-query timeout in seconds.
        concurrency: Maximum concurrent registry queries.
        max_peer_iterations: Peer resolution iteration budget.
        allow_partial: Tolerate unsatisfiable peer ranges.
        tag_tie_break: Rule when a dist-tag points at several versions.
        pre: Include pre-release versions.
        overrides: Per-package upgrade targets.
        source_path: Path to loaded config file, or ``None`` if using defaults.
    """

    target: str = DEFAULT_TARGET
    peer: bool = DEFAULT_PEER
    backend: str = DEFAULT_BACKEND
    registry: Optional[str] = None
    timeout: int = DEFAULT_TIMEOUT
    concurrency: int = DEFAULT_CONCURRENCY
    max_peer_iterations: int = DEFAULT_MAX_PEER_ITERATIONS
    allow_partial: bool = DEFAULT_ALLOW_PARTIAL
    tag_tie_break: str = DEFAULT_TAG_TIE_BREAK
    pre: bool = DEFAULT_PRE
    overrides: Dict[str, str] = field(default_factory=dict)

    # Metadata (not a user-facing option)
    source_path: Optional[Path] = field(default=None, repr=False)

    def to_log_dict(self) -> Dict[str, Any]:
        """Return configuration as dictionary for debug logging.

        Excludes ``source_path`` metadata.
        """
        return {name: getattr(self, name) for name in _VALIDATORS}


def discover_config_file(explicit_path: Optional[Path] = None) -> Optional[Path]:
    """Find the configuration file to load.

    Args:
        explicit_path: Explicit config path. If provided, must exist.

    Returns:
        Resolved path to config file, or ``None`` if not found.

    Raises:
        ConfigError: Explicit path provided but does not exist.
    """
    if explicit_path is not None:
        resolved = explicit_path.resolve()
        if not resolved.is_file():
            raise ConfigError(
                f"Configuration file not found: {explicit_path}",
                config_path=str(explicit_path),
            )
        logger.debug("Using explicit config: %s", resolved)
        return resolved

    cwd = Path.cwd()

    depbump_toml = cwd / CONFIG_FILENAME
    if depbump_toml.is_file():
        logger.debug("Found %s: %s", CONFIG_FILENAME, depbump_toml)
        return depbump_toml

    pyproject_toml = cwd / "pyproject.toml"
    if pyproject_toml.is_file() and _pyproject_has_depbump_section(pyproject_toml):
        logger.debug("Found [tool.depbump] in pyproject.toml: %s", pyproject_toml)
        return pyproject_toml

    logger.debug("No configuration file found")
    return None


def _pyproject_has_depbump_section(path: Path) -> bool:
    """Check if pyproject.toml contains a [tool.depbump] section.

    An unreadable or invalid pyproject.toml is treated as having none.
    """
    try:
        raw = _read_toml(path)
    except ConfigError:
        return False
    tool = raw.get("tool", {})
    return isinstance(tool, dict) and "depbump" in tool


def load_config(config_path: Optional[Path] = None) -> DepbumpConfig:
    """Load and validate depbump configuration.

    Args:
        config_path: Explicit path to config file. If ``None``, uses
            auto-discovery (see :func:`discover_config_file`).

    Returns:
        Validated :class:`DepbumpConfig` with values from file or defaults.

    Raises:
        ConfigError: File cannot be parsed, has unknown keys, or invalid values.
    """
    resolved = discover_config_file(config_path)

    if resolved is None:
        logger.debug("No config file found, using defaults")
        return DepbumpConfig()

    logger.info("Loading configuration from %s", resolved)
    raw = _read_toml(resolved)

    if resolved.name == "pyproject.toml":
        section = raw.get("tool", {}).get("depbump", {})
    else:
        section = raw.get("depbump", {})

    if not section:
        logger.debug("Config file found but no depbump section, using defaults")
        return DepbumpConfig(source_path=resolved)

    config = parse_section(section, config_path=str(resolved))
    config.source_path = resolved

    logger.debug("Loaded configuration: %s", config.to_log_dict())
    return config


def _read_toml(path: Path) -> Dict[str, Any]:
    """Read and parse a TOML file.

    Raises:
        ConfigError: File cannot be read or is not valid TOML.
    """
    try:
        with open(path, "rb") as fh:
            return tomli.load(fh)
    except tomli.TOMLDecodeError as exc:
        raise ConfigError(
            f"Invalid TOML in {path.name}: {exc}",
            config_path=str(path),
        ) from exc
    except OSError as exc:
        raise ConfigError(
            f"Cannot read configuration file {path}: {exc}",
            config_path=str(path),
        ) from exc


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def _boolean(name: str, value: Any, config_path: Optional[str]) -> bool:
    if not isinstance(value, bool):
        raise ConfigError(
            f"{name} must be a boolean, got {type(value).__name__}",
            config_path=config_path,
            option=name,
        )
    return value


def _positive_int(name: str, value: Any, config_path: Optional[str]) -> int:
    # bool is an int subclass; "timeout = true" is a mistake
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ConfigError(
            f"{name} must be a positive integer, got {value!r}",
            config_path=config_path,
            option=name,
        )
    return value


def _string(name: str, value: Any, config_path: Optional[str]) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ConfigError(
            f"{name} must be a non-empty string, got {type(value).__name__}",
            config_path=config_path,
            option=name,
        )
    return value.strip()


def _target(name: str, value: Any, config_path: Optional[str]) -> str:
    try:
        return validate_target(_string(name, value, config_path), option=name)
    except ConfigError as exc:
        raise ConfigError(exc.message, config_path=config_path, option=name) from exc


def _backend(name: str, value: Any, config_path: Optional[str]) -> str:
    backend = _string(name, value, config_path).lower()
    if backend not in BACKENDS:
        raise ConfigError(
            f"{name} must be one of {', '.join(BACKENDS)}, got {value!r}",
            config_path=config_path,
            option=name,
        )
    return backend


def _tie_break(name: str, value: Any, config_path: Optional[str]) -> str:
    text = _string(name, value, config_path)
    choices = [rule.value for rule in TagTieBreak]
    if text not in choices:
        raise ConfigError(
            f"{name} must be one of {', '.join(choices)}, got {value!r}",
            config_path=config_path,
            option=name,
        )
    return text


def _overrides(name: str, value: Any, config_path: Optional[str]) -> Dict[str, str]:
    if not isinstance(value, dict):
        raise ConfigError(
            f"{name} must be a table of package names to targets",
            config_path=config_path,
            option=name,
        )
    return {
        package: _target(f"{name}.{package}", target, config_path)
        for package, target in value.items()
    }


_VALIDATORS: Dict[str, Callable[[str, Any, Optional[str]], Any]] = {
    "target": _target,
    "peer": _boolean,
    "backend": _backend,
    "registry": _string,
    "timeout": _positive_int,
    "concurrency": _positive_int,
    "max_peer_iterations": _positive_int,
    "allow_partial": _boolean,
    "tag_tie_break": _tie_break,
    "pre": _boolean,
    "overrides": _overrides,
}


def parse_section(
    section: Dict[str, Any],
    *,
    config_path: Optional[str] = None,
) -> DepbumpConfig:
    """Parse and validate a ``[depbump]`` or ``[tool.depbump]`` table.

    Keys may use dashes or underscores (``allow-partial`` or
    ``allow_partial``).

    Raises:
        ConfigError: Unknown keys or values of the wrong type.
    """
    normalized = {key.replace("-", "_"): value for key, value in section.items()}

    unknown = set(normalized) - set(_VALIDATORS)
    if unknown:
        raise ConfigError(
            f"Unknown configuration keys: {', '.join(sorted(unknown))}",
            config_path=config_path,
        )

    config = DepbumpConfig()
    for key, value in normalized.items():
        setattr(config, key, _VALIDATORS[key](key, value, config_path))
    return config
