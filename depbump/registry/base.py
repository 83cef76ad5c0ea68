"""Abstract registry client for depbump.

Every package-manager backend implements :class:`RegistryClient`. The
orchestrator only talks to this interface, so backends are swappable and
tests can substitute in-memory fakes.

Backends map their failures onto three error kinds from
:mod:`depbump.exceptions`:

- :class:`PackageNotFoundError`: the package does not exist;
- :class:`BackendUnavailableError`: network or process failure,
  including timeouts;
- :class:`BackendPreconditionError`: the environment is not ready (for
  example a missing lockfile or package manager). Its message is shown
  to the user as-is.
"""

from __future__ import annotations

import json
import asyncio
import subprocess
from pathlib import Path
from urllib.parse import quote
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Sequence, Union

from depbump.constants import DEFAULT_TIMEOUT, MANIFEST_FILENAME
from depbump.exceptions import (
    BackendPreconditionError,
    BackendUnavailableError,
    NetworkError,
    PackageNotFoundError,
)
from depbump.models.version import VersionSet
from depbump.utils.http import HTTPClient
from depbump.utils.logger import get_logger

logger = get_logger("registry")

PathLike = Union[str, Path]


class RegistryClient(ABC):
    """Interface shared by all registry backends.

    Args:
        http_client: Shared HTTP client. **Required**.
        registry_url: Base URL of the registry.
        timeout: Per-query timeout in seconds.

    Raises:
        TypeError: If *http_client* is ``None``.
    """

    #: Backend identifier, e.g. ``"npm"``.
    name: str = ""

    #: Registry used when no URL is configured.
    default_registry_url: str = ""

    #: Command printing the directory that holds globally installed packages.
    global_root_command: Sequence[str] = ()

    def __init__(
        self,
        http_client: HTTPClient,
        *,
        registry_url: Optional[str] = None,
        timeout: int = DEFAULT_TIMEOUT,
    ) -> None:
        if http_client is None:
            raise TypeError(
                "http_client must not be None; pass an HTTPClient instance"
            )

        self.http_client = http_client
        self.registry_url = (registry_url or self.default_registry_url).rstrip("/")
        self.timeout = timeout

    # ------------------------------------------------------------------
    # Backend contract
    # ------------------------------------------------------------------

    @abstractmethod
    async def fetch_versions(
        self,
        name: str,
        current_specifier: Optional[str] = None,
        *,
        cwd: Optional[PathLike] = None,
    ) -> VersionSet:
        """Return every published version of *name*."""

    @abstractmethod
    async def latest(self, name: str, *, cwd: Optional[PathLike] = None) -> Optional[str]:
        """Return the version this backend considers latest for *name*."""

    @abstractmethod
    async def list_installed(self, cwd: PathLike) -> Dict[str, str]:
        """Return installed versions keyed by package name."""

    async def list_global(self, global_dir: Optional[PathLike] = None) -> Dict[str, str]:
        """Return globally installed packages keyed by name.

        Args:
            global_dir: The global ``node_modules`` directory. When omitted
                it is asked of the package manager.

        Raises:
            BackendPreconditionError: The package manager is not installed.
            BackendUnavailableError: The package manager command failed.
        """
        if global_dir is None:
            loop = asyncio.get_running_loop()
            root = await loop.run_in_executor(None, self.global_root)
        else:
            root = Path(global_dir)
        logger.debug("Reading global packages from %s", root)
        return scan_node_modules(root)

    def global_root(self) -> Path:
        """Ask the package manager where global packages are installed."""
        command = list(self.global_root_command)
        try:
            completed = subprocess.run(
                command,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                check=False,
            )
        except FileNotFoundError as exc:
            raise BackendPreconditionError(
                f"{command[0]} is not installed or not on PATH.",
                backend=self.name,
            ) from exc
        except subprocess.TimeoutExpired as exc:
            raise BackendUnavailableError(
                f"`{' '.join(command)}` timed out after {self.timeout}s",
                backend=self.name,
            ) from exc

        output = completed.stdout.strip()
        if completed.returncode != 0 or not output:
            reason = completed.stderr.strip() or f"exit code {completed.returncode}"
            raise BackendUnavailableError(
                f"`{' '.join(command)}` failed: {reason}",
                backend=self.name,
            )
        return self._global_modules_dir(Path(output))

    # ------------------------------------------------------------------
    # Shared helpers
    # ------------------------------------------------------------------

    def package_url(self, name: str, *suffix: str) -> str:
        """Build the registry URL for *name*; scoped names are escaped."""
        escaped = quote(name, safe="@")
        return "/".join([self.registry_url, escaped, *suffix])

    async def _get_json(self, name: str, url: str) -> Dict[str, Any]:
        """GET *url* and translate HTTP failures into registry errors."""
        logger.debug("Querying %s registry: %s", self.name, url)
        try:
            data = await self.http_client.get_json(url)
        except NetworkError as exc:
            if exc.status_code == 404:
                raise PackageNotFoundError(
                    f"Package '{name}' not found in the {self.name} registry",
                    package_name=name,
                    backend=self.name,
                ) from exc
            raise BackendUnavailableError(
                f"Failed to query the {self.name} registry for '{name}': {exc.message}",
                package_name=name,
                backend=self.name,
            ) from exc

        if not isinstance(data, dict):
            raise BackendUnavailableError(
                f"Unexpected response from the {self.name} registry for '{name}'",
                package_name=name,
                backend=self.name,
            )
        return data

    @staticmethod
    def _global_modules_dir(output: Path) -> Path:
        """Map the global root command's output to a ``node_modules`` dir."""
        return output

    @staticmethod
    def _declared_names(cwd: Path) -> list:
        """Dependency names declared in ``<cwd>/package.json``."""
        # Local import; the manifest reader depends on the models only
        from depbump.core.manifest import ManifestReader

        manifest = cwd / MANIFEST_FILENAME
        if not manifest.exists():
            return []
        declarations = ManifestReader().read(manifest)
        return list(dict.fromkeys(d.name for d in declarations))

    def __repr__(self) -> str:
        return f"{type(self).__name__}(registry_url={self.registry_url!r})"


def installed_version(package_dir: Path) -> Optional[str]:
    """Version from ``<package_dir>/package.json``, or ``None``."""
    package_json = package_dir / "package.json"
    if not package_json.is_file():
        return None
    try:
        version = json.loads(package_json.read_text(encoding="utf-8")).get("version")
    except (OSError, ValueError) as exc:
        logger.debug("Cannot read %s: %s", package_json, exc)
        return None
    return version if isinstance(version, str) else None


def scan_node_modules(root: Path) -> Dict[str, str]:
    """Versions of every package directly inside *root*.

    Scoped packages live one level deeper, under ``@scope/``. Hidden
    entries such as ``.bin`` are skipped.
    """
    if not root.is_dir():
        return {}

    candidates = []
    for entry in sorted(root.iterdir()):
        if entry.name.startswith(".") or not entry.is_dir():
            continue
        if entry.name.startswith("@"):
            candidates.extend(
                (f"{entry.name}/{child.name}", child)
                for child in sorted(entry.iterdir())
                if child.is_dir()
            )
        else:
            candidates.append((entry.name, entry))

    installed: Dict[str, str] = {}
    for name, package_dir in candidates:
        version = installed_version(package_dir)
        if version is not None:
            installed[name] = version
    return installed
