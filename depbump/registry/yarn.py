"""yarn backend for depbump.

yarn works from the project's ``yarn.lock``: without one the backend
refuses to run and tells the user to install first. The latest version is
taken from the registry's ``version`` field for ``{registry}/{name}/latest``
rather than from the packument's dist-tags.

Global packages live in ``node_modules`` under ``yarn global dir``, next to
the global ``yarn.lock``.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Dict, Optional

from depbump.constants import LOCKFILES, NO_LOCKFILE_MESSAGE, YARN_REGISTRY_URL
from depbump.exceptions import BackendPreconditionError, PackageNotFoundError
from depbump.models.version import VersionSet
from depbump.registry.base import PathLike, RegistryClient
from depbump.registry.packument import parse_packument
from depbump.utils.logger import get_logger

logger = get_logger("registry.yarn")

# "left-pad@^1.0.0", left-pad@~1.1.0:      (v1)
# "left-pad@npm:^1.0.0":                   (berry)
_ENTRY_RE = re.compile(r"^(?P<header>\S.*):\s*$")
_VERSION_RE = re.compile(r"""^\s+version:?\s+"?(?P<version>[^"\s]+)"?\s*$""")


def parse_lockfile(text: str) -> Dict[str, str]:
    """Return ``name → version`` for every entry of a ``yarn.lock``.

    Both the classic (v1) and berry formats are understood. When several
    entries resolve the same name the last one wins.

    Example::

        >>> parse_lockfile('left-pad@^1.0.0:\\n  version "1.3.0"\\n')
        {'left-pad': '1.3.0'}
    """
    installed: Dict[str, str] = {}
    names: list = []
    for line in text.splitlines():
        if not line.strip() or line.lstrip().startswith("#"):
            continue

        entry = _ENTRY_RE.match(line)
        if entry:
            names = _entry_names(entry.group("header"))
            continue

        version = _VERSION_RE.match(line)
        if version and names:
            for name in names:
                installed[name] = version.group("version")
            names = []
    return installed


def _entry_names(header: str) -> list:
    """Package names in an entry header such as ``"a@^1", a@~1.1``."""
    names = []
    for descriptor in header.split(","):
        descriptor = descriptor.strip().strip('"')
        if not descriptor or descriptor == "__metadata":
            continue
        at = descriptor.find("@", 1)
        name = descriptor[:at] if at > 0 else descriptor
        if name not in names:
            names.append(name)
    return names


class YarnRegistryClient(RegistryClient):
    """Registry client for the yarn package manager.

    Raises:
        BackendPreconditionError: From :meth:`list_installed` and
            :meth:`fetch_versions` when the project has no ``yarn.lock``.
    """

    name = "yarn"
    default_registry_url = YARN_REGISTRY_URL
    global_root_command = ("yarn", "global", "dir")

    async def fetch_versions(
        self,
        name: str,
        current_specifier: Optional[str] = None,
        *,
        cwd: Optional[PathLike] = None,
    ) -> VersionSet:
        self._require_lockfile(cwd)
        data = await self._get_json(name, self.package_url(name))
        latest = await self.latest(name, cwd=cwd)
        return parse_packument(name, data, latest_override=latest)

    async def latest(self, name: str, *, cwd: Optional[PathLike] = None) -> Optional[str]:
        """Return the ``version`` field of the registry's latest document.

        Falls back to the packument's ``latest`` dist-tag when the
        registry does not serve the ``/latest`` endpoint.
        """
        try:
            data = await self._get_json(name, self.package_url(name, "latest"))
        except PackageNotFoundError:
            logger.debug("No /latest document for %s; using dist-tags", name)
            data = await self._get_json(name, self.package_url(name))
            version = (data.get("dist-tags") or {}).get("latest")
        else:
            version = data.get("version")
        return version if isinstance(version, str) else None

    async def list_installed(self, cwd: PathLike) -> Dict[str, str]:
        """Read installed versions from ``yarn.lock``."""
        lockfile = self._require_lockfile(cwd)
        installed = parse_lockfile(lockfile.read_text(encoding="utf-8"))
        declared = self._declared_names(Path(cwd))
        if not declared:
            return installed
        return {name: installed[name] for name in declared if name in installed}

    @staticmethod
    def _global_modules_dir(output: Path) -> Path:
        return output / "node_modules"

    def _require_lockfile(self, cwd: Optional[PathLike]) -> Path:
        lockfile = Path(cwd or Path.cwd()) / LOCKFILES[self.name]
        if not lockfile.is_file():
            raise BackendPreconditionError(
                NO_LOCKFILE_MESSAGE.format(install_command="yarn install"),
                backend=self.name,
            )
        return lockfile
