"""npm registry backend for depbump.

Versions come from the full packument at ``GET {registry}/{name}``. The
latest version is the one the ``latest`` dist-tag points at. Installed
versions are read from ``node_modules/<name>/package.json``, and global
packages from the directory ``npm root -g`` prints.
"""

from __future__ import annotations

from pathlib import Path
from typing import Dict, Optional

from depbump.constants import NPM_REGISTRY_URL
from depbump.models.version import VersionSet
from depbump.registry.base import PathLike, RegistryClient, installed_version
from depbump.registry.packument import parse_packument


class NpmRegistryClient(RegistryClient):
    """Registry client for the npm package manager.

    Example::

        >>> async with HTTPClient() as http:
        ...     client = NpmRegistryClient(http)
        ...     await client.latest("left-pad")
        '1.3.0'
    """

    name = "npm"
    default_registry_url = NPM_REGISTRY_URL
    global_root_command = ("npm", "root", "-g")

    async def fetch_versions(
        self,
        name: str,
        current_specifier: Optional[str] = None,
        *,
        cwd: Optional[PathLike] = None,
    ) -> VersionSet:
        data = await self._get_json(name, self.package_url(name))
        return parse_packument(name, data)

    async def latest(self, name: str, *, cwd: Optional[PathLike] = None) -> Optional[str]:
        """Return the version tagged ``latest`` in the packument."""
        data = await self._get_json(name, self.package_url(name))
        version = (data.get("dist-tags") or {}).get("latest")
        return version if isinstance(version, str) else None

    async def list_installed(self, cwd: PathLike) -> Dict[str, str]:
        """Read installed versions from ``node_modules``.

        Only dependencies named in ``<cwd>/package.json`` are looked up;
        packages that are not installed are left out.
        """
        root = Path(cwd)
        installed: Dict[str, str] = {}
        for name in self._declared_names(root):
            version = installed_version(root / "node_modules" / name)
            if version is not None:
                installed[name] = version
        return installed
