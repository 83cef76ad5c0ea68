"""
Registry backends for depbump.

Each supported package manager has a :class:`RegistryClient` subclass;
:func:`create_registry_client` builds one by backend name.

Example:
    >>> async with HTTPClient() as http:
    ...     client = create_registry_client("yarn", http)
"""

from __future__ import annotations

from typing import Dict, Optional, Type

from depbump.constants import BACKENDS, DEFAULT_TIMEOUT
from depbump.exceptions import ConfigError
from depbump.registry.base import RegistryClient
from depbump.registry.npm import NpmRegistryClient
from depbump.registry.packument import parse_packument
from depbump.registry.yarn import YarnRegistryClient, parse_lockfile
from depbump.utils.http import HTTPClient

_BACKENDS: Dict[str, Type[RegistryClient]] = {
    NpmRegistryClient.name: NpmRegistryClient,
    YarnRegistryClient.name: YarnRegistryClient,
}


def create_registry_client(
    backend: str,
    http_client: HTTPClient,
    *,
    registry_url: Optional[str] = None,
    timeout: int = DEFAULT_TIMEOUT,
) -> RegistryClient:
    """Instantiate the registry client for *backend*.

    Raises:
        ConfigError: *backend* is not a supported package manager.
    """
    cls = _BACKENDS.get((backend or "").lower())
    if cls is None:
        raise ConfigError(
            f"Unsupported backend '{backend}'. Choose one of: {', '.join(BACKENDS)}.",
            option="backend",
        )
    return cls(http_client, registry_url=registry_url, timeout=timeout)


__all__ = [
    "NpmRegistryClient",
    "RegistryClient",
    "YarnRegistryClient",
    "create_registry_client",
    "parse_lockfile",
    "parse_packument",
]
