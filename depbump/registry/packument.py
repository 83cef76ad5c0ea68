"""Packument parsing for depbump.

A *packument* is the full package document served by npm-compatible
registries at ``GET {registry}/{name}``::

    {
      "name": "left-pad",
      "dist-tags": {"latest": "1.3.0"},
      "versions": {"1.3.0": {"repository": {...}, "peerDependencies": {...}}},
      "time": {"1.3.0": "2018-04-09T01:55:00.000Z"}
    }

:func:`parse_packument` turns that document into a
:class:`~depbump.models.VersionSet`.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional

from depbump.models.version import VersionRecord, VersionSet
from depbump.utils.logger import get_logger

logger = get_logger("packument")

__all__ = ["parse_packument", "normalize_repository_url", "parse_timestamp"]


def parse_packument(
    name: str,
    data: Mapping[str, Any],
    *,
    latest_override: Optional[str] = None,
) -> VersionSet:
    """Build a :class:`VersionSet` from a registry packument.

    Args:
        name: Package name.
        data: Decoded packument.
        latest_override: Version that should carry the ``latest`` tag
            instead of the one named in ``dist-tags``.

    Returns:
        Every version with valid semver; invalid entries are skipped.
    """
    versions = data.get("versions") or {}
    times = data.get("time") or {}
    dist_tags = dict(data.get("dist-tags") or {})
    if latest_override:
        dist_tags["latest"] = latest_override

    tags_by_version: Dict[str, List[str]] = {}
    for tag, version in dist_tags.items():
        if isinstance(version, str):
            tags_by_version.setdefault(version, []).append(tag)

    records: List[VersionRecord] = []
    for version, meta in versions.items():
        meta = meta if isinstance(meta, dict) else {}
        peers = meta.get("peerDependencies") or {}
        try:
            records.append(
                VersionRecord(
                    name=name,
                    version=version,
                    published_at=parse_timestamp(times.get(version)),
                    repository_url=normalize_repository_url(
                        meta.get("repository", data.get("repository"))
                    ),
                    tags=frozenset(tags_by_version.get(version, ())),
                    peer_dependencies={
                        str(k): str(v) for k, v in peers.items() if isinstance(v, str)
                    },
                )
            )
        except ValueError:
            logger.debug("Skipping invalid version %r of %s", version, name)

    return VersionSet(name, records)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 publish time; ``None`` when absent or malformed."""
    if not isinstance(value, str) or not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def normalize_repository_url(value: Any) -> Optional[str]:
    """Turn a ``repository`` field into a browsable URL.

    Handles the string form, the ``{"url": ...}`` form, ``git+`` and
    ``git://`` prefixes, a trailing ``.git`` and ``github:owner/repo``
    shorthands.

    Example::

        >>> normalize_repository_url({"url": "git+https://github.com/a/b.git"})
        'https://github.com/a/b'
    """
    if isinstance(value, dict):
        value = value.get("url")
    if not isinstance(value, str) or not value.strip():
        return None

    url = value.strip()
    if url.startswith("github:"):
        url = "https://github.com/" + url[len("github:"):]
    elif "://" not in url and url.count("/") == 1 and not url.startswith("git@"):
        # bare "owner/repo" means GitHub
        url = "https://github.com/" + url

    if url.startswith("git+"):
        url = url[len("git+"):]
    if url.startswith("git://"):
        url = "https://" + url[len("git://"):]
    if url.startswith("git@"):
        url = "https://" + url[len("git@"):].replace(":", "/", 1)
    if url.startswith("ssh://git@"):
        url = "https://" + url[len("ssh://git@"):]
    if url.endswith(".git"):
        url = url[: -len(".git")]
    return url
