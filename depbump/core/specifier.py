"""Parsing and rewriting of npm-style version specifiers.

A :class:`RangeSpecifier` remembers *how* a range was written (operator,
``v`` prefix, number of version components, wildcard character) so that an
upgraded specifier can be rendered in the same style::

    >>> spec = parse_specifier("^1.0")
    >>> spec.render(Version("2.3.1"))
    '^2.3'
    >>> parse_specifier("1.x").render(Version("2.0.0"))
    '2.x'

Supported forms: caret (``^1.2.3``), tilde (``~1.2.3``), exact (``1.2.3``,
``=1.2.3``, ``v1.2.3``), lower bound (``>=1.2.3``), partial versions
(``^1``, ``~1.2``), wildcards (``*``, ``x``, ``1.x``, ``1.2.*``) and
distribution tags (``latest``, ``next``). Upper bounds, hyphen ranges,
``||`` unions, URLs and aliases raise
:class:`~depbump.exceptions.InvalidSpecifierError`.
"""

from __future__ import annotations

import re
from enum import Enum
from functools import lru_cache
from dataclasses import dataclass
from typing import Optional, Tuple

from semantic_version import NpmSpec, Version

from depbump.exceptions import InvalidSpecifierError

__all__ = ["RangeSpecifier", "SpecifierKind", "parse_specifier", "parse_range"]

_OPERATOR_RE = re.compile(r"^(?P<op>\^|~|>=|=)?(?P<sep>\s*)(?P<body>.*)$")

_VERSION_RE = re.compile(
    r"""
    ^(?P<prefix>v?)
    (?P<major>\d+|[xX*])
    (?:\.(?P<minor>\d+|[xX*]))?
    (?:\.(?P<patch>\d+|[xX*]))?
    (?:-(?P<pre>[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?
    (?:\+(?P<build>[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?$
    """,
    re.VERBOSE,
)

_TAG_RE = re.compile(r"^[A-Za-z][A-Za-z0-9._-]*$")

_WILDCARDS = frozenset({"x", "X", "*"})


class SpecifierKind(str, Enum):
    """Broad shape of a specifier."""

    RANGE = "range"
    WILDCARD = "wildcard"
    TAG = "tag"


@dataclass(frozen=True)
class RangeSpecifier:
    """A parsed specifier that can be matched and re-rendered.

    Attributes:
        raw: The specifier exactly as declared.
        kind: Range, full wildcard or dist-tag.
        operator: ``^``, ``~``, ``>=``, ``=`` or ``""``.
        separator: Whitespace written between operator and version.
        prefix: ``"v"`` when the version was written as ``v1.2.3``.
        parts: Written version components; ``None`` marks a wildcard.
        wildcard: Wildcard character used, if any.
        prerelease: Pre-release identifiers, e.g. ``"beta.1"``.
        tag: Dist-tag name for :attr:`SpecifierKind.TAG`.
    """

    raw: str
    kind: SpecifierKind
    operator: str = ""
    separator: str = ""
    prefix: str = ""
    parts: Tuple[Optional[int], ...] = ()
    wildcard: Optional[str] = None
    prerelease: Optional[str] = None
    tag: Optional[str] = None

    # ------------------------------------------------------------------
    # Derived views
    # ------------------------------------------------------------------

    @property
    def precision(self) -> int:
        """Number of version components written (1-3)."""
        return len(self.parts)

    @property
    def is_prerelease(self) -> bool:
        """True when the declared version targets a pre-release channel."""
        return self.prerelease is not None

    @property
    def reference(self) -> Optional[Version]:
        """Version the specifier is anchored at, missing parts as zero.

        ``None`` for full wildcards and dist-tags, which track whatever
        the registry currently offers.
        """
        if self.kind is not SpecifierKind.RANGE:
            return None
        numbers = [p or 0 for p in self.parts] + [0] * (3 - len(self.parts))
        text = ".".join(str(n) for n in numbers)
        if self.prerelease:
            text += f"-{self.prerelease}"
        return Version(text)

    @property
    def npm_range(self) -> Optional[str]:
        """Canonical npm range for matching, or ``None`` for dist-tags."""
        if self.kind is SpecifierKind.TAG:
            return None
        if self.kind is SpecifierKind.WILDCARD:
            return "*"
        text = ".".join("x" if p is None else str(p) for p in self.parts)
        if self.prerelease:
            text += f"-{self.prerelease}"
        return f"{self.operator}{text}"

    def matches(self, version: Version) -> bool:
        """Return True if *version* satisfies the declared range.

        Dist-tags never match by version; resolve them through the
        version set instead.
        """
        if self.kind is SpecifierKind.TAG:
            return False
        if self.kind is SpecifierKind.WILDCARD:
            return not version.prerelease
        spec = parse_range(self.npm_range or "*")
        return spec is not None and spec.match(version)

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def render(self, version: Version) -> str:
        """Return a specifier for *version* written in this specifier's style.

        Wildcards and dist-tags are returned unchanged.
        """
        if self.kind is not SpecifierKind.RANGE:
            return self.raw

        numbers = (version.major, version.minor, version.patch)
        components = [
            (self.wildcard or "x") if part is None else str(numbers[index])
            for index, part in enumerate(self.parts)
        ]
        text = ".".join(components)
        if self.precision == 3 and None not in self.parts and version.prerelease:
            text += "-" + ".".join(version.prerelease)

        return f"{self.operator}{self.separator}{self.prefix}{text}"

    def __str__(self) -> str:
        return self.raw


def parse_specifier(text: str, *, package_name: Optional[str] = None) -> RangeSpecifier:
    """Parse a declared specifier.

    Args:
        text: Specifier as written in the manifest.
        package_name: Used in error messages only.

    Raises:
        InvalidSpecifierError: The specifier uses an unsupported form.
    """
    if text is None:
        raise InvalidSpecifierError(
            "Specifier must be a string", package_name=package_name
        )

    raw = text
    stripped = text.strip()

    if stripped in ("", "*", "x", "X"):
        return RangeSpecifier(raw=raw, kind=SpecifierKind.WILDCARD, wildcard=stripped or None)

    match = _OPERATOR_RE.match(stripped)
    operator = match.group("op") or "" if match else ""
    separator = match.group("sep") if match else ""
    body = match.group("body") if match else stripped

    version_match = _VERSION_RE.match(body)
    if version_match:
        return _build_range(raw, operator, separator, version_match, package_name)

    if not operator and _TAG_RE.match(body):
        return RangeSpecifier(raw=raw, kind=SpecifierKind.TAG, tag=body)

    raise InvalidSpecifierError(
        f"Unsupported version specifier '{raw}'. Use a caret, tilde, exact, "
        "'>=', wildcard or dist-tag specifier.",
        specifier=raw,
        package_name=package_name,
    )


def _build_range(
    raw: str,
    operator: str,
    separator: str,
    match: "re.Match[str]",
    package_name: Optional[str],
) -> RangeSpecifier:
    """Turn a matched version body into a :class:`RangeSpecifier`."""
    written = [match.group(k) for k in ("major", "minor", "patch")]
    written = [w for w in written if w is not None]

    parts: list = []
    wildcard: Optional[str] = None
    for component in written:
        if component in _WILDCARDS:
            wildcard = wildcard or component
            parts.append(None)
        elif wildcard is not None:
            # 1.x.3 has no meaning
            raise InvalidSpecifierError(
                f"Invalid version specifier '{raw}': wildcard must be trailing",
                specifier=raw,
                package_name=package_name,
            )
        else:
            parts.append(int(component))

    prerelease = match.group("pre")
    if prerelease and (len(parts) < 3 or wildcard is not None):
        raise InvalidSpecifierError(
            f"Invalid version specifier '{raw}': pre-release needs a full version",
            specifier=raw,
            package_name=package_name,
        )

    if parts[0] is None:
        if operator:
            raise InvalidSpecifierError(
                f"Invalid version specifier '{raw}'",
                specifier=raw,
                package_name=package_name,
            )
        return RangeSpecifier(raw=raw, kind=SpecifierKind.WILDCARD, wildcard=wildcard)

    return RangeSpecifier(
        raw=raw,
        kind=SpecifierKind.RANGE,
        operator=operator,
        separator=separator,
        prefix=match.group("prefix"),
        parts=tuple(parts),
        wildcard=wildcard,
        prerelease=prerelease,
    )


@lru_cache(maxsize=1024)
def parse_range(text: str) -> Optional[NpmSpec]:
    """Parse an arbitrary npm range (as found in peer dependencies).

    Returns:
        The compiled :class:`NpmSpec`, or ``None`` if *text* is not a range
        semantic-version understands.
    """
    try:
        return NpmSpec(text.strip() or "*")
    except ValueError:
        return None
