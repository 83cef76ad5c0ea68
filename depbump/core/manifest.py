"""Reading and rewriting ``package.json`` manifests.

:class:`ManifestReader` extracts
:class:`~depbump.models.DependencyDeclaration` objects from the
``dependencies``, ``devDependencies``, ``optionalDependencies`` and
``peerDependencies`` sections, and writes upgraded specifiers back while
keeping key order and indentation intact.

Typical usage::

    reader = ManifestReader()
    declarations = reader.read("package.json")
    text = reader.apply_upgrades(Path("package.json").read_text(), result.upgrades)
"""

from __future__ import annotations

import re
import json
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

from depbump.constants import MANIFEST_SECTIONS
from depbump.exceptions import ParseError
from depbump.models.dependency import DependencyDeclaration, DependencySection
from depbump.models.resolution import PackageUpgrade
from depbump.utils.filesystem import safe_read_file
from depbump.utils.logger import get_logger

logger = get_logger("manifest")

__all__ = ["ManifestReader"]

_INDENT_RE = re.compile(r"^([ \t]+)\S", re.MULTILINE)

UpgradeLike = Union[str, PackageUpgrade]


class ManifestReader:
    """Parse and update npm-style manifests."""

    def read(self, path: Union[str, Path]) -> List[DependencyDeclaration]:
        """Read *path* and return its dependency declarations.

        Raises:
            FileOperationError: The file cannot be read.
            ParseError: The file is not a valid manifest.
        """
        text = safe_read_file(path)
        return self.parse(text, source=str(path))

    def parse(
        self, text: str, source: Optional[str] = None
    ) -> List[DependencyDeclaration]:
        """Return declarations from manifest *text*, in section order.

        Non-string specifiers are skipped with a warning.

        Raises:
            ParseError: *text* is not a JSON object or a section is not an
                object.
        """
        data = self._load(text, source)

        declarations: List[DependencyDeclaration] = []
        for key, section in MANIFEST_SECTIONS.items():
            entries = data.get(key)
            if entries is None:
                continue
            if not isinstance(entries, dict):
                raise ParseError(
                    f"'{key}' must be an object mapping package names to versions",
                    file_path=source,
                )
            for name, specifier in entries.items():
                if not isinstance(specifier, str):
                    logger.warning(
                        "Ignoring %s in %s: specifier is not a string", name, key
                    )
                    continue
                declarations.append(
                    DependencyDeclaration(
                        name=name,
                        specifier=specifier,
                        section=DependencySection(section),
                    )
                )
        return declarations

    def apply_upgrades(self, text: str, upgrades: Mapping[str, UpgradeLike]) -> str:
        """Return *text* with upgraded specifiers written in.

        Args:
            text: Original manifest contents.
            upgrades: Package name to either a new specifier or a
                :class:`PackageUpgrade`. A :class:`PackageUpgrade` only
                replaces entries still declaring its ``current`` specifier.

        Returns:
            The updated manifest, formatted with the original indentation
            and trailing newline.
        """
        data = self._load(text, None)

        for key in MANIFEST_SECTIONS:
            entries = data.get(key)
            if not isinstance(entries, dict):
                continue
            for name, upgrade in upgrades.items():
                if name not in entries:
                    continue
                if isinstance(upgrade, PackageUpgrade):
                    if entries[name] != upgrade.current:
                        continue
                    entries[name] = upgrade.upgraded
                else:
                    entries[name] = upgrade

        rendered = json.dumps(data, indent=self._detect_indent(text), ensure_ascii=False)
        if text.endswith("\n"):
            rendered += "\n"
        return rendered

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _load(text: str, source: Optional[str]) -> Dict[str, Any]:
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise ParseError(
                f"Invalid JSON: {exc.msg}",
                file_path=source,
                line_number=exc.lineno,
            ) from exc
        if not isinstance(data, dict):
            raise ParseError("Manifest must be a JSON object", file_path=source)
        return data

    @staticmethod
    def _detect_indent(text: str) -> Union[int, str]:
        match = _INDENT_RE.search(text)
        if match is None:
            return 2
        indent = match.group(1)
        return len(indent) if set(indent) == {" "} else indent
