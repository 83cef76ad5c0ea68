from __future__ import annotations

import json
import pytest
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

from depbump.exceptions import BackendPreconditionError, NetworkError
from depbump.registry.yarn import YarnRegistryClient, parse_lockfile
from depbump.utils.http import HTTPClient

NO_LOCKFILE = "No lockfile in this directory. Run `yarn install` to generate one."

CLASSIC_LOCKFILE = """\
# THIS IS AN AUTOGENERATED FILE. DO NOT EDIT THIS FILE DIRECTLY.
# yarn lockfile v1


"@babel/core@^7.0.0", "@babel/core@^7.1.0":
  version "7.22.5"
  resolved "https://registry.yarnpkg.com/@babel/core/-/core-7.22.5.tgz"

left-pad@^1.0.0:
  version "1.3.0"
  resolved "https://registry.yarnpkg.com/left-pad/-/left-pad-1.3.0.tgz"
  dependencies:
    other "^1.0.0"
"""

BERRY_LOCKFILE = """\
__metadata:
  version: 6
  cacheKey: 8

"left-pad@npm:^1.0.0":
  version: 1.3.0
  resolution: "left-pad@npm:1.3.0"
  dependencies:
    other: ^1.0.0
  languageName: node
  linkType: hard
"""


@pytest.fixture
def http_client() -> MagicMock:
    client = MagicMock(spec=HTTPClient)
    client.get_json = AsyncMock()
    return client


@pytest.fixture
def project(tmp_path: Path) -> Path:
    (tmp_path / "package.json").write_text(
        json.dumps({"dependencies": {"left-pad": "^1.0.0"}}), encoding="utf-8"
    )
    (tmp_path / "yarn.lock").write_text(CLASSIC_LOCKFILE, encoding="utf-8")
    return tmp_path


@pytest.mark.unit
class TestParseLockfile:
    """Tests for parse_lockfile."""

    def test_classic_format(self) -> None:
        assert parse_lockfile(CLASSIC_LOCKFILE) == {
            "@babel/core": "7.22.5",
            "left-pad": "1.3.0",
        }

    def test_berry_format_skips_metadata(self) -> None:
        assert parse_lockfile(BERRY_LOCKFILE) == {"left-pad": "1.3.0"}

    def test_single_entry(self) -> None:
        assert parse_lockfile('left-pad@^1.0.0:\n  version "1.3.0"\n') == {"left-pad": "1.3.0"}

    def test_empty(self) -> None:
        assert parse_lockfile("") == {}


@pytest.mark.unit
class TestYarnWithoutLockfile:
    """The yarn backend refuses to run before ``yarn install``."""

    @pytest.mark.asyncio
    async def test_list_installed(self, http_client: MagicMock, tmp_path: Path) -> None:
        with pytest.raises(BackendPreconditionError) as exc_info:
            await YarnRegistryClient(http_client).list_installed(tmp_path)

        assert str(exc_info.value) == NO_LOCKFILE
        assert exc_info.value.backend == "yarn"

    @pytest.mark.asyncio
    async def test_fetch_versions(self, http_client: MagicMock, tmp_path: Path) -> None:
        with pytest.raises(BackendPreconditionError, match="yarn install"):
            await YarnRegistryClient(http_client).fetch_versions("left-pad", cwd=tmp_path)

        http_client.get_json.assert_not_called()


@pytest.mark.unit
class TestYarnRegistryClient:
    """Tests for YarnRegistryClient with a lockfile present."""

    def test_defaults(self, http_client: MagicMock) -> None:
        client = YarnRegistryClient(http_client)
        assert client.name == "yarn"
        assert client.registry_url == "https://registry.yarnpkg.com"

    @pytest.mark.asyncio
    async def test_list_installed_filters_declared(
        self, http_client: MagicMock, project: Path
    ) -> None:
        installed = await YarnRegistryClient(http_client).list_installed(project)
        assert installed == {"left-pad": "1.3.0"}

    @pytest.mark.asyncio
    async def test_list_installed_without_manifest(
        self, http_client: MagicMock, tmp_path: Path
    ) -> None:
        (tmp_path / "yarn.lock").write_text(CLASSIC_LOCKFILE, encoding="utf-8")

        installed = await YarnRegistryClient(http_client).list_installed(tmp_path)

        assert set(installed) == {"@babel/core", "left-pad"}

    @pytest.mark.asyncio
    async def test_latest_uses_latest_document(self, http_client: MagicMock) -> None:
        http_client.get_json.return_value = {"name": "left-pad", "version": "1.3.0"}

        assert await YarnRegistryClient(http_client).latest("left-pad") == "1.3.0"
        http_client.get_json.assert_awaited_once_with(
            "https://registry.yarnpkg.com/left-pad/latest"
        )

    @pytest.mark.asyncio
    async def test_latest_falls_back_to_dist_tags(self, http_client: MagicMock) -> None:
        http_client.get_json.side_effect = [
            NetworkError("HTTP 404", status_code=404),
            {"dist-tags": {"latest": "1.1.0"}},
        ]
        assert await YarnRegistryClient(http_client).latest("left-pad") == "1.1.0"

    @pytest.mark.asyncio
    async def test_fetch_versions_tags_latest_from_registry(
        self, http_client: MagicMock, project: Path
    ) -> None:
        """The /latest answer wins over the packument's dist-tag."""
        http_client.get_json.side_effect = [
            {
                "dist-tags": {"latest": "1.3.0"},
                "versions": {"1.0.0": {}, "1.1.0": {}, "1.3.0": {}},
            },
            {"version": "1.1.0"},
        ]

        vs = await YarnRegistryClient(http_client).fetch_versions(
            "left-pad", "^1.0.0", cwd=project
        )

        assert vs.resolve_tag("latest").version == "1.1.0"  # type: ignore[union-attr]
        assert len(vs) == 3


@pytest.mark.unit
class TestYarnGlobalPackages:
    """Tests for yarn's global package directory."""

    def test_global_root_is_node_modules_under_global_dir(
        self, http_client: MagicMock, tmp_path: Path
    ) -> None:
        completed = MagicMock(returncode=0, stdout=f"{tmp_path}\n", stderr="")

        with patch("depbump.registry.base.subprocess.run", return_value=completed) as run:
            root = YarnRegistryClient(http_client).global_root()

        assert root == tmp_path / "node_modules"
        assert run.call_args.args[0] == ["yarn", "global", "dir"]

    def test_missing_yarn_is_a_precondition(self, http_client: MagicMock) -> None:
        with patch("depbump.registry.base.subprocess.run", side_effect=FileNotFoundError):
            with pytest.raises(BackendPreconditionError) as exc_info:
                YarnRegistryClient(http_client).global_root()

        assert str(exc_info.value) == "yarn is not installed or not on PATH."
