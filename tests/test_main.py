from __future__ import annotations

import sys
from unittest.mock import MagicMock, patch

import pytest

from depbump.__main__ import _print_startup_error, main


@pytest.mark.unit
class TestMain:
    """Tests for main() entry point function."""

    @pytest.mark.parametrize(
        "exit_code",
        [0, 1, 130],
        ids=["success", "error", "interrupted"],
    )
    def test_main_returns_cli_exit_code(self, exit_code: int) -> None:
        """main forwards the CLI's exit code."""
        mock_cli_module = MagicMock()
        mock_cli_module.main = MagicMock(return_value=exit_code)

        with patch.dict("sys.modules", {"depbump.cli": mock_cli_module}):
            result = main()

        assert result == exit_code
        mock_cli_module.main.assert_called_once_with()

    def test_main_import_error_returns_one(self, capsys: pytest.CaptureFixture) -> None:
        """A broken CLI import is reported and exits with 1."""
        with patch.dict("sys.modules", {"depbump.cli": None}):
            result = main()

        assert result == 1
        captured = capsys.readouterr()
        assert "depbump CLI could not be loaded." in captured.err
        assert "ImportError:" in captured.err


@pytest.mark.unit
class TestPrintStartupError:
    """Tests for _print_startup_error helper function."""

    def test_includes_version(self, capsys: pytest.CaptureFixture) -> None:
        mock_version_module = MagicMock(__version__="1.2.3")

        with patch.dict(sys.modules, {"depbump.__version__": mock_version_module}):
            _print_startup_error(ImportError("Test error message"))

        captured = capsys.readouterr()
        assert "depbump version: 1.2.3" in captured.err
        assert "ImportError: Test error message" in captured.err
        assert captured.out == ""

    def test_version_import_fails(self, capsys: pytest.CaptureFixture) -> None:
        with patch.dict(sys.modules, {"depbump.__version__": None}):
            _print_startup_error(ImportError("boom"))

        captured = capsys.readouterr()
        assert "depbump version: <unknown>" in captured.err
        assert f"Python version : {sys.version}" in captured.err
