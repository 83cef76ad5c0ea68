"""
Custom exception hierarchy for depbump.

This module defines structured exception types used across depbump.
All exceptions inherit from :class:`DepbumpError` and support optional
structured metadata via the ``details`` attribute to improve diagnostics
and logging.

Per-package registry failures (:class:`PackageNotFoundError`,
:class:`BackendUnavailableError`) are isolated by the orchestrator, while
run-level failures (:class:`BackendPreconditionError`,
:class:`PeerConflictError`, :class:`PeerCycleError`,
:class:`OptionConflictError`) abort the whole run.
"""

from __future__ import annotations

from typing import Any, Iterable, List, Mapping, MutableMapping, Optional, Sequence


class DepbumpError(Exception):
    """Base exception for all depbump errors.

    All depbump-specific exceptions should inherit from this class.
    It supports structured metadata via ``details`` for richer error
    reporting and debugging.

    Args:
        message: Human-readable error message.
        details: Optional structured metadata describing the error.
    """

    __slots__ = ("message", "details")

    def __init__(
        self,
        message: str,
        details: Optional[Mapping[str, Any]] = None,
    ) -> None:
        self.message: str = message
        # Internally normalize to a mutable dict
        self.details: MutableMapping[str, Any] = dict(details) if details else {}
        super().__init__(message)

    def __str__(self) -> str:
        if not self.details:
            return self.message
        formatted = ", ".join(f"{k}={v}" for k, v in self.details.items())
        return f"{self.message} ({formatted})"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, details={dict(self.details)!r})"
        )


def _add_if(details: MutableMapping[str, Any], key: str, value: Any) -> None:
    """Add a key to ``details`` only if ``value`` is not ``None``."""
    if value is not None:
        details[key] = value


def _truncate(text: str, max_length: int = 200) -> str:
    """Truncate long text for safe logging or error reporting."""
    if len(text) <= max_length:
        return text
    return text[:max_length] + "..."


class ParseError(DepbumpError):
    """Raised when a manifest or lockfile cannot be parsed.

    Args:
        message: Error description.
        file_path: Path to the file being parsed.
        line_number: Line number where parsing failed.
    """

    __slots__ = ("file_path", "line_number")

    def __init__(
        self,
        message: str,
        *,
        file_path: Optional[str] = None,
        line_number: Optional[int] = None,
    ) -> None:
        details: MutableMapping[str, Any] = {}
        _add_if(details, "file", file_path)
        _add_if(details, "line", line_number)

        super().__init__(message, details)

        self.file_path = file_path
        self.line_number = line_number


class ConfigError(DepbumpError):
    """Raised when configuration is missing, malformed or invalid.

    Args:
        message: Error description.
        config_path: Path to the configuration file involved.
        option: Name of the offending option.
    """

    __slots__ = ("config_path", "option")

    def __init__(
        self,
        message: str,
        *,
        config_path: Optional[str] = None,
        option: Optional[str] = None,
    ) -> None:
        details: MutableMapping[str, Any] = {}
        _add_if(details, "path", config_path)
        _add_if(details, "option", option)

        super().__init__(message, details)

        self.config_path = config_path
        self.option = option


class OptionConflictError(DepbumpError):
    """Raised when mutually exclusive output options are combined.

    The message is shown verbatim, so it carries no ``details``.
    """


class NetworkError(DepbumpError):
    """Raised when HTTP or network operations fail.

    Args:
        message: Error description.
        url: URL being accessed.
        status_code: HTTP status code, if available.
        response_body: Raw response body, truncated for safety.
    """

    __slots__ = ("url", "status_code", "response_body")

    def __init__(
        self,
        message: str,
        *,
        url: Optional[str] = None,
        status_code: Optional[int] = None,
        response_body: Optional[str] = None,
    ) -> None:
        details: MutableMapping[str, Any] = {}
        _add_if(details, "url", url)
        _add_if(details, "status_code", status_code)

        if response_body is not None:
            details["response"] = _truncate(response_body)

        super().__init__(message, details)

        self.url = url
        self.status_code = status_code
        self.response_body = response_body


class RegistryError(DepbumpError):
    """Base class for failures reported by a registry backend.

    Args:
        message: Error description.
        package_name: Name of the package involved.
        backend: Backend identifier (``npm``, ``yarn``).
    """

    __slots__ = ("package_name", "backend")

    def __init__(
        self,
        message: str,
        *,
        package_name: Optional[str] = None,
        backend: Optional[str] = None,
    ) -> None:
        details: MutableMapping[str, Any] = {}
        _add_if(details, "package", package_name)
        _add_if(details, "backend", backend)

        super().__init__(message, details)

        self.package_name = package_name
        self.backend = backend


class PackageNotFoundError(RegistryError):
    """Raised when a package does not exist in the registry."""


class BackendUnavailableError(RegistryError):
    """Raised on transient network or process failures, including timeouts."""


class BackendPreconditionError(RegistryError):
    """Raised when the backend environment is not ready (e.g. no lockfile).

    The message is surfaced verbatim, so ``__str__`` omits ``details``.
    """

    def __str__(self) -> str:
        return self.message


class InvalidSpecifierError(DepbumpError):
    """Raised when a version specifier cannot be parsed.

    Args:
        message: Error description.
        specifier: The offending specifier text.
        package_name: Package that declared it, if known.
    """

    __slots__ = ("specifier", "package_name")

    def __init__(
        self,
        message: str,
        *,
        specifier: Optional[str] = None,
        package_name: Optional[str] = None,
    ) -> None:
        details: MutableMapping[str, Any] = {}
        _add_if(details, "package", package_name)
        _add_if(details, "specifier", specifier)

        super().__init__(message, details)

        self.specifier = specifier
        self.package_name = package_name


class ResolutionError(DepbumpError):
    """Base class for run-level peer resolution failures."""


class PeerConflictError(ResolutionError):
    """Raised when no version satisfies every peer constraint on a package.

    Args:
        package_name: Package whose candidate could not be chosen.
        conflicts: The peer constraints that could not be satisfied together.
    """

    __slots__ = ("package_name", "conflicts")

    def __init__(self, package_name: str, conflicts: Sequence[Any]) -> None:
        ranges = ", ".join(
            f"{c.source}@{c.source_version} requires {c.required_range}"
            for c in conflicts
        )
        message = (
            f"No version of {package_name} satisfies all peer dependencies: "
            f"{ranges}. Relax the peer ranges or run with --allow-partial."
        )
        super().__init__(message)

        self.package_name = package_name
        self.conflicts: List[Any] = list(conflicts)


class PeerCycleError(ResolutionError):
    """Raised when peer resolution does not converge within its budget.

    Args:
        packages: Names of the packages still changing in the last iteration.
        iterations: Number of iterations performed.
    """

    __slots__ = ("packages", "iterations")

    def __init__(self, packages: Iterable[str], iterations: int) -> None:
        names = sorted(packages)
        message = (
            f"Peer dependency resolution did not converge after {iterations} "
            f"iterations; unstable packages: {', '.join(names)}. "
            "Check for cyclic peer dependencies or raise max_peer_iterations."
        )
        super().__init__(message)

        self.packages = names
        self.iterations = iterations


class FileOperationError(DepbumpError):
    """Raised when file system operations fail.

    Args:
        message: Error description.
        file_path: Path to the file involved.
        operation: Operation being performed (read/write/backup).
        original_error: Original exception that triggered this error.
    """

    __slots__ = ("file_path", "operation", "original_error")

    def __init__(
        self,
        message: str,
        *,
        file_path: Optional[str] = None,
        operation: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ) -> None:
        details: MutableMapping[str, Any] = {}
        _add_if(details, "path", file_path)
        _add_if(details, "operation", operation)
        _add_if(
            details,
            "original_error",
            str(original_error) if original_error else None,
        )

        super().__init__(message, details)

        self.file_path = file_path
        self.operation = operation
        self.original_error = original_error
