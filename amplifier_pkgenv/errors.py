"""Typed failures for package environments.

Every error carries a machine-readable code and a category:
- transport: the catalog (or its network) is broken, retrying may help
- operation: the request itself failed against a working system
"""

from __future__ import annotations

from typing import Literal

from .models import ErrorInfo


class PkgEnvError(Exception):
    """Base class for all package environment failures."""

    error_code: str = "pkgenv_error"
    error_type: Literal["transport", "operation"] = "operation"
    retriable: bool = False

    def __init__(self, message: str, *, environment: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.environment = environment

    def to_error_info(self) -> ErrorInfo:
        return ErrorInfo(
            error_type=self.error_type,
            error_code=self.error_code,
            message=self.message,
            retriable=self.retriable,
            environment=self.environment,
        )


class InvalidNameError(PkgEnvError, ValueError):
    error_code = "invalid_name"


class StorageError(PkgEnvError):
    """Filesystem failure (permissions, disk full, missing root)."""

    error_code = "storage_error"


class EnvironmentInUseError(PkgEnvError):
    error_code = "environment_in_use"


class EnvironmentDeletedError(PkgEnvError):
    """The manager belongs to an environment that has since been deleted."""

    error_code = "environment_deleted"


class IndexCorruptError(PkgEnvError):
    """The durable package index could not be parsed.

    The owning manager stays unusable until the index is repaired externally.
    """

    error_code = "index_corrupt"


class PackageNotFoundError(PkgEnvError, LookupError):
    error_code = "package_not_found"


class VersionNotFoundError(PkgEnvError, LookupError):
    error_code = "version_not_found"


class PackageNotInstalledError(PkgEnvError, LookupError):
    error_code = "package_not_installed"


class CatalogUnavailableError(PkgEnvError):
    error_code = "catalog_unavailable"
    error_type = "transport"
    retriable = True


class InstallError(PkgEnvError):
    """The installer collaborator failed to produce artifacts."""

    error_code = "install_failed"


class InstallTimeoutError(InstallError):
    error_code = "install_timeout"
    retriable = True


class SessionClosedError(PkgEnvError):
    error_code = "session_closed"


class SessionUnboundError(PkgEnvError):
    error_code = "session_unbound"
