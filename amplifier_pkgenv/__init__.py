"""Isolated package environments for the Amplifier host platform.

This package lets a host run several independent sets of extensions side by
side:
- storage: EnvironmentStore — durable environments and their storage roots
- catalog: PackageCatalogClient — cached remote catalog with version resolution
- manager: PackageManager — per-environment installed-package state
- registry: EnvironmentRegistry — live managers keyed by environment name
- session: SessionContext / SessionPool — per-caller environment binding
"""

from .catalog import PackageCatalogClient, version_key
from .config import PkgEnvConfig, build_registry, build_session_pool, load_config
from .errors import (
    CatalogUnavailableError,
    EnvironmentDeletedError,
    EnvironmentInUseError,
    IndexCorruptError,
    InstallError,
    InstallTimeoutError,
    InvalidNameError,
    PackageNotFoundError,
    PackageNotInstalledError,
    PkgEnvError,
    SessionClosedError,
    SessionUnboundError,
    StorageError,
    VersionNotFoundError,
)
from .hooks import SessionCleanupHandler
from .manager import PackageManager
from .models import CatalogEntry, Environment, ErrorInfo, Package, PackageKind
from .protocol import CatalogSource, PackageInstaller
from .registry import EnvironmentRegistry
from .session import SessionContext, SessionPool
from .storage import EnvironmentStore

__all__ = [
    "PackageCatalogClient",
    "version_key",
    "PkgEnvConfig",
    "build_registry",
    "build_session_pool",
    "load_config",
    "CatalogUnavailableError",
    "EnvironmentDeletedError",
    "EnvironmentInUseError",
    "IndexCorruptError",
    "InstallError",
    "InstallTimeoutError",
    "InvalidNameError",
    "PackageNotFoundError",
    "PackageNotInstalledError",
    "PkgEnvError",
    "SessionClosedError",
    "SessionUnboundError",
    "StorageError",
    "VersionNotFoundError",
    "SessionCleanupHandler",
    "PackageManager",
    "CatalogEntry",
    "Environment",
    "ErrorInfo",
    "Package",
    "PackageKind",
    "CatalogSource",
    "PackageInstaller",
    "EnvironmentRegistry",
    "SessionContext",
    "SessionPool",
    "EnvironmentStore",
]
