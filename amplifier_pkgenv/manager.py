"""PackageManager — the authoritative package view for one environment.

Only the manager mutates its environment's package storage. Mutations follow
one discipline:

1. take the per-name lock (install/remove of the same name are serialized,
   different names proceed concurrently)
2. resolve against the catalog and let the installer build artifacts in a
   private staging directory
3. commit: swap the artifacts into place and atomically rewrite the index

Step 3 contains no ``await``, so it cannot be interleaved with another commit
or torn by cancellation. Anything that fails before it leaves the index
exactly as it was. Replaced artifacts are deleted afterwards in a worker
thread.

Once its environment is deleted the manager is retired and refuses any
further mutation, so nothing can write into a removed storage root.
"""

from __future__ import annotations

import asyncio
import logging
import os
import shutil
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from .catalog import PackageCatalogClient
from .errors import (
    EnvironmentDeletedError,
    IndexCorruptError,
    InstallTimeoutError,
    PackageNotInstalledError,
    StorageError,
)
from .index import PackageIndex
from .locks import KeyedLocks
from .models import CatalogEntry, Environment, Package
from .protocol import PackageInstaller
from .storage import PACKAGES_DIR, validate_package_name

logger = logging.getLogger(__name__)

STAGING_PREFIX = ".staging-"
TRASH_PREFIX = ".trash-"


class PackageManager:
    """Tracks and mutates the installed packages of exactly one environment."""

    def __init__(
        self,
        environment: Environment,
        catalog: PackageCatalogClient,
        installer: PackageInstaller,
        install_timeout: float | None = None,
    ) -> None:
        self._environment = environment
        self._catalog = catalog
        self._installer = installer
        self._install_timeout = install_timeout
        self._index = PackageIndex(environment.storage_root, environment.name)
        self._packages: dict[str, Package] | None = None
        self._corrupt: IndexCorruptError | None = None
        self._retired = False
        self._locks = KeyedLocks()
        self._cleanups: set[asyncio.Task[None]] = set()

    @property
    def name(self) -> str:
        return self._environment.name

    @property
    def environment(self) -> Environment:
        return self._environment

    @property
    def packages_dir(self) -> Path:
        return self._environment.storage_root / PACKAGES_DIR

    @property
    def loaded(self) -> bool:
        return self._packages is not None

    @property
    def broken(self) -> bool:
        return self._corrupt is not None

    @property
    def retired(self) -> bool:
        return self._retired

    @property
    def busy(self) -> bool:
        """True while any install or remove is running or waiting."""
        return len(self._locks) > 0

    def retire(self) -> None:
        """Refuse all further mutations. Called when the environment is deleted."""
        self._retired = True
        logger.info("manager [%s]: retired", self.name)

    async def flush(self) -> None:
        """Wait until replaced artifacts from earlier commits are deleted."""
        while self._cleanups:
            await asyncio.gather(*self._cleanups)

    def load(self) -> None:
        """Read the durable index. Idempotent once it has succeeded.

        A corrupt index raises IndexCorruptError and the manager refuses all
        further work; data is never dropped to make it usable again.
        """
        if self._packages is not None:
            return
        if self._corrupt is not None:
            raise self._corrupt
        try:
            packages = self._index.load()
        except IndexCorruptError as exc:
            self._corrupt = exc
            logger.error("manager [%s]: %s", self.name, exc.message)
            raise
        self._packages = packages
        self._sweep_leftovers()
        logger.info(
            "manager [%s]: loaded %d installed packages", self.name, len(packages)
        )

    def list_packages(self) -> list[Package]:
        """Committed packages, ordered by name. In-flight installs never show."""
        return sorted(self._installed().values(), key=lambda pkg: pkg.name)

    def get(self, name: str) -> Package | None:
        return self._installed().get(name)

    def is_installed(self, name: str) -> bool:
        return name in self._installed()

    async def install(
        self, name: str, version: str | None = None, timeout: float | None = None
    ) -> Package:
        """Install name (highest catalog version unless one is requested).

        Replaces any installed version of the same name. On any failure,
        cancellation or deadline the index is left unchanged.
        """
        validate_package_name(name)
        self._check_active()
        self._installed()
        deadline = self._install_timeout if timeout is None else timeout
        try:
            return await asyncio.wait_for(
                self._install_locked(name, version), timeout=deadline
            )
        except asyncio.TimeoutError as exc:
            raise InstallTimeoutError(
                f"Install of '{name}' timed out after {deadline}s",
                environment=self.name,
            ) from exc

    async def remove(self, name: str) -> None:
        """Remove an installed package's record and artifacts."""
        validate_package_name(name)
        async with self._locks.hold(name):
            self._check_active()
            if name not in self._installed():
                raise PackageNotInstalledError(
                    f"Package '{name}' is not installed in '{self.name}'",
                    environment=self.name,
                )
            self._discard_later(self._commit_remove(name))
        logger.info("manager [%s]: removed '%s'", self.name, name)

    def info(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "storage_root": str(self._environment.storage_root),
            "packages": len(self._packages) if self._packages is not None else None,
            "broken": self.broken,
            "retired": self._retired,
        }

    # -- Internals -----------------------------------------------------------

    def _check_active(self) -> None:
        if self._retired:
            raise EnvironmentDeletedError(
                f"Environment '{self.name}' has been deleted", environment=self.name
            )

    def _installed(self) -> dict[str, Package]:
        if self._packages is None:
            self.load()
        assert self._packages is not None
        return self._packages

    async def _install_locked(self, name: str, version: str | None) -> Package:
        async with self._locks.hold(name):
            self._check_active()
            entry = await self._catalog.resolve(name, version)
            staging = self._scratch_path(STAGING_PREFIX, name)
            try:
                self._ensure_packages_dir()
                await self._installer.install(entry, staging)
                if not staging.exists():
                    staging.mkdir()
                package, trash = self._commit_install(entry, staging)
            except BaseException:
                await self._discard(staging)
                raise
            self._discard_later(trash)
        logger.info(
            "manager [%s]: installed '%s' %s", self.name, package.name, package.version
        )
        return package

    def _ensure_packages_dir(self) -> None:
        # No parents=True: a missing storage root is never recreated here.
        try:
            self.packages_dir.mkdir(exist_ok=True)
        except OSError as exc:
            raise StorageError(
                f"Cannot prepare package storage: {exc}", environment=self.name
            ) from exc

    def _commit_install(
        self, entry: CatalogEntry, staging: Path
    ) -> tuple[Package, Path | None]:
        self._check_active()
        target = self.packages_dir / entry.name
        trash = self._move_aside(target, entry.name)
        try:
            os.replace(staging, target)
        except OSError as exc:
            self._restore(trash, target)
            raise StorageError(
                f"Cannot move '{entry.name}' artifacts into place: {exc}",
                environment=self.name,
            ) from exc

        package = Package.from_entry(entry, self.name, datetime.now(timezone.utc))
        updated = dict(self._installed())
        updated[entry.name] = package
        try:
            self._index.save(updated)
        except StorageError:
            # Put the previous artifacts back; the new ones return to staging.
            try:
                os.replace(target, staging)
            except OSError:
                logger.warning(
                    "manager [%s]: could not roll back artifacts of '%s'",
                    self.name,
                    entry.name,
                )
            else:
                self._restore(trash, target)
            raise
        self._packages = updated
        return package, trash

    def _commit_remove(self, name: str) -> Path | None:
        target = self.packages_dir / name
        trash = self._move_aside(target, name)
        updated = dict(self._installed())
        del updated[name]
        try:
            self._index.save(updated)
        except StorageError:
            self._restore(trash, target)
            raise
        self._packages = updated
        return trash

    def _scratch_path(self, prefix: str, name: str) -> Path:
        return self.packages_dir / f"{prefix}{name}-{uuid.uuid4().hex[:12]}"

    def _move_aside(self, target: Path, name: str) -> Path | None:
        if not target.exists():
            return None
        trash = self._scratch_path(TRASH_PREFIX, name)
        try:
            os.replace(target, trash)
        except OSError as exc:
            raise StorageError(
                f"Cannot move existing artifacts of '{name}' aside: {exc}",
                environment=self.name,
            ) from exc
        return trash

    def _restore(self, trash: Path | None, target: Path) -> None:
        if trash is None:
            return
        try:
            os.replace(trash, target)
        except OSError:
            logger.warning(
                "manager [%s]: could not restore %s to %s", self.name, trash, target
            )

    async def _discard(self, path: Path | None) -> None:
        """Remove scratch artifacts off the event loop."""
        if path is not None:
            await asyncio.to_thread(self._discard_now, path)

    def _discard_later(self, path: Path | None) -> None:
        # Post-commit cleanup, detached from the caller's cancellation and deadline.
        if path is None:
            return
        task = asyncio.create_task(self._discard(path))
        self._cleanups.add(task)
        task.add_done_callback(self._cleanups.discard)

    def _discard_now(self, path: Path) -> None:
        if not path.exists():
            return
        try:
            shutil.rmtree(path)
        except OSError as exc:
            logger.warning("manager [%s]: could not remove %s: %s", self.name, path, exc)

    def _sweep_leftovers(self) -> None:
        """Remove staging/trash directories orphaned by an earlier crash."""
        if not self.packages_dir.is_dir():
            return
        for child in self.packages_dir.iterdir():
            if child.name.startswith((STAGING_PREFIX, TRASH_PREFIX)):
                self._discard_now(child)
