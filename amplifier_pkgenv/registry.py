"""EnvironmentRegistry — environments plus the table of live PackageManagers.

Supports ensure, list_environments, get_manager, delete and list_managers.
There is at most one PackageManager per environment name; construction is
single-flight and guarded by a lock scoped to that name, so loading one
environment's index never blocks work in another.

Sessions bind through acquire()/release(). The registry counts bindings so
that delete() can refuse to remove an environment somebody is using.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable

from .catalog import PackageCatalogClient
from .errors import EnvironmentInUseError
from .locks import KeyedLocks
from .manager import PackageManager
from .models import Environment
from .protocol import PackageInstaller
from .storage import EnvironmentStore, validate_environment_name

logger = logging.getLogger(__name__)

ManagerFactory = Callable[[Environment], PackageManager]


class EnvironmentRegistry:
    """Façade over EnvironmentStore and the per-environment managers."""

    def __init__(
        self,
        store: EnvironmentStore,
        catalog: PackageCatalogClient,
        installer: PackageInstaller,
        install_timeout: float | None = None,
        manager_factory: ManagerFactory | None = None,
    ) -> None:
        self._store = store
        self._catalog = catalog
        self._installer = installer
        self._install_timeout = install_timeout
        self._manager_factory = manager_factory or self._default_manager
        self._managers: dict[str, PackageManager] = {}
        self._bindings: dict[str, int] = {}
        self._locks = KeyedLocks()

    @property
    def store(self) -> EnvironmentStore:
        return self._store

    @property
    def catalog(self) -> PackageCatalogClient:
        return self._catalog

    def ensure(self, name: str) -> Environment:
        """Return the named environment, creating its storage if needed."""
        return self._store.ensure(name)

    def get_environment(self, name: str) -> Environment | None:
        return self._store.get(name)

    def list_environments(self) -> list[Environment]:
        """All known environments, read live from storage."""
        return self._store.list_environments()

    async def get_manager(self, name: str) -> PackageManager:
        """Return the live manager for name, constructing it at most once.

        Concurrent first callers coalesce: one loads the index, the others
        wait and receive the same instance.
        """
        validate_environment_name(name)
        manager = self._managers.get(name)
        if manager is not None:
            return manager
        async with self._locks.hold(name):
            return await self._load_manager(name)

    async def acquire(self, name: str) -> PackageManager:
        """Get the manager for name and record one more session bound to it."""
        validate_environment_name(name)
        async with self._locks.hold(name):
            manager = await self._load_manager(name)
            self._bindings[name] = self._bindings.get(name, 0) + 1
            return manager

    def release(self, name: str) -> None:
        """Drop one session binding recorded by acquire()."""
        count = self._bindings.get(name, 0)
        if count <= 1:
            self._bindings.pop(name, None)
        else:
            self._bindings[name] = count - 1

    def bound_sessions(self, name: str) -> int:
        return self._bindings.get(name, 0)

    async def delete(self, name: str) -> None:
        """Remove an environment's storage and cached manager. Irreversible.

        Raises EnvironmentInUseError while any session is bound to it or any
        install/remove is in flight on its manager. The manager is retired, so
        callers still holding it get EnvironmentDeletedError. The storage
        root is renamed away at once and deleted in a worker thread.
        """
        validate_environment_name(name)
        async with self._locks.hold(name):
            bound = self._bindings.get(name, 0)
            if bound:
                raise EnvironmentInUseError(
                    f"Environment '{name}' is in use by {bound} session(s)",
                    environment=name,
                )
            manager = self._managers.get(name)
            if manager is not None:
                if manager.busy:
                    raise EnvironmentInUseError(
                        f"Environment '{name}' has package operations in flight",
                        environment=name,
                    )
                del self._managers[name]
                manager.retire()
                await manager.flush()
            detached = self._store.detach(name)
        logger.info("registry: deleted environment '%s'", name)
        if detached is not None:
            await asyncio.to_thread(self._store.purge, detached)

    def list_managers(self) -> list[dict[str, Any]]:
        """Describe the live managers, ordered by environment name."""
        result = []
        for name in sorted(self._managers):
            entry: dict[str, Any] = {
                **self._managers[name].info(),
                "bound_sessions": self._bindings.get(name, 0),
            }
            result.append(entry)
        return result

    async def _load_manager(self, name: str) -> PackageManager:
        # Caller holds the lock for name.
        manager = self._managers.get(name)
        if manager is not None:
            return manager
        environment = self._store.ensure(name)
        manager = self._manager_factory(environment)
        # A corrupt index raises here and nothing is cached, so a later call
        # retries the load once the index has been repaired.
        await asyncio.to_thread(manager.load)
        self._managers[name] = manager
        logger.info("registry: manager ready for environment '%s'", name)
        return manager

    def _default_manager(self, environment: Environment) -> PackageManager:
        return PackageManager(
            environment,
            catalog=self._catalog,
            installer=self._installer,
            install_timeout=self._install_timeout,
        )
