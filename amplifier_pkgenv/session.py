"""SessionContext — binds one caller to one active environment.

A session moves through three states:

    unbound --create/switch--> bound(env) --switch--> bound(other) --close--> closed

The binding (environment name + its manager) is a single immutable object
that is swapped in one assignment, so a session never observes a
half-switched state. Package operations require a bound session.
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
import uuid
from typing import Any

from .errors import SessionClosedError, SessionUnboundError
from .locks import KeyedLocks
from .manager import PackageManager
from .models import Package
from .registry import EnvironmentRegistry

logger = logging.getLogger(__name__)

DEFAULT_ENVIRONMENT = "default"


@dataclasses.dataclass(frozen=True)
class _Binding:
    environment: str
    manager: PackageManager


class SessionContext:
    """One caller's view of the system: its current environment and manager."""

    def __init__(self, registry: EnvironmentRegistry, session_id: str | None = None) -> None:
        self._registry = registry
        self.session_id = session_id or uuid.uuid4().hex
        self._binding: _Binding | None = None
        self._closed = False
        self._switch_lock = asyncio.Lock()

    @classmethod
    async def create(
        cls,
        registry: EnvironmentRegistry,
        default_environment: str = DEFAULT_ENVIRONMENT,
        session_id: str | None = None,
    ) -> SessionContext:
        """Create a session already bound to the default environment."""
        session = cls(registry, session_id=session_id)
        await session.switch_environment(default_environment)
        return session

    @property
    def state(self) -> str:
        if self._closed:
            return "closed"
        return "bound" if self._binding is not None else "unbound"

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def current_environment(self) -> str:
        return self._bound().environment

    def package_manager(self) -> PackageManager:
        """The manager for the environment of the last completed switch."""
        return self._bound().manager

    async def switch_environment(self, name: str) -> PackageManager:
        """Rebind this session to name, creating the environment if needed.

        Other sessions are unaffected. If anything fails the previous binding
        stays in place.
        """
        self._check_open()
        async with self._switch_lock:
            self._check_open()
            self._registry.ensure(name)
            manager = await self._registry.acquire(name)
            if self._closed:
                self._registry.release(name)
                raise SessionClosedError(f"Session '{self.session_id}' was closed")
            previous = self._binding
            self._binding = _Binding(environment=name, manager=manager)
            if previous is not None:
                self._registry.release(previous.environment)
        logger.info(
            "session [%s]: switched to environment '%s'%s",
            self.session_id,
            name,
            f" (from '{previous.environment}')" if previous is not None else "",
        )
        return manager

    def list_packages(self) -> list[Package]:
        return self.package_manager().list_packages()

    async def install(
        self, name: str, version: str | None = None, timeout: float | None = None
    ) -> Package:
        return await self.package_manager().install(name, version, timeout=timeout)

    async def remove(self, name: str) -> None:
        await self.package_manager().remove(name)

    async def close(self) -> None:
        """End the session and release its environment binding."""
        if self._closed:
            return
        self._closed = True
        binding, self._binding = self._binding, None
        if binding is not None:
            self._registry.release(binding.environment)
        logger.info("session [%s]: closed", self.session_id)

    def info(self) -> dict[str, Any]:
        binding = self._binding
        return {
            "session_id": self.session_id,
            "state": self.state,
            "environment": binding.environment if binding is not None else None,
        }

    def _check_open(self) -> None:
        if self._closed:
            raise SessionClosedError(f"Session '{self.session_id}' is closed")

    def _bound(self) -> _Binding:
        self._check_open()
        binding = self._binding
        if binding is None:
            raise SessionUnboundError(
                f"Session '{self.session_id}' is not bound to an environment"
            )
        return binding


class SessionPool:
    """Sessions keyed by caller id: created on first contact, closed on disconnect."""

    def __init__(
        self,
        registry: EnvironmentRegistry,
        default_environment: str = DEFAULT_ENVIRONMENT,
    ) -> None:
        self._registry = registry
        self._default_environment = default_environment
        self._sessions: dict[str, SessionContext] = {}
        self._locks = KeyedLocks()

    @property
    def registry(self) -> EnvironmentRegistry:
        return self._registry

    def get(self, session_id: str) -> SessionContext | None:
        return self._sessions.get(session_id)

    async def get_or_create(self, session_id: str) -> SessionContext:
        session = self._sessions.get(session_id)
        if session is not None:
            return session
        async with self._locks.hold(session_id):
            session = self._sessions.get(session_id)
            if session is None:
                session = await SessionContext.create(
                    self._registry,
                    default_environment=self._default_environment,
                    session_id=session_id,
                )
                self._sessions[session_id] = session
            return session

    async def close(self, session_id: str) -> bool:
        """Close and forget a session. Returns False if it was unknown.

        Waits for a first contact still creating the same session, so a
        disconnect that races it closes the session it created.
        """
        async with self._locks.hold(session_id):
            session = self._sessions.pop(session_id, None)
            if session is None:
                return False
            await session.close()
        return True

    async def close_all(self) -> None:
        for session_id in list(self._sessions):
            await self.close(session_id)

    def list_sessions(self) -> list[dict[str, Any]]:
        return [session.info() for session in self._sessions.values()]

    def __len__(self) -> int:
        return len(self._sessions)
