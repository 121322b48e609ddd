"""PackageCatalogClient — cached view of the remote package catalog.

The client adds three things on top of a CatalogSource:
- a freshness window: a cache hit returns the prior listing without I/O
- coalescing: concurrent refreshes share a single round-trip
- resolution: name (+ optional version) to one CatalogEntry

A failed refresh is never silently papered over with the stale listing; the
caller must opt into that with allow_stale.
"""

from __future__ import annotations

import asyncio
import enum
import logging
import re
import time
from typing import Any, Callable, Union

from packaging.version import InvalidVersion, Version
from pydantic import ValidationError

from .errors import CatalogUnavailableError, PackageNotFoundError, VersionNotFoundError
from .models import CatalogEntry
from .protocol import CatalogSource

logger = logging.getLogger(__name__)

DEFAULT_TTL = 30.0
DEFAULT_TIMEOUT = 10.0

_VERSION_SPLIT_RE = re.compile(r"[.\-_]")
_RELEASE_RE = re.compile(r"^[vV]?(\d+(?:\.\d+)*)[.\-_]?(.*)$")


class _Default(enum.Enum):
    TOKEN = "default"


# Per-call timeout argument meaning "use the client's configured deadline".
# None means no deadline at all.
USE_DEFAULT = _Default.TOKEN
Timeout = Union[float, None, _Default]


def _trim_zeros(release: tuple[int, ...]) -> tuple[int, ...]:
    end = len(release)
    while end and release[end - 1] == 0:
        end -= 1
    return release[:end]


def version_key(version: str) -> tuple:
    """Sort key for catalog versions.

    Versions order by their numeric release first (1.0 == 1.0.0), with
    pre-releases below the release they precede. PEP 440 strings are compared
    by packaging within that. Anything else follows semver precedence: the
    tail after the release is split into identifiers, numeric identifiers
    compare numerically and below alphanumeric ones, and build metadata
    after ``+`` is ignored.
    """
    try:
        parsed = Version(version)
    except InvalidVersion:
        core = version.split("+", 1)[0]
        match = _RELEASE_RE.match(core)
        if match:
            release = tuple(int(part) for part in match.group(1).split("."))
            tail = match.group(2)
        else:
            release, tail = (), core
        identifiers = tuple(
            (0, int(part)) if part.isdecimal() else (1, part)
            for part in _VERSION_SPLIT_RE.split(tail)
            if part
        )
        return (0, _trim_zeros(release), 0 if identifiers else 1, (0, identifiers))

    prerelease = parsed.pre is not None or (
        parsed.dev is not None and parsed.post is None
    )
    return (parsed.epoch, _trim_zeros(parsed.release), 0 if prerelease else 1, (1, parsed))


def parse_catalog(raw: Any) -> list[CatalogEntry]:
    """Validate a raw catalog payload. Any bad shape fails the whole payload."""
    if not isinstance(raw, list):
        raise CatalogUnavailableError(
            f"Catalog response must be a JSON array, got {type(raw).__name__}"
        )
    entries: list[CatalogEntry] = []
    for position, item in enumerate(raw):
        if not isinstance(item, dict):
            raise CatalogUnavailableError(
                f"Catalog entry #{position} is not an object: {item!r}"
            )
        try:
            entries.append(CatalogEntry.model_validate(item))
        except ValidationError as exc:
            raise CatalogUnavailableError(
                f"Catalog entry #{position} is malformed: {exc}"
            ) from exc
    return entries


class PackageCatalogClient:
    """Fetches, caches and resolves catalog entries."""

    def __init__(
        self,
        source: CatalogSource,
        ttl: float = DEFAULT_TTL,
        timeout: float | None = DEFAULT_TIMEOUT,
        allow_stale: bool = False,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._source = source
        self._ttl = ttl
        self._timeout = timeout
        self._allow_stale = allow_stale
        self._clock = clock
        self._entries: list[CatalogEntry] | None = None
        self._fetched_at: float | None = None
        self._refresh_lock = asyncio.Lock()

    @property
    def source(self) -> CatalogSource:
        return self._source

    @property
    def ttl(self) -> float:
        return self._ttl

    def invalidate(self) -> None:
        """Drop the cached listing so the next fetch goes to the source."""
        self._entries = None
        self._fetched_at = None

    async def fetch(
        self, timeout: Timeout = USE_DEFAULT, allow_stale: bool | None = None
    ) -> list[CatalogEntry]:
        """Return the catalog, from cache while it is fresh.

        timeout overrides the client's deadline for this call; None waits
        without a deadline. Raises CatalogUnavailableError when the source
        fails or the deadline passes, unless allow_stale is set and an older
        listing exists.
        """
        cached = self._fresh_entries()
        if cached is not None:
            logger.debug("catalog: cache hit (%d entries)", len(cached))
            return cached

        deadline = self._timeout if timeout is USE_DEFAULT else timeout
        try:
            return await asyncio.wait_for(self._refresh(), timeout=deadline)
        except asyncio.TimeoutError:
            error = CatalogUnavailableError(
                f"Catalog fetch timed out after {deadline}s"
            )
        except CatalogUnavailableError as exc:
            error = exc

        use_stale = self._allow_stale if allow_stale is None else allow_stale
        if use_stale and self._entries is not None:
            logger.warning(
                "catalog: refresh failed, serving stale listing: %s", error.message
            )
            return list(self._entries)
        raise error

    async def resolve(
        self,
        name: str,
        version: str | None = None,
        timeout: Timeout = USE_DEFAULT,
        allow_stale: bool | None = None,
    ) -> CatalogEntry:
        """Pick the entry for name: the requested version, else the highest."""
        entries = await self.fetch(timeout=timeout, allow_stale=allow_stale)
        candidates = [entry for entry in entries if entry.name == name]
        if not candidates:
            raise PackageNotFoundError(f"Package '{name}' is not in the catalog")

        if version is None:
            return max(candidates, key=lambda entry: version_key(entry.version))

        for entry in candidates:
            if entry.version == version:
                return entry
        available = sorted((e.version for e in candidates), key=version_key)
        raise VersionNotFoundError(
            f"Package '{name}' has no version '{version}'. Available: {available}"
        )

    def info(self) -> dict[str, Any]:
        return {
            "source": self._source.info(),
            "ttl": self._ttl,
            "cached_entries": len(self._entries) if self._entries is not None else None,
        }

    def _fresh_entries(self) -> list[CatalogEntry] | None:
        if self._entries is None or self._fetched_at is None:
            return None
        if self._clock() - self._fetched_at >= self._ttl:
            return None
        return list(self._entries)

    async def _refresh(self) -> list[CatalogEntry]:
        async with self._refresh_lock:
            # Another caller may have refreshed while we waited for the lock.
            cached = self._fresh_entries()
            if cached is not None:
                return cached
            raw = await self._source.fetch_entries()
            entries = parse_catalog(raw)
            self._entries = entries
            self._fetched_at = self._clock()
            logger.info("catalog: fetched %d entries", len(entries))
            return list(entries)
