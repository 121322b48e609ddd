"""Collaborator protocols — the seams the core talks through.

CatalogSource lists raw catalog entries (HTTP API, local directory, ...).
PackageInstaller turns a resolved CatalogEntry into artifacts on disk.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from .models import CatalogEntry


@runtime_checkable
class CatalogSource(Protocol):
    """Backing store for the package catalog."""

    async def fetch_entries(self) -> list[dict[str, Any]]:
        """Return the raw catalog as a list of JSON-like objects.

        Raises CatalogUnavailableError on transport failure or a bad shape.
        """
        ...

    def info(self) -> dict[str, Any]:
        """Return metadata about this source for display."""
        ...


@runtime_checkable
class PackageInstaller(Protocol):
    """Produces installed artifacts for one catalog entry."""

    async def install(self, entry: CatalogEntry, target_dir: Path) -> None:
        """Populate target_dir (which does not exist yet) or raise InstallError."""
        ...

    def info(self) -> dict[str, Any]:
        """Return metadata about this installer for display."""
        ...
