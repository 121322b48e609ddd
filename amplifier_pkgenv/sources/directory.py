"""DirectoryCatalogSource — a catalog backed by a local directory of packages.

Each immediate subdirectory holding a ``package.yaml`` manifest is one entry:

    name: french-skill
    version: 1.2.0
    kind: ability

The entry's sourceRef is the package directory itself, which LocalInstaller
knows how to copy.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any

import yaml

from ..errors import CatalogUnavailableError

MANIFEST_FILE = "package.yaml"


class DirectoryCatalogSource:
    """Lists packages found under a local directory."""

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path).expanduser().resolve()

    async def fetch_entries(self) -> list[dict[str, Any]]:
        return await asyncio.to_thread(self._scan)

    def info(self) -> dict[str, Any]:
        return {"type": "directory", "path": str(self._path)}

    def _scan(self) -> list[dict[str, Any]]:
        if not self._path.is_dir():
            raise CatalogUnavailableError(f"Catalog directory not found: {self._path}")

        entries: list[dict[str, Any]] = []
        for pkg_dir in sorted(self._path.iterdir(), key=lambda p: p.name):
            manifest = pkg_dir / MANIFEST_FILE
            if not manifest.is_file():
                continue
            try:
                with manifest.open(encoding="utf-8") as fh:
                    content = yaml.safe_load(fh) or {}
            except (OSError, yaml.YAMLError) as exc:
                raise CatalogUnavailableError(
                    f"Cannot read manifest {manifest}: {exc}"
                ) from exc
            if not isinstance(content, dict):
                raise CatalogUnavailableError(f"Manifest {manifest} is not a mapping")
            entries.append(
                {
                    "name": content.get("name", pkg_dir.name),
                    "version": str(content.get("version", "")),
                    "kind": content.get("kind", "ability"),
                    "sourceRef": str(pkg_dir),
                }
            )
        return entries
