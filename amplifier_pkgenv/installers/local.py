"""LocalInstaller — installs a package by copying a local directory."""

from __future__ import annotations

import asyncio
import shutil
from pathlib import Path
from typing import Any
from urllib.parse import unquote, urlparse

from ..errors import InstallError
from ..models import CatalogEntry

IGNORED = shutil.ignore_patterns(".git", "__pycache__", "*.pyc")


def source_path(source_ref: str) -> Path:
    """Local path named by a sourceRef (plain path or file:// URL)."""
    if source_ref.startswith("file://"):
        return Path(unquote(urlparse(source_ref).path))
    return Path(source_ref).expanduser()


class LocalInstaller:
    """Copies the directory named by the entry's sourceRef into the target."""

    async def install(self, entry: CatalogEntry, target_dir: Path) -> None:
        source = source_path(entry.source_ref)
        if not source.is_dir():
            raise InstallError(
                f"Source for '{entry.name}' {entry.version} not found: {source}"
            )
        try:
            await asyncio.to_thread(
                shutil.copytree, source, target_dir, ignore=IGNORED, symlinks=True
            )
        except (OSError, shutil.Error) as exc:
            raise InstallError(
                f"Copying '{entry.name}' from {source} failed: {exc}"
            ) from exc

    def info(self) -> dict[str, Any]:
        return {"type": "local"}
