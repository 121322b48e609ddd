"""LoggingInstaller — composable logging for installer collaborators.

Wraps any PackageInstaller and delegates to it, logging each install with its
outcome and duration.
"""

from __future__ import annotations

import asyncio
import logging
import time
from pathlib import Path
from typing import Any

from ..models import CatalogEntry
from ..protocol import PackageInstaller


class LoggingInstaller:
    """Logs installs passing through an installer."""

    def __init__(
        self, inner: PackageInstaller, logger_name: str = "amplifier_pkgenv.install"
    ) -> None:
        self._inner = inner
        self._logger = logging.getLogger(logger_name)

    @property
    def inner(self) -> PackageInstaller:
        return self._inner

    def info(self) -> dict[str, Any]:
        return self._inner.info()

    async def install(self, entry: CatalogEntry, target_dir: Path) -> None:
        label = f"{entry.name} {entry.version}"
        self._logger.info("install [%s]: start from %s", label, entry.source_ref)
        t0 = time.monotonic()
        try:
            await self._inner.install(entry, target_dir)
        except asyncio.CancelledError:
            self._logger.info(
                "install [%s]: cancelled after %dms",
                label,
                int((time.monotonic() - t0) * 1000),
            )
            raise
        except Exception as exc:
            self._logger.warning(
                "install [%s]: failed after %dms: %s",
                label,
                int((time.monotonic() - t0) * 1000),
                exc,
            )
            raise
        self._logger.info(
            "install [%s]: done in %dms", label, int((time.monotonic() - t0) * 1000)
        )
