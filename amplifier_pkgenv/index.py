"""PackageIndex — the durable, per-environment record of installed packages.

On disk the index is one JSON document:

    {"packages": {"<name>": {"version", "kind", "source_ref", "installed_at"}}}

The whole document is replaced atomically on every commit, so a reader never
sees zero or two records for a name that was being replaced.
"""

from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path

from pydantic import ValidationError

from .errors import IndexCorruptError, StorageError
from .models import Package
from .storage import atomic_write_json

INDEX_FILE = "index.json"


class PackageIndex:
    """Reads and atomically rewrites one environment's index file."""

    def __init__(self, storage_root: Path, environment: str) -> None:
        self._path = Path(storage_root) / INDEX_FILE
        self._environment = environment

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> dict[str, Package]:
        """Parse the index. A missing or empty file means nothing installed."""
        try:
            raw = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except OSError as exc:
            raise StorageError(
                f"Cannot read package index {self._path}: {exc}",
                environment=self._environment,
            ) from exc

        if not raw.strip():
            return {}

        try:
            data = json.loads(raw)
            records = data["packages"]
            if not isinstance(records, dict):
                raise TypeError("'packages' must be an object")
            return {
                name: Package(
                    name=name,
                    version=record["version"],
                    kind=record["kind"],
                    environment=self._environment,
                    source_ref=record["source_ref"],
                    installed_at=datetime.fromisoformat(record["installed_at"]),
                )
                for name, record in records.items()
            }
        except (ValueError, KeyError, TypeError, ValidationError) as exc:
            raise IndexCorruptError(
                f"Package index {self._path} is corrupt: {exc}",
                environment=self._environment,
            ) from exc

    def save(self, packages: dict[str, Package]) -> None:
        """Atomically replace the index with the given set of records."""
        document = {
            "packages": {name: pkg.to_record() for name, pkg in packages.items()}
        }
        try:
            atomic_write_json(self._path, document)
        except OSError as exc:
            raise StorageError(
                f"Cannot write package index {self._path}: {exc}",
                environment=self._environment,
            ) from exc
