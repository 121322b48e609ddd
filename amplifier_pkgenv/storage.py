"""EnvironmentStore — durable record of environments and their storage roots.

Layout under the configured root directory:

    environments/<name>/environment.json   environment record
    environments/<name>/index.json         package index (see index.py)
    environments/<name>/packages/          installed artifacts

The environment name is the only key needed to locate its root, and names are
restricted to [a-zA-Z0-9_-]+ so roots are always sibling directories.
"""

from __future__ import annotations

import json
import logging
import os
import re
import shutil
import tempfile
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from .errors import InvalidNameError, StorageError
from .models import Environment

logger = logging.getLogger(__name__)

ENVIRONMENT_NAME_RE = re.compile(r"^[a-zA-Z0-9_-]+$")
PACKAGE_NAME_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")

ENVIRONMENTS_DIR = "environments"
ENVIRONMENT_FILE = "environment.json"
PACKAGES_DIR = "packages"
DETACHED_PREFIX = ".deleted-"


def validate_environment_name(name: str) -> str:
    if not isinstance(name, str) or not ENVIRONMENT_NAME_RE.match(name):
        raise InvalidNameError(f"Invalid environment name: {name!r}")
    return name


def validate_package_name(name: str) -> str:
    if not isinstance(name, str) or not PACKAGE_NAME_RE.match(name):
        raise InvalidNameError(f"Invalid package name: {name!r}")
    return name


def atomic_write_json(path: Path, data: Any) -> None:
    """Write JSON via temp file + fsync + os.replace.

    Readers see either the previous file or the new one, never a partial write.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(
        prefix=f".{path.name}.", suffix=".tmp", dir=str(path.parent)
    )
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            json.dump(data, handle, indent=2, sort_keys=True)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except OSError:
            pass
        raise


class EnvironmentStore:
    """Filesystem-backed store of environments.

    Reads are always live: list_environments() rescans the directory, so
    environments created by any session (or another process) show up at once.
    """

    def __init__(self, root_dir: str | Path) -> None:
        self._root = Path(root_dir).expanduser().resolve()

    @property
    def root_dir(self) -> Path:
        return self._root

    @property
    def environments_dir(self) -> Path:
        return self._root / ENVIRONMENTS_DIR

    def storage_root(self, name: str) -> Path:
        """Deterministic storage root for an environment name."""
        return self.environments_dir / validate_environment_name(name)

    def ensure(self, name: str) -> Environment:
        """Return the environment, creating its storage on first reference.

        Idempotent: a second call returns the same record and creates nothing.
        """
        root = self.storage_root(name)
        existing = self._read(name, root)
        if existing is not None:
            return existing

        created_at = datetime.now(timezone.utc)
        try:
            (root / PACKAGES_DIR).mkdir(parents=True, exist_ok=True)
            record_path = root / ENVIRONMENT_FILE
            # Another creator may have won the race between read and write.
            if not record_path.exists():
                atomic_write_json(
                    record_path, {"name": name, "created_at": created_at.isoformat()}
                )
                logger.info("store: created environment '%s' at %s", name, root)
        except OSError as exc:
            raise StorageError(
                f"Cannot create storage for environment '{name}': {exc}",
                environment=name,
            ) from exc

        env = self._read(name, root)
        if env is None:
            raise StorageError(
                f"Environment '{name}' vanished during creation", environment=name
            )
        return env

    def get(self, name: str) -> Environment | None:
        """Return the environment if it exists, without creating it."""
        return self._read(name, self.storage_root(name))

    def exists(self, name: str) -> bool:
        return self.get(name) is not None

    def list_environments(self) -> list[Environment]:
        """All known environments, ordered by name."""
        base = self.environments_dir
        if not base.is_dir():
            return []
        result: list[Environment] = []
        try:
            children = sorted(base.iterdir(), key=lambda p: p.name)
        except OSError as exc:
            raise StorageError(f"Cannot list environments: {exc}") from exc
        for child in children:
            if not child.is_dir() or not ENVIRONMENT_NAME_RE.match(child.name):
                continue
            env = self._read(child.name, child)
            if env is not None:
                result.append(env)
        return result

    def remove(self, name: str) -> None:
        """Delete an environment's storage. Irreversible."""
        detached = self.detach(name)
        if detached is not None:
            self.purge(detached)

    def detach(self, name: str) -> Path | None:
        """Atomically take an environment out of the store.

        The root is renamed to a hidden sibling, so the name is free (and
        unlisted) immediately. Returns that path for purge(), or None if the
        environment did not exist.
        """
        root = self.storage_root(name)
        if not root.exists():
            return None
        detached = self.environments_dir / f"{DETACHED_PREFIX}{name}-{uuid.uuid4().hex[:12]}"
        try:
            os.replace(root, detached)
        except OSError as exc:
            raise StorageError(
                f"Cannot remove storage for environment '{name}': {exc}",
                environment=name,
            ) from exc
        logger.info("store: removed environment '%s'", name)
        return detached

    def purge(self, detached: Path) -> None:
        """Delete a detached root. Slow for large trees; failures only log."""
        try:
            shutil.rmtree(detached)
        except OSError as exc:
            logger.warning("store: could not purge %s: %s", detached, exc)

    def purge_leftovers(self) -> None:
        """Delete detached roots left behind by an interrupted purge."""
        base = self.environments_dir
        if not base.is_dir():
            return
        for child in base.iterdir():
            if child.name.startswith(DETACHED_PREFIX):
                self.purge(child)

    def _read(self, name: str, root: Path) -> Environment | None:
        record_path = root / ENVIRONMENT_FILE
        try:
            raw = record_path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise StorageError(
                f"Cannot read environment record for '{name}': {exc}",
                environment=name,
            ) from exc
        try:
            data = json.loads(raw)
            created_at = datetime.fromisoformat(data["created_at"])
        except (ValueError, KeyError, TypeError) as exc:
            raise StorageError(
                f"Environment record for '{name}' is unreadable: {exc}",
                environment=name,
            ) from exc
        return Environment(name=name, storage_root=root, created_at=created_at)
