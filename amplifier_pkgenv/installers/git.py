"""GitInstaller — installs a package with a shallow ``git clone``.

The entry's sourceRef is ``<repository-url>[#<ref>]``; ``git+`` prefixes are
accepted. The clone runs in its own process group so a cancelled install can
take git and its helpers down with it (SIGTERM, 2s grace, then SIGKILL).
"""

from __future__ import annotations

import asyncio
import logging
import os
import signal
from pathlib import Path
from typing import Any

from ..env_filter import EnvVarPolicy, installer_env
from ..errors import InstallError
from ..models import CatalogEntry

logger = logging.getLogger(__name__)

TERMINATE_GRACE = 2.0


def split_source_ref(source_ref: str) -> tuple[str, str | None]:
    """Split ``url#ref`` into (url, ref)."""
    url, _, ref = source_ref.partition("#")
    if url.startswith("git+"):
        url = url[len("git+") :]
    return url, ref or None


async def _terminate(proc: asyncio.subprocess.Process) -> None:
    """Stop a process group: SIGTERM, short grace, then SIGKILL."""
    if proc.returncode is not None:
        return
    try:
        os.killpg(os.getpgid(proc.pid), signal.SIGTERM)
    except (ProcessLookupError, OSError):
        pass
    try:
        await asyncio.wait_for(proc.wait(), timeout=TERMINATE_GRACE)
    except asyncio.TimeoutError:
        try:
            os.killpg(os.getpgid(proc.pid), signal.SIGKILL)
        except (ProcessLookupError, OSError):
            pass
        await proc.wait()


class GitInstaller:
    """Clones the entry's repository into the target directory."""

    def __init__(
        self,
        git: str = "git",
        env_policy: EnvVarPolicy | str = EnvVarPolicy.CORE_ONLY,
        env_vars: dict[str, str] | None = None,
    ) -> None:
        self._git = git
        self._env_policy = EnvVarPolicy(env_policy)
        self._env_vars = env_vars or {}

    def clone_args(self, entry: CatalogEntry, target_dir: Path) -> list[str]:
        url, ref = split_source_ref(entry.source_ref)
        args = [self._git, "clone", "--depth", "1", "--quiet"]
        if ref:
            args.extend(["--branch", ref])
        args.extend(["--", url, str(target_dir)])
        return args

    async def install(self, entry: CatalogEntry, target_dir: Path) -> None:
        args = self.clone_args(entry, target_dir)
        env = installer_env(self._env_policy, dict(os.environ), self._env_vars)
        try:
            proc = await asyncio.create_subprocess_exec(
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=env,
                start_new_session=True,
            )
        except OSError as exc:
            raise InstallError(f"Cannot run {self._git}: {exc}") from exc

        try:
            _, stderr = await proc.communicate()
        except asyncio.CancelledError:
            logger.info("git-installer: cancelled clone of '%s'", entry.name)
            await _terminate(proc)
            raise

        if proc.returncode != 0:
            detail = stderr.decode("utf-8", errors="replace").strip() if stderr else ""
            raise InstallError(
                f"git clone of '{entry.name}' {entry.version} failed "
                f"(exit {proc.returncode}): {detail}"
            )

    def info(self) -> dict[str, Any]:
        return {"type": "git", "git": self._git, "env_policy": self._env_policy.value}
