"""Session cleanup hook.

Registered for session:end by the host platform. Closing the session releases
its environment binding so the environment can later be deleted. Environments
and installed packages are never removed here.
"""

from __future__ import annotations

import logging
from typing import Any

from .session import SessionPool

logger = logging.getLogger(__name__)


class SessionCleanupHandler:
    """Closes a caller's session when the caller disconnects."""

    def __init__(self, pool: SessionPool) -> None:
        self._pool = pool

    async def handle_session_end(self, event: str, data: dict[str, Any]) -> bool:
        """Close the session named in data. Returns whether one was closed."""
        session_id = data.get("session_id")
        if not session_id:
            logger.info("session-cleanup: %s without a session_id, ignoring", event)
            return False

        try:
            closed = await self._pool.close(session_id)
        except Exception:
            logger.warning(
                "session-cleanup: failed to close session %s",
                session_id,
                exc_info=True,
            )
            return False

        if not closed:
            logger.info("session-cleanup: no session %s to close", session_id)
        return closed

    async def handle_shutdown(self, event: str, data: dict[str, Any]) -> None:
        """Close every remaining session (host shutdown)."""
        logger.info("session-cleanup: closing %d sessions on %s", len(self._pool), event)
        try:
            await self._pool.close_all()
        except Exception:
            logger.warning("session-cleanup: some sessions failed to close", exc_info=True)
