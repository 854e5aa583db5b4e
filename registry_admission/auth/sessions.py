"""In-memory table of device-authorization sessions."""

import hashlib
import time
from collections.abc import Callable
from typing import Any

import structlog
from cachetools import TLRUCache

from .models import DeviceAuthorizationSession

logger = structlog.get_logger()


def _session_expiry(key: str, session: DeviceAuthorizationSession, now: float) -> float:
    return session.expires_at


class DeviceSessionStore:
    """Sessions keyed by handle, evicted once their own expires_at passes.

    Eviction is passive: expired entries disappear on the next access,
    no background task is involved.
    """

    def __init__(
        self, maxsize: int = 10000, clock: Callable[[], float] = time.time
    ):
        """Initialize the store.

        Args:
            maxsize: Maximum number of concurrent sessions
            clock: Time source, must match the one used for expires_at
        """
        self._sessions: TLRUCache[str, DeviceAuthorizationSession] = TLRUCache(
            maxsize=maxsize, ttu=_session_expiry, timer=clock
        )

    def _log_key(self, handle: str) -> str:
        """Hash handle for logging to avoid leaking it."""
        return hashlib.sha256(handle.encode()).hexdigest()[:16]

    def add(self, session: DeviceAuthorizationSession) -> None:
        self._sessions[session.handle] = session
        logger.debug("Device session stored", session=self._log_key(session.handle))

    def get(self, handle: str) -> DeviceAuthorizationSession | None:
        return self._sessions.get(handle)

    def discard(self, handle: str) -> None:
        if self._sessions.pop(handle, None) is not None:
            logger.debug("Device session removed", session=self._log_key(handle))

    def clear(self) -> None:
        """Clear all sessions."""
        self._sessions.clear()

    def size(self) -> int:
        """Return the number of live sessions."""
        self._sessions.expire()
        return len(self._sessions)

    def __contains__(self, handle: Any) -> bool:
        return handle in self._sessions
