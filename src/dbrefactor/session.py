"""
Remote database session handling.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from .exceptions import DbRefactorError, SessionError
from .executor.client import PlanExecutorClient
from .executor.models import SessionInfo


logger = logging.getLogger(__name__)


class SessionManager:
    """Keeps track of the single executor session in use."""

    def __init__(self, client: PlanExecutorClient):
        self.client = client
        self._session: Optional[SessionInfo] = None

    @property
    def session_id(self) -> Optional[str]:
        return self._session.session_id if self._session else None

    @property
    def expires_at(self) -> Optional[datetime]:
        return self._session.expires_at if self._session else None

    @property
    def is_connected(self) -> bool:
        return self._session is not None and not self.is_expired

    @property
    def is_expired(self) -> bool:
        if self._session is None or self._session.expires_at is None:
            return False
        expires_at = self._session.expires_at
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        return datetime.now(timezone.utc) >= expires_at

    async def connect(self, connection_string: str, ttl_seconds: Optional[int] = None) -> str:
        """Open a session, closing any previous one first."""
        if self._session is not None:
            await self.disconnect()
        self._session = await self.client.connect_session(connection_string, ttl_seconds)
        return self._session.session_id

    async def disconnect(self) -> None:
        """
        Close the session on the executor.

        Failures are logged and the local session is cleared anyway; the
        executor expires abandoned sessions on its own.
        """
        if self._session is None:
            return
        session_id = self._session.session_id
        try:
            await self.client.disconnect_session(session_id)
        except DbRefactorError as e:
            logger.warning(f"Failed to disconnect session {session_id}, clearing locally: {e}")
        finally:
            self._session = None

    def require_session(self) -> str:
        if self._session is None:
            raise SessionError("No active session; connect first")
        if self.is_expired:
            raise SessionError(
                f"Session {self._session.session_id} expired at {self._session.expires_at}"
            )
        return self._session.session_id

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.disconnect()
