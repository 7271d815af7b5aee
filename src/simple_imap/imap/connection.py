# =============================================================================
# Connection Lifecycle
# =============================================================================
# Owns the single IMAPSession of a client instance.
#
# Key responsibilities:
#   - connect / disconnect / destroy as awaitable, idempotent operations
#   - Re-emitting session "error" and "end" signals for the lifetime of the
#     instance
#   - Serializing mailbox-scoped command sequences (exclusive())
#
# Design notes:
#   - State only moves forward: DISCONNECTED -> CONNECTING -> READY ->
#     ENDING -> DISCONNECTED. A connection that has ended cannot be reused;
#     create a new instance to reconnect
#   - Nothing else holds the live session; other components borrow it
#     through exclusive()
# =============================================================================

import asyncio
import logging
from contextlib import asynccontextmanager
from enum import Enum, auto

from simple_imap.imap.events import EventSource
from simple_imap.imap.session import IMAPConnectionError, IMAPError, IMAPSession

logger = logging.getLogger(__name__)


class ConnectionState(Enum):
    """Lifecycle state of a Connection."""
    DISCONNECTED = auto()   # Not connected (initial and final state)
    CONNECTING = auto()     # connect() in progress
    READY = auto()          # Logged in, commands may be issued
    ENDING = auto()         # disconnect()/destroy() in progress


class Connection(EventSource):
    """
    Lifecycle manager for one IMAP session.

    Events:
        "error" (exception) - session failure after connect() succeeded
        "end"   ()          - the session terminated

    Usage:
        >>> connection = Connection(IMAPSession(account))
        >>> await connection.connect()
        >>> async with connection.exclusive() as session:
        ...     await session.select("INBOX")
        >>> await connection.disconnect()
    """

    def __init__(self, session: IMAPSession) -> None:
        super().__init__()
        self.session = session
        self.state = ConnectionState.DISCONNECTED
        self.last_error: Exception | None = None

        self._used = False
        self._ended = asyncio.Event()
        self._lock = asyncio.Lock()

        # Persistent listeners, registered once for the life of the instance
        session.on("error", self._on_session_error)
        session.on("end", self._on_session_end)

    @property
    def is_ready(self) -> bool:
        return self.state is ConnectionState.READY

    async def connect(self) -> None:
        """
        Open the session.

        Returns once the session is ready. Errors before that point are raised
        here rather than emitted.

        Raises:
            IMAPConnectionError: If the instance was already used, or the
                connection fails.
            IMAPAuthenticationError: If login fails.
        """
        if self._used:
            raise IMAPConnectionError(
                "Connection already used; create a new instance to reconnect"
            )
        self._used = True
        self.state = ConnectionState.CONNECTING

        try:
            await self.session.connect()
        except IMAPError as e:
            self.last_error = e
            self.state = ConnectionState.DISCONNECTED
            self._ended.set()
            logger.error(f"IMAP connection error: {e}")
            raise

        if self._ended.is_set():
            # Session dropped between login and now
            self.state = ConnectionState.DISCONNECTED
            raise IMAPConnectionError("Connection closed during setup")

        self.state = ConnectionState.READY
        logger.info("IMAP connection established")

    async def disconnect(self) -> None:
        """
        Log out and wait for the session to terminate. Never raises.
        """
        if self.state is ConnectionState.DISCONNECTED:
            return

        self.state = ConnectionState.ENDING
        try:
            await self.session.logout()
        except Exception as e:
            # A failed LOGOUT still ends the session
            logger.warning(f"Error during logout: {e}")
            self.session.close()

        await self._ended.wait()

    async def destroy(self) -> None:
        """
        Force the session closed. Idempotent; never raises.
        """
        if self.state is ConnectionState.DISCONNECTED:
            logger.debug("IMAP connection already disconnected")
            return

        self.state = ConnectionState.ENDING
        self.session.close()
        await self._ended.wait()
        logger.info("IMAP connection destroyed")

    def require_ready(self) -> IMAPSession:
        if self.state is not ConnectionState.READY:
            raise IMAPConnectionError(f"Connection is not ready (state: {self.state.name})")
        return self.session

    @asynccontextmanager
    async def exclusive(self):
        """
        Hold the session for a command sequence.

        Concurrent callers queue on a per-connection lock, so a
        select-then-act sequence never interleaves with another one. IDLE is
        suspended while the block runs.
        """
        self.require_ready()
        async with self._lock:
            session = self.require_ready()
            async with session.paused():
                yield session

    def _on_session_error(self, error: Exception) -> None:
        self.last_error = error
        if self.state is ConnectionState.CONNECTING:
            # connect() reports this one itself
            return
        logger.error(f"IMAP connection error: {error}")
        self.emit("error", error)

    def _on_session_end(self) -> None:
        if self._ended.is_set():
            return
        self.state = ConnectionState.DISCONNECTED
        self._ended.set()
        self.emit("end")
