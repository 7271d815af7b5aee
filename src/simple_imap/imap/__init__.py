# =============================================================================
# IMAP Module
# =============================================================================
# Handles all IMAP (Internet Message Access Protocol) operations:
#   - The protocol session over aioimaplib (connect, SELECT, SEARCH, FETCH,
#     STORE, EXPUNGE, MOVE, IDLE)
#   - Connection lifecycle and the per-connection command lock
#   - Batched fetch + parse orchestration
#   - Watching a mailbox for new mail
# =============================================================================

from simple_imap.imap.session import (
    IMAPSession,
    FetchedMessage,
    BodyPart,
    IMAPError,
    IMAPConnectionError,
    IMAPAuthenticationError,
    MailboxSelectError,
    IMAPSearchError,
    IMAPFetchError,
    IMAPCommandError,
    DeletePartialError,
    WatchError,
)
from simple_imap.imap.connection import Connection, ConnectionState
from simple_imap.imap.fetch import FetchBatch, fetch_messages, select_recent
from simple_imap.imap.watcher import (
    MailboxWatcher,
    WatchState,
    WatchSubscription,
)

__all__ = [
    # Session
    "IMAPSession",
    "FetchedMessage",
    "BodyPart",
    "IMAPError",
    "IMAPConnectionError",
    "IMAPAuthenticationError",
    "MailboxSelectError",
    "IMAPSearchError",
    "IMAPFetchError",
    "IMAPCommandError",
    "DeletePartialError",
    "WatchError",
    # Connection
    "Connection",
    "ConnectionState",
    # Fetch
    "FetchBatch",
    "fetch_messages",
    "select_recent",
    # Watching
    "MailboxWatcher",
    "WatchState",
    "WatchSubscription",
]
