# =============================================================================
# simple-imap: Promise-style IMAP for asyncio
# =============================================================================
#
# simple-imap wraps an event-driven IMAP session in plain coroutines: connect,
# search and fetch parsed messages, move or delete them, and watch a mailbox
# for new mail, each as one awaitable call.
#
# Features:
#   - IMAP over SSL, STARTTLS or plain connections (aioimaplib)
#   - Mailbox names resolved against the personal namespace ("Archive" ->
#     "INBOX.Archive")
#   - Batched UID FETCH with concurrent MIME parsing
#   - IMAP IDLE watching with NOOP polling fallback
#   - Passwords kept in the system keyring
#   - XDG Base Directory compliant configuration
#
# =============================================================================

__version__ = "0.1.0"
__app_name__ = "simple-imap"

from simple_imap.client import SimpleIMAP
from simple_imap.config import Config, ConfigError
from simple_imap.core import Account, MailboxEntry, MailboxInfo, ParsedMessage, resolve_mailbox
from simple_imap.imap import (
    DeletePartialError,
    IMAPError,
    WatchError,
    WatchSubscription,
)
from simple_imap.mime import MessageParseError

# Main entry point - this is what gets called by the 'simple-imap' command
from simple_imap.app import main

__all__ = [
    "main",
    "__version__",
    "__app_name__",
    "SimpleIMAP",
    "Config",
    "ConfigError",
    "Account",
    "MailboxEntry",
    "MailboxInfo",
    "ParsedMessage",
    "resolve_mailbox",
    "IMAPError",
    "DeletePartialError",
    "WatchError",
    "WatchSubscription",
    "MessageParseError",
]
