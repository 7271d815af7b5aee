# =============================================================================
# simple-imap Core Module
# =============================================================================
# This module contains the core domain models. These are pure Python
# dataclasses with no external dependencies - they can be imported anywhere
# without causing circular dependency issues.
#
# The core models represent:
#   - Account: IMAP connection settings for one account
#   - MailboxRef / MailboxInfo / MailboxEntry: mailbox naming and metadata
#   - ParsedMessage / Attachment: what the MIME parser hands back
# =============================================================================

from simple_imap.core.account import Account
from simple_imap.core.mailbox import (
    MailboxEntry,
    MailboxInfo,
    MailboxRef,
    build_mailbox_tree,
    resolve_mailbox,
)
from simple_imap.core.message import Attachment, ParsedMessage

__all__ = [
    "Account",
    "MailboxEntry",
    "MailboxInfo",
    "MailboxRef",
    "build_mailbox_tree",
    "resolve_mailbox",
    "ParsedMessage",
    "Attachment",
]
