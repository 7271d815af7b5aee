# =============================================================================
# MIME Module
# =============================================================================
# Parses raw RFC 5322 messages into ParsedMessage objects. The fetch
# orchestrator treats this as a black box: one raw message in, one parsed
# message (or MessageParseError) out.
# =============================================================================

from simple_imap.mime.parser import MessageParseError, MessageParser

__all__ = [
    "MessageParser",
    "MessageParseError",
]
