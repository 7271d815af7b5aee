# =============================================================================
# Message Model
# =============================================================================
# Represents a parsed email message as handed back to callers.
#
# Emails are complex beasts. A single email can contain multiple "parts"
# (MIME multipart) with different content types. The MIME parser walks those
# parts; the ParsedMessage model is the simplified, read-only view callers
# work with:
#   - Headers, in their original order (repeated names kept)
#   - Body as plain text and/or HTML
#   - Attachments (files, inline images)
#   - IMAP identity (UID, flags at fetch time)
#
# Instances are frozen. Nothing in this package mutates a message after the
# parser has produced it - enriching one means building a copy with
# dataclasses.replace().
# =============================================================================

from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True)
class Attachment:
    """
    Represents a file attached to an email message.

    Attachments can be:
        - Regular attachments: Files the sender explicitly attached
        - Inline attachments: Images embedded in HTML (referenced by Content-ID)

    Attributes:
        filename: Original filename of the attachment.
        content_type: MIME type (e.g., "application/pdf", "image/png").
        size: Size in bytes of the decoded payload.
        content_id: For inline images, the Content-ID used in HTML <img> tags.
        is_inline: True if embedded in the HTML body.
        data: The decoded attachment payload.
    """
    filename: str
    content_type: str
    size: int
    content_id: str | None = None
    is_inline: bool = False
    data: bytes = b""

    @property
    def is_image(self) -> bool:
        """Returns True if this attachment is an image."""
        return self.content_type.startswith("image/")

    @property
    def human_size(self) -> str:
        """
        Returns a human-readable file size.

        Examples:
            - 500 -> "500 B"
            - 1536 -> "1.5 KB"
        """
        size = float(self.size)
        for unit in ("B", "KB", "MB", "GB"):
            if size < 1024:
                return f"{size:.1f} {unit}" if size != int(size) else f"{int(size)} {unit}"
            size /= 1024
        return f"{size:.1f} TB"


@dataclass(frozen=True)
class ParsedMessage:
    """
    A structured email message produced by the MIME parser.

    Attributes:
        headers: (name, value) pairs in the order they appear in the message.
                 Repeated headers (Received, etc.) keep every occurrence.
        uid: IMAP UID the message was fetched under (None if parsed
             from raw bytes outside of a fetch).
        flags: IMAP flags at fetch time (e.g., ("\\Seen",)).

        message_id: RFC 5322 Message-ID header (e.g., "<abc123@example.com>").
        in_reply_to: Message-ID of the message this replies to.
        references: Message-IDs from the References header.

        subject: Decoded subject line.
        sender: The "From" address.
        sender_name: Display name of the sender.
        recipients: "To" addresses.
        cc: "CC" addresses.
        date: Parsed Date header (timezone-aware when the header carries one).

        text: Plain text body. Derived from the HTML body when the message
              only has HTML.
        html: HTML body, if any.
        attachments: Attachments and inline images.
    """
    headers: tuple[tuple[str, str], ...] = ()
    uid: int | None = None
    flags: tuple[str, ...] = ()

    message_id: str = ""
    in_reply_to: str = ""
    references: tuple[str, ...] = ()

    subject: str = ""
    sender: str = ""
    sender_name: str = ""
    recipients: tuple[str, ...] = ()
    cc: tuple[str, ...] = ()
    date: datetime | None = None

    text: str = ""
    html: str = ""
    attachments: tuple[Attachment, ...] = field(default_factory=tuple)

    def header(self, name: str, default: str | None = None) -> str | None:
        """Return the first value of a header (case-insensitive lookup)."""
        wanted = name.lower()
        for key, value in self.headers:
            if key.lower() == wanted:
                return value
        return default

    def header_all(self, name: str) -> list[str]:
        """Return every value of a repeated header, in message order."""
        wanted = name.lower()
        return [value for key, value in self.headers if key.lower() == wanted]

    @property
    def is_read(self) -> bool:
        """Returns True if the message carried \\Seen when it was fetched."""
        return any(flag.upper() == "\\SEEN" for flag in self.flags)

    @property
    def has_html(self) -> bool:
        """Returns True if the message has an HTML body."""
        return bool(self.html.strip())

    @property
    def has_attachments(self) -> bool:
        """Returns True if the message has any non-inline attachments."""
        return any(not a.is_inline for a in self.attachments)

    @property
    def display_sender(self) -> str:
        """Prefers sender_name if available, falls back to the address."""
        return self.sender_name or self.sender

    def __str__(self) -> str:
        return f"{self.display_sender}: {self.subject}"

    def __repr__(self) -> str:
        return (
            f"ParsedMessage(uid={self.uid}, subject={self.subject!r}, "
            f"from={self.sender!r})"
        )
