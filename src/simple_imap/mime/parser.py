# =============================================================================
# MIME Parser
# =============================================================================
# Turns a raw RFC 5322 message (bytes) into a ParsedMessage.
#
# Key responsibilities:
#   - Decode headers (RFC 2047 encoded words, address lists, dates)
#   - Walk MIME parts to find the text and HTML bodies
#   - Collect attachments and inline images
#   - Derive a plain-text body from HTML-only messages (inscriptis)
#
# Parsing is CPU-bound, so parse() runs the work in a worker thread and
# resolves once per input - a failure raises MessageParseError for that one
# message and never affects others.
# =============================================================================

import asyncio
import email.header
import email.policy
import email.utils
import logging
from datetime import datetime
from email.message import Message as EmailMessage
from email.parser import BytesParser

from inscriptis import get_text
from inscriptis.css_profiles import CSS_PROFILES
from inscriptis.model.config import ParserConfig

from simple_imap.core import Attachment, ParsedMessage

logger = logging.getLogger(__name__)


class MessageParseError(Exception):
    """Raised when a raw message cannot be turned into a ParsedMessage."""
    pass


class MessageParser:
    """
    Parses raw message bytes into ParsedMessage objects.

    Usage:
        >>> parser = MessageParser()
        >>> message = await parser.parse(raw_bytes, uid=42)
        >>> message.subject
        'Hello'
    """

    def __init__(self) -> None:
        self._parser = BytesParser(policy=email.policy.default)
        self._html_config = ParserConfig(
            css=CSS_PROFILES["strict"],
            display_links=True,
            display_images=False,
            display_anchors=False,
        )

    async def parse(
        self,
        raw: bytes,
        *,
        uid: int | None = None,
        flags: tuple[str, ...] = (),
    ) -> ParsedMessage:
        """
        Parse a raw message.

        Args:
            raw: The complete message as fetched (headers and body).
            uid: UID the message was fetched under.
            flags: IMAP flags reported alongside the message.

        Returns:
            The parsed message.

        Raises:
            MessageParseError: If the bytes do not form a message.
        """
        return await asyncio.to_thread(self.parse_bytes, raw, uid=uid, flags=flags)

    def parse_bytes(
        self,
        raw: bytes,
        *,
        uid: int | None = None,
        flags: tuple[str, ...] = (),
    ) -> ParsedMessage:
        """Synchronous variant of parse()."""
        if not raw or not raw.strip():
            raise MessageParseError("empty message")

        try:
            msg = self._parser.parsebytes(raw)
            if not msg.keys():
                raise MessageParseError("no header fields found")
            return self._build(msg, uid=uid, flags=flags)
        except MessageParseError:
            raise
        except Exception as e:
            raise MessageParseError(f"could not parse message: {e}") from e

    def _build(
        self,
        msg: EmailMessage,
        *,
        uid: int | None,
        flags: tuple[str, ...],
    ) -> ParsedMessage:
        headers = tuple((name, str(value)) for name, value in msg.items())

        from_list = email.utils.getaddresses([str(v) for v in msg.get_all("From", [])])
        sender_name, sender = from_list[0] if from_list else ("", "")

        text, html, attachments = self._parse_body(msg)
        if not text and html:
            text = self._html_to_text(html)

        return ParsedMessage(
            headers=headers,
            uid=uid,
            flags=tuple(flags),
            message_id=str(msg.get("Message-ID", "")).strip(),
            in_reply_to=str(msg.get("In-Reply-To", "")).strip(),
            references=tuple(str(msg.get("References", "")).split()),
            subject=self._decode_header(str(msg.get("Subject", ""))),
            sender=sender,
            sender_name=self._decode_header(sender_name),
            recipients=self._addresses(msg, "To"),
            cc=self._addresses(msg, "Cc"),
            date=self._parse_date(msg.get("Date")),
            text=text,
            html=html,
            attachments=tuple(attachments),
        )

    def _addresses(self, msg: EmailMessage, header: str) -> tuple[str, ...]:
        values = [str(v) for v in msg.get_all(header, [])]
        return tuple(addr for _, addr in email.utils.getaddresses(values) if addr)

    def _parse_date(self, value) -> datetime | None:
        if not value:
            return None
        try:
            return email.utils.parsedate_to_datetime(str(value))
        except (TypeError, ValueError):
            logger.debug(f"Unparseable Date header: {value!r}")
            return None

    def _decode_header(self, value: str) -> str:
        """Decode RFC 2047 encoded header value."""
        if not value:
            return ""
        try:
            decoded_parts = email.header.decode_header(value)
            result = ""
            for part, charset in decoded_parts:
                if isinstance(part, bytes):
                    result += part.decode(charset or "utf-8", errors="replace")
                else:
                    result += part
            return result
        except (LookupError, ValueError):
            return value

    def _parse_body(self, msg: EmailMessage) -> tuple[str, str, list[Attachment]]:
        """Split a message into text body, HTML body and attachments."""
        body_text = ""
        body_html = ""
        attachments: list[Attachment] = []

        if not msg.is_multipart():
            content_type = msg.get_content_type()
            if content_type == "text/html":
                body_html = self._decode_part(msg)
            elif content_type.startswith("text/"):
                body_text = self._decode_part(msg)
            else:
                att = self._extract_attachment(msg)
                if att:
                    attachments.append(att)
            return body_text, body_html, attachments

        for part in msg.walk():
            # Skip multipart containers
            if part.is_multipart():
                continue

            content_type = part.get_content_type()
            disposition = part.get_content_disposition()

            if disposition == "attachment":
                att = self._extract_attachment(part)
                if att:
                    attachments.append(att)
            elif content_type == "text/plain" and not body_text:
                body_text = self._decode_part(part)
            elif content_type == "text/html" and not body_html:
                body_html = self._decode_part(part)
            elif content_type.startswith("image/"):
                att = self._extract_attachment(
                    part,
                    inline=True,
                    content_id=str(part.get("Content-ID", "")).strip("<>") or None,
                )
                if att:
                    attachments.append(att)

        return body_text, body_html, attachments

    def _decode_part(self, part: EmailMessage) -> str:
        """Decode a message part to string."""
        payload = part.get_payload(decode=True)
        if isinstance(payload, bytes):
            charset = part.get_content_charset() or "utf-8"
            try:
                return payload.decode(charset, errors="replace")
            except LookupError:
                return payload.decode("utf-8", errors="replace")
        return str(payload) if payload else ""

    def _extract_attachment(
        self,
        part: EmailMessage,
        *,
        inline: bool = False,
        content_id: str | None = None,
    ) -> Attachment | None:
        """Extract attachment from message part."""
        payload = part.get_payload(decode=True)
        if not isinstance(payload, bytes):
            return None

        filename = part.get_filename()
        if not filename:
            # Generate filename from content type
            content_type = part.get_content_type()
            ext = content_type.split("/")[-1] if "/" in content_type else "bin"
            filename = f"attachment.{ext}"

        return Attachment(
            filename=self._decode_header(filename),
            content_type=part.get_content_type(),
            size=len(payload),
            content_id=content_id,
            is_inline=inline,
            data=payload,
        )

    def _html_to_text(self, html: str) -> str:
        try:
            return get_text(html, self._html_config).strip()
        except Exception as e:
            logger.warning(f"Could not derive text from HTML body: {e}")
            return ""
