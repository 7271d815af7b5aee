# =============================================================================
# IMAP Session
# =============================================================================
# The protocol engine: an async wrapper around one aioimaplib connection.
#
# Key responsibilities:
#   - Connection setup (SSL, STARTTLS or plain) and authentication
#   - Mailbox commands (SELECT, LIST) and message commands (UID SEARCH,
#     UID FETCH, UID STORE, EXPUNGE, UID MOVE)
#   - Splitting FETCH responses into one FetchedMessage per message, each
#     carrying the body sections it was delivered with
#   - IDLE (or NOOP polling) on a watched mailbox, turning EXISTS pushes
#     into "mail" events that carry the number of new messages
#   - "error" and "end" events when the connection fails or closes
#
# Design notes:
#   - IDLE ties up the connection. Callers wrap every command sequence in
#     paused(), which ends IDLE first and resumes it afterwards
#   - All message addressing is by UID, never by sequence number
#   - The session has no lock of its own; Connection.exclusive() serializes
#     callers
# =============================================================================

import asyncio
import logging
import re
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import date
from typing import AsyncIterator, Iterable, Sequence

import keyring
from aioimaplib import aioimaplib

from simple_imap.core import Account, MailboxEntry, MailboxInfo, build_mailbox_tree
from simple_imap.imap.events import EventSource

# Set up logging for this module
logger = logging.getLogger(__name__)


# Body sections, named the way they appear inside BODY[...]
SECTION_FULL = ""
SECTION_HEADER = "HEADER"
SECTION_TEXT = "TEXT"

DEFAULT_SECTIONS = (SECTION_HEADER, SECTION_FULL)


def _quote_folder_name(name: str) -> str:
    """
    Quote an IMAP folder name if it contains special characters.

    IMAP folder names with spaces or special characters must be quoted.
    This function wraps folder names in double quotes and escapes
    any internal quotes or backslashes.
    """
    if ' ' in name or '"' in name or '\\' in name or any(c in name for c in '(){}[]'):
        escaped = name.replace('\\', '\\\\').replace('"', '\\"')
        return f'"{escaped}"'
    return name


def _search_value(value) -> str:
    if isinstance(value, date):
        return value.strftime("%d-%b-%Y")
    text = str(value)
    if not text or any(c in text for c in ' "()\\'):
        escaped = text.replace('\\', '\\\\').replace('"', '\\"')
        return f'"{escaped}"'
    return text


def build_search_criteria(criteria: Iterable) -> list[str]:
    """
    Flatten search criteria into UID SEARCH arguments.

    Plain strings are passed through as keys ("UNSEEN", "ALL"). Tuples or
    lists are a key followed by its arguments; dates are formatted the way
    IMAP expects and strings are quoted when needed.

    Example:
        >>> build_search_criteria(["UNSEEN", ("FROM", "Jane Doe")])
        ['UNSEEN', 'FROM', '"Jane Doe"']
    """
    args: list[str] = []
    for item in criteria:
        if isinstance(item, (tuple, list)):
            key, *values = item
            args.append(str(key).upper())
            args.extend(_search_value(v) for v in values)
        else:
            args.append(str(item))
    return args


# =============================================================================
# Fetch results
# =============================================================================

@dataclass
class BodyPart:
    """
    One body section delivered for a message.

    Attributes:
        which: Section name - "" for the whole message, "HEADER", "TEXT".
        data: Raw section bytes.
    """
    which: str
    data: bytes


@dataclass
class FetchedMessage:
    """
    One message event from a UID FETCH.

    Attributes:
        seq: Sequence number the server reported.
        uid: Message UID (None if the server left it out).
        flags: Flags reported with the message.
        parts: Body sections, in the order the server sent them.
    """
    seq: int
    uid: int | None = None
    flags: tuple[str, ...] = ()
    parts: list[BodyPart] = field(default_factory=list)

    def section(self, which: str) -> bytes | None:
        for part in self.parts:
            if part.which == which:
                return part.data
        return None

    @property
    def raw(self) -> bytes | None:
        """
        The complete message: the full section if it was fetched,
        otherwise HEADER and TEXT joined together.
        """
        full = self.section(SECTION_FULL)
        if full is not None:
            return full
        header = self.section(SECTION_HEADER)
        text = self.section(SECTION_TEXT)
        if header is None and text is None:
            return None
        return (header or b"") + (text or b"")


_FETCH_START = re.compile(r"^\*?\s*(\d+)\s+FETCH\s*\(", re.IGNORECASE)
_BODY_LITERAL = re.compile(r"BODY\[([^\]]*)\](?:<\d+>)?\s*\{(\d+)\}\s*$", re.IGNORECASE)
_ANY_LITERAL = re.compile(r"\{(\d+)\}\s*$")
_UID = re.compile(r"\bUID\s+(\d+)", re.IGNORECASE)
_FLAGS = re.compile(r"\bFLAGS\s*\(([^)]*)\)", re.IGNORECASE)


def _decode_line(item) -> str:
    if isinstance(item, (bytes, bytearray)):
        return bytes(item).decode("utf-8", errors="replace")
    return str(item)


def parse_fetch_response(lines: Sequence) -> list[FetchedMessage]:
    """
    Split UID FETCH response lines into messages, in delivery order.

    aioimaplib returns a flat list mixing text lines with literal payloads:

        b'1 FETCH (UID 7 FLAGS (\\Seen) BODY[HEADER] {301}'
        bytearray(b'...301 bytes...')
        b' BODY[] {2048}'
        bytearray(b'...2048 bytes...')
        b')'
        b'Fetch completed.'

    A line ending in {N} announces that the next item is a literal.
    """
    messages: list[FetchedMessage] = []
    current: FetchedMessage | None = None
    pending: str | None = None

    for item in lines:
        if pending is not None:
            # Literal payload announced by the previous line
            if current is not None and pending != "\0":
                current.parts.append(BodyPart(which=pending, data=bytes(item)))
            pending = None
            continue

        line = _decode_line(item)

        start = _FETCH_START.match(line)
        if start:
            current = FetchedMessage(seq=int(start.group(1)))
            messages.append(current)
        elif current is None:
            continue

        uid_match = _UID.search(line)
        if uid_match:
            current.uid = int(uid_match.group(1))

        flags_match = _FLAGS.search(line)
        if flags_match:
            current.flags = tuple(flags_match.group(1).split())

        literal = _BODY_LITERAL.search(line)
        if literal:
            pending = literal.group(1).upper()
        elif _ANY_LITERAL.search(line):
            # Literal for an item we did not ask for; skip its payload
            pending = "\0"

    return messages


def parse_search_response(lines: Sequence) -> list[int]:
    """Extract UIDs from a SEARCH response, ascending."""
    uids: set[int] = set()
    for item in lines:
        tokens = _decode_line(item).split()
        if tokens and tokens[0].upper() in ("*", "SEARCH"):
            tokens = [t for t in tokens if t.upper() not in ("*", "SEARCH")]
        if tokens and all(t.isdigit() for t in tokens):
            uids.update(int(t) for t in tokens)
    return sorted(uids)


_LIST_LINE = re.compile(r'^\(([^)]*)\)\s+(NIL|"(?:[^"\\]|\\.)*")\s+(.+)$', re.IGNORECASE)


def parse_list_line(line) -> MailboxEntry | None:
    """
    Parse a single LIST response line.

    LIST response format:
        (\\HasNoChildren) "." "INBOX.Sent"
        (\\HasChildren) "." INBOX
    """
    line = _decode_line(line).strip()
    if line.startswith("*"):
        line = line[1:].strip()
    if line.upper().startswith("LIST "):
        line = line[5:].strip()

    match = _LIST_LINE.match(line)
    if not match:
        return None

    attrs, delimiter, name = match.groups()
    if delimiter.upper() == "NIL":
        delimiter = None
    else:
        delimiter = delimiter[1:-1].replace('\\\\', '\\').replace('\\"', '"')

    name = name.strip()
    if name.startswith('"') and name.endswith('"'):
        name = name[1:-1].replace('\\"', '"').replace('\\\\', '\\')

    return MailboxEntry(path=name, delimiter=delimiter, attributes=attrs.split())


# =============================================================================
# Session
# =============================================================================

class IMAPSession(EventSource):
    """
    Async IMAP session over aioimaplib.

    Events:
        "mail"  (path, count)  - count new messages arrived in the watched mailbox
        "error" (exception)    - the connection failed or IDLE broke
        "end"   ()             - the connection is gone (emitted once)

    Usage:
        >>> session = IMAPSession(account)
        >>> await session.connect()
        >>> async with session.paused():
        ...     await session.select("INBOX")
        ...     uids = await session.search(["UNSEEN"])
        >>> await session.logout()
    """

    # Timeout for IMAP commands (seconds)
    TIMEOUT = 30

    # RFC 2177 recommends re-issuing IDLE before 30 minutes
    IDLE_TIMEOUT = 29 * 60

    # NOOP polling interval for servers without IDLE
    POLL_INTERVAL = 60

    # Delay before re-entering IDLE after an error
    RETRY_DELAY = 30

    def __init__(
        self,
        account: Account,
        *,
        timeout: float | None = None,
        idle_timeout: float | None = None,
        poll_interval: float | None = None,
        retry_delay: float | None = None,
    ) -> None:
        super().__init__()
        self.account = account
        self.timeout = timeout or self.TIMEOUT
        self.idle_timeout = idle_timeout or self.IDLE_TIMEOUT
        self.poll_interval = poll_interval or self.POLL_INTERVAL
        self.retry_delay = retry_delay or self.RETRY_DELAY

        self._client: aioimaplib.IMAP4 | None = None
        self._ended = False
        self.selected: str | None = None
        self.capabilities: list[str] = []
        self._known_exists: dict[str, int] = {}

        # IDLE bookkeeping
        self._idle_mailbox: str | None = None
        self._idle_task: asyncio.Task | None = None
        self._idle_future: asyncio.Future | None = None
        self._idle_waiting = False
        self._idle_stopping = False
        self._pause_depth = 0

    @property
    def is_connected(self) -> bool:
        return self._client is not None and not self._ended

    @property
    def idle_mailbox(self) -> str | None:
        return self._idle_mailbox

    # =========================================================================
    # Connection Management
    # =========================================================================

    async def connect(self) -> None:
        """
        Open the connection, upgrade it if configured, and log in.

        Raises:
            IMAPConnectionError: If unable to connect to the server.
            IMAPAuthenticationError: If login fails.
        """
        account = self.account
        logger.info(f"Connecting to {account.imap_host}:{account.imap_port}")

        try:
            if account.imap_security == "ssl":
                self._client = aioimaplib.IMAP4_SSL(
                    host=account.imap_host,
                    port=account.imap_port,
                    timeout=self.timeout,
                )
            else:
                self._client = aioimaplib.IMAP4(
                    host=account.imap_host,
                    port=account.imap_port,
                    timeout=self.timeout,
                )
            self._client.protocol.conn_lost_cb = self._connection_lost

            await self._client.wait_hello_from_server()
            self.capabilities = list(self._client.protocol.capabilities)
            logger.debug(f"Server capabilities: {self.capabilities}")

            if account.imap_security == "starttls":
                if not self._client.has_capability("STARTTLS"):
                    raise IMAPConnectionError("Server does not support STARTTLS")
                logger.debug("Upgrading to TLS via STARTTLS")
                await self._client.starttls()

            await self._authenticate()

        except asyncio.TimeoutError as e:
            self._discard_client()
            raise IMAPConnectionError(
                f"Connection timed out to {account.imap_host}:{account.imap_port}"
            ) from e
        except OSError as e:
            self._discard_client()
            raise IMAPConnectionError(
                f"Failed to connect to {account.imap_host}:{account.imap_port}: {e}"
            ) from e
        except IMAPError:
            self._discard_client()
            raise

        logger.info(f"Successfully connected to {account.imap_host}")

    async def _authenticate(self) -> None:
        password = self.account.password or keyring.get_password(
            self.account.keyring_service,
            self.account.username,
        )
        if not password:
            raise IMAPAuthenticationError(
                f"No password found in keyring for {self.account.username}. "
                f"Set it with: keyring set {self.account.keyring_service} {self.account.username}"
            )

        logger.debug(f"Authenticating as {self.account.username}")
        response = await self._client.login(self.account.username, password)
        if response.result != "OK":
            raise IMAPAuthenticationError(
                f"Authentication failed for {self.account.username}: {response.lines}"
            )

    async def logout(self) -> None:
        """
        Send LOGOUT and close the connection.

        The connection is closed (and "end" emitted) even if LOGOUT fails;
        the failure is still raised.
        """
        if self._client is None:
            self._finish()
            return

        await self._stop_idle_task()
        try:
            logger.debug("Sending LOGOUT")
            await asyncio.wait_for(self._client.logout(), self.timeout)
        finally:
            self.close()

    def close(self) -> None:
        """Drop the connection without a LOGOUT exchange."""
        self._discard_client()
        self._finish()

    def _discard_client(self) -> None:
        client, self._client = self._client, None
        if client is None:
            return
        transport = getattr(client.protocol, "transport", None)
        if transport is not None:
            transport.close()

    def _connection_lost(self, exc: Exception | None) -> None:
        if exc is not None and not self._ended:
            logger.error(f"IMAP connection lost: {exc}")
            self.emit("error", IMAPConnectionError(f"Connection lost: {exc}"))
        self._client = None
        self._finish()

    def _finish(self) -> None:
        if self._ended:
            return
        self._ended = True
        if self._idle_task is not None and not self._idle_task.done():
            self._idle_task.cancel()
        logger.info("IMAP connection ended")
        self.emit("end")

    def _require_client(self) -> aioimaplib.IMAP4:
        if self._client is None or self._ended:
            raise IMAPConnectionError("Not connected")
        if self._idle_waiting:
            raise IMAPError("Command issued while IDLE is active; wrap it in paused()")
        return self._client

    def supports_idle(self) -> bool:
        """Check if server supports IDLE command."""
        if not self._client:
            return False
        return self._client.has_capability("IDLE")

    # =========================================================================
    # Mailbox Operations
    # =========================================================================

    async def select(self, path: str, readonly: bool = False) -> MailboxInfo:
        """
        Select a mailbox for subsequent operations.

        Raises:
            MailboxSelectError: If the server refuses the selection.
        """
        client = self._require_client()
        logger.debug(f"Selecting mailbox: {path}")

        quoted = _quote_folder_name(path)
        if readonly:
            response = await client.examine(quoted)
        else:
            response = await client.select(quoted)

        if response.result != "OK":
            self.selected = None
            raise MailboxSelectError(f"Failed to select mailbox '{path}': {response.lines}")

        info = self._parse_select_response(path, response.lines)
        self.selected = path
        self._note_exists(path, info.exists)
        logger.debug(f"Selected {info!r}")
        return info

    def _parse_select_response(self, path: str, lines: Sequence) -> MailboxInfo:
        """Parse SELECT/EXAMINE response lines into MailboxInfo."""
        info = MailboxInfo(path=path)

        for item in lines:
            line = _decode_line(item)

            match = re.search(r"PERMANENTFLAGS\s*\(([^)]*)\)", line, re.IGNORECASE)
            if match:
                info.permanent_flags = match.group(1).split()
            else:
                match = re.search(r"^\*?\s*FLAGS\s*\(([^)]*)\)", line, re.IGNORECASE)
                if match:
                    info.flags = match.group(1).split()

            match = re.search(r"(\d+)\s+EXISTS", line, re.IGNORECASE)
            if match:
                info.exists = int(match.group(1))

            match = re.search(r"(\d+)\s+RECENT", line, re.IGNORECASE)
            if match:
                info.recent = int(match.group(1))

            match = re.search(r"\[UNSEEN\s+(\d+)\]", line, re.IGNORECASE)
            if match:
                info.unseen = int(match.group(1))

            match = re.search(r"UIDVALIDITY\s+(\d+)", line, re.IGNORECASE)
            if match:
                info.uidvalidity = int(match.group(1))

            match = re.search(r"UIDNEXT\s+(\d+)", line, re.IGNORECASE)
            if match:
                info.uidnext = int(match.group(1))

            if "[READ-ONLY]" in line.upper():
                info.read_only = True

        return info

    async def list_mailboxes(self) -> list[MailboxEntry]:
        """Return the server's mailbox tree."""
        client = self._require_client()
        logger.debug("Listing mailboxes")

        response = await client.list('""', "*")
        if response.result != "OK":
            raise IMAPCommandError(f"Failed to list mailboxes: {response.lines}")

        entries = []
        for line in response.lines:
            entry = parse_list_line(line)
            if entry:
                entries.append(entry)

        logger.debug(f"Found {len(entries)} mailboxes")
        return build_mailbox_tree(entries)

    # =========================================================================
    # Message Operations
    # =========================================================================

    async def search(self, criteria: Iterable) -> list[int]:
        """
        Run UID SEARCH in the selected mailbox.

        Returns:
            Matching UIDs in ascending order.

        Raises:
            IMAPSearchError: If the server refuses the search.
        """
        client = self._require_client()
        args = build_search_criteria(criteria)
        logger.debug(f"UID SEARCH {' '.join(args)}")

        response = await client.uid_search(*args, charset=None)
        if response.result != "OK":
            raise IMAPSearchError(f"Search failed: {response.lines}")

        return parse_search_response(response.lines)

    async def fetch(
        self,
        uids: Sequence[int],
        sections: Sequence[str] = DEFAULT_SECTIONS,
        *,
        mark_seen: bool = False,
    ) -> AsyncIterator[FetchedMessage]:
        """
        Fetch body sections for a batch of UIDs with a single UID FETCH.

        Yields one FetchedMessage per message, in the order the server
        delivered them. Iteration ending normally is the batch "end";
        IMAPFetchError is the batch "error".

        Args:
            uids: UIDs to fetch.
            sections: Body sections to fetch ("" = whole message).
            mark_seen: Use BODY[] (sets \\Seen) instead of BODY.PEEK[].
        """
        if not uids:
            return

        client = self._require_client()
        body = "BODY" if mark_seen else "BODY.PEEK"
        items = ["UID", "FLAGS"] + [f"{body}[{section}]" for section in sections]
        uid_set = ",".join(str(u) for u in uids)
        logger.debug(f"UID FETCH {uid_set} ({' '.join(items)})")

        try:
            response = await client.uid("fetch", uid_set, f"({' '.join(items)})")
        except asyncio.TimeoutError as e:
            raise IMAPFetchError(f"Fetch timed out for {uid_set}") from e

        if response.result != "OK":
            raise IMAPFetchError(f"Fetch failed: {response.lines}")

        for message in parse_fetch_response(response.lines):
            yield message

    async def add_flags(self, uids: Sequence[int], flags: Sequence[str]) -> None:
        """Add flags to messages (UID STORE +FLAGS)."""
        client = self._require_client()
        uid_set = ",".join(str(u) for u in uids)
        command = f"+FLAGS ({' '.join(flags)})"

        logger.debug(f"Setting flags on {uid_set}: {command}")
        response = await client.uid("store", uid_set, command)
        if response.result != "OK":
            raise IMAPCommandError(f"Failed to set flags: {response.lines}")

    async def expunge(self) -> None:
        """Permanently remove \\Deleted messages from the selected mailbox."""
        client = self._require_client()
        logger.debug(f"Expunging {self.selected}")

        response = await client.expunge()
        if response.result != "OK":
            raise IMAPCommandError(f"Expunge failed: {response.lines}")
        self._handle_push(response.lines)

    async def move(self, uids: Sequence[int], dest_path: str) -> None:
        """
        Move messages to another mailbox.

        Uses a single UID MOVE if supported, otherwise COPY + \\Deleted + EXPUNGE.
        """
        client = self._require_client()
        uid_set = ",".join(str(u) for u in uids)
        quoted_dest = _quote_folder_name(dest_path)

        if client.has_capability("MOVE"):
            logger.debug(f"Moving {len(uids)} messages to {dest_path} using MOVE")
            response = await client.uid("move", uid_set, quoted_dest)
            if response.result != "OK":
                raise IMAPCommandError(f"Move failed: {response.lines}")
            self._handle_push(response.lines)
            return

        logger.debug(f"Moving {len(uids)} messages to {dest_path} using COPY+DELETE")
        response = await client.uid("copy", uid_set, quoted_dest)
        if response.result != "OK":
            raise IMAPCommandError(f"Copy failed: {response.lines}")
        await self.add_flags(uids, ["\\Deleted"])
        await self.expunge()

    async def noop(self) -> None:
        client = self._require_client()
        response = await client.noop()
        self._handle_push(response.lines)

    # =========================================================================
    # IDLE Support
    # =========================================================================

    @asynccontextmanager
    async def paused(self):
        """
        Suspend IDLE for the duration of a command sequence.

        IDLE (or polling) on the watched mailbox resumes when the outermost
        paused() block exits, reselecting the watched mailbox first.
        """
        self._pause_depth += 1
        try:
            await self._stop_idle_task()
            yield self
        finally:
            self._pause_depth -= 1
            if self._pause_depth == 0:
                self._schedule_idle()

    def start_idle(self, path: str) -> None:
        """Watch a mailbox for new mail; "mail" events follow."""
        if self._idle_mailbox not in (None, path):
            raise IMAPError(f"Already watching {self._idle_mailbox}")
        self._idle_mailbox = path
        if self._pause_depth == 0:
            self._schedule_idle()

    async def stop_idle(self) -> None:
        """Stop watching; pending IDLE is ended cleanly."""
        self._idle_mailbox = None
        await self._stop_idle_task()

    def _schedule_idle(self) -> None:
        if self._idle_mailbox is None or not self.is_connected:
            return
        if self._idle_task is not None and not self._idle_task.done():
            return
        self._idle_stopping = False
        self._idle_task = asyncio.create_task(
            self._idle_loop(self._idle_mailbox),
            name=f"idle-{self._idle_mailbox}",
        )

    async def _stop_idle_task(self) -> None:
        task = self._idle_task
        if task is None or task.done():
            self._idle_task = None
            return

        self._idle_stopping = True
        if self._idle_waiting:
            # Blocked on server pushes or a retry delay: end IDLE, then the wait is safe to cancel
            client = self._client
            future = self._idle_future
            if future is not None and client is not None and client.has_pending_idle():
                client.idle_done()
                try:
                    await asyncio.wait_for(asyncio.shield(future), self.timeout)
                except asyncio.TimeoutError:
                    logger.warning("Server did not acknowledge IDLE termination")
            task.cancel()

        # Otherwise a SELECT or NOOP is in flight; let it finish
        await asyncio.wait({task})
        self._idle_task = None

    def _watching(self, path: str) -> bool:
        return not self._idle_stopping and self._idle_mailbox == path

    async def _idle_loop(self, path: str) -> None:
        logger.debug(f"Entering IDLE loop on {path}")
        try:
            while self._watching(path):
                try:
                    await self.select(path)
                    while self._watching(path):
                        if self.supports_idle():
                            await self._idle_once()
                        else:
                            await self._poll_once()
                except asyncio.CancelledError:
                    raise
                except IMAPConnectionError as e:
                    # Connection is gone; "end" tells the watchers
                    logger.error(f"IDLE stopped on {path}: {e}")
                    return
                except Exception as e:
                    logger.error(f"IDLE error on {path}: {e}")
                    self.emit("error", e)
                    if not self.is_connected:
                        return
                    logger.info(f"Resuming IDLE on {path} in {self.retry_delay}s")
                    await self._retry_pause()
        finally:
            self._idle_waiting = False
            self._idle_future = None

    async def _retry_pause(self) -> None:
        client = self._client
        if client is not None and client.has_pending_idle():
            client.idle_done()
        self._idle_future = None
        self._idle_waiting = True
        try:
            await asyncio.sleep(self.retry_delay)
        finally:
            self._idle_waiting = False

    async def _idle_once(self) -> None:
        client = self._client
        self._idle_future = await client.idle_start(timeout=self.idle_timeout)
        self._idle_waiting = True
        try:
            while client.has_pending_idle() and not self._idle_stopping:
                msg = await client.wait_server_push()
                if msg == aioimaplib.STOP_WAIT_SERVER_PUSH:
                    # IDLE timeout - refresh it
                    break
                self._handle_push(msg)
        finally:
            self._idle_waiting = False

        if client.has_pending_idle():
            client.idle_done()
        await asyncio.wait_for(self._idle_future, self.timeout)
        self._idle_future = None

    async def _poll_once(self) -> None:
        if self._idle_stopping:
            return
        self._idle_waiting = True
        try:
            await asyncio.sleep(self.poll_interval)
        finally:
            self._idle_waiting = False
        if not self._idle_stopping:
            await self.noop()

    def _handle_push(self, lines: Iterable) -> None:
        """
        Track EXISTS/EXPUNGE notifications for the selected mailbox.

        Server pushes look like (aioimaplib may strip the leading *):
            - "N EXISTS"  - N messages now exist
            - "N EXPUNGE" - message N was removed
        """
        path = self.selected
        if path is None:
            return

        for item in lines or []:
            line = _decode_line(item).strip().lstrip("*").strip()

            match = re.match(r"(\d+)\s+EXISTS", line, re.IGNORECASE)
            if match:
                self._note_exists(path, int(match.group(1)))
                continue

            if re.match(r"\d+\s+EXPUNGE", line, re.IGNORECASE):
                if self._known_exists.get(path):
                    self._known_exists[path] -= 1

    def _note_exists(self, path: str, exists: int) -> None:
        previous = self._known_exists.get(path)
        self._known_exists[path] = exists
        if previous is not None and exists > previous:
            count = exists - previous
            logger.info(f"{count} new message(s) in {path}")
            self.emit("mail", path, count)


# =============================================================================
# Exceptions
# =============================================================================

class IMAPError(Exception):
    """Base exception for IMAP operations."""
    pass


class IMAPConnectionError(IMAPError):
    """Raised when unable to connect, or when the connection is gone."""
    pass


class IMAPAuthenticationError(IMAPError):
    """Raised when IMAP authentication fails."""
    pass


class MailboxSelectError(IMAPError):
    """Raised when a mailbox does not exist or cannot be opened."""
    pass


class IMAPSearchError(IMAPError):
    """Raised when the server refuses a search."""
    pass


class IMAPFetchError(IMAPError):
    """Raised when a batched fetch fails as a whole."""
    pass


class IMAPCommandError(IMAPError):
    """Raised when a STORE, EXPUNGE, MOVE, COPY or LIST command fails."""
    pass


class DeletePartialError(IMAPCommandError):
    """
    Raised when messages were flagged \\Deleted but the purge failed.

    The messages are still in the mailbox, carrying the \\Deleted flag.

    Attributes:
        uids: UIDs left flagged for deletion.
    """

    def __init__(self, message: str, uids: Sequence[int]) -> None:
        super().__init__(message)
        self.uids = list(uids)


class WatchError(IMAPError):
    """Raised when a mailbox cannot be watched on this connection."""
    pass
