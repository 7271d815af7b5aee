# =============================================================================
# SimpleIMAP Client
# =============================================================================
# The caller-facing facade. Every operation is a coroutine that returns its
# result or raises; nothing is reported through callbacks except the
# connection-wide "error"/"end" events and "watch_error" from watchers.
#
# Each mailbox-scoped operation runs as one select-then-act sequence under
# the connection lock, so concurrent calls never see each other's selected
# mailbox.
#
# Usage:
#   async with SimpleIMAP(account) as client:
#       for message in await client.get_emails("INBOX", ["UNSEEN"], count=10):
#           print(message.subject)
#
#       subscription = await client.watch_mailbox("INBOX", on_new_mail)
#       ...
#       await subscription.cancel()
# =============================================================================

import logging
from typing import Iterable, Sequence

from simple_imap.config import Config
from simple_imap.core import Account, MailboxEntry, MailboxInfo, ParsedMessage
from simple_imap.imap.connection import Connection
from simple_imap.imap.events import EventSource
from simple_imap.imap.fetch import fetch_messages, select_recent
from simple_imap.imap.session import DeletePartialError, IMAPError, IMAPSession
from simple_imap.imap.watcher import MailboxWatcher, NewMailHandler, WatchSubscription
from simple_imap.mime import MessageParser

logger = logging.getLogger(__name__)


class SimpleIMAP(EventSource):
    """
    Promise-style IMAP client for one account.

    Events:
        "error"       (exception)          - connection failure after connect()
        "end"         ()                   - the connection terminated
        "watch_error" (mailbox, exception) - a watcher cycle or handler failed

    Args:
        account: Account to connect as.
        config: Fetch defaults and watcher tuning. Defaults to Config().
        session: Protocol engine to use instead of a new IMAPSession.
        parser: MIME parser to use instead of a new MessageParser.
    """

    def __init__(
        self,
        account: Account,
        *,
        config: Config | None = None,
        session: IMAPSession | None = None,
        parser: MessageParser | None = None,
    ) -> None:
        super().__init__()
        self.account = account
        self.config = config or Config()
        self.parser = parser or MessageParser()

        if session is None:
            session = IMAPSession(
                account,
                timeout=self.config.watch.timeout,
                idle_timeout=self.config.watch.idle_timeout,
                poll_interval=self.config.watch.poll_interval,
            )
        self.connection = Connection(session)
        self.connection.on("error", lambda error: self.emit("error", error))
        self.connection.on("end", lambda: self.emit("end"))

        self._watchers: list[MailboxWatcher] = []

    # =========================================================================
    # Connection Lifecycle
    # =========================================================================

    async def connect(self) -> None:
        """Connect and log in. Raises on failure."""
        await self.connection.connect()

    async def disconnect(self) -> None:
        """Stop all watchers, log out and wait for the connection to end."""
        for watcher in list(self._watchers):
            await watcher.stop(end_idle=False)
        await self.connection.disconnect()

    async def destroy(self) -> None:
        """Force the connection closed. Idempotent."""
        for watcher in list(self._watchers):
            await watcher.stop(end_idle=False)
        await self.connection.destroy()

    async def __aenter__(self) -> "SimpleIMAP":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.disconnect()

    # =========================================================================
    # Mailboxes
    # =========================================================================

    def resolve(self, mailbox: str) -> str:
        """
        Resolve a logical mailbox name to its server path.

        Example:
            >>> client.resolve("Archive")
            'INBOX.Archive'
        """
        return self.account.resolve(mailbox)

    async def open_box(self, mailbox: str) -> MailboxInfo:
        """
        Select a mailbox read-write.

        Raises:
            MailboxSelectError: If the server refuses the selection.
        """
        path = self.resolve(mailbox)
        async with self.connection.exclusive() as session:
            return await session.select(path)

    async def list_mailboxes(self) -> list[MailboxEntry]:
        """Return the server's mailboxes as a tree of root entries."""
        async with self.connection.exclusive() as session:
            return await session.list_mailboxes()

    # =========================================================================
    # Fetching
    # =========================================================================

    async def get_emails(
        self,
        mailbox: str = "INBOX",
        criteria: Iterable | None = None,
        *,
        mark_seen: bool | None = None,
        count: int | None = None,
    ) -> list[ParsedMessage]:
        """
        Search a mailbox and fetch the matching messages.

        Args:
            mailbox: Logical mailbox name.
            criteria: Search criteria, e.g. ["UNSEEN", ("FROM", "a@b.c")].
                      Defaults to the configured criteria.
            mark_seen: Let the fetch set \\Seen. Defaults to the config value.
            count: Only the `count` most recent matches. None means all.

        Returns:
            Parsed messages in delivery order. Messages that fail to parse
            are left out.

        Raises:
            MailboxSelectError, IMAPSearchError, IMAPFetchError
        """
        criteria = list(criteria) if criteria is not None else list(self.config.fetch.criteria)
        if mark_seen is None:
            mark_seen = self.config.fetch.mark_seen
        path = self.resolve(mailbox)

        async with self.connection.exclusive() as session:
            await session.select(path)
            uids = await session.search(criteria)
            logger.debug(f"Search in {path} matched {len(uids)} message(s)")

            uids = select_recent(uids, count)
            if not uids:
                return []
            return await fetch_messages(session, uids, self.parser, mark_seen=mark_seen)

    async def get_new_emails(self, mailbox: str, count: int) -> list[ParsedMessage]:
        """
        Fetch the `count` most recent unseen messages without marking them.
        """
        logger.info(f"Fetching {count} new emails from {mailbox}")
        return await self.get_emails(mailbox, ["UNSEEN"], mark_seen=False, count=count)

    async def get_latest_email(self, mailbox: str = "INBOX") -> ParsedMessage | None:
        """
        Fetch the newest unseen message, or None if there is none.

        Raises:
            MessageParseError: If that message cannot be parsed.
        """
        path = self.resolve(mailbox)
        async with self.connection.exclusive() as session:
            await session.select(path)
            uids = select_recent(await session.search(["UNSEEN"]), 1)
            if not uids:
                return None
            messages = await fetch_messages(session, uids, self.parser, strict=True)

        return messages[0] if messages else None

    # =========================================================================
    # Mutations
    # =========================================================================

    async def move_emails(self, source: str, dest: str, uids: Sequence[int]) -> None:
        """
        Move messages between mailboxes. Both names are resolved.

        Raises:
            MailboxSelectError: If the source cannot be selected.
            IMAPCommandError: If the move fails.
        """
        if not uids:
            return

        source_path = self.resolve(source)
        dest_path = self.resolve(dest)
        logger.info(f"Moving {len(uids)} message(s) from {source_path} to {dest_path}")

        async with self.connection.exclusive() as session:
            await session.select(source_path)
            await session.move(list(uids), dest_path)

    async def delete_emails(self, mailbox: str, uids: Sequence[int]) -> None:
        """
        Flag messages \\Deleted and expunge the mailbox.

        Raises:
            MailboxSelectError: If the mailbox cannot be selected.
            IMAPCommandError: If flagging fails (nothing changed).
            DeletePartialError: If flagging worked but the expunge failed;
                the messages stay in the mailbox with \\Deleted set.
        """
        if not uids:
            return

        path = self.resolve(mailbox)
        logger.info(f"Deleting {len(uids)} message(s) from {path}")

        async with self.connection.exclusive() as session:
            await session.select(path)
            await session.add_flags(list(uids), ["\\Deleted"])
            try:
                await session.expunge()
            except IMAPError as e:
                raise DeletePartialError(
                    f"Messages flagged \\Deleted but expunge failed in {path}: {e}",
                    uids,
                ) from e

    # =========================================================================
    # Watching
    # =========================================================================

    async def watch_mailbox(self, mailbox: str, handler: NewMailHandler) -> WatchSubscription:
        """
        Call `handler(batch_size, message)` for every message that arrives.

        Returns once the mailbox is selected and listening has started.

        Raises:
            MailboxSelectError: If the mailbox cannot be selected.
            WatchError: If another mailbox is already watched on this
                connection.
        """
        watcher = MailboxWatcher(self, mailbox, handler)
        self._watchers.append(watcher)
        try:
            return await watcher.start()
        except BaseException:
            self._watchers.remove(watcher)
            raise

    def release_watcher(self, watcher: MailboxWatcher) -> bool:
        """
        Forget a stopped watcher.

        Called by MailboxWatcher.stop(). Returns True if other watchers still
        use the same mailbox, so IDLE must stay up.
        """
        if watcher in self._watchers:
            self._watchers.remove(watcher)
        return any(w.path == watcher.path for w in self._watchers)
