# =============================================================================
# Mailbox Watcher
# =============================================================================
# Streams newly arrived messages to a caller-supplied handler.
#
# Key responsibilities:
#   - Select the mailbox, then listen for the session's "mail" events
#   - For each notification of N new messages, fetch the N most recent
#     unseen messages and hand them to the handler one by one
#   - Keep going after a failed cycle: errors are logged and emitted as
#     "watch_error" on the client, never raised
#
# Design notes:
#   - One IDLE per connection, so one watched mailbox per connection. Several
#     subscriptions on the same mailbox are fine
#   - Each notification is handled in its own task; the client's connection
#     lock keeps those fetches from overlapping other operations
# =============================================================================

import asyncio
import inspect
import logging
from enum import Enum, auto
from typing import TYPE_CHECKING, Any, Callable

from simple_imap.core import ParsedMessage
from simple_imap.imap.session import WatchError

if TYPE_CHECKING:
    from simple_imap.client import SimpleIMAP

logger = logging.getLogger(__name__)


# handler(batch_size, message); may be a plain function or a coroutine function
NewMailHandler = Callable[[int, ParsedMessage], Any]


class WatchState(Enum):
    """Lifecycle of a MailboxWatcher."""
    IDLE = auto()           # Created, nothing selected yet
    SELECTED = auto()       # Mailbox selected
    LISTENING = auto()      # Receiving new-mail notifications
    CANCELLED = auto()      # Unsubscribed


class MailboxWatcher:
    """
    Watches one mailbox on behalf of one handler.

    Usage:
        >>> watcher = MailboxWatcher(client, "INBOX", on_new_mail)
        >>> subscription = await watcher.start()
        >>> # ... later ...
        >>> await subscription.cancel()
    """

    def __init__(self, client: "SimpleIMAP", mailbox: str, handler: NewMailHandler) -> None:
        self.client = client
        self.mailbox = mailbox
        self.path = client.resolve(mailbox)
        self.handler = handler
        self.state = WatchState.IDLE
        self._tasks: set[asyncio.Task] = set()

    @property
    def session(self):
        return self.client.connection.session

    async def start(self) -> "WatchSubscription":
        """
        Select the mailbox and start listening.

        Returns once listening has begun; notifications are handled later.

        Raises:
            WatchError: If this connection already watches another mailbox.
            MailboxSelectError: If the mailbox cannot be selected.
        """
        watched = self.session.idle_mailbox
        if watched not in (None, self.path):
            raise WatchError(
                f"Connection already watches {watched}; use another connection for {self.path}"
            )

        await self.client.open_box(self.mailbox)
        self.state = WatchState.SELECTED

        self.session.on("mail", self._on_mail)
        self.session.start_idle(self.path)
        self.state = WatchState.LISTENING
        logger.info(f"Watching {self.path} for new mail")

        return WatchSubscription(self)

    def _on_mail(self, path: str, count: int) -> None:
        if path != self.path or self.state is not WatchState.LISTENING:
            return
        task = asyncio.create_task(
            self._handle_new_mail(count),
            name=f"watch-{self.path}",
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _handle_new_mail(self, count: int) -> None:
        logger.info(f"Received {count} new messages in {self.mailbox}")

        try:
            messages = await self.client.get_new_emails(self.mailbox, count)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Error processing new emails in {self.mailbox}: {e}")
            self.client.emit("watch_error", self.mailbox, e)
            return

        logger.info(f"Retrieved {len(messages)} new emails")
        if not messages:
            logger.info("No new emails to process")
            return

        for index, message in enumerate(messages):
            logger.debug(f"Processing email {index + 1} of {len(messages)}")
            try:
                result = self.handler(len(messages), message)
                if inspect.isawaitable(result):
                    await result
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Error in new-mail handler for {self.mailbox}: {e}")
                self.client.emit("watch_error", self.mailbox, e)

    async def stop(self, *, end_idle: bool = True) -> None:
        """
        Stop listening and cancel notification cycles still in flight.

        Args:
            end_idle: Also end IDLE on the session when no other watcher
                      needs it. False when the connection is being torn down.
        """
        if self.state is WatchState.CANCELLED:
            return

        self.state = WatchState.CANCELLED
        self.session.off("mail", self._on_mail)

        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

        still_watched = self.client.release_watcher(self)
        if end_idle and not still_watched and self.session.is_connected:
            await self.session.stop_idle()
        logger.info(f"Stopped watching {self.path}")


class WatchSubscription:
    """
    Handle returned by SimpleIMAP.watch_mailbox().

    Usage:
        >>> subscription = await client.watch_mailbox("INBOX", handler)
        >>> subscription.active
        True
        >>> await subscription.cancel()
    """

    def __init__(self, watcher: MailboxWatcher) -> None:
        self._watcher = watcher

    @property
    def mailbox(self) -> str:
        return self._watcher.mailbox

    @property
    def path(self) -> str:
        return self._watcher.path

    @property
    def state(self) -> WatchState:
        return self._watcher.state

    @property
    def active(self) -> bool:
        return self._watcher.state is WatchState.LISTENING

    async def cancel(self) -> None:
        """Unsubscribe. Safe to call more than once."""
        await self._watcher.stop()

    def __repr__(self) -> str:
        return f"WatchSubscription(path={self.path!r}, state={self.state.name})"
