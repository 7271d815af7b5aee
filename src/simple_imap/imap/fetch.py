# =============================================================================
# Fetch Orchestrator
# =============================================================================
# Turns one batched UID FETCH into a list of parsed messages.
#
# Flow:
#   1. The session yields one FetchedMessage per message, as delivered
#   2. Each message is handed to the parser right away (one task each)
#   3. When the fetch ends, the batch waits for every started parse to settle
#   4. Failed parses are logged and dropped; the rest are returned in
#      delivery order
#
# If the fetch itself fails, the batch is aborted: pending parses are
# cancelled, results parsed so far are discarded, and the fetch error is
# raised unchanged.
# =============================================================================

import asyncio
import logging
from typing import Protocol, Sequence

from simple_imap.core import ParsedMessage
from simple_imap.imap.session import DEFAULT_SECTIONS, FetchedMessage
from simple_imap.mime import MessageParseError

logger = logging.getLogger(__name__)


class Parser(Protocol):
    async def parse(
        self,
        raw: bytes,
        *,
        uid: int | None = None,
        flags: tuple[str, ...] = (),
    ) -> ParsedMessage: ...


def select_recent(uids: Sequence[int], count: int | None) -> list[int]:
    """
    Pick the most recent identifiers from an ascending search result.

    Higher UIDs are newer, so this is the tail of the list. None means no
    bound; a count of zero or less selects nothing.

    Example:
        >>> select_recent([3, 8, 9], 2)
        [8, 9]
    """
    if count is None:
        return list(uids)
    if count <= 0:
        return []
    return list(uids[-count:])


class FetchBatch:
    """
    Aggregates per-message parse results for one fetch.

    The batch is a completion latch: finalize() only returns once every
    message added before it was called has a result (parsed or dropped),
    and it settles exactly once.

    Args:
        parser: Anything with an async parse(raw, uid=..., flags=...).
        strict: Raise the first parse error from finalize() instead of
                dropping the message.
    """

    def __init__(self, parser: Parser, *, strict: bool = False) -> None:
        self.parser = parser
        self.strict = strict
        self._tasks: list[asyncio.Task] = []
        self._settled = False

    def __len__(self) -> int:
        return len(self._tasks)

    @property
    def settled(self) -> bool:
        return self._settled

    def add(self, message: FetchedMessage) -> None:
        """Start parsing a delivered message."""
        if self._settled:
            logger.debug(f"Ignoring message {message.uid} delivered after batch settled")
            return
        self._tasks.append(asyncio.create_task(self._parse(message)))

    async def _parse(self, message: FetchedMessage) -> ParsedMessage | None:
        raw = message.raw
        if raw is None:
            error = MessageParseError(f"no body delivered for message {message.uid}")
        else:
            try:
                return await self.parser.parse(raw, uid=message.uid, flags=message.flags)
            except MessageParseError as e:
                error = e

        if self.strict:
            raise error
        logger.warning(f"Error parsing message {message.uid}: {error}")
        return None

    async def finalize(self) -> list[ParsedMessage]:
        """
        Wait for all parses, then return the successful ones in delivery order.
        """
        if self._settled:
            raise RuntimeError("FetchBatch already settled")
        self._settled = True

        try:
            results = await asyncio.gather(*self._tasks, return_exceptions=True)
        except BaseException:
            self._cancel_pending()
            raise

        # Every failure has been retrieved; raise the first in delivery order
        for result in results:
            if isinstance(result, BaseException):
                raise result

        return [message for message in results if message is not None]

    def abort(self) -> None:
        """Settle without results; pending parses are cancelled."""
        self._settled = True
        self._cancel_pending()

    def _cancel_pending(self) -> None:
        for task in self._tasks:
            if not task.done():
                task.cancel()
            elif not task.cancelled() and task.exception() is not None:
                logger.debug(f"Discarding parse error: {task.exception()}")


async def fetch_messages(
    session,
    uids: Sequence[int],
    parser: Parser,
    *,
    mark_seen: bool = False,
    strict: bool = False,
    sections: Sequence[str] = DEFAULT_SECTIONS,
) -> list[ParsedMessage]:
    """
    Fetch and parse a batch of messages with one fetch command.

    Args:
        session: The session to fetch through (selected mailbox applies).
        uids: UIDs to fetch. An empty list returns [] without a fetch.
        parser: Message parser.
        mark_seen: Let the fetch set \\Seen.
        strict: Raise parse errors instead of dropping the message.
        sections: Body sections to request.

    Returns:
        Parsed messages in the order the server delivered them.

    Raises:
        IMAPFetchError: If the fetch fails; nothing is returned in that case.
    """
    if not uids:
        return []

    batch = FetchBatch(parser, strict=strict)
    try:
        async for message in session.fetch(uids, sections, mark_seen=mark_seen):
            batch.add(message)
    except BaseException:
        logger.error(f"Fetch of {len(uids)} message(s) failed; discarding {len(batch)} in-flight")
        batch.abort()
        raise

    messages = await batch.finalize()
    logger.debug(f"Fetch completed. Retrieved {len(messages)} of {len(uids)} message(s)")
    return messages

