"""Tests for the SimpleIMAP facade."""

import asyncio

import pytest

from fakes import make_raw
from simple_imap.client import SimpleIMAP
from simple_imap.config import Config, FetchConfig
from simple_imap.imap.session import (
    DeletePartialError,
    IMAPCommandError,
    IMAPConnectionError,
    IMAPFetchError,
    IMAPSearchError,
    MailboxSelectError,
)
from simple_imap.mime import MessageParseError


class TestLifecycle:
    """Tests for connecting and disconnecting through the facade."""

    @pytest.mark.asyncio
    async def test_async_context_manager(self, client, fake_session) -> None:
        async with client as connected:
            assert connected is client
            assert client.connection.is_ready

        assert fake_session.command_names() == ["connect", "logout"]

    @pytest.mark.asyncio
    async def test_operations_before_connect_fail(self, client) -> None:
        with pytest.raises(IMAPConnectionError):
            await client.get_emails("Receipts")

    @pytest.mark.asyncio
    async def test_events_are_forwarded(self, connected_client, fake_session) -> None:
        errors, ended = [], []
        connected_client.on("error", errors.append)
        connected_client.on("end", lambda: ended.append(True))

        fake_session.drop(IMAPConnectionError("reset"))

        assert len(errors) == 1
        assert ended == [True]

    def test_resolve(self, client) -> None:
        assert client.resolve("Archive") == "INBOX.Archive"
        assert client.resolve("INBOX.Archive") == "INBOX.Archive"
        assert client.resolve("INBOX") == "INBOX.INBOX"


class TestOpenBox:
    """Tests for box selection."""

    @pytest.mark.asyncio
    async def test_open_box_resolves_name(self, connected_client, fake_session) -> None:
        fake_session.add_message("INBOX.Archive", make_raw("old"), notify=False)

        info = await connected_client.open_box("Archive")

        assert info.path == "INBOX.Archive"
        assert info.exists == 1
        assert fake_session.commands[-1] == ("select", "INBOX.Archive")

    @pytest.mark.asyncio
    async def test_open_box_failure(self, connected_client) -> None:
        with pytest.raises(MailboxSelectError):
            await connected_client.open_box("Nope")

    @pytest.mark.asyncio
    async def test_list_mailboxes(self, connected_client) -> None:
        roots = await connected_client.list_mailboxes()

        assert [r.path for r in roots] == ["INBOX"]
        assert sorted(c.name for c in roots[0].children) == ["Archive", "Receipts", "Trash"]


class TestGetEmails:
    """Tests for search + fetch + parse."""

    @pytest.mark.asyncio
    async def test_unseen_with_count_returns_most_recent(self, connected_client, fake_session) -> None:
        for i in range(1, 6):
            fake_session.add_message("INBOX.Receipts", make_raw(f"m{i}"), notify=False)

        messages = await connected_client.get_emails("Receipts", ["UNSEEN"], count=2)

        assert [m.subject for m in messages] == ["m4", "m5"]
        fetches = [c for c in fake_session.commands if c[0] == "fetch"]
        assert fetches == [("fetch", "INBOX.Receipts", [4, 5], False)]

    @pytest.mark.asyncio
    async def test_default_criteria_from_config(self, sample_account, fake_session) -> None:
        config = Config(fetch=FetchConfig(criteria=["ALL"], mark_seen=True))
        client = SimpleIMAP(sample_account, config=config, session=fake_session)
        await client.connect()

        await client.get_emails("Receipts")

        search = next(c for c in fake_session.commands if c[0] == "search")
        assert search == ("search", "INBOX.Receipts", ["ALL"])
        await client.destroy()

    @pytest.mark.asyncio
    async def test_seen_messages_are_excluded(self, connected_client, fake_session) -> None:
        fake_session.add_message("INBOX.Receipts", make_raw("read"), flags=["\\Seen"], notify=False)
        fake_session.add_message("INBOX.Receipts", make_raw("unread"), notify=False)

        messages = await connected_client.get_emails("Receipts")

        assert [m.subject for m in messages] == ["unread"]

    @pytest.mark.asyncio
    async def test_no_matches_means_no_fetch(self, connected_client, fake_session) -> None:
        assert await connected_client.get_emails("Receipts") == []
        assert "fetch" not in fake_session.command_names()

    @pytest.mark.asyncio
    async def test_mark_seen(self, connected_client, fake_session) -> None:
        uid = fake_session.add_message("INBOX.Receipts", make_raw("x"), notify=False)

        await connected_client.get_emails("Receipts", mark_seen=True)

        assert "\\Seen" in fake_session.flags_of("INBOX.Receipts", uid)

    @pytest.mark.asyncio
    async def test_unparsable_message_is_skipped(self, connected_client, fake_session) -> None:
        fake_session.add_message("INBOX.Receipts", make_raw("good"), notify=False)
        fake_session.add_message("INBOX.Receipts", b"", notify=False)

        messages = await connected_client.get_emails("Receipts")

        assert [m.subject for m in messages] == ["good"]

    @pytest.mark.asyncio
    async def test_select_error_is_raised(self, connected_client) -> None:
        with pytest.raises(MailboxSelectError):
            await connected_client.get_emails("Missing")

    @pytest.mark.asyncio
    async def test_search_error_is_raised(self, connected_client, fake_session) -> None:
        fake_session.fail_search = True

        with pytest.raises(IMAPSearchError):
            await connected_client.get_emails("Receipts")

    @pytest.mark.asyncio
    async def test_fetch_error_is_raised(self, connected_client, fake_session) -> None:
        fake_session.add_message("INBOX.Receipts", make_raw("a"), notify=False)
        fake_session.add_message("INBOX.Receipts", make_raw("b"), notify=False)
        fake_session.fail_fetch_after = 1

        with pytest.raises(IMAPFetchError):
            await connected_client.get_emails("Receipts")

    @pytest.mark.asyncio
    async def test_get_new_emails_never_marks_seen(self, connected_client, fake_session) -> None:
        connected_client.config.fetch.mark_seen = True
        for i in range(3):
            fake_session.add_message("INBOX.Receipts", make_raw(f"n{i}"), notify=False)

        messages = await connected_client.get_new_emails("Receipts", 2)

        assert [m.subject for m in messages] == ["n1", "n2"]
        assert fake_session.commands[-1][-1] is False

    @pytest.mark.asyncio
    async def test_concurrent_operations_on_different_mailboxes(self, connected_client, fake_session) -> None:
        fake_session.add_message("INBOX.Receipts", make_raw("inbox mail"), notify=False)
        fake_session.add_message("INBOX.Archive", make_raw("archived"), notify=False)

        inbox, archive = await asyncio.gather(
            connected_client.get_emails("Receipts"),
            connected_client.get_emails("Archive"),
        )

        assert [m.subject for m in inbox] == ["inbox mail"]
        assert [m.subject for m in archive] == ["archived"]


class TestGetLatestEmail:
    """Tests for get_latest_email("Receipts")."""

    @pytest.mark.asyncio
    async def test_returns_newest_unseen(self, connected_client, fake_session) -> None:
        fake_session.add_message("INBOX.Receipts", make_raw("older"), notify=False)
        fake_session.add_message("INBOX.Receipts", make_raw("newest"), notify=False)

        message = await connected_client.get_latest_email("Receipts")

        assert message.subject == "newest"

    @pytest.mark.asyncio
    async def test_none_when_nothing_unseen(self, connected_client) -> None:
        assert await connected_client.get_latest_email("Receipts") is None

    @pytest.mark.asyncio
    async def test_parse_failure_is_raised(self, connected_client, fake_session) -> None:
        fake_session.add_message("INBOX.Receipts", b"", notify=False)

        with pytest.raises(MessageParseError):
            await connected_client.get_latest_email("Receipts")


class TestMutations:
    """Tests for move_emails() and delete_emails()."""

    @pytest.mark.asyncio
    async def test_move_resolves_both_names(self, connected_client, fake_session) -> None:
        a = fake_session.add_message("INBOX.Receipts", make_raw("a"), notify=False)
        b = fake_session.add_message("INBOX.Receipts", make_raw("b"), notify=False)

        await connected_client.move_emails("Receipts", "Archive", [a, b])

        moves = [c for c in fake_session.commands if c[0] == "move"]
        assert moves == [("move", "INBOX.Receipts", [a, b], "INBOX.Archive")]
        assert fake_session.uids("INBOX.Archive") == [a, b]
        assert fake_session.uids("INBOX.Receipts") == []

    @pytest.mark.asyncio
    async def test_move_failure_is_raised(self, connected_client, fake_session) -> None:
        uid = fake_session.add_message("INBOX.Receipts", make_raw("a"), notify=False)
        fake_session.fail_move = True

        with pytest.raises(IMAPCommandError):
            await connected_client.move_emails("Receipts", "Archive", [uid])

    @pytest.mark.asyncio
    async def test_move_nothing_sends_nothing(self, connected_client, fake_session) -> None:
        await connected_client.move_emails("Receipts", "Archive", [])

        assert fake_session.command_names() == ["connect"]

    @pytest.mark.asyncio
    async def test_delete_flags_then_expunges(self, connected_client, fake_session) -> None:
        keep = fake_session.add_message("INBOX.Receipts", make_raw("keep"), notify=False)
        gone = fake_session.add_message("INBOX.Receipts", make_raw("gone"), notify=False)

        await connected_client.delete_emails("Receipts", [gone])

        assert fake_session.command_names()[-2:] == ["store", "expunge"]
        assert fake_session.uids("INBOX.Receipts") == [keep]

    @pytest.mark.asyncio
    async def test_delete_partial_failure_leaves_messages_flagged(self, connected_client, fake_session) -> None:
        uid = fake_session.add_message("INBOX.Trash", make_raw("x"), notify=False)
        fake_session.fail_expunge = True

        with pytest.raises(DeletePartialError) as excinfo:
            await connected_client.delete_emails("Trash", [uid])

        assert excinfo.value.uids == [uid]
        assert fake_session.uids("INBOX.Trash") == [uid]
        assert "\\Deleted" in fake_session.flags_of("INBOX.Trash", uid)

    @pytest.mark.asyncio
    async def test_delete_flagging_failure_changes_nothing(self, connected_client, fake_session) -> None:
        uid = fake_session.add_message("INBOX.Receipts", make_raw("x"), notify=False)
        fake_session.fail_store = True

        with pytest.raises(IMAPCommandError) as excinfo:
            await connected_client.delete_emails("Receipts", [uid])

        assert not isinstance(excinfo.value, DeletePartialError)
        assert "expunge" not in fake_session.command_names()
