# =============================================================================
# Pytest Configuration and Fixtures
# =============================================================================
# Shared fixtures for the simple-imap test suite.
# =============================================================================

import pytest
import pytest_asyncio

from fakes import FakeSession, make_raw
from simple_imap.client import SimpleIMAP
from simple_imap.config import Config
from simple_imap.core import Account
from simple_imap.mime import MessageParser


@pytest.fixture
def sample_account():
    """Create a sample Account for testing."""
    return Account(
        name="test",
        username="test@example.com",
        imap_host="imap.example.com",
        imap_port=993,
        imap_security="ssl",
        password="secret",
    )


@pytest.fixture
def sample_raw():
    """A plain-text message as fetched from the server."""
    return make_raw(subject="Test Subject", body="This is a test email body.")


@pytest.fixture
def sample_multipart_raw():
    """A multipart/mixed message with text, HTML and a PDF attachment."""
    return (
        b"From: =?utf-8?q?J=C3=BCrgen?= <jurgen@example.com>\r\n"
        b"To: bob@example.com, carol@example.com\r\n"
        b"Cc: dave@example.com\r\n"
        b"Subject: =?utf-8?q?Quarterly_r=C3=A9sum=C3=A9?=\r\n"
        b"Date: Tue, 16 Jan 2024 08:00:00 +0100\r\n"
        b"Message-ID: <multi@example.com>\r\n"
        b"In-Reply-To: <parent@example.com>\r\n"
        b"References: <root@example.com> <parent@example.com>\r\n"
        b"MIME-Version: 1.0\r\n"
        b'Content-Type: multipart/mixed; boundary="outer"\r\n'
        b"\r\n"
        b"--outer\r\n"
        b'Content-Type: multipart/alternative; boundary="inner"\r\n'
        b"\r\n"
        b"--inner\r\n"
        b"Content-Type: text/plain; charset=utf-8\r\n"
        b"\r\n"
        b"Plain body\r\n"
        b"--inner\r\n"
        b"Content-Type: text/html; charset=utf-8\r\n"
        b"\r\n"
        b"<html><body><p>HTML <b>body</b></p></body></html>\r\n"
        b"--inner--\r\n"
        b"--outer\r\n"
        b"Content-Type: application/pdf\r\n"
        b'Content-Disposition: attachment; filename="report.pdf"\r\n'
        b"Content-Transfer-Encoding: base64\r\n"
        b"\r\n"
        b"JVBERi0xLjQK\r\n"
        b"--outer--\r\n"
    )


@pytest.fixture
def config():
    """Config with library defaults."""
    return Config()


@pytest.fixture
def fake_session():
    """An empty in-memory session with INBOX and a few folders."""
    return FakeSession({
        "INBOX": [],
        "INBOX.Archive": [],
        "INBOX.Receipts": [],
        "INBOX.Trash": [],
    })


@pytest.fixture
def client(sample_account, fake_session, config):
    """A SimpleIMAP client wired to the fake session (not yet connected)."""
    return SimpleIMAP(
        sample_account,
        config=config,
        session=fake_session,
        parser=MessageParser(),
    )


@pytest_asyncio.fixture
async def connected_client(client):
    """A connected client, disconnected again after the test."""
    await client.connect()
    yield client
    await client.destroy()
