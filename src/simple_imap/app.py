# =============================================================================
# simple-imap Command Line
# =============================================================================
# A thin CLI over SimpleIMAP, mostly useful for poking at a server:
#
#   simple-imap mailboxes
#   simple-imap fetch INBOX --criteria UNSEEN --criteria "FROM alice" --count 5
#   simple-imap latest
#   simple-imap watch INBOX
#   simple-imap move INBOX Archive 12 13
#   simple-imap delete Trash 40
#
# The account comes from the config file (--account, or the default account).
# =============================================================================

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from simple_imap import __version__, __app_name__
from simple_imap.client import SimpleIMAP
from simple_imap.config import Config, ConfigError, print_paths
from simple_imap.core import MailboxEntry, ParsedMessage
from simple_imap.imap.session import IMAPError
from simple_imap.mime import MessageParseError

logger = logging.getLogger(__name__)


# =============================================================================
# Output Helpers
# =============================================================================

def _print_tree(entries: list[MailboxEntry], depth: int = 0) -> None:
    for entry in entries:
        marker = "" if entry.selectable else "  (not selectable)"
        print(f"{'  ' * depth}{entry.name}{marker}")
        _print_tree(entry.children, depth + 1)


def _print_message(message: ParsedMessage) -> None:
    date = message.date.strftime("%Y-%m-%d %H:%M") if message.date else "?"
    print(f"[{message.uid}] {date}  {message.display_sender}  {message.subject}")


def _parse_criterion(text: str) -> str | tuple[str, ...]:
    """Turn "FROM alice" into ("FROM", "alice"); a bare key stays a string."""
    key, _, value = text.strip().partition(" ")
    if not value:
        return key.upper()
    return (key.upper(), value.strip())


# =============================================================================
# Commands
# =============================================================================

async def _cmd_mailboxes(client: SimpleIMAP, args: argparse.Namespace) -> int:
    _print_tree(await client.list_mailboxes())
    return 0


async def _cmd_fetch(client: SimpleIMAP, args: argparse.Namespace) -> int:
    criteria = [_parse_criterion(c) for c in args.criteria] if args.criteria else None
    messages = await client.get_emails(
        args.mailbox,
        criteria,
        mark_seen=args.mark_seen or None,
        count=args.count,
    )
    for message in messages:
        _print_message(message)
    print(f"{len(messages)} message(s)")
    return 0


async def _cmd_latest(client: SimpleIMAP, args: argparse.Namespace) -> int:
    message = await client.get_latest_email(args.mailbox)
    if message is None:
        print("No unseen messages")
        return 0
    _print_message(message)
    print()
    print(message.text)
    return 0


async def _cmd_watch(client: SimpleIMAP, args: argparse.Namespace) -> int:
    def on_new_mail(batch_size: int, message: ParsedMessage) -> None:
        _print_message(message)

    client.on("watch_error", lambda mailbox, e: print(f"Watch error in {mailbox}: {e}", file=sys.stderr))
    ended = asyncio.Event()
    client.on("end", ended.set)

    subscription = await client.watch_mailbox(args.mailbox, on_new_mail)
    print(f"Watching {subscription.path} (Ctrl+C to stop)")
    try:
        await ended.wait()
    finally:
        await subscription.cancel()
    return 1


async def _cmd_move(client: SimpleIMAP, args: argparse.Namespace) -> int:
    await client.move_emails(args.source, args.dest, args.uids)
    print(f"Moved {len(args.uids)} message(s) to {client.resolve(args.dest)}")
    return 0


async def _cmd_delete(client: SimpleIMAP, args: argparse.Namespace) -> int:
    await client.delete_emails(args.mailbox, args.uids)
    print(f"Deleted {len(args.uids)} message(s) from {client.resolve(args.mailbox)}")
    return 0


COMMANDS = {
    "mailboxes": _cmd_mailboxes,
    "fetch": _cmd_fetch,
    "latest": _cmd_latest,
    "watch": _cmd_watch,
    "move": _cmd_move,
    "delete": _cmd_delete,
}


async def run_command(config: Config, args: argparse.Namespace) -> int:
    """Connect with the selected account, run one command, disconnect."""
    account = config.get_account(args.account)
    logger.debug(f"Running {args.command} as {account}")
    async with SimpleIMAP(account, config=config) as client:
        return await COMMANDS[args.command](client, args)


# =============================================================================
# CLI Entry Point
# =============================================================================

def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """
    Parse command-line arguments.

    Returns:
        Parsed arguments namespace.
    """
    parser = argparse.ArgumentParser(
        prog=__app_name__,
        description="simple-imap: promise-style IMAP access from the command line",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    parser.add_argument(
        "--paths",
        action="store_true",
        help="Print configuration paths and exit",
    )

    parser.add_argument(
        "--config",
        type=Path,
        help="Path to config file (default: XDG config location)",
    )

    parser.add_argument(
        "--account",
        help="Account name from the config file (default: default_account)",
    )

    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug mode (verbose logging)",
    )

    sub = parser.add_subparsers(dest="command")

    sub.add_parser("mailboxes", help="List mailboxes")

    fetch = sub.add_parser("fetch", help="Search a mailbox and print matches")
    fetch.add_argument("mailbox", nargs="?", default="INBOX")
    fetch.add_argument(
        "--criteria",
        action="append",
        help='Search criterion, e.g. UNSEEN or "FROM alice" (repeatable)',
    )
    fetch.add_argument("--count", type=int, help="Only the N most recent matches")
    fetch.add_argument("--mark-seen", action="store_true", help="Mark fetched messages as seen")

    latest = sub.add_parser("latest", help="Show the newest unseen message")
    latest.add_argument("mailbox", nargs="?", default="INBOX")

    watch = sub.add_parser("watch", help="Print new messages as they arrive")
    watch.add_argument("mailbox", nargs="?", default="INBOX")

    move = sub.add_parser("move", help="Move messages to another mailbox")
    move.add_argument("source")
    move.add_argument("dest")
    move.add_argument("uids", type=int, nargs="+")

    delete = sub.add_parser("delete", help="Delete messages")
    delete.add_argument("mailbox")
    delete.add_argument("uids", type=int, nargs="+")

    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    """
    Main entry point for simple-imap.

    This function:
        1. Parses command-line arguments
        2. Handles special commands (--paths, --version)
        3. Loads configuration
        4. Runs the requested command

    Returns:
        Exit code (0 for success, non-zero for errors).
    """
    args = parse_args(argv)

    if args.debug:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )

    if args.paths:
        print_paths()
        return 0

    if not args.command:
        print("No command given; see --help", file=sys.stderr)
        return 2

    try:
        config = Config.load(args.config)
        return asyncio.run(run_command(config, args))
    except ConfigError as e:
        print(f"Config error: {e}", file=sys.stderr)
        return 1
    except (IMAPError, MessageParseError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
