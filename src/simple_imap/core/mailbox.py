# =============================================================================
# Mailbox Model
# =============================================================================
# Represents a server-side mailbox (IMAP "folder") and the rules for naming it.
#
# Many servers (Courier, older Dovecot setups) keep every user mailbox below
# a personal namespace root such as "INBOX." - so the "Archive" mailbox the
# user sees is really "INBOX.Archive" on the wire. Callers use logical names;
# resolve_mailbox() turns them into the path the server expects.
# =============================================================================

from dataclasses import dataclass, field


DEFAULT_ROOT = "INBOX"
DEFAULT_SEPARATOR = "."


def resolve_mailbox(
    name: str,
    root: str = DEFAULT_ROOT,
    separator: str = DEFAULT_SEPARATOR,
) -> str:
    """
    Map a logical mailbox name to the server-side path.

    Names that already start with the root folder followed by the separator
    (compared case-insensitively) are returned unchanged. Anything else,
    including the bare root name itself, gets the root and separator
    prepended.

    Resolution is idempotent: resolve_mailbox(resolve_mailbox(x)) equals
    resolve_mailbox(x).

    Example:
        >>> resolve_mailbox("Archive")
        'INBOX.Archive'
        >>> resolve_mailbox("inbox.Archive")
        'inbox.Archive'
        >>> resolve_mailbox("INBOX")
        'INBOX.INBOX'
    """
    prefix = f"{root}{separator}"
    if name.upper().startswith(prefix.upper()):
        return name
    return f"{prefix}{name}"


@dataclass(frozen=True)
class MailboxRef:
    """
    A caller-supplied mailbox name paired with its resolved server path.

    Attributes:
        name: The logical name as given by the caller (e.g., "Archive").
        path: The server path (e.g., "INBOX.Archive").
    """
    name: str
    path: str

    @classmethod
    def resolve(
        cls,
        name: str,
        root: str = DEFAULT_ROOT,
        separator: str = DEFAULT_SEPARATOR,
    ) -> "MailboxRef":
        """Build a reference by resolving the logical name."""
        return cls(name=name, path=resolve_mailbox(name, root, separator))


@dataclass
class MailboxInfo:
    """
    Metadata reported by the server when a mailbox is selected.

    Attributes:
        path: Server path of the selected mailbox.
        flags: Flags defined in the mailbox (from the FLAGS response).
        permanent_flags: Flags the client may change permanently.
        exists: Number of messages in the mailbox.
        recent: Number of messages with the \\Recent flag.
        unseen: Sequence number of the first unseen message, if reported.
        uidvalidity: UIDVALIDITY of the mailbox. If it changes between
                     selections, previously seen UIDs are meaningless.
        uidnext: Predicted next UID.
        read_only: True if the server opened the mailbox READ-ONLY.
    """
    path: str
    flags: list[str] = field(default_factory=list)
    permanent_flags: list[str] = field(default_factory=list)
    exists: int = 0
    recent: int = 0
    unseen: int | None = None
    uidvalidity: int | None = None
    uidnext: int | None = None
    read_only: bool = False

    def __repr__(self) -> str:
        return (
            f"MailboxInfo(path={self.path!r}, exists={self.exists}, "
            f"recent={self.recent}, uidvalidity={self.uidvalidity})"
        )


@dataclass
class MailboxEntry:
    """
    One node of the server's mailbox tree (from a LIST response).

    Attributes:
        path: Full server path (e.g., "INBOX.Receipts.2024").
        delimiter: Hierarchy delimiter reported by the server. None for
                   flat namespaces (LIST returns NIL).
        attributes: Name attributes such as \\HasChildren or \\Noselect.
        children: Child mailboxes, populated by build_mailbox_tree().
    """
    path: str
    delimiter: str | None = DEFAULT_SEPARATOR
    attributes: list[str] = field(default_factory=list)
    children: list["MailboxEntry"] = field(default_factory=list)

    @property
    def name(self) -> str:
        """
        Returns the last path component.

        Example:
            >>> MailboxEntry(path="INBOX.Receipts.2024").name
            '2024'
        """
        if self.delimiter and self.delimiter in self.path:
            return self.path.rsplit(self.delimiter, 1)[1]
        return self.path

    @property
    def parent_path(self) -> str | None:
        """Returns the parent path, or None for a top-level mailbox."""
        if self.delimiter and self.delimiter in self.path:
            return self.path.rsplit(self.delimiter, 1)[0]
        return None

    @property
    def selectable(self) -> bool:
        """False for \\Noselect / \\NonExistent placeholder nodes."""
        upper = {a.upper() for a in self.attributes}
        return "\\NOSELECT" not in upper and "\\NONEXISTENT" not in upper


def build_mailbox_tree(entries: list[MailboxEntry]) -> list[MailboxEntry]:
    """
    Arrange a flat LIST result into a tree.

    Entries whose parent is absent from the listing are kept at the top level
    so nothing the server reported is lost. Input order is preserved among
    siblings.
    """
    by_path = {entry.path: entry for entry in entries}
    roots: list[MailboxEntry] = []

    for entry in entries:
        parent = by_path.get(entry.parent_path) if entry.parent_path else None
        if parent is not None and parent is not entry:
            parent.children.append(entry)
        else:
            roots.append(entry)

    return roots
