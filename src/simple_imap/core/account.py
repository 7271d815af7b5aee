# =============================================================================
# Account Model
# =============================================================================
# Represents the connection settings for one IMAP account.
#
# IMPORTANT: Passwords are normally NOT stored here. They are retrieved from
# the system keyring at connect time using the 'keyring' library. Embedding
# applications may still pass a password directly (e.g., from their own
# secret store); it is never written back to the config file.
# =============================================================================

from dataclasses import dataclass, field

from simple_imap.core.mailbox import DEFAULT_ROOT, DEFAULT_SEPARATOR, resolve_mailbox


SECURITY_MODES = ("ssl", "starttls", "plain")


@dataclass
class Account:
    """
    Represents an IMAP account.

    Attributes:
        name: A unique identifier for this account (e.g., "personal", "work").
              Used as the key in config files and for keyring lookups.
        username: Login name (usually the email address).

        imap_host: Hostname of the IMAP server (e.g., "imap.example.com").
        imap_port: Port for IMAP connection. Standard ports:
                   - 993 for IMAP with SSL/TLS (recommended)
                   - 143 for IMAP with STARTTLS
        imap_security: Connection security method ("ssl", "starttls", "plain").

        root_folder: Personal namespace root that user mailboxes live under.
        separator: Hierarchy separator used by the server.

        password: Optional password. When empty, the keyring is consulted.

    Example:
        >>> account = Account(
        ...     name="personal",
        ...     username="user@example.com",
        ...     imap_host="imap.example.com",
        ... )
        >>> account.resolve("Archive")
        'INBOX.Archive'
    """

    name: str
    username: str

    imap_host: str = ""
    imap_port: int = 993                # Default to SSL port
    imap_security: str = "ssl"          # "ssl", "starttls" or "plain"

    root_folder: str = DEFAULT_ROOT
    separator: str = DEFAULT_SEPARATOR

    password: str = field(default="", repr=False)

    def __post_init__(self) -> None:
        if self.imap_security not in SECURITY_MODES:
            raise ValueError(
                f"imap_security must be one of {SECURITY_MODES}, got {self.imap_security!r}"
            )

    @property
    def keyring_service(self) -> str:
        """
        Returns the service name used for keyring password storage.

            keyring set simple-imap:personal user@example.com
        """
        return f"simple-imap:{self.name}"

    def resolve(self, mailbox: str) -> str:
        """Resolve a logical mailbox name against this account's namespace."""
        return resolve_mailbox(mailbox, self.root_folder, self.separator)

    def __str__(self) -> str:
        return f"{self.name} <{self.username}>"
