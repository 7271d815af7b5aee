# =============================================================================
# Configuration Management
# =============================================================================
# Handles loading, saving, and validating simple-imap configuration.
#
# XDG Base Directory Compliance (https://specifications.freedesktop.org/basedir-spec/):
#   - Config:  $XDG_CONFIG_HOME/simple-imap/  (default: ~/.config/simple-imap/)
#
# Files:
#   - config.toml: Accounts, fetch defaults and watcher tuning
#
# Example config.toml:
#
#   [general]
#   default_account = "personal"
#
#   [fetch]
#   mark_seen = false
#   criteria = ["UNSEEN"]
#
#   [watch]
#   timeout = 30
#   idle_timeout = 1740
#   poll_interval = 60
#
#   [accounts.personal]
#   username = "user@example.com"
#   imap_host = "imap.example.com"
#   imap_port = 993
#   imap_security = "ssl"
#   root_folder = "INBOX"
#   separator = "."
#
# Passwords never live here; see Account.keyring_service.
# =============================================================================

import os
import tomllib  # Built into Python 3.11+
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import tomli_w  # For writing TOML (tomllib is read-only)

from simple_imap.core import Account
from simple_imap.core.mailbox import DEFAULT_ROOT, DEFAULT_SEPARATOR


# =============================================================================
# XDG Directory Management
# =============================================================================

# Application identifier used in all XDG paths
APP_NAME = "simple-imap"


def get_xdg_config_home() -> Path:
    """
    Returns the XDG config directory for simple-imap.

    Respects $XDG_CONFIG_HOME if set, otherwise uses ~/.config/simple-imap/
    """
    xdg_config = os.environ.get("XDG_CONFIG_HOME")
    if xdg_config:
        base = Path(xdg_config)
    else:
        base = Path.home() / ".config"
    return base / APP_NAME


# =============================================================================
# Configuration Data Structures
# =============================================================================

@dataclass
class FetchConfig:
    """
    Defaults for get_emails().

    Attributes:
        mark_seen: Let fetches set \\Seen on the server.
        criteria: Search criteria used when the caller passes none.
    """
    mark_seen: bool = False
    criteria: list = field(default_factory=lambda: ["UNSEEN"])


@dataclass
class WatchConfig:
    """
    Tuning for the session and mailbox watchers.

    Attributes:
        timeout: Seconds to wait for a command response.
        idle_timeout: Seconds before an IDLE is re-issued (RFC 2177 says
                      under 30 minutes).
        poll_interval: NOOP polling interval for servers without IDLE.
    """
    timeout: float = 30
    idle_timeout: float = 29 * 60
    poll_interval: float = 60


@dataclass
class Config:
    """
    Main configuration container for simple-imap.

    Attributes:
        default_account: Name of the account the CLI uses without --account.
        accounts: Configured accounts, keyed by name.
        fetch: Fetch defaults.
        watch: Watcher tuning.

    Usage:
        >>> config = Config.load()
        >>> config.get_account().imap_host
        'imap.example.com'
    """
    # General settings
    default_account: str = ""

    # Account configurations (name -> Account)
    accounts: dict[str, Account] = field(default_factory=dict)

    fetch: FetchConfig = field(default_factory=FetchConfig)
    watch: WatchConfig = field(default_factory=WatchConfig)

    @staticmethod
    def config_file_path() -> Path:
        """Returns the path to the main config file."""
        return get_xdg_config_home() / "config.toml"

    def get_account(self, name: str | None = None) -> Account:
        """
        Look up an account by name, falling back to the default account.

        With no name and no default_account, a single configured account
        is used.

        Raises:
            ConfigError: If no matching account is configured.
        """
        name = name or self.default_account
        if not name:
            if len(self.accounts) == 1:
                return next(iter(self.accounts.values()))
            raise ConfigError("No account given and no default_account configured")

        try:
            return self.accounts[name]
        except KeyError:
            raise ConfigError(f"Unknown account: {name}") from None

    # -------------------------------------------------------------------------
    # Loading and Saving
    # -------------------------------------------------------------------------

    @classmethod
    def load(cls, path: Path | None = None) -> "Config":
        """
        Load configuration from the config file.

        If the config file doesn't exist, returns default configuration.

        Raises:
            ConfigError: If the config file exists but is invalid.
        """
        config_path = path or cls.config_file_path()

        if not config_path.exists():
            # No config file yet - return defaults
            return cls()

        try:
            with open(config_path, "rb") as f:
                data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ConfigError(f"Invalid config file: {e}") from e

        return cls._from_dict(data)

    def save(self, path: Path | None = None) -> None:
        """
        Save configuration to the config file.

        Creates the config directory if it doesn't exist.
        """
        config_path = path or self.config_file_path()
        config_path.parent.mkdir(parents=True, exist_ok=True)

        with open(config_path, "wb") as f:
            tomli_w.dump(self._to_dict(), f)

    @classmethod
    def _from_dict(cls, data: dict[str, Any]) -> "Config":
        """
        Create a Config object from a dictionary (parsed TOML).
        """
        config = cls()

        general = data.get("general", {})
        config.default_account = general.get("default_account", "")

        fetch = data.get("fetch", {})
        criteria = fetch.get("criteria", ["UNSEEN"])
        if not isinstance(criteria, list):
            raise ConfigError("fetch.criteria must be a list")
        config.fetch = FetchConfig(
            mark_seen=bool(fetch.get("mark_seen", False)),
            criteria=criteria,
        )

        watch = data.get("watch", {})
        config.watch = WatchConfig(
            timeout=watch.get("timeout", 30),
            idle_timeout=watch.get("idle_timeout", 29 * 60),
            poll_interval=watch.get("poll_interval", 60),
        )

        # Accounts - each key under [accounts] is an account name
        for name, acct_data in data.get("accounts", {}).items():
            if "username" not in acct_data:
                raise ConfigError(f"Account {name!r} has no username")
            try:
                config.accounts[name] = Account(
                    name=name,
                    username=acct_data["username"],
                    imap_host=acct_data.get("imap_host", ""),
                    imap_port=acct_data.get("imap_port", 993),
                    imap_security=acct_data.get("imap_security", "ssl"),
                    root_folder=acct_data.get("root_folder", DEFAULT_ROOT),
                    separator=acct_data.get("separator", DEFAULT_SEPARATOR),
                )
            except ValueError as e:
                raise ConfigError(f"Account {name!r}: {e}") from e

        return config

    def _to_dict(self) -> dict[str, Any]:
        """
        Convert Config to a dictionary for TOML serialization.
        """
        data: dict[str, Any] = {}

        data["general"] = {
            "default_account": self.default_account,
        }

        data["fetch"] = {
            "mark_seen": self.fetch.mark_seen,
            "criteria": list(self.fetch.criteria),
        }

        data["watch"] = {
            "timeout": self.watch.timeout,
            "idle_timeout": self.watch.idle_timeout,
            "poll_interval": self.watch.poll_interval,
        }

        # Passwords stay in the keyring
        data["accounts"] = {}
        for name, account in self.accounts.items():
            data["accounts"][name] = {
                "username": account.username,
                "imap_host": account.imap_host,
                "imap_port": account.imap_port,
                "imap_security": account.imap_security,
                "root_folder": account.root_folder,
                "separator": account.separator,
            }

        return data


# =============================================================================
# Exceptions
# =============================================================================

class ConfigError(Exception):
    """Raised when there's an error loading or parsing configuration."""
    pass


# =============================================================================
# Utility Functions
# =============================================================================

def print_paths() -> None:
    """
    Print the XDG paths for debugging.
    Useful for users wondering where their config is stored.
    """
    print(f"Config:       {get_xdg_config_home()}")
    print(f"Config file:  {Config.config_file_path()}")
