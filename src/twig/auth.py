"""Credentials from the GitHub CLI host configuration.

The ``gh`` tool keeps one entry per host in ``hosts.yml``::

    github.com:
        user: octocat
        oauth_token: gho_xxxxxxxxxxxx
        git_protocol: https

Newer ``gh`` releases that support several accounts may keep the token
under ``users.<user>.oauth_token`` instead.
"""

import logging
import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional, Protocol

import yaml

logger = logging.getLogger(__name__)

DEFAULT_HOST = "github.com"
GH_CONFIG_DIR_ENV_VAR = "GH_CONFIG_DIR"
HOSTS_FILE_NAME = "hosts.yml"


class CredentialError(Exception):
    """Credentials could not be resolved."""


@dataclass(frozen=True)
class Credentials:
    """Username and token for a single push."""

    username: str
    token: str = field(repr=False)


class CredentialProvider(Protocol):
    """Source of credentials for a remote host."""

    def resolve(self, host: str) -> Credentials:
        """Return credentials for ``host``.

        Raises:
            CredentialError: If no credentials can be produced
        """
        ...


def gh_hosts_path() -> Path:
    """Locate the ``gh`` hosts file for the current user.

    Raises:
        CredentialError: If the configuration directory cannot be determined
    """
    config_dir = os.environ.get(GH_CONFIG_DIR_ENV_VAR)
    if config_dir:
        return Path(config_dir) / HOSTS_FILE_NAME

    if sys.platform == "win32":
        appdata = os.environ.get("APPDATA")
        if not appdata:
            raise CredentialError("Failed to determine APPDATA directory")
        base = Path(appdata)
    else:
        try:
            base = Path.home() / ".config"
        except RuntimeError as err:
            raise CredentialError("Failed to determine home directory") from err
    return base / "gh" / HOSTS_FILE_NAME


class GhCliCredentialProvider:
    """Read credentials the GitHub CLI stored for a host."""

    def __init__(self, path: Optional[Path] = None) -> None:
        self.path = path

    def _load_hosts(self) -> dict[str, Any]:
        """Parse the hosts file into a mapping of host name to login."""
        path = self.path or gh_hosts_path()
        logger.debug("Reading GitHub CLI hosts from %s", path)
        try:
            with path.open(encoding="utf-8") as handle:
                content = handle.read()
        except FileNotFoundError as err:
            raise CredentialError(f"Failed to open GitHub auth config file {path}") from err
        except (OSError, UnicodeDecodeError) as err:
            raise CredentialError(f"Failed to read GitHub auth config file contents: {err}") from err

        try:
            hosts = yaml.safe_load(content)
        except yaml.YAMLError as err:
            raise CredentialError(f"Unable to parse GitHub auth config file: {err}") from err
        if not isinstance(hosts, dict):
            raise CredentialError("Unable to parse GitHub auth config file: expected a mapping of hosts")
        return hosts

    def resolve(self, host: str) -> Credentials:
        """Return the stored login for ``host``."""
        entry = self._load_hosts().get(host)
        if not isinstance(entry, dict):
            raise CredentialError(f"No GitHub CLI login found for {host}")

        user = entry.get("user")
        if not isinstance(user, str) or not user:
            raise CredentialError(f"GitHub CLI login for {host} has no user")

        token = entry.get("oauth_token")
        if not token:
            users = entry.get("users")
            if isinstance(users, dict) and isinstance(users.get(user), dict):
                token = users[user].get("oauth_token")
        if not isinstance(token, str) or not token:
            raise CredentialError(f"GitHub CLI login for {host} has no oauth_token")

        return Credentials(username=user, token=token)
