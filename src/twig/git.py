"""Git repository operations."""

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from git import GitCommandError, InvalidGitRepositoryError, NoSuchPathError, Remote, Repo

logger = logging.getLogger(__name__)

DEFAULT_REMOTE = "origin"
HEADS_PREFIX = "refs/heads/"


class GitError(Exception):
    """Git operation error."""


class RemoteNotFound(GitError):
    """The requested remote is not configured."""


class RemoteConnectError(GitError):
    """The handshake with a remote failed."""


class DefaultBranchNotFound(GitError):
    """The remote does not advertise a default branch."""


class DefaultBranchDecodeError(GitError):
    """The advertised default branch is not valid UTF-8."""


class BranchNameError(GitError):
    """A branch name cannot be represented as text."""


def short_branch_name(ref_path: str) -> str:
    """Strip a leading ``refs/heads/`` from a ref path."""
    return ref_path.removeprefix(HEADS_PREFIX)


@dataclass(frozen=True)
class LocalBranch:
    """A local branch, borrowed from git by its raw ref name."""

    refname: bytes
    is_head: bool = False

    @property
    def name(self) -> str:
        """Short branch name.

        Raises:
            BranchNameError: If the name is not valid UTF-8
        """
        raw = self.refname.removeprefix(HEADS_PREFIX.encode())
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as err:
            raise BranchNameError(f"Branch name is not valid UTF-8: {raw!r}") from err

    @property
    def ref_path(self) -> str:
        """Full ref path, e.g. ``refs/heads/feature-x``."""
        return HEADS_PREFIX + self.name

    @property
    def label(self) -> str:
        """Printable name, even when the real one cannot be decoded."""
        return self.refname.removeprefix(HEADS_PREFIX.encode()).decode("utf-8", errors="replace")


@dataclass(frozen=True)
class BranchEntry:
    """Outcome of reading one enumerated branch."""

    branch: Optional[LocalBranch] = None
    error: Optional[GitError] = None


class RemoteConnection:
    """Fetch-direction handshake with a remote.

    Holds the ref advertisement of the remote between ``connect`` and
    ``disconnect``.
    """

    def __init__(self, repo: Repo, remote_name: str) -> None:
        self.remote_name = remote_name
        self._git = repo.git
        self._advertisement: Optional[bytes] = None

    @property
    def connected(self) -> bool:
        """Whether the handshake has happened and not been closed."""
        return self._advertisement is not None

    def connect(self) -> None:
        """Perform the handshake and keep the advertised refs."""
        logger.debug("Connecting to remote %s", self.remote_name)
        try:
            self._advertisement = self._git.ls_remote("--symref", self.remote_name, "HEAD", stdout_as_string=False)
        except GitCommandError as err:
            raise RemoteConnectError(f"Unable to connect to remote {self.remote_name}: {err}") from err

    def default_branch(self) -> bytes:
        """Return the ref the remote's HEAD points at, undecoded."""
        if self._advertisement is None:
            raise GitError(f"Remote {self.remote_name} is not connected")
        for line in self._advertisement.splitlines():
            # ref: refs/heads/main<TAB>HEAD
            if line.startswith(b"ref: ") and line.endswith(b"\tHEAD"):
                return line[len(b"ref: ") : -len(b"\tHEAD")]
        raise DefaultBranchNotFound(f"Remote {self.remote_name} does not advertise a default branch")

    def disconnect(self) -> None:
        """Drop the advertised refs."""
        if self._advertisement is None:
            raise GitError(f"Remote {self.remote_name} is not connected")
        self._advertisement = None
        logger.debug("Disconnected from remote %s", self.remote_name)


class GitRepo:
    """Git repository operations."""

    def __init__(self, path: Path) -> None:
        """Initialize repository."""
        try:
            self.repo: Repo = Repo(path, search_parent_directories=True)
            if self.repo.bare:
                raise GitError("Cannot operate on bare repository")
        except (GitCommandError, ValueError, InvalidGitRepositoryError, NoSuchPathError) as err:
            raise GitError(f"Failed to open repository: {err}") from err

    def list_local_branches(self) -> list[BranchEntry]:
        """List local branches in ref order.

        Records git cannot give us a usable branch for become entries
        carrying an error, so one broken ref does not hide the others.

        Raises:
            GitError: If the branches cannot be listed at all
        """
        try:
            output = self.repo.git.for_each_ref(
                "--format=%(HEAD)%00%(objecttype)%00%(refname)",
                "refs/heads",
                stdout_as_string=False,
            )
        except GitCommandError as err:
            raise GitError(f"Failed to get branches: {err}") from err

        entries: list[BranchEntry] = []
        for record in output.splitlines():
            if not record:
                continue
            fields = record.split(b"\0")
            if len(fields) != 3:
                entries.append(BranchEntry(error=GitError(f"Unable to use branch: malformed record {record!r}")))
                continue
            head, object_type, refname = fields
            if object_type != b"commit":
                entries.append(
                    BranchEntry(error=GitError(f"Unable to use branch {refname!r}: points at {object_type!r}, not a commit"))
                )
                continue
            entries.append(BranchEntry(branch=LocalBranch(refname=refname, is_head=head == b"*")))
        return entries

    def delete_branch(self, branch: LocalBranch) -> None:
        """Delete a local branch, merged or not."""
        try:
            self.repo.git.branch("-D", branch.name)
        except GitCommandError as err:
            raise GitError(f"Encountered problem deleting local branch {branch.name}: {err}") from err

    def find_remote(self, name: str) -> Remote:
        """Look up a configured remote by name."""
        for remote in self.repo.remotes:
            if remote.name == name:
                return remote
        raise RemoteNotFound(f"Unable to find remote {name}")

    @contextmanager
    def connect(self, remote_name: str = DEFAULT_REMOTE) -> Iterator[RemoteConnection]:
        """Connect to a remote for the duration of the block.

        The connection is closed on every exit path. A failure to close it is
        logged, never raised.
        """
        remote = self.find_remote(remote_name)
        connection = RemoteConnection(self.repo, remote.name)
        connection.connect()
        try:
            yield connection
        finally:
            try:
                connection.disconnect()
            except GitError as err:
                logger.warning("Unable to disconnect from remote: %s", err)

    def get_default_branch(self, remote_name: str = DEFAULT_REMOTE) -> str:
        """Ask the remote which branch is its default.

        Returns:
            The full ref path, e.g. ``refs/heads/main``
        """
        with self.connect(remote_name) as connection:
            raw = connection.default_branch()
        try:
            default_branch = raw.decode("utf-8")
        except UnicodeDecodeError as err:
            raise DefaultBranchDecodeError(f"Default branch of {remote_name} is not valid UTF-8: {raw!r}") from err
        logger.debug("Default branch of %s is %s", remote_name, default_branch)
        return default_branch

    def get_upstream_remote(self, ref_path: str) -> Optional[str]:
        """Get the remote a branch tracks.

        Returns:
            The remote name, or None when no upstream is configured or the
            configured name is not valid UTF-8
        """
        if not ref_path.startswith(HEADS_PREFIX):
            return None
        key = f"branch.{short_branch_name(ref_path)}.remote"
        try:
            raw = self.repo.git.config("--get", key, stdout_as_string=False)
        except GitCommandError as err:
            # git config exits with 1 when the key is not set
            if err.status == 1:
                return None
            raise GitError(f"Failed to read upstream of {ref_path}: {err}") from err
        try:
            return raw.strip().decode("utf-8") or None
        except UnicodeDecodeError:
            logger.debug("Upstream remote of %s is not valid UTF-8: %r", ref_path, raw)
            return None

    def push(self, remote_name: str, refspecs: list[str], credential_helper: Optional[str] = None) -> None:
        """Push refspecs to a remote in a single attempt.

        Args:
            remote_name: Remote to push to
            refspecs: Refspecs to push
            credential_helper: ``credential.helper`` value git asks, and only
                asks, when the remote challenges the push. It replaces the
                helpers configured elsewhere. None leaves authentication to
                git's own configuration.
        """
        remote = self.find_remote(remote_name)
        options: list[str] = []
        if credential_helper is not None:
            # An empty value drops helpers configured elsewhere
            options = ["credential.helper=", f"credential.helper={credential_helper}"]

        logger.debug("Pushing %s to %s", " ".join(refspecs), remote_name)
        try:
            with self.repo.git.custom_environment(GIT_TERMINAL_PROMPT="0"):
                self.repo.git(c=options).push(remote.name, *refspecs)
        except GitCommandError as err:
            raise GitError(f"Encountered trouble pushing to {remote_name}: {err}") from err
