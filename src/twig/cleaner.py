"""Branch cleanup decisions and upstream deletion."""

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from twig.git import BranchEntry, GitError, GitRepo, short_branch_name

logger = logging.getLogger(__name__)

Confirm = Callable[[str], bool]


class BranchOutcome(Enum):
    """Where a branch ended up."""

    SKIPPED_HEAD = "current branch"
    SKIPPED_UNNAMED = "unnamed"
    SKIPPED_DEFAULT = "default branch"
    KEPT = "kept"
    DELETED = "deleted"
    FAILED = "failed"


class UpstreamOutcome(Enum):
    """What happened to a branch's upstream."""

    UNTOUCHED = ""
    NOT_CONFIGURED = "none"
    DECLINED = "kept"
    DELETED = "deleted"
    FAILED = "failed"


@dataclass
class BranchResult:
    """Result of processing one branch."""

    name: str
    outcome: BranchOutcome
    upstream: UpstreamOutcome = UpstreamOutcome.UNTOUCHED
    remote: Optional[str] = None
    error: Optional[str] = None


@dataclass
class CleanupReport:
    """Results of a whole run, in processing order."""

    results: list[BranchResult] = field(default_factory=list)

    @property
    def deleted(self) -> list[BranchResult]:
        """Branches deleted locally."""
        return [result for result in self.results if result.outcome == BranchOutcome.DELETED]

    @property
    def errors(self) -> list[BranchResult]:
        """Branches that reported a problem."""
        return [result for result in self.results if result.error is not None]


def deletion_refspec(ref_path: str) -> str:
    """Refspec that deletes ``ref_path`` on the remote."""
    return ":" + ref_path


class UpstreamDeleter:
    """Delete a branch on its remote with an authenticated push."""

    def __init__(self, repo: GitRepo, credential_helper: Optional[str] = None) -> None:
        """Initialize deleter.

        Args:
            repo: Repository to push from
            credential_helper: ``credential.helper`` git asks when the remote
                challenges the push, e.g. ``twig.credential.helper_command()``
        """
        self.repo = repo
        self.credential_helper = credential_helper

    def delete(self, ref_path: str, remote_name: str) -> bool:
        """Push a deletion of ``ref_path`` to ``remote_name``.

        Returns:
            True if the remote branch was deleted
        """
        try:
            self.repo.push(remote_name, [deletion_refspec(ref_path)], credential_helper=self.credential_helper)
        except GitError as err:
            logger.error("Encountered trouble deleting remote branch %s on %s: %s", ref_path, remote_name, err)
            return False
        logger.info("Deleted %s on %s", ref_path, remote_name)
        return True


class BranchCleaner:
    """Walk local branches and delete the ones the operator confirms.

    The current branch and the remote's default branch are never offered
    for deletion. When a confirmed branch tracks a remote, the operator is
    asked separately whether to delete it there too; the local branch is
    deleted whatever the outcome of that push.
    """

    def __init__(
        self,
        repo: GitRepo,
        confirm: Confirm,
        upstream_deleter: UpstreamDeleter,
        default_branch: Optional[str] = None,
    ) -> None:
        """Initialize cleaner.

        Args:
            repo: Repository to clean
            confirm: Blocking yes/no question to the operator; never raises
            upstream_deleter: Deletes confirmed upstream branches
            default_branch: Full ref path of the remote's default branch, if known
        """
        self.repo = repo
        self.confirm = confirm
        self.upstream_deleter = upstream_deleter
        self.default_branch = short_branch_name(default_branch) if default_branch else None

    def run(self, entries: Iterable[BranchEntry]) -> CleanupReport:
        """Process entries one at a time, in order."""
        report = CleanupReport()
        for entry in entries:
            report.results.append(self.handle(entry))
        return report

    def handle(self, entry: BranchEntry) -> BranchResult:
        """Take one enumerated branch to a terminal state."""
        if entry.branch is None:
            logger.error("Error encountered handling branch: %s", entry.error)
            return BranchResult(name="?", outcome=BranchOutcome.FAILED, error=str(entry.error))

        branch = entry.branch
        if branch.is_head:
            logger.info("Skipping current branch: %s", branch.label)
            return BranchResult(name=branch.label, outcome=BranchOutcome.SKIPPED_HEAD)

        try:
            name = branch.name
        except GitError as err:
            logger.error("Skipping branch without a usable name: %s", err)
            return BranchResult(name=branch.label, outcome=BranchOutcome.SKIPPED_UNNAMED, error=str(err))

        if name == self.default_branch:
            logger.info("Skipping default branch: %s", name)
            return BranchResult(name=name, outcome=BranchOutcome.SKIPPED_DEFAULT)

        if not self.confirm(f"Do you want to delete {name}?"):
            return BranchResult(name=name, outcome=BranchOutcome.KEPT)

        result = BranchResult(name=name, outcome=BranchOutcome.DELETED)
        try:
            remote = self.repo.get_upstream_remote(branch.ref_path)
        except GitError as err:
            logger.error("Encountered problem handling remote branch of %s: %s", name, err)
            result.outcome = BranchOutcome.FAILED
            result.error = str(err)
            return result

        if remote is None:
            result.upstream = UpstreamOutcome.NOT_CONFIGURED
        else:
            result.remote = remote
            if not self.confirm(f"Do you want to delete {branch.ref_path} on {remote}?"):
                result.upstream = UpstreamOutcome.DECLINED
            elif self.upstream_deleter.delete(branch.ref_path, remote):
                result.upstream = UpstreamOutcome.DELETED
            else:
                result.upstream = UpstreamOutcome.FAILED
                result.error = f"Failed to delete {branch.ref_path} on {remote}"

        try:
            self.repo.delete_branch(branch)
        except GitError as err:
            logger.error("%s", err)
            result.outcome = BranchOutcome.FAILED
            result.error = str(err)
            return result

        logger.info("Deleted local branch %s", name)
        return result
