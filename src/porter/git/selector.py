"""Commit discovery on the source repository."""

from __future__ import annotations

from porter.core.errors import PreflightError
from porter.core.log import logger
from porter.git.repository import Repository
from porter.sync.models import CommitRef


class CommitSelector:
    """Turns a branch plus commit selection into CommitRefs.

    The result is always newest first and always uses full hashes.
    """

    def __init__(self, repo: Repository):
        self.repo = repo

    def resolve(self, ref: str) -> str:
        """Full hash of ref.

        Raises:
            PreflightError: If ref does not name a commit
        """
        commit_id = self.repo.resolve_commit(ref)
        if commit_id is None:
            raise PreflightError(
                f"Source commit-id '{ref}' does not exist in "
                f"{self.repo.path}"
            )
        return commit_id

    def select(
        self, branch: str, selection: str | list[str] | None
    ) -> list[CommitRef]:
        """Select the commits to replay.

        Args:
            branch: Source branch
            selection: A single id selects everything after it up to the
                tip of branch; a list selects exactly those commits

        Returns:
            Commits, newest first

        Raises:
            PreflightError: If an id does not resolve or nothing is
                selected
        """
        if selection is None or selection == [] or selection == "":
            raise PreflightError(
                "Configuration is missing source commit-id: give the "
                "commit to start after, or a list of commits"
            )

        if isinstance(selection, str):
            since = self.resolve(selection)
            commits = self.repo.log_range(f"{since}..{branch}")
            logger.debug(
                "Selected commits after base",
                base=since[:10], branch=branch, count=len(commits),
            )
        else:
            ids = list(dict.fromkeys(self.resolve(ref) for ref in selection))
            commits = self.repo.log_commits(ids)
            logger.debug("Selected listed commits", count=len(commits))

        if not commits:
            raise PreflightError(
                f"Source branch '{branch}' has no new commits to sync"
            )
        return commits
