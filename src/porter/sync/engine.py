"""Sequential replay of source commits onto target repositories."""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path

from porter.core.config import GitConfig
from porter.core.errors import (
    CherryPickError,
    ConflictError,
    GitCommandError,
    PreflightError,
    TargetFailure,
    UserExit,
)
from porter.core.log import logger
from porter.core.runner import Runner
from porter.git.conflict import is_conflict, read_unmerged
from porter.git.repository import Repository, same_repository
from porter.sync.models import (
    CommitRef,
    CommitStatus,
    ConflictDecision,
    TargetOutcome,
    TargetRepository,
)
from porter.sync.remote import RemoteBroker
from porter.sync.resolver import ConflictResolver


def oldest_first(commits: Sequence[CommitRef]) -> list[CommitRef]:
    """Reverse a newest-first selection into replay order."""
    return list(reversed(commits))


class ReplicationEngine:
    """Replays commits onto each target in turn.

    Targets are processed strictly one after another. For each one
    the engine checks out the branch, fetches the source through an
    ephemeral remote when the target is a different repository, and
    cherry-picks the commits oldest first. A TargetFailure only fails
    its own target; an exit decision stops the run with UserExit.

    Example:
        engine = ReplicationEngine(source, RemoteBroker(), ConflictResolver())
        outcomes = engine.replicate(commits, targets)
    """

    def __init__(
        self,
        source: Repository,
        broker: RemoteBroker | None = None,
        resolver: ConflictResolver | None = None,
        commands: GitConfig | None = None,
        runner: Runner | None = None,
    ):
        self.source = source
        self.commands = commands or source.commands
        self.runner = runner or source.runner
        self.broker = broker or RemoteBroker(self.commands.remote_prefix)
        self.resolver = resolver or ConflictResolver()

    def open(self, target: TargetRepository) -> Repository:
        return Repository(target.path, self.commands, self.runner)

    def source_root(self) -> Path:
        try:
            return self.source.toplevel()
        except GitCommandError as e:
            raise PreflightError(
                f"Cannot resolve the top-level directory of "
                f"{self.source.path}: {e}"
            ) from e

    def replicate(
        self,
        commits: Sequence[CommitRef],
        targets: Sequence[TargetRepository],
        source_root: Path | None = None,
    ) -> list[TargetOutcome]:
        """Replay commits onto every target.

        Args:
            commits: Selected commits, newest first
            targets: Targets in processing order
            source_root: Top-level directory of the source, if
                already resolved

        Returns:
            One TargetOutcome per target, in target order

        Raises:
            PreflightError: The source root cannot be resolved
            UserExit: The operator chose exit; carries the outcomes
                recorded so far, including the interrupted target
        """
        ordered = oldest_first(commits)
        if source_root is None:
            source_root = self.source_root()
        logger.info(
            "Replicating {commits} commit(s) onto {targets} target(s)",
            commits=len(ordered), targets=len(targets),
        )

        outcomes: list[TargetOutcome] = []
        for target in targets:
            try:
                outcome = self._replicate_target(ordered, target, source_root)
            except UserExit as e:
                raise UserExit(outcomes + e.outcomes) from None
            outcomes.append(outcome)
        return outcomes

    def _replicate_target(
        self,
        ordered: list[CommitRef],
        target: TargetRepository,
        source_root: Path,
    ) -> TargetOutcome:
        progress: dict[CommitStatus, list[str]] = {
            status: [] for status in CommitStatus
        }
        handle = None

        with logger.span(
            "Replicating onto {target}", target=target.name, branch=target.branch
        ):
            try:
                repo = self.open(target)
                repo.checkout(target.branch)

                # Recomputed per target; two targets may share a root.
                if same_repository(self.source, repo):
                    logger.info(
                        "{target} is the source repository", target=target.name
                    )
                else:
                    handle = self.broker.acquire(repo, source_root, target.name)

                for commit in ordered:
                    status = self.apply_with_resolution(repo, target, commit)
                    progress[status].append(commit.id)

            except TargetFailure as e:
                logger.error(
                    "Target {target} failed: {reason}",
                    target=target.name, reason=str(e),
                )
                return TargetOutcome.failed(
                    target, str(e), **_progress_fields(progress)
                )
            except UserExit:
                partial = TargetOutcome.failed(
                    target, "stopped by user", **_progress_fields(progress)
                )
                raise UserExit([partial]) from None
            finally:
                if handle is not None:
                    self.broker.release(handle)

        outcome = TargetOutcome(
            target=target, succeeded=True, **_progress_fields(progress)
        )
        logger.info(
            "Target {target}: {synced} synced, {skipped} skipped",
            target=target.name,
            synced=outcome.synced,
            skipped=len(outcome.skipped),
        )
        return outcome

    def apply_with_resolution(
        self,
        repo: Repository,
        target: TargetRepository,
        commit: CommitRef,
    ) -> CommitStatus:
        """Apply one commit, consulting the resolver until it settles.

        Retry loops back onto the same commit; every other decision
        ends the loop.

        Raises:
            UserExit: The operator chose exit
        """
        while True:
            self.resolver.begin(commit)
            try:
                self.apply_commit(repo, commit)
                return CommitStatus.APPLIED
            except (ConflictError, CherryPickError) as failure:
                decision = self.resolver.resolve(repo, target, commit, failure)

            if decision is ConflictDecision.CONTINUE:
                return CommitStatus.CONTINUED
            if decision is ConflictDecision.ABORT:
                return CommitStatus.SKIPPED
            if decision is ConflictDecision.EXIT:
                raise UserExit()

    def apply_commit(self, repo: Repository, commit: CommitRef):
        """Cherry-pick a single commit and stage what it leaves behind.

        Raises:
            ConflictError: The cherry-pick stopped on a conflict
            CherryPickError: The cherry-pick failed for another reason
        """
        result = repo.cherry_pick(commit.id)
        if result.ok:
            repo.add_all()
            logger.info("Applied {commit}", commit=str(commit))
            return

        output = f"{result.stdout}\n{result.stderr}".strip()
        unmerged = read_unmerged(repo)
        if is_conflict(output, unmerged):
            raise ConflictError(commit.id, output, sorted(unmerged))
        raise CherryPickError(commit.id, output)


def _progress_fields(progress: dict[CommitStatus, list[str]]) -> dict:
    return {status.value: tuple(ids) for status, ids in progress.items()}
