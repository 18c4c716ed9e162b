"""Checks run before any repository is modified.

Each check raises PreflightError with a message meant for the
operator. run_preflight() runs them all in order and returns the
validated plan the engine consumes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from porter.core.config import Config, GitConfig, SourceConfig, TargetConfig
from porter.core.errors import GitCommandError, PreflightError
from porter.core.log import logger
from porter.core.runner import Runner
from porter.git.repository import Repository
from porter.git.selector import CommitSelector
from porter.sync.models import CommitRef, TargetRepository


@dataclass
class SyncPlan:
    """Everything preflight established about a sync request."""

    source: Repository
    source_name: str
    source_branch: str
    source_root: Path | None = None
    commits: list[CommitRef] = field(default_factory=list)
    targets: list[TargetRepository] = field(default_factory=list)

    def describe(self) -> list[str]:
        """Human-readable lines summarising the plan."""
        lines = [
            f"Source: {self.source_name} ({self.source_branch}) "
            f"at {self.source.path}",
            f"Commits to replay, oldest first ({len(self.commits)}):",
        ]
        lines.extend(f"    {commit}" for commit in reversed(self.commits))
        lines.append(f"Targets ({len(self.targets)}):")
        lines.extend(
            f"    {t.name}: {t.branch} at {t.path}" for t in self.targets
        )
        return lines


def check_branch_name(branch: str, forbidden: list[str]):
    """Reject branch names containing a forbidden keyword.

    The match is a case-insensitive substring test, so 'Master-fix'
    and 'retest' are both rejected by the default keywords.
    """
    lowered = branch.lower()
    for keyword in forbidden:
        if keyword.lower() in lowered:
            raise PreflightError(
                f"Branch name '{branch}' must not contain '{keyword}'"
            )


def open_work_tree(
    path: Path, label: str, commands: GitConfig, runner: Runner | None = None
) -> Repository:
    repo = Repository(path, commands, runner)
    if not repo.path.is_dir():
        raise PreflightError(f"{label} directory does not exist: {repo.path}")
    if not repo.is_work_tree():
        raise PreflightError(f"{label} is not a git work tree: {repo.path}")
    return repo


def check_source(
    source: SourceConfig | None, config: Config, runner: Runner | None = None
) -> tuple[Repository, Path, list[CommitRef]]:
    """Validate the source repository and select its commits.

    Returns:
        The repository, its resolved top-level directory and the
        selected commits, newest first
    """
    if source is None:
        raise PreflightError("Configuration is missing the source section")

    repo = open_work_tree(source.path, "Source repository", config.git, runner)
    try:
        root = repo.toplevel()
    except GitCommandError as e:
        raise PreflightError(
            f"Cannot resolve the top-level directory of {repo.path}: {e}"
        ) from e
    logger.info("Source repository found at {path}", path=str(repo.path))

    if not repo.branch_exists(source.branch):
        raise PreflightError(
            f"Source branch '{source.branch}' does not exist in {repo.path}"
        )
    check_branch_name(source.branch, config.policy.forbidden_branch_keywords)

    commits = CommitSelector(repo).select(source.branch, source.commit_id)
    logger.info(
        "Selected {count} commit(s) from {branch}",
        count=len(commits), branch=source.branch,
    )
    return repo, root, commits


def check_target(
    target: TargetConfig, config: Config, runner: Runner | None = None
) -> TargetRepository:
    """Validate one target without touching its working tree."""
    label = f"Target '{target.name}'"
    repo = open_work_tree(target.path, label, config.git, runner)

    check_branch_name(target.branch, config.policy.forbidden_branch_keywords)

    if not repo.branch_exists(target.branch):
        raise PreflightError(
            f"{label} has no branch '{target.branch}'; create it first"
        )

    if config.policy.require_clean_targets and repo.has_unstaged_changes():
        raise PreflightError(
            f"{label} has unstaged changes; run git add or git stash first"
        )

    logger.info(
        "Target {target} checked",
        target=target.name, path=str(repo.path), branch=target.branch,
    )
    return TargetRepository(name=target.name, path=repo.path, branch=target.branch)


def run_preflight(config: Config, runner: Runner | None = None) -> SyncPlan:
    """Run every check and return the validated plan.

    Raises:
        PreflightError: On the first failed check
    """
    if not config.targets:
        raise PreflightError("Configuration lists no targets")

    names = [target.name for target in config.targets]
    duplicates = sorted({name for name in names if names.count(name) > 1})
    if duplicates:
        raise PreflightError(
            f"Target names must be unique: {', '.join(duplicates)}"
        )

    source, source_root, commits = check_source(config.source, config, runner)
    targets = [check_target(t, config, runner) for t in config.targets]

    return SyncPlan(
        source=source,
        source_name=config.source.name,
        source_branch=config.source.branch,
        source_root=source_root,
        commits=commits,
        targets=targets,
    )
