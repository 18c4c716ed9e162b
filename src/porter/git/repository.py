"""git operations on a single working tree."""

from __future__ import annotations

import shlex
from pathlib import Path

from invoke import Result

from porter.core.config import GitConfig
from porter.core.errors import GitCommandError
from porter.core.log import logger
from porter.core.runner import Runner
from porter.sync.models import CommitRef

# Porcelain XY codes of paths with an unresolved merge.
UNMERGED_CODES = frozenset({"DD", "AU", "UD", "UA", "DU", "AA", "UU"})


def _quote(value) -> str:
    if isinstance(value, (list, tuple)):
        return " ".join(shlex.quote(str(item)) for item in value)
    return shlex.quote(str(value))


def parse_log(output: str) -> list[CommitRef]:
    """Parse '%H<TAB>%s' lines into CommitRefs, preserving order."""
    commits = []
    for line in output.splitlines():
        if not line.strip():
            continue
        commit_id, _, message = line.partition("\t")
        commits.append(CommitRef(id=commit_id, message=message))
    return commits


def parse_status(output: str) -> list[tuple[str, str]]:
    """Parse `git status --porcelain -z` output into (XY, path) pairs.

    Renames and copies carry their original path as an extra NUL
    separated field; it is skipped.
    """
    entries = []
    fields = iter(output.split("\0"))
    for field in fields:
        if len(field) < 4:
            continue
        code, path = field[:2], field[3:]
        entries.append((code, path))
        if code[0] in "RC":
            next(fields, None)
    return entries


class Repository:
    """A git working tree driven through command templates.

    Every command runs with the working tree as its directory via
    the Runner; nothing here changes the process working directory.
    """

    def __init__(
        self,
        path: Path | str,
        commands: GitConfig | None = None,
        runner: Runner | None = None,
    ):
        self.path = Path(path).expanduser().resolve()
        self.commands = commands or GitConfig()
        self.runner = runner or Runner()

    def __repr__(self) -> str:
        return f"Repository({str(self.path)!r})"

    def command(self, name: str, /, **params) -> str:
        """Render the named template with shell-quoted parameters."""
        template = getattr(self.commands, name)
        return template.format(
            **{key: _quote(value) for key, value in params.items()}
        )

    def git(
        self,
        name: str,
        /,
        check: bool = True,
        env: dict[str, str] | None = None,
        timeout: int | None = None,
        **params,
    ) -> Result:
        """Run a command template in this working tree.

        Raises:
            GitCommandError: If check is set and the command fails
        """
        command = self.command(name, **params)
        result = self.runner.execute(
            command, cwd=self.path, check=False, env=env, timeout=timeout
        )
        if check and not result.ok:
            raise GitCommandError(command, result.exited, result.stderr)
        return result

    # -- inspection -------------------------------------------------

    def is_work_tree(self) -> bool:
        if not self.path.is_dir():
            return False
        result = self.git("is_work_tree", check=False)
        return result.ok and result.stdout.strip() == "true"

    def toplevel(self) -> Path:
        """Resolved root directory of the repository."""
        output = self.git("toplevel").stdout.strip()
        return Path(output).resolve()

    def resolve_commit(self, ref: str) -> str | None:
        """Return the full hash ref names, or None if it names no commit."""
        result = self.git("rev_parse", check=False, ref=f"{ref}^{{commit}}")
        commit_id = result.stdout.strip()
        return commit_id if result.ok and commit_id else None

    def branch_exists(self, branch: str) -> bool:
        return self.git("show_ref", check=False, branch=branch).ok

    def log_range(self, revision_range: str) -> list[CommitRef]:
        """Commits in a revision range, newest first."""
        return parse_log(self.git("log_range", range=revision_range).stdout)

    def log_commits(self, commit_ids: list[str]) -> list[CommitRef]:
        """The given commits only, newest first by commit date."""
        return parse_log(self.git("log_commits", commits=commit_ids).stdout)

    def status_entries(self) -> list[tuple[str, str]]:
        return parse_status(self.git("status").stdout)

    def unmerged_paths(self) -> list[str]:
        return [
            path for code, path in self.status_entries()
            if code in UNMERGED_CODES
        ]

    def has_unstaged_changes(self) -> bool:
        """True if a tracked file has modifications not yet staged."""
        return any(
            code[1] not in " ?!" for code, _ in self.status_entries()
        )

    def read_file(self, relpath: str) -> str:
        return (self.path / relpath).read_text(errors="replace")

    def remotes(self) -> list[str]:
        output = self.git("remote_list").stdout
        return [line.strip() for line in output.splitlines() if line.strip()]

    # -- mutation ---------------------------------------------------

    def checkout(self, branch: str):
        self.git("checkout", branch=branch)

    def cherry_pick(self, commit_id: str) -> Result:
        """Cherry-pick one commit; the caller inspects the result."""
        return self.git(
            "cherry_pick",
            check=False,
            env={"GIT_EDITOR": self.commands.editor},
            commit=commit_id,
        )

    def cherry_pick_abort(self) -> bool:
        """Abort an in-progress cherry-pick; False if there was none."""
        result = self.git("cherry_pick_abort", check=False)
        if not result.ok:
            logger.debug(
                "cherry-pick --abort did nothing",
                repo=str(self.path),
                stderr=result.stderr.strip(),
            )
        return result.ok

    def add_all(self):
        self.git("add_all")

    def add_remote(self, name: str, url: Path | str):
        self.git("remote_add", name=name, url=url)

    def remove_remote(self, name: str):
        self.git("remote_remove", name=name)

    def fetch(self, name: str):
        self.git("fetch", timeout=self.commands.fetch_timeout, name=name)


def same_repository(first: Repository, second: Repository) -> bool:
    """True when both working trees resolve to the same top-level root."""
    return str(first.toplevel()) == str(second.toplevel())
