"""Exception hierarchy for porter.

PreflightError aborts the whole run before anything is touched.
TargetFailure and its subclasses are confined to one target.
ApplyError subclasses describe a failed cherry-pick and are always
handed to the conflict resolver. CleanupFailure is logged, never
raised past the cleanup code that produced it.
"""

from __future__ import annotations


class PorterError(Exception):
    """Base class for all porter errors."""


class PreflightError(PorterError):
    """Configuration or repository check failed before any mutation."""


class TargetFailure(PorterError):
    """Processing of a single target repository failed."""


class GitCommandError(TargetFailure):
    """A git command that must succeed exited non-zero."""

    def __init__(self, command: str, exited: int, stderr: str = ""):
        self.command = command
        self.exited = exited
        self.stderr = stderr.strip()
        message = f"'{command}' failed with exit code {exited}"
        if self.stderr:
            message += f": {self.stderr}"
        super().__init__(message)


class RemoteSetupError(TargetFailure):
    """Registering or fetching the ephemeral source remote failed."""


class ApplyError(PorterError):
    """A single cherry-pick failed.

    Attributes:
        commit_id: Full hash of the commit being applied
        output: Combined stdout/stderr of the cherry-pick
    """

    def __init__(self, commit_id: str, output: str):
        self.commit_id = commit_id
        self.output = output
        super().__init__(f"cherry-pick of {commit_id[:10]} failed")


class ConflictError(ApplyError):
    """Cherry-pick stopped on merge conflicts.

    Attributes:
        paths: Unmerged paths that still contain conflict markers
    """

    def __init__(self, commit_id: str, output: str, paths: list[str]):
        super().__init__(commit_id, output)
        self.paths = paths


class CherryPickError(ApplyError):
    """Cherry-pick failed for a reason not recognised as a conflict."""


class CleanupFailure(PorterError):
    """Releasing or sweeping an ephemeral remote failed."""


class UserExit(PorterError):
    """The operator chose to stop the whole run.

    Attributes:
        outcomes: Target outcomes recorded before the exit
    """

    def __init__(self, outcomes=None):
        self.outcomes = list(outcomes or [])
        super().__init__("run stopped by user")
