"""Value objects passed between the selector, engine and resolver."""

from __future__ import annotations

import re
from datetime import datetime
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_validator

FULL_HASH = re.compile(r'^(?:[0-9a-f]{40}|[0-9a-f]{64})$')


class CommitRef(BaseModel):
    """A commit selected for replay, identified by its full hash."""

    model_config = ConfigDict(frozen=True)

    id: str
    message: str = ""

    @field_validator("id")
    @classmethod
    def _require_full_hash(cls, value: str) -> str:
        value = value.strip().lower()
        if not FULL_HASH.match(value):
            raise ValueError(
                f"'{value}' is not a full commit hash; resolve "
                f"abbreviated ids before scheduling them"
            )
        return value

    @property
    def short(self) -> str:
        return self.id[:10]

    def __str__(self) -> str:
        return f"{self.short} {self.message}".rstrip()


class TargetRepository(BaseModel):
    """Target working tree and the branch to replay onto."""

    model_config = ConfigDict(frozen=True)

    name: str
    path: Path
    branch: str

    @classmethod
    def from_config(cls, config) -> TargetRepository:
        return cls(
            name=config.name,
            path=Path(config.path).expanduser().resolve(),
            branch=config.branch,
        )


class RemoteHandle(BaseModel):
    """An ephemeral remote registered in one target repository."""

    model_config = ConfigDict(frozen=True)

    name: str
    source_path: Path
    owner: str
    repo_path: Path
    created_at: datetime = Field(default_factory=datetime.now)


class ConflictDecision(str, Enum):
    """Operator choice after a failed cherry-pick."""

    CONTINUE = "continue"
    ABORT = "abort"
    RETRY = "retry"
    EXIT = "exit"


class CommitStatus(str, Enum):
    """What became of one commit in one target."""

    APPLIED = "applied"
    CONTINUED = "continued"
    SKIPPED = "skipped"


class TargetOutcome(BaseModel):
    """Result of replicating onto one target. Never mutated."""

    model_config = ConfigDict(frozen=True)

    target: TargetRepository
    succeeded: bool
    failure_reason: str | None = None
    applied: tuple[str, ...] = ()
    continued: tuple[str, ...] = ()
    skipped: tuple[str, ...] = ()

    @classmethod
    def failed(cls, target: TargetRepository, reason: str, **progress):
        return cls(
            target=target, succeeded=False, failure_reason=reason, **progress
        )

    @property
    def synced(self) -> int:
        """Commits now present in the target, applied or continued."""
        return len(self.applied) + len(self.continued)
