"""Operator decisions after a cherry-pick fails."""

from __future__ import annotations

from collections import Counter
from enum import Enum

from porter.console import Console
from porter.core.errors import ApplyError, ConflictError
from porter.core.log import logger
from porter.git.conflict import parse
from porter.sync.models import CommitRef, ConflictDecision, TargetRepository

CHOICES = {
    "c": ConflictDecision.CONTINUE,
    "continue": ConflictDecision.CONTINUE,
    "a": ConflictDecision.ABORT,
    "abort": ConflictDecision.ABORT,
    "r": ConflictDecision.RETRY,
    "retry": ConflictDecision.RETRY,
    "e": ConflictDecision.EXIT,
    "exit": ConflictDecision.EXIT,
}

PROMPT = "[c]ontinue, [a]bort this commit, [r]etry, or [e]xit?"

# Lines of cherry-pick output echoed in a diagnosis.
OUTPUT_TAIL = 20


class ResolverState(str, Enum):
    APPLYING = "applying"
    AWAITING_USER = "awaiting_user"
    RESOLVED_CONTINUE = "resolved_continue"
    RESOLVED_ABORT = "resolved_abort"
    RETRY = "retry"
    EXIT = "exit"


TRANSITIONS = {
    ConflictDecision.CONTINUE: ResolverState.RESOLVED_CONTINUE,
    ConflictDecision.ABORT: ResolverState.RESOLVED_ABORT,
    ConflictDecision.RETRY: ResolverState.RETRY,
    ConflictDecision.EXIT: ResolverState.EXIT,
}


def parse_choice(answer: str) -> ConflictDecision | None:
    return CHOICES.get(answer.strip().lower())


class ConflictResolver:
    """State machine entered whenever a single cherry-pick fails.

    The engine moves it to APPLYING before every attempt. A failure
    moves it to AWAITING_USER, where it stays, re-prompting, until
    the operator gives a valid choice:

        continue  the operator resolved the commit in the working
                  tree; it counts as synced
        abort     abort the cherry-pick and skip the commit
        retry     abort the cherry-pick and apply the same commit again
        exit      stop the whole run (cleanup still happens)

    Attributes:
        state: Current ResolverState
        aborts: cherry-pick --abort calls issued, per commit id
        retries: retry decisions taken, per commit id
    """

    def __init__(self, console: Console | None = None):
        self.console = console or Console()
        self.state = ResolverState.APPLYING
        self.aborts: Counter[str] = Counter()
        self.retries: Counter[str] = Counter()

    def begin(self, commit: CommitRef):
        self.state = ResolverState.APPLYING
        logger.debug("Applying commit", commit=commit.short)

    def resolve(
        self,
        repo,
        target: TargetRepository,
        commit: CommitRef,
        failure: ApplyError,
    ) -> ConflictDecision:
        """Report the failure, wait for a decision and carry it out."""
        self.state = ResolverState.AWAITING_USER
        self.report(repo, target, commit, failure)

        decision = self.prompt()
        if decision in (ConflictDecision.ABORT, ConflictDecision.RETRY):
            repo.cherry_pick_abort()
            self.aborts[commit.id] += 1
        if decision is ConflictDecision.RETRY:
            self.retries[commit.id] += 1

        self.state = TRANSITIONS[decision]
        logger.info(
            "Decision for {commit} on {target}: {decision}",
            commit=commit.short, target=target.name, decision=decision.value,
        )
        return decision

    def prompt(self) -> ConflictDecision:
        """Ask until the answer is a valid choice.

        Invalid answers leave the state untouched.
        """
        while True:
            answer = self.console.ask(PROMPT)
            decision = parse_choice(answer)
            if decision is not None:
                return decision
            self.console.show(
                f"'{answer}' is not a choice; type c, a, r or e."
            )

    def report(self, repo, target, commit, failure):
        """Explain what failed and what the operator can do next."""
        kind = "conflicts" if isinstance(failure, ConflictError) else "failed"
        logger.error(
            "Cherry-pick of {commit} onto {target} ({branch}) {kind}",
            commit=commit.short,
            target=target.name,
            branch=target.branch,
            kind=kind,
            commit_id=commit.id,
            message=commit.message,
        )

        lines = [f"Commit {commit} could not be applied to {target.path}."]
        tail = [line for line in failure.output.splitlines() if line.strip()]
        if tail:
            lines.append("git said:")
            lines.extend(f"    {line}" for line in tail[-OUTPUT_TAIL:])

        if isinstance(failure, ConflictError) and failure.paths:
            lines.append("Conflicted files:")
            for path in failure.paths:
                lines.append(f"    {path} ({self._hunks(repo, path)})")
            lines.append(
                "Resolve the conflicts, stage the files and run "
                "'git cherry-pick --continue' in the target, then choose "
                "continue. Abort skips this commit; retry aborts and "
                "applies it again; exit stops the whole run."
            )
        else:
            lines.append(
                "Fix the problem in the target working tree and choose "
                "retry, or continue if the commit is already in place. "
                "Abort skips this commit; exit stops the whole run."
            )
        for line in lines:
            self.console.show(line)

    @staticmethod
    def _hunks(repo, path: str) -> str:
        try:
            count = len(parse(repo.read_file(path)))
        except (OSError, ValueError):
            return "conflict markers unreadable"
        return f"{count} conflict hunk{'s' if count != 1 else ''}"
