"""Report node - summarise target outcomes and pick the exit code."""

from __future__ import annotations

from dataclasses import dataclass

from pydantic_graph import BaseNode, End, GraphRunContext

from porter.core.config import State
from porter.core.log import logger


def exit_code(outcomes, exited: bool) -> int:
    """0 when every target succeeded or the operator chose exit."""
    if exited:
        return 0
    return 0 if all(outcome.succeeded for outcome in outcomes) else 1


@dataclass
class Report(BaseNode[State, None, int]):
    """Log one line per target and end the run."""

    async def run(self, ctx: GraphRunContext[State]) -> End[int]:
        sync = ctx.state.runtime.sync

        for outcome in sync.outcomes:
            name = outcome.target.name
            if outcome.succeeded:
                logger.info(
                    "{target}: {applied} applied, {continued} continued, "
                    "{skipped} skipped",
                    target=name,
                    applied=len(outcome.applied),
                    continued=len(outcome.continued),
                    skipped=len(outcome.skipped),
                )
            else:
                logger.error(
                    "{target}: failed after {synced} commit(s): {reason}",
                    target=name,
                    synced=outcome.synced,
                    reason=outcome.failure_reason,
                )

        unprocessed = len(sync.targets) - len(sync.outcomes)
        if sync.exited and unprocessed:
            logger.warn("{count} target(s) not processed", count=unprocessed)

        code = exit_code(sync.outcomes, sync.exited)
        failed = sum(1 for o in sync.outcomes if not o.succeeded)
        if code:
            logger.error(
                "Sync finished with {count} failed target(s)", count=failed
            )
        else:
            logger.info("Sync finished")
        return End(code)
