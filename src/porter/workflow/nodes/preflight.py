"""Preflight node - validate the request and confirm the plan."""

from __future__ import annotations

from dataclasses import dataclass

from pydantic_graph import BaseNode, End, GraphRunContext

from porter.console import Console
from porter.core.config import State
from porter.core.log import logger
from porter.git.preflight import run_preflight


@dataclass
class Preflight(BaseNode[State, None, int]):
    """Check repositories and configuration before anything changes."""

    async def run(
        self, ctx: GraphRunContext[State]
    ) -> "Replicate | End[int]":
        """Run the preflight checks and ask for confirmation.

        Raises:
            PreflightError: If any check fails; nothing has been
                modified at that point

        Returns:
            Replicate: The plan was accepted
            End[int]: The operator declined; exit code 0
        """
        sync = ctx.state.runtime.sync
        if sync.console is None:
            sync.console = Console()

        with logger.span("Preflight checks"):
            plan = run_preflight(ctx.state.config)

        sync.plan = plan
        sync.commits = plan.commits
        sync.targets = plan.targets

        for line in plan.describe():
            sync.console.show(line)

        if not sync.assume_yes and not sync.console.confirm(
            "Start syncing?", default=True
        ):
            logger.info("Sync cancelled before any change was made")
            sync.status = "cancelled"
            return End(0)

        from porter.workflow.nodes.replicate import Replicate
        return Replicate()
