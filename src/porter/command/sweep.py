"""Sweep command - remove orphaned ephemeral remotes."""

from pydantic import BaseModel
from pydantic_graph import End

from porter.core.log import logger


class SweepCommand(BaseModel):
    """Remove ephemeral remotes that a crashed run left in the targets.

    Every remote whose name carries the configured prefix is removed
    from every configured target. Safe to run at any time.
    """

    async def run_workflow(self, state: "State") -> int:
        """Run the sweep workflow.

        Returns:
            Exit code (always 0; failures are logged per remote)
        """
        from porter.workflow.graph import create_sweep_workflow
        from porter.workflow.nodes.sweep import Sweep

        if not state.config.targets:
            logger.warn("No targets configured; nothing to sweep")
            return 0

        workflow = create_sweep_workflow(type(state))
        exit_code = 0
        async with workflow.iter(Sweep(), state=state) as run:
            async for node in run:
                if isinstance(node, End):
                    exit_code = node.data
        return exit_code
