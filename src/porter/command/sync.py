"""Sync command - replay source commits onto every target."""

from pydantic import BaseModel, Field
from pydantic_graph import End

from porter.core.errors import PreflightError
from porter.core.log import logger


class SyncCommand(BaseModel):
    """Replay commits from the source repository onto each target.

    Checks every repository first, shows the plan and asks for
    confirmation. Commits are cherry-picked oldest first, one target
    at a time; conflicts stop and ask what to do.

    All configuration comes from porter.yaml, .env, or CLI flags.
    """

    yes: bool = Field(
        default=False,
        description="Start without asking for confirmation",
    )
    sweep: bool = Field(
        default=True,
        description=(
            "Remove ephemeral remotes left behind by a crashed run "
            "before syncing (--no-sweep to skip)"
        ),
    )

    async def run_workflow(self, state: "State") -> int:
        """Run the sync workflow.

        Args:
            state: State instance with config loaded

        Returns:
            Exit code (0=success, 1=a target failed, 2=preflight error)
        """
        sync = state.runtime.sync
        sync.assume_yes = self.yes
        sync.sweep = self.sweep

        from porter.workflow.graph import create_sync_workflow
        from porter.workflow.nodes.preflight import Preflight

        workflow = create_sync_workflow(type(state))

        exit_code = 1
        try:
            async with workflow.iter(Preflight(), state=state) as run:
                async for node in run:
                    if isinstance(node, End):
                        exit_code = node.data
        except PreflightError as e:
            logger.error("Preflight failed: {reason}", reason=str(e))
            return 2

        return exit_code
