"""Replicate node - run the replication engine under cleanup."""

from __future__ import annotations

from dataclasses import dataclass

from pydantic_graph import BaseNode, GraphRunContext

from porter.core.config import State
from porter.core.errors import UserExit
from porter.core.log import logger
from porter.git.repository import Repository
from porter.sync.cleanup import coordinator
from porter.sync.engine import ReplicationEngine
from porter.sync.remote import RemoteBroker
from porter.sync.resolver import ConflictResolver


@dataclass
class Replicate(BaseNode[State, None, int]):
    """Replay the planned commits onto every target."""

    async def run(self, ctx: GraphRunContext[State]) -> "Report":
        """Replicate with every ephemeral remote guaranteed released.

        The cleanup coordinator is installed for the duration, so an
        error, SIGINT or SIGTERM still removes registered remotes.

        Returns:
            Report: Always, with outcomes stored in runtime state
        """
        config = ctx.state.config
        sync = ctx.state.runtime.sync
        plan = sync.plan

        broker = RemoteBroker(config.git.remote_prefix)
        engine = ReplicationEngine(
            plan.source,
            broker=broker,
            resolver=ConflictResolver(sync.console),
            commands=config.git,
        )

        sync.status = "running"
        with coordinator.installed():
            if sync.sweep and config.sweep_on_start:
                for target in plan.targets:
                    broker.sweep_orphaned(
                        Repository(target.path, config.git)
                    )

            try:
                sync.outcomes = engine.replicate(
                    plan.commits, plan.targets, plan.source_root
                )
            except UserExit as e:
                logger.warn("Sync stopped by operator")
                sync.outcomes = e.outcomes
                sync.exited = True

        sync.status = "complete"

        from porter.workflow.nodes.report import Report
        return Report()
