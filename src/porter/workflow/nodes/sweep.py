"""Sweep node - remove ephemeral remotes left by crashed runs."""

from __future__ import annotations

from dataclasses import dataclass

from pydantic_graph import BaseNode, End, GraphRunContext

from porter.core.config import State
from porter.core.log import logger
from porter.git.repository import Repository
from porter.sync.remote import RemoteBroker


@dataclass
class Sweep(BaseNode[State, None, int]):
    """Remove prefixed remotes from every configured target.

    Targets that are not git work trees are reported and skipped.
    """

    async def run(self, ctx: GraphRunContext[State]) -> End[int]:
        config = ctx.state.config
        broker = RemoteBroker(config.git.remote_prefix)
        removed = ctx.state.runtime.sweep.removed

        for target in config.targets:
            repo = Repository(target.path, config.git)
            if not repo.is_work_tree():
                logger.warn(
                    "Skipping {target}: not a git work tree",
                    target=target.name,
                    path=str(repo.path),
                )
                continue
            removed[target.name] = broker.sweep_orphaned(repo)

        total = sum(len(names) for names in removed.values())
        logger.info("Removed {count} orphaned remote(s)", count=total)
        return End(0)
