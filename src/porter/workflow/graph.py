"""Graph workflow definitions."""

from pydantic_graph import Graph

from porter.core.config import State
from porter.core.log import logger


def create_sync_workflow(state_type: type[State] = State):
    """Create the sync workflow graph.

    Preflight -> Replicate -> Report, with Preflight ending the run
    early when the operator declines the plan.

    Returns:
        Graph workflow with state_type as its state
    """
    logger.debug("Building sync workflow graph")

    # Nodes are imported here so their string return hints resolve
    # against this namespace when the graph is built.
    from porter.workflow.nodes.preflight import Preflight
    from porter.workflow.nodes.replicate import Replicate
    from porter.workflow.nodes.report import Report

    return Graph(
        nodes=(Preflight, Replicate, Report),
        state_type=state_type,
    )


def create_sweep_workflow(state_type: type[State] = State):
    """Create the single-node orphan sweep graph."""
    from porter.workflow.nodes.sweep import Sweep

    return Graph(nodes=(Sweep,), state_type=state_type)
