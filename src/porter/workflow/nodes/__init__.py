"""Workflow nodes for the sync and sweep graphs."""

from porter.workflow.nodes.preflight import Preflight
from porter.workflow.nodes.replicate import Replicate
from porter.workflow.nodes.report import Report
from porter.workflow.nodes.sweep import Sweep

__all__ = [
    "Preflight",
    "Replicate",
    "Report",
    "Sweep",
]
