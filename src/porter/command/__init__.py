"""CLI command modules for porter."""

from porter.command.init import InitCommand
from porter.command.sweep import SweepCommand
from porter.command.sync import SyncCommand

__all__ = ["InitCommand", "SweepCommand", "SyncCommand"]
