"""CLI command handlers."""

from .run import check_workflow, run_workflow

__all__ = ['run_workflow', 'check_workflow']
