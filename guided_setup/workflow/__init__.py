"""Workflow execution module."""

from .executor import Executor
from .matcher import Matcher

__all__ = ['Executor', 'Matcher']
