"""Guided setup: interactive, step-by-step setup workflows."""

__version__ = "0.1.0"
