"""USTA — run a checklist spec through an AI coding agent, one task at a time."""

__version__ = "0.3.0"
