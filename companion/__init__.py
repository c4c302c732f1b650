"""Inherit companion: routes learner messages to specialized agents."""

__version__ = "0.1.0"
