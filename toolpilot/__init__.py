"""Toolpilot: turns free-text requests into streamed, sequential tool runs."""

__version__ = "0.1.0"
