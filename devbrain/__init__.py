"""Devbrain: task lifecycle management for a developer workspace."""

__version__ = "0.1.0"
