"""Adapters between the task core and external tools."""
