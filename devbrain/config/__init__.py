"""Workspace configuration (.taskconfig).

Usage:
    from devbrain.config import load_workspace_config
"""

from devbrain.config.loader import CONFIG_FILENAME, load_workspace_config, resolve_base_path
from devbrain.config.schema import DefaultsSettings, TaskIDSettings, WorkspaceConfig

__all__ = [
    "CONFIG_FILENAME",
    "DefaultsSettings",
    "TaskIDSettings",
    "WorkspaceConfig",
    "load_workspace_config",
    "resolve_base_path",
]
