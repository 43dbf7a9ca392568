import logging
import os
import re
from pathlib import Path
from typing import Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, ValidationError

from devbrain.config.schema import WorkspaceConfig
from devbrain.core.errors import TaskValidationError

logger = logging.getLogger(__name__)

CONFIG_FILENAME = ".taskconfig"
BASE_PATH_ENV = "DEVBRAIN_HOME"


def expand_env_vars(config: object) -> object:
    """Recursively replace ${VAR} patterns with environment variable values.

    Unknown variables are left as-is.
    """
    if isinstance(config, dict):
        return {k: expand_env_vars(v) for k, v in config.items()}
    if isinstance(config, list):
        return [expand_env_vars(item) for item in config]
    if isinstance(config, str):

        def replace_env_var(match: re.Match[str]) -> str:
            env_var = match.group(1)
            return os.getenv(env_var, match.group(0))

        return re.sub(r"\$\{([^}]+)\}", replace_env_var, config)
    return config


def _warn_unknown_keys(model: BaseModel, path: str, config_path: Path) -> None:
    """Recursively warn about unknown keys in a model and its nested models."""
    if model.model_extra:
        logger.warning("Unknown keys in %s at %s: %s", path, config_path, list(model.model_extra.keys()))
    for field_name, field_value in model.__dict__.items():
        if isinstance(field_value, BaseModel):
            _warn_unknown_keys(field_value, f"{path}.{field_name}", config_path)


def resolve_base_path(base_path: Optional[Path] = None) -> Path:
    """Explicit path, else $DEVBRAIN_HOME, else the current directory."""
    if base_path is not None:
        return Path(base_path).expanduser()
    env_value = os.getenv(BASE_PATH_ENV)
    if env_value:
        return Path(env_value).expanduser()
    return Path.cwd()


def load_workspace_config(base_path: Path) -> WorkspaceConfig:
    """Load and validate <base>/.taskconfig.

    A missing file yields defaults. An unreadable or unparsable file logs a
    warning and yields defaults. Values that fail validation raise
    TaskValidationError.
    """
    load_dotenv(base_path / ".env", override=False)

    path = base_path / CONFIG_FILENAME
    if not path.exists():
        return WorkspaceConfig()

    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        logger.warning("Failed to read config file %s: %s", path, e)
        return WorkspaceConfig()

    if not isinstance(raw, dict):
        logger.warning("Config file %s is not a mapping, using defaults", path)
        return WorkspaceConfig()

    expanded = expand_env_vars(raw)
    try:
        model = WorkspaceConfig.model_validate(expanded)
    except ValidationError as e:
        raise TaskValidationError(f"invalid configuration in {path}: {e}") from e
    _warn_unknown_keys(model, "root", path)
    return model
