import re
from typing import Dict

from pydantic import BaseModel, ConfigDict, Field, field_validator

from devbrain.core.models import Priority, TaskType

_PREFIX_PATTERN = re.compile(r"^[A-Z0-9]{1,10}$")


class TaskIDSettings(BaseModel):
    model_config = ConfigDict(extra="allow")
    prefix: str = "TASK"
    pad_width: int = 5

    @field_validator("prefix")
    @classmethod
    def validate_prefix(cls, v: str) -> str:
        if not _PREFIX_PATTERN.match(v):
            raise ValueError(f"task_id.prefix {v!r} is invalid, must match [A-Z0-9]{{1,10}}")
        return v

    @field_validator("pad_width")
    @classmethod
    def validate_pad_width(cls, v: int) -> int:
        if not 0 <= v <= 10:
            raise ValueError(f"task_id.pad_width {v} is invalid, must be between 0 and 10")
        return v


class DefaultsSettings(BaseModel):
    model_config = ConfigDict(extra="allow")
    priority: Priority = Priority.P2
    owner: str = ""


class WorkspaceConfig(BaseModel):
    """Contents of <base>/.taskconfig."""

    model_config = ConfigDict(extra="allow")
    task_id: TaskIDSettings = Field(default_factory=TaskIDSettings)
    defaults: DefaultsSettings = Field(default_factory=DefaultsSettings)
    # Custom notes.md template per task type; relative paths resolve against the base path.
    templates: Dict[TaskType, str] = Field(default_factory=dict)
