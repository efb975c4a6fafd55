"""Project and emulator configuration models."""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..core.constants import (
    DEBOUNCE_SECONDS,
    POLL_INTERVAL_SECONDS,
    START_GRACE_SECONDS,
    STOP_GRACE_SECONDS,
    TOKEN_LIFETIME_SECONDS,
    TOKEN_WARN_RATIO,
)
from .function import FunctionConfig


class EmulatorSettings(BaseModel):
    """Tunable timings of an emulation session."""
    debounce_seconds: float = Field(DEBOUNCE_SECONDS, ge=0)
    stop_grace_seconds: int = Field(STOP_GRACE_SECONDS, ge=0)
    start_grace_seconds: float = Field(START_GRACE_SECONDS, ge=0)
    token_lifetime_seconds: float = Field(TOKEN_LIFETIME_SECONDS, gt=0)
    token_warn_ratio: float = Field(TOKEN_WARN_RATIO, gt=0, lt=1)
    poll_interval_seconds: float = Field(POLL_INTERVAL_SECONDS, gt=0)


class ProjectConfig(BaseModel):
    """Contents of the project's functions.json."""

    model_config = ConfigDict(populate_by_name=True)

    project_id: Optional[str] = Field(None, alias="projectId")
    endpoint: Optional[str] = None
    functions: List[FunctionConfig] = Field(default_factory=list)
    emulator: EmulatorSettings = Field(default_factory=EmulatorSettings)
