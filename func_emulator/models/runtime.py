"""Runtime tool models."""

from typing import List

from pydantic import BaseModel, Field


class SystemTool(BaseModel):
    """How a runtime image builds and starts a function."""
    is_compiled: bool = False
    start_command: str
    dependency_files: List[str] = Field(default_factory=list)
