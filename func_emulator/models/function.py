"""Function configuration model."""

from typing import List

from pydantic import BaseModel, ConfigDict, Field

from ..core.runtimes import get_system_tool, image_name_for, split_runtime
from .runtime import SystemTool


class FunctionConfig(BaseModel):
    """Resolved, read-only description of one emulated function."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    id: str = Field(..., alias="$id")
    name: str = ""
    runtime: str
    entrypoint: str
    path: str = "."
    commands: str = ""
    ignore: List[str] = Field(default_factory=list)

    @property
    def runtime_name(self) -> str:
        return split_runtime(self.runtime)[0]

    @property
    def runtime_version(self) -> str:
        return split_runtime(self.runtime)[1]

    @property
    def image_name(self) -> str:
        return image_name_for(self.runtime)

    @property
    def tool(self) -> SystemTool:
        return get_system_tool(self.runtime_name)

    @property
    def requires_compile(self) -> bool:
        return self.tool.is_compiled

    @property
    def dependency_files(self) -> List[str]:
        return list(self.tool.dependency_files)
