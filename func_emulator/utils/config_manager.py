"""Configuration management utilities."""

import json
from pathlib import Path
from typing import List, Optional

from pydantic import ValidationError

from ..core.constants import PROJECT_CONFIG_FILE
from ..models.config import EmulatorSettings, ProjectConfig
from ..models.function import FunctionConfig


class ConfigError(Exception):
    """Raised when the project configuration cannot be read."""
    pass


class ConfigManager:
    """Loads the project's functions.json."""

    def __init__(self, project_root: Path):
        """Initialize config manager."""
        self.project_root = project_root
        self.config_file = project_root / PROJECT_CONFIG_FILE
        self._config: Optional[ProjectConfig] = None

    def exists(self) -> bool:
        return self.config_file.exists()

    def load(self) -> ProjectConfig:
        """Load and validate the project configuration (cached)."""
        if self._config is not None:
            return self._config
        if not self.config_file.exists():
            raise ConfigError(
                f"No {PROJECT_CONFIG_FILE} found in {self.project_root}"
            )
        try:
            data = json.loads(self.config_file.read_text())
            self._config = ProjectConfig(**data)
        except json.JSONDecodeError as e:
            raise ConfigError(f"{PROJECT_CONFIG_FILE} is not valid JSON: {e}") from e
        except ValidationError as e:
            raise ConfigError(f"Invalid {PROJECT_CONFIG_FILE}: {e}") from e
        return self._config

    def save(self, config: ProjectConfig):
        """Write the project configuration back to disk."""
        self.config_file.write_text(
            config.model_dump_json(indent=2, by_alias=True, exclude_none=True)
        )
        self._config = config

    def get_functions(self) -> List[FunctionConfig]:
        return list(self.load().functions)

    def get_function(self, function_id: str) -> Optional[FunctionConfig]:
        """Find a function by its id."""
        for func in self.load().functions:
            if func.id == function_id:
                return func
        return None

    def get_settings(self) -> EmulatorSettings:
        return self.load().emulator

    def get_endpoint(self) -> Optional[str]:
        return self.load().endpoint

    def get_project_id(self) -> Optional[str]:
        return self.load().project_id
