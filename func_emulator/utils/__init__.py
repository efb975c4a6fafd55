"""Utility modules for the function emulator."""

from .config_manager import ConfigError, ConfigManager
from .network import find_free_port, is_port_taken

__all__ = ['ConfigError', 'ConfigManager', 'find_free_port', 'is_port_taken']
