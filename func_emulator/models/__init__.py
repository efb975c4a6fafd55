"""Models for the function emulator."""

from .runtime import SystemTool
from .function import FunctionConfig
from .container import ContainerState, RuntimeContainer
from .events import LifecycleEvent, LifecycleEventKind
from .credentials import CredentialSlot, IssuedToken
from .config import EmulatorSettings, ProjectConfig

__all__ = [
    'SystemTool',
    'FunctionConfig',
    'ContainerState',
    'RuntimeContainer',
    'LifecycleEvent',
    'LifecycleEventKind',
    'CredentialSlot',
    'IssuedToken',
    'EmulatorSettings',
    'ProjectConfig'
]
