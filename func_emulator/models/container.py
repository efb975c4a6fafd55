"""Runtime container state models."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class ContainerState(Enum):
    """Lifecycle state of a function's runtime container."""
    ABSENT = "absent"
    PULLED = "pulled"
    BUILT = "built"
    RUNNING = "running"
    STOPPED = "stopped"


@dataclass
class RuntimeContainer:
    """The single tracked container instance for a function id."""
    function_id: str
    container_id: Optional[str] = None  # Docker container ID (if running)
    port: Optional[int] = None  # Host port bound to the runtime
    state: ContainerState = ContainerState.ABSENT
    source_signature: Optional[str] = None  # Build-cache key of the last build
