"""Lifecycle events reported to the CLI."""

from dataclasses import dataclass
from enum import Enum


class LifecycleEventKind(Enum):
    PULLED = "pulled"
    BUILT = "built"
    STARTED = "started"
    STOPPED = "stopped"
    CLEANED = "cleaned"
    FAILED = "failed"


@dataclass(frozen=True)
class LifecycleEvent:
    """Something happened to a function's container."""
    function_id: str
    kind: LifecycleEventKind
    detail: str = ""
