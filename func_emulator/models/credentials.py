"""Credential models."""

import asyncio
from dataclasses import dataclass, field
from typing import List, Optional


@dataclass(frozen=True)
class IssuedToken:
    """A token returned by the issuance endpoint."""
    secret: str
    lifetime: float  # seconds until the token stops being accepted


@dataclass
class CredentialSlot:
    """One independently refreshed token (user or function identity)."""
    name: str
    secret: Optional[str] = None
    user_id: Optional[str] = None
    scopes: List[str] = field(default_factory=list)
    warn_handle: Optional[asyncio.TimerHandle] = None
    expire_handle: Optional[asyncio.TimerHandle] = None
    generation: int = 0  # bumped on every install; stale refreshes are dropped
    last_error: Optional[str] = None

    def cancel_timers(self) -> None:
        """Cancel the warning and hard-expiry timers, if armed."""
        for handle in (self.warn_handle, self.expire_handle):
            if handle is not None:
                handle.cancel()
        self.warn_handle = None
        self.expire_handle = None

    @property
    def has_timers(self) -> bool:
        return self.warn_handle is not None or self.expire_handle is not None
