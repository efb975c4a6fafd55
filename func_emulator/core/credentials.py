"""Credential lifecycle management for an emulation session."""

import asyncio
import json
import logging
from typing import Callable, Dict, List, Optional, Set

from ..models.credentials import CredentialSlot, IssuedToken
from ..services.exceptions import AuthServiceError, CredentialIssuanceError
from .constants import TOKEN_LIFETIME_SECONDS, TOKEN_WARN_RATIO

logger = logging.getLogger(__name__)

USER_SLOT = "user"
FUNCTION_SLOT = "function"

ErrorCallback = Callable[[CredentialIssuanceError], None]


class CredentialManager:
    """Keeps the user and function tokens valid for the session.

    Each slot has a warning timer, which refreshes the token at
    ``lifetime * warn_ratio``, and a hard-expiry timer at ``lifetime``
    which clears the secret if the refresh never succeeded. A slot never
    has more than one pair of live timers.

    Tokens reach the runtime through ``OPEN_RUNTIMES_HEADERS``, which is set
    when the container starts. A refreshed token is therefore only seen by the
    function after the next rebuild; the running container keeps the token it
    was started with.

    ``issuer`` is anything with ``create_user_token(user_id, duration)`` and
    ``create_function_token(scopes, duration)`` (see ``AuthService``).
    """

    def __init__(
        self,
        issuer,
        lifetime: float = TOKEN_LIFETIME_SECONDS,
        warn_ratio: float = TOKEN_WARN_RATIO,
        on_error: Optional[ErrorCallback] = None,
    ):
        if not 0 < warn_ratio < 1:
            raise ValueError("warn_ratio must be between 0 and 1")
        self.issuer = issuer
        self.lifetime = lifetime
        self.warn_ratio = warn_ratio
        self.on_error = on_error
        self.slots: Dict[str, CredentialSlot] = {
            USER_SLOT: CredentialSlot(name=USER_SLOT),
            FUNCTION_SLOT: CredentialSlot(name=FUNCTION_SLOT),
        }
        self._refreshes: Set[asyncio.Task] = set()

    @property
    def user_token(self) -> Optional[str]:
        return self.slots[USER_SLOT].secret

    @property
    def function_token(self) -> Optional[str]:
        return self.slots[FUNCTION_SLOT].secret

    async def setup(self, user_id: Optional[str] = None, scopes: Optional[List[str]] = None) -> None:
        """Issue fresh tokens and (re)schedule their timers.

        The function token is always issued; the user token only when
        ``user_id`` is given.

        Raises:
            CredentialIssuanceError: If the issuance endpoint refuses or is unreachable
        """
        function_slot = self.slots[FUNCTION_SLOT]
        function_slot.scopes = list(scopes or [])
        await self._issue(function_slot)

        user_slot = self.slots[USER_SLOT]
        user_slot.user_id = user_id
        if user_id:
            await self._issue(user_slot)
        else:
            user_slot.cancel_timers()
            user_slot.generation += 1
            user_slot.secret = None

    def runtime_headers(self, user_id: Optional[str] = None) -> Dict[str, str]:
        """Headers the runtime attaches to requests made on the function's behalf."""
        return {
            'x-function-key': self.function_token or '',
            'x-function-trigger': 'http',
            'x-function-event': '',
            'x-function-user-id': user_id or '',
            'x-function-user-jwt': self.user_token or '',
        }

    def runtime_headers_json(self, user_id: Optional[str] = None) -> str:
        return json.dumps(self.runtime_headers(user_id))

    def close(self) -> None:
        """Cancel every timer and in-flight refresh."""
        for slot in self.slots.values():
            slot.cancel_timers()
            slot.generation += 1
        for task in list(self._refreshes):
            task.cancel()
        self._refreshes.clear()

    @property
    def armed_timers(self) -> int:
        count = 0
        for slot in self.slots.values():
            count += slot.warn_handle is not None
            count += slot.expire_handle is not None
        return count

    async def _request(self, slot: CredentialSlot) -> IssuedToken:
        if slot.name == USER_SLOT:
            call = self.issuer.create_user_token
            args = (slot.user_id, self.lifetime)
        else:
            call = self.issuer.create_function_token
            args = (slot.scopes, self.lifetime)
        try:
            return await asyncio.to_thread(call, *args)
        except AuthServiceError as e:
            raise CredentialIssuanceError(
                f"Could not issue {slot.name} token: {e}", slot=slot.name
            ) from e

    async def _issue(self, slot: CredentialSlot) -> None:
        token = await self._request(slot)
        self._install(slot, token)

    def _install(self, slot: CredentialSlot, token: IssuedToken) -> None:
        slot.cancel_timers()
        slot.generation += 1
        slot.secret = token.secret
        slot.last_error = None

        loop = asyncio.get_running_loop()
        generation = slot.generation
        slot.warn_handle = loop.call_later(
            token.lifetime * self.warn_ratio, self._on_warning, slot, generation
        )
        slot.expire_handle = loop.call_later(
            token.lifetime, self._on_expired, slot, generation
        )
        logger.debug(
            f"{slot.name} token issued, refresh in {token.lifetime * self.warn_ratio:.0f}s"
        )

    def _on_warning(self, slot: CredentialSlot, generation: int) -> None:
        slot.warn_handle = None
        if generation != slot.generation:
            return
        task = asyncio.get_running_loop().create_task(self._refresh(slot, generation))
        self._refreshes.add(task)
        task.add_done_callback(self._refreshes.discard)

    async def _refresh(self, slot: CredentialSlot, generation: int) -> None:
        try:
            token = await self._request(slot)
        except CredentialIssuanceError as e:
            slot.last_error = str(e)
            logger.warning(f"{e}; the current token stays valid until it expires")
            return
        if generation != slot.generation:
            logger.debug(f"Discarding stale {slot.name} token refresh")
            return
        self._install(slot, token)
        logger.info(f"Refreshed {slot.name} token")

    def _on_expired(self, slot: CredentialSlot, generation: int) -> None:
        slot.expire_handle = None
        if generation != slot.generation:
            return
        slot.secret = None
        error = CredentialIssuanceError(
            f"The {slot.name} token expired and could not be refreshed"
            + (f": {slot.last_error}" if slot.last_error else ""),
            slot=slot.name,
        )
        logger.error(str(error))
        if self.on_error is not None:
            try:
                self.on_error(error)
            except Exception as e:
                logger.error(f"Credential error callback failed: {e}", exc_info=True)
