"""One local emulation session for a function."""

import asyncio
import logging
from typing import Dict, FrozenSet, List, Optional, Set

from ..models.function import FunctionConfig
from ..services.exceptions import EmulationError
from .change_queue import ChangeQueue
from .credentials import CredentialManager
from .file_watcher import FileWatcher
from .runtime_manager import RuntimeContainerManager
from .runtimes import RUNTIME_NAMES

logger = logging.getLogger(__name__)


class EmulationSession:
    """Runs a function in a container and rebuilds it when its sources change.

    The session owns its queue, credential manager and container manager;
    nothing is shared through module globals. ``close`` leaves no running
    container and no armed timer behind.
    """

    def __init__(
        self,
        config: FunctionConfig,
        manager: RuntimeContainerManager,
        queue: ChangeQueue,
        credentials: CredentialManager,
        port: int,
        variables: Optional[Dict[str, str]] = None,
        user_id: Optional[str] = None,
        scopes: Optional[List[str]] = None,
    ):
        self.config = config
        self.manager = manager
        self.queue = queue
        self.credentials = credentials
        self.port = port
        self.variables = dict(variables or {})
        self.user_id = user_id
        self.scopes = list(scopes or [])
        self.reload_count = 0
        self._reloads: Set[asyncio.Task] = set()
        self._closed = False
        self.queue.on_change(self._on_change)

    def runtime_variables(self) -> Dict[str, str]:
        """Environment for the runtime container, including current tokens."""
        config = self.config
        variables = dict(self.variables)
        variables.update({
            'FUNCTION_ID': config.id,
            'FUNCTION_NAME': config.name,
            'FUNCTION_RUNTIME_NAME': RUNTIME_NAMES.get(config.runtime_name, ''),
            'FUNCTION_RUNTIME_VERSION': config.runtime,
            'OPEN_RUNTIMES_HEADERS': self.credentials.runtime_headers_json(self.user_id),
        })
        return variables

    async def start(self) -> None:
        """Clean leftovers, obtain credentials, then pull, build and start."""
        self.manager.track(self.config)
        await self.manager.cleanup(self.config.id)
        await self.credentials.setup(self.user_id, self.scopes)

        variables = self.runtime_variables()
        await self.manager.pull(self.config)
        await self.manager.build(self.config, variables)
        await self.manager.start(self.config, variables, self.port)

    def _on_change(self, files: FrozenSet[str]) -> None:
        if self._closed:
            return
        task = asyncio.get_running_loop().create_task(self.reload(files))
        self._reloads.add(task)
        task.add_done_callback(self._reloads.discard)

    async def reload(self, files: FrozenSet[str]) -> None:
        """Rebuild and restart after a batch of file changes."""
        self.queue.lock()
        try:
            logger.info("Live-reloading due to file changes:")
            for path in sorted(files):
                logger.info(f"- {path}")
            dependency_file = next(
                (f for f in sorted(files) if f in self.config.dependency_files), None
            )
            if dependency_file:
                logger.info(f"Rebuilding the function due to change in {dependency_file}")

            variables = self.runtime_variables()
            await self.manager.build(self.config, variables)
            await self.manager.start(self.config, variables, self.port)
            self.reload_count += 1
        except EmulationError as e:
            # Reported verbatim; the next change starts a new cycle
            logger.error(str(e))
        finally:
            self.queue.unlock()

    async def close(self) -> None:
        """Cancel all timers and pending reloads, then remove every container."""
        self._closed = True
        self.queue.cancel()
        self.credentials.close()
        reloads = list(self._reloads)
        for task in reloads:
            task.cancel()
        if reloads:
            await asyncio.gather(*reloads, return_exceptions=True)
        self.queue.cancel()
        await self.manager.cleanup_all()

    async def run(self, watcher: Optional[FileWatcher] = None) -> None:
        """Start the function and keep it in sync until cancelled."""
        try:
            await self.start()
            if watcher is None:
                await asyncio.Event().wait()
            else:
                await watcher.watch(self.queue.push)
        finally:
            await self.close()
