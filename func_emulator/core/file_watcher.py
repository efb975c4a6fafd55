"""Polling watcher for a function's source directory."""

import asyncio
import fnmatch
import logging
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from .constants import DATA_DIR_NAME, POLL_INTERVAL_SECONDS, TEMP_ARCHIVE_NAME

logger = logging.getLogger(__name__)

ALWAYS_IGNORED = [DATA_DIR_NAME, f"{DATA_DIR_NAME}/*", TEMP_ARCHIVE_NAME]


class FileWatcher:
    """Reports created, modified and deleted files under ``root``."""

    def __init__(self, root: Path, ignore: Optional[Iterable[str]] = None,
                 interval: float = POLL_INTERVAL_SECONDS):
        self.root = root
        self.interval = interval
        self.ignore: List[str] = ALWAYS_IGNORED + list(ignore or [])
        self._snapshot: Dict[str, int] = {}

    def is_ignored(self, relative: str) -> bool:
        parts = Path(relative).parts
        for pattern in self.ignore:
            if fnmatch.fnmatch(relative, pattern):
                return True
            # A pattern naming a directory ignores everything below it
            if any(fnmatch.fnmatch(part, pattern.rstrip('/')) for part in parts[:-1]):
                return True
        return False

    def snapshot(self) -> Dict[str, int]:
        """Map of relative path to modification time for every watched file."""
        files = {}
        for path in self.root.rglob('*'):
            relative = path.relative_to(self.root).as_posix()
            if self.is_ignored(relative):
                continue
            try:
                if path.is_file():
                    files[relative] = path.stat().st_mtime_ns
            except OSError:
                # Deleted between listing and stat
                continue
        return files

    def poll(self) -> List[str]:
        """Compare against the previous snapshot and return changed paths."""
        current = self.snapshot()
        previous = self._snapshot
        changed = [p for p, mtime in current.items() if previous.get(p) != mtime]
        changed.extend(p for p in previous if p not in current)
        self._snapshot = current
        return sorted(changed)

    async def watch(self, callback: Callable[[str], None]) -> None:
        """Call ``callback`` for every change until cancelled."""
        self._snapshot = await asyncio.to_thread(self.snapshot)
        logger.debug(f"Watching {len(self._snapshot)} file(s) in {self.root}")
        while True:
            await asyncio.sleep(self.interval)
            for path in await asyncio.to_thread(self.poll):
                callback(path)


def read_new_lines(path: Path, position: int) -> Tuple[List[str], int]:
    """Lines appended to ``path`` since ``position`` and the new position.

    A file that shrank (truncated or recreated) is read from the start.
    """
    try:
        size = path.stat().st_size
    except OSError:
        return [], 0
    if size < position:
        position = 0
    if size == position:
        return [], position
    with open(path, 'rb') as f:
        f.seek(position)
        data = f.read()
        position = f.tell()
    return data.decode('utf-8', errors='replace').splitlines(), position


async def follow_log(path: Path, callback: Callable[[str], None],
                     interval: float = POLL_INTERVAL_SECONDS) -> None:
    """Call ``callback`` with every line appended to ``path`` until cancelled."""
    position = 0
    while True:
        lines, position = await asyncio.to_thread(read_new_lines, path, position)
        for line in lines:
            callback(line)
        await asyncio.sleep(interval)
