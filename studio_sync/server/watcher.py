"""
File watcher for the watched specification file.

This module provides:
- Filesystem monitoring of a single file through watchdog
- Normalization of native events into added/changed/removed
- Coalescing of event bursts and hand-off into the asyncio loop
"""

import asyncio
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import AsyncIterator, Callable, Optional, Union

from watchdog.events import FileSystemEvent, FileSystemEventHandler, FileSystemMovedEvent
from watchdog.observers import Observer

from ..errors import WatcherError
from .constants import WatchEventKind, WatcherConstants
from .utils.debouncer import Debouncer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WatchEvent:
    """A normalized change to the watched file."""
    kind: str
    path: Path


class SpecFileHandler(FileSystemEventHandler):
    """
    File system event handler for one file.

    Receives every event of the parent directory and forwards only the ones
    concerning the watched file, already mapped to a WatchEventKind.
    """

    def __init__(self, file_path: Path, callback: Callable[[str], None]):
        """
        Initialize the file handler.

        Args:
            file_path: Absolute path of the watched file
            callback: Called from the observer thread with the event kind
        """
        self.file_path = file_path
        self.callback = callback

    def _matches(self, raw_path: Union[str, bytes]) -> bool:
        if not raw_path:
            return False
        return Path(os.fsdecode(raw_path)).absolute() == self.file_path

    def _dispatch_kind(self, kind: str) -> None:
        try:
            self.callback(kind)
        except Exception as e:
            logger.error(f"Error forwarding {kind} event for {self.file_path}: {e}")

    def on_created(self, event: FileSystemEvent) -> None:
        if not event.is_directory and self._matches(event.src_path):
            self._dispatch_kind(WatchEventKind.ADDED)

    def on_modified(self, event: FileSystemEvent) -> None:
        if not event.is_directory and self._matches(event.src_path):
            self._dispatch_kind(WatchEventKind.CHANGED)

    def on_deleted(self, event: FileSystemEvent) -> None:
        if not event.is_directory and self._matches(event.src_path):
            self._dispatch_kind(WatchEventKind.REMOVED)

    def on_moved(self, event: FileSystemMovedEvent) -> None:
        if event.is_directory:
            return
        # Atomic-save editors write a temp file and rename it over the target
        if self._matches(event.dest_path):
            self._dispatch_kind(WatchEventKind.ADDED)
        elif self._matches(event.src_path):
            self._dispatch_kind(WatchEventKind.REMOVED)


class FileWatcher:
    """
    Watches a single file and exposes its changes as an async stream.

    Usage:
        watcher = FileWatcher(Path("/path/to/asyncapi.yaml"))
        watcher.start()

        async for event in watcher.events():
            print(event.kind, event.path)

        # Later...
        watcher.stop()

    The watcher may be stopped and started again; events() keeps yielding
    across restarts.
    """

    def __init__(self, file_path: Union[str, Path],
                 debounce_delay: float = WatcherConstants.DEBOUNCE_DELAY_SECONDS):
        """
        Initialize the file watcher.

        Args:
            file_path: File to watch
            debounce_delay: Quiet period used to coalesce native events
        """
        self.file_path = Path(file_path).absolute()
        self.observer: Optional[Observer] = None
        self.handler = SpecFileHandler(self.file_path, self._on_native_event)
        self._debouncer = Debouncer(delay=debounce_delay)
        self._queue: asyncio.Queue = asyncio.Queue()
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    @property
    def watch_path(self) -> Path:
        """Directory the observer is scheduled on."""
        return self.file_path.parent

    def start(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        """
        Start watching for file changes.

        Args:
            loop: Event loop that receives the events (default: running loop)

        Raises:
            WatcherError: If the parent directory is missing or the observer
                cannot be started
        """
        if self.is_running():
            raise WatcherError("Watcher is already running")

        if not self.watch_path.is_dir():
            raise WatcherError(f"Cannot watch {self.file_path}: directory {self.watch_path} does not exist")

        self._loop = loop or asyncio.get_running_loop()

        observer = Observer()
        try:
            observer.schedule(self.handler, str(self.watch_path), recursive=False)
            observer.start()
        except OSError as e:
            raise WatcherError(f"Cannot watch {self.file_path}: {e}") from e

        self.observer = observer
        logger.info(f"Watching changes on file {self.file_path}")

    def stop(self) -> None:
        """Stop watching for file changes."""
        self._debouncer.cancel()
        if self.observer and self.observer.is_alive():
            self.observer.stop()
            self.observer.join()
            logger.info("File watcher stopped")
        self.observer = None

    def is_running(self) -> bool:
        """Check if the watcher is currently running."""
        return self.observer is not None and self.observer.is_alive()

    async def events(self) -> AsyncIterator[WatchEvent]:
        """Yield normalized events forever."""
        while True:
            yield await self._queue.get()

    def _on_native_event(self, kind: str) -> None:
        """Observer-thread callback; hops into the event loop."""
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        event = WatchEvent(kind=kind, path=self.file_path)
        try:
            loop.call_soon_threadsafe(self._debouncer.debounce, self.file_path, event, self._emit)
        except RuntimeError:
            # Loop closed between the check and the call
            logger.debug(f"Dropped {kind} event after loop shutdown")

    async def _emit(self, key: Path, event: WatchEvent) -> None:
        logger.debug(f"File {event.kind}: {event.path}")
        self._queue.put_nowait(event)
