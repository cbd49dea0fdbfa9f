"""
Sync service: the reactor tying the watcher, the clients and the file together.

All input (filesystem changes, connection lifecycle, client messages) is
funnelled through one inbox and handled by a single dispatch loop, so the
message queue and the connection registry are only ever mutated from one
place.
"""

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Union

from ...errors import FileError, ProtocolError
from ...websocket.broadcaster import MessageBroadcaster
from ...websocket.registry import ConnectionRegistry, describe
from ...websocket.serializers import (
    create_changed_message,
    create_deleted_message,
    create_loaded_message,
    decode_message,
)
from ..constants import ProtocolTypes, ServerConstants, WatchEventKind
from ..file_gateway import FileGateway
from ..validation import validate_payload
from ..watcher import WatchEvent

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConnectionOpened:
    """A client finished the WebSocket handshake."""
    websocket: Any


@dataclass(frozen=True)
class ConnectionClosed:
    """A client connection ended, cleanly or not."""
    websocket: Any


@dataclass(frozen=True)
class MessageReceived:
    """A text frame arrived from a client."""
    websocket: Any
    raw: Union[str, bytes]


class SyncService:
    """
    Service keeping connected clients in sync with the watched file.

    Provides handlers for:
    - Watched-file added/changed/removed events
    - Client connect/disconnect
    - Client edits (file:update)

    Each handler may also be awaited directly; every handler flushes the
    outbound queue when done.
    """

    def __init__(
        self,
        file_path: Union[str, Path],
        gateway: Optional[FileGateway] = None,
        registry: Optional[ConnectionRegistry] = None,
        broadcaster: Optional[MessageBroadcaster] = None,
        client_queue_size: int = ServerConstants.CLIENT_QUEUE_SIZE,
    ):
        """
        Initialize sync service.

        Args:
            file_path: The watched file
            gateway: File access (default: FileGateway())
            registry: Connected clients (default: new registry)
            broadcaster: Outbound queue (default: one bound to the registry)
            client_queue_size: Send buffer bound for a default registry
        """
        self.file_path = Path(file_path).absolute()
        self.gateway = gateway or FileGateway()
        self.registry = registry or ConnectionRegistry(queue_size=client_queue_size)
        self.broadcaster = broadcaster or MessageBroadcaster(self.registry)
        self._inbox: asyncio.Queue = asyncio.Queue()
        self.stats: Dict[str, int] = {
            "events_processed": 0,
            "read_errors": 0,
            "writes": 0,
            "write_errors": 0,
            "protocol_errors": 0,
            "unknown_events": 0,
        }
        self.logger = logging.getLogger(f"{__name__}.SyncService")

    # Inbox

    def submit(self, event: Any) -> None:
        """
        Queue an input event for the dispatch loop. Never blocks.

        Args:
            event: WatchEvent, ConnectionOpened, ConnectionClosed or MessageReceived
        """
        self._inbox.put_nowait(event)

    async def run(self) -> None:
        """Dispatch loop; runs until cancelled."""
        self.logger.debug("Dispatch loop started")
        while True:
            event = await self._inbox.get()
            try:
                await self.dispatch(event)
            except Exception as e:
                self.logger.exception(f"Error handling {type(event).__name__}: {e}")
            finally:
                self.stats["events_processed"] += 1
                self._inbox.task_done()

    async def join(self) -> None:
        """Wait until every submitted event has been handled."""
        await self._inbox.join()

    async def dispatch(self, event: Any) -> None:
        """
        Route one input event to its handler.

        Args:
            event: Input event
        """
        if isinstance(event, WatchEvent):
            await self.on_file_event(event)
        elif isinstance(event, ConnectionOpened):
            await self.on_connection_opened(event.websocket)
        elif isinstance(event, ConnectionClosed):
            await self.on_connection_closed(event.websocket)
        elif isinstance(event, MessageReceived):
            await self.on_client_message(event.websocket, event.raw)
        else:
            self.logger.warning(f"Ignoring unsupported input event: {event!r}")

    # Handlers

    async def on_file_event(self, event: WatchEvent) -> None:
        """
        React to a change of the watched file.

        Args:
            event: Normalized watcher event
        """
        if event.kind in (WatchEventKind.ADDED, WatchEventKind.CHANGED):
            code = self._read_file()
            if code is not None:
                self.broadcaster.enqueue(create_changed_message(code))
        elif event.kind == WatchEventKind.REMOVED:
            # Always the configured path: there is exactly one watched file
            self.broadcaster.enqueue(create_deleted_message(str(self.file_path)))
        else:
            self.logger.warning(f"Unknown watcher event kind: {event.kind}")

        self.broadcaster.flush()

    async def on_connection_opened(self, websocket: Any) -> None:
        """
        Register a client and queue the current content for it.

        Args:
            websocket: The new connection
        """
        await self.registry.register(websocket)

        code = self._read_file()
        if code is not None:
            self.broadcaster.enqueue(create_loaded_message(code))

        self.broadcaster.flush()

    async def on_connection_closed(self, websocket: Any) -> None:
        """
        Forget a client.

        Args:
            websocket: The closed connection
        """
        await self.registry.unregister(websocket)
        self.broadcaster.flush()

    async def on_client_message(self, websocket: Any, raw: Union[str, bytes]) -> None:
        """
        Handle a frame from a client.

        Malformed and unknown messages are logged and dropped; the
        connection is never closed because of them.

        Args:
            websocket: Sending connection
            raw: The frame as received
        """
        try:
            message = decode_message(raw)
        except ProtocolError as e:
            self.stats["protocol_errors"] += 1
            logger.error(f"Live Server: An invalid event has been received. See details:\n{raw}")
            logger.debug(f"Decode failure from client {describe(websocket)}: {e}")
            self.broadcaster.flush()
            return

        if message.type == ProtocolTypes.FILE_UPDATE:
            result = validate_payload(message.type, message.payload)
            if result.valid:
                self._write_file(message.get("code"))
            else:
                self.stats["protocol_errors"] += 1
                logger.error(f"Live Server: An invalid event has been received. See details:\n{raw}")
                logger.debug(str(result))
        else:
            self.stats["unknown_events"] += 1
            logger.warning("Live Server: An unknown event has been received. See details:")
            logger.warning(message.to_dict())

        self.broadcaster.flush()

    # File access

    def _read_file(self) -> Optional[str]:
        try:
            return self.gateway.read(self.file_path)
        except FileError:
            # Already logged by the gateway; stale clients beat a garbage read
            self.stats["read_errors"] += 1
            return None

    def _write_file(self, code: str) -> None:
        if self.gateway.write(self.file_path, code):
            self.stats["writes"] += 1
        else:
            self.stats["write_errors"] += 1

    def get_stats(self) -> Dict[str, int]:
        """
        Get service statistics.

        Returns:
            Counters plus current client and pending-message counts
        """
        stats = dict(self.stats)
        stats["clients"] = self.registry.get_client_count()
        stats["pending_messages"] = self.broadcaster.get_pending_count()
        stats.update({f"broadcaster_{k}": v for k, v in self.broadcaster.stats.items()})
        return stats
