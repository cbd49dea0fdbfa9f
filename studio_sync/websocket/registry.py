"""Registry of connected WebSocket clients."""

import asyncio
import logging
from typing import Any, Callable, Dict, List

from ..server.constants import ServerConstants


logger = logging.getLogger(__name__)


def describe(websocket: Any) -> str:
    """Short label for a connection in log lines."""
    address = getattr(websocket, "remote_address", None)
    if address:
        return ":".join(str(part) for part in address[:2])
    return f"client-{id(websocket):x}"


class ConnectionRegistry:
    """
    Tracks connected clients and owns their outbound send buffers.

    Uses a per-client queue and worker task pattern to ensure:
    1. Non-blocking delivery (a stalled client never blocks the others)
    2. Strict message ordering per client (messages are sent sequentially)
    3. Backpressure handling (a slow client's buffer is bounded and drops
       messages on overflow)
    """

    def __init__(self, queue_size: int = ServerConstants.CLIENT_QUEUE_SIZE):
        """
        Initialize the registry.

        Args:
            queue_size: Bound of each client's send buffer
        """
        self.queue_size = queue_size
        # Map websocket -> {'queue': asyncio.Queue, 'task': asyncio.Task}
        self.clients: Dict[Any, Dict[str, Any]] = {}
        self._lock = asyncio.Lock()

    async def register(self, websocket: Any) -> bool:
        """
        Register a new client and start its sender worker.

        Args:
            websocket: WebSocket connection to register

        Returns:
            True if the client was added, False if already registered
        """
        async with self._lock:
            if websocket in self.clients:
                return False

            queue = asyncio.Queue(maxsize=self.queue_size)
            task = asyncio.create_task(self._client_sender_loop(websocket, queue))

            self.clients[websocket] = {
                'queue': queue,
                'task': task,
            }
            logger.info(f"Client {describe(websocket)} connected. Total clients: {len(self.clients)}")
            return True

    async def unregister(self, websocket: Any) -> bool:
        """
        Unregister a client and stop its worker.

        Args:
            websocket: WebSocket connection to unregister

        Returns:
            True if the client was removed, False if it was not registered
        """
        async with self._lock:
            client_data = self.clients.pop(websocket, None)
            if client_data is None:
                return False

            task = client_data['task']
            if task is not asyncio.current_task():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass

            logger.info(f"Client {describe(websocket)} disconnected. Total clients: {len(self.clients)}")
            return True

    def snapshot(self) -> List[Any]:
        """
        Get the currently registered connections.

        The returned list is a copy, so registrations and removals during
        iteration do not affect it.
        """
        return list(self.clients.keys())

    def for_each(self, fn: Callable[[Any], None]) -> None:
        """Call fn for every connection registered at call time."""
        for websocket in self.snapshot():
            fn(websocket)

    def deliver(self, websocket: Any, message_json: str) -> bool:
        """
        Hand an encoded message to a client's sender worker.

        Never blocks. If the client is gone or its buffer is full, the
        message is dropped for that client only.

        Args:
            websocket: Target connection
            message_json: Encoded message

        Returns:
            True if the message was buffered for sending
        """
        client_data = self.clients.get(websocket)
        if client_data is None:
            logger.debug(f"Client {describe(websocket)} no longer registered, skipping delivery")
            return False

        if client_data['task'].done():
            logger.warning(f"Client {describe(websocket)} sender stopped, skipping delivery")
            return False

        try:
            client_data['queue'].put_nowait(message_json)
        except asyncio.QueueFull:
            logger.warning(f"Client {describe(websocket)} queue full, dropping message")
            return False
        return True

    async def _client_sender_loop(self, websocket: Any, queue: asyncio.Queue) -> None:
        """
        Background task to send messages to a specific client sequentially.

        A failed send stops the worker; the client itself is removed when its
        connection-closed event is processed.
        """
        while True:
            message_json = await queue.get()
            try:
                await websocket.send(message_json)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.warning(f"Failed to send to client {describe(websocket)}: {e}")
                self._discard_pending(queue)
                return
            finally:
                queue.task_done()

    @staticmethod
    def _discard_pending(queue: asyncio.Queue) -> None:
        while not queue.empty():
            queue.get_nowait()
            queue.task_done()

    async def drain(self) -> None:
        """Wait until every buffered message has been handed to its socket."""
        for client_data in list(self.clients.values()):
            if not client_data['task'].done():
                await client_data['queue'].join()

    def get_client_count(self) -> int:
        """
        Get the number of connected clients.

        Returns:
            Number of connected clients
        """
        return len(self.clients)

    def __len__(self) -> int:
        return len(self.clients)

    def __contains__(self, websocket: Any) -> bool:
        return websocket in self.clients

    async def close_all(self) -> None:
        """Close all client connections."""
        websockets = self.snapshot()

        for ws in websockets:
            await self.unregister(ws)
            try:
                await ws.close()
            except Exception as e:
                logger.debug(f"Error closing client {describe(ws)}: {e}")

        logger.info("All clients disconnected")
