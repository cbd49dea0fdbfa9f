"""Ordered message queue that fans out to every registered client."""

import logging
from collections import deque
from typing import Deque, Dict

from .registry import ConnectionRegistry, describe
from .serializers import ProtocolMessage


logger = logging.getLogger(__name__)


class MessageBroadcaster:
    """
    Buffers outbound messages until at least one client is connected.

    Messages leave the queue in FIFO order. Each one is handed to every
    client registered at that moment before the next one is taken, so all
    clients see the same relative order. With no clients registered the
    queue simply grows until one connects.
    """

    def __init__(self, registry: ConnectionRegistry):
        """
        Initialize the broadcaster.

        Args:
            registry: Connections that receive flushed messages
        """
        self.registry = registry
        self.pending: Deque[ProtocolMessage] = deque()
        self.stats: Dict[str, int] = {
            "enqueued": 0,
            "broadcast": 0,
            "deliveries": 0,
            "delivery_failures": 0,
            "serialization_errors": 0,
        }

    def enqueue(self, message: ProtocolMessage) -> None:
        """
        Append a message to the queue. Never blocks.

        Args:
            message: Message to broadcast
        """
        self.pending.append(message)
        self.stats["enqueued"] += 1
        logger.debug(f"Queued {message.type} ({len(self.pending)} pending)")

    def flush(self) -> int:
        """
        Deliver queued messages while there is someone to deliver them to.

        Safe to call at any time; does nothing when the queue or the
        registry is empty. A failed delivery to one client is logged and
        neither stops the fan-out nor re-queues the message.

        Returns:
            Number of messages taken off the queue
        """
        flushed = 0
        while self.pending and len(self.registry):
            message = self.pending.popleft()
            flushed += 1

            try:
                message_json = message.to_json()
            except (TypeError, ValueError) as e:
                logger.error(f"Failed to serialize {message.type} message: {e}")
                self.stats["serialization_errors"] += 1
                continue

            for websocket in self.registry.snapshot():
                if self.registry.deliver(websocket, message_json):
                    self.stats["deliveries"] += 1
                else:
                    self.stats["delivery_failures"] += 1
                    logger.warning(f"Could not deliver {message.type} to client {describe(websocket)}")

            self.stats["broadcast"] += 1
            logger.debug(f"Broadcasted {message.type} to {len(self.registry)} client(s)")

        return flushed

    def get_pending_count(self) -> int:
        """
        Get the number of messages waiting for a client.

        Returns:
            Number of queued messages
        """
        return len(self.pending)
