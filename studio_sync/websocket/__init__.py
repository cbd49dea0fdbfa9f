"""
WebSocket side of the live-sync server.

The transport itself lives in studio_sync.websocket.server and is imported
from there; it depends on the sync service, which depends on the modules
exported here.
"""

from .serializers import ProtocolMessage, create_message, decode_message
from .registry import ConnectionRegistry
from .broadcaster import MessageBroadcaster

__all__ = [
    'ProtocolMessage',
    'create_message',
    'decode_message',
    'ConnectionRegistry',
    'MessageBroadcaster',
]
