"""
Live file-sync companion server for the browser-based Studio editor.

Watches a single specification file, mirrors its content to connected
browser clients over a WebSocket, and writes edits pushed back by the
browser to disk.
"""

from .server.config import StudioConfig
from .websocket.server import TransportServer, start

__version__ = "0.1.0"

__all__ = ["StudioConfig", "TransportServer", "start"]
