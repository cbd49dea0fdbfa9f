"""
Constants for the live-sync server.

This module centralizes default values and protocol names used by the
transport, the watcher and the sync service.
"""


class ServerConstants:
    """Constants for the HTTP/WebSocket listener."""

    DEFAULT_HOST = "localhost"
    DEFAULT_PORT = 3210
    DEFAULT_REMOTE_ADDRESS = "https://studio.asyncapi.com"
    REMOTE_ADDRESS_ENV = "STUDIO_REMOTE_ADDRESS"

    # The one path that may be upgraded to a WebSocket
    LIVE_SERVER_PATH = "/live-server"

    # Query parameter telling the Studio UI where the sync channel lives
    LIVE_SERVER_QUERY = "liveServer"

    # Per-connection send buffer; messages beyond this are dropped for that client
    CLIENT_QUEUE_SIZE = 1000

    # Largest accepted WebSocket frame; whole spec files travel in one frame
    MAX_FRAME_SIZE = 100 * 1024 * 1024

    MIN_PORT = 0
    MAX_PORT = 65535

    INDEX_FILE = "index.html"


class WatcherConstants:
    """Constants for filesystem watching."""

    DEBOUNCE_DELAY_SECONDS = 0.05  # 50ms quiet period before emitting a change


class ProtocolTypes:
    """Message type tags used on the wire."""

    FILE_LOADED = "file:loaded"
    FILE_CHANGED = "file:changed"
    FILE_DELETED = "file:deleted"
    FILE_UPDATE = "file:update"

    # Server -> client
    OUTBOUND = (FILE_LOADED, FILE_CHANGED, FILE_DELETED)
    # Client -> server
    INBOUND = (FILE_UPDATE,)


class WatchEventKind:
    """Normalized watcher event kinds."""
    ADDED = "added"
    CHANGED = "changed"
    REMOVED = "removed"
