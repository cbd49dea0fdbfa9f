"""
Service layer for the live-sync server.

This package contains the SyncService reactor and its input event types.
"""

from .sync_service import (
    SyncService,
    ConnectionOpened,
    ConnectionClosed,
    MessageReceived,
)

__all__ = [
    "SyncService",
    "ConnectionOpened",
    "ConnectionClosed",
    "MessageReceived",
]
