"""
Utilities package for the live-sync server.

This package contains helpers shared by the watcher and the sync service.
"""

from .debouncer import Debouncer, DebouncedEvent

__all__ = [
    "Debouncer",
    "DebouncedEvent",
]
