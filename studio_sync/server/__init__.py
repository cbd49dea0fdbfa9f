"""
Server-side building blocks for the live-sync server.

This module provides:
- Configuration and constants
- Access to the watched file
- File watcher for detecting changes to the watched file
"""

from .config import StudioConfig
from .file_gateway import FileGateway
from .watcher import FileWatcher, WatchEvent

__all__ = ["StudioConfig", "FileGateway", "FileWatcher", "WatchEvent"]
