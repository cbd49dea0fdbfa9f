"""Exceptions raised by the live-sync server."""

from pathlib import Path
from typing import Optional, Union


class StudioError(Exception):
    """Base class for all live-sync errors."""
    pass


class SpecificationFileNotFound(StudioError):
    """Raised at startup when the watched file does not exist."""

    def __init__(self, file_path: Union[str, Path]):
        self.file_path = str(file_path)
        super().__init__(f"File {self.file_path} does not exist.")


class StaticAssetsNotFound(StudioError):
    """Raised at startup in local mode when the Studio build cannot be located."""

    def __init__(self, static_dir: Optional[Union[str, Path]]):
        self.static_dir = str(static_dir) if static_dir else None
        if self.static_dir:
            message = f"Cannot recognize location of the Studio build: {self.static_dir}"
        else:
            message = "Cannot recognize location of the Studio build: no static directory configured"
        super().__init__(message)


class WatcherError(StudioError):
    """Raised when the file watcher cannot be started."""
    pass


class FileError(StudioError):
    """Wraps an OS-level failure while reading or writing the watched file."""

    def __init__(self, path: Union[str, Path], operation: str, cause: Exception):
        self.path = str(path)
        self.operation = operation
        self.cause = cause
        super().__init__(f"Failed to {operation} {self.path}: {cause}")


class ProtocolError(StudioError):
    """Raised when an inbound frame cannot be turned into a protocol message."""

    def __init__(self, reason: str, raw: Optional[str] = None):
        self.reason = reason
        self.raw = raw
        super().__init__(reason)
