"""
Read/write access to the watched file.

This is the only module that touches the watched file directly. Errors are
logged here; reads surface them as FileError, writes swallow them.
"""

import logging
from pathlib import Path
from typing import Union

from ..errors import FileError

logger = logging.getLogger(__name__)


class FileGateway:
    """Whole-file UTF-8 reads and overwrites of the watched file."""

    def __init__(self, encoding: str = "utf-8"):
        self.encoding = encoding

    def exists(self, path: Union[str, Path]) -> bool:
        """Check whether the file is present on disk."""
        return Path(path).is_file()

    def read(self, path: Union[str, Path]) -> str:
        """
        Read the full content of a file.

        Newlines are returned untranslated so the content matches the bytes
        on disk.

        Args:
            path: File to read

        Returns:
            The decoded file content

        Raises:
            FileError: If the file cannot be read or decoded
        """
        try:
            with open(path, "r", encoding=self.encoding, newline="") as f:
                return f.read()
        except (OSError, UnicodeDecodeError) as e:
            logger.error(f"Failed to read {path}: {e}")
            raise FileError(path, "read", e) from e

    def write(self, path: Union[str, Path], content: str) -> bool:
        """
        Overwrite a file with new content.

        Failures are logged and reported through the return value only, so a
        failed write never interrupts the service.

        Args:
            path: File to overwrite
            content: Full new content

        Returns:
            True if the content was written, False otherwise
        """
        try:
            with open(path, "w", encoding=self.encoding, newline="") as f:
                f.write(content)
        except (OSError, UnicodeEncodeError) as e:
            logger.error(f"Failed to write {path}: {e}")
            return False

        logger.debug(f"Wrote {len(content)} characters to {path}")
        return True
