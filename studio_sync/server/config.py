"""
Configuration for a live-sync server run.

A StudioConfig is built once per process (by the entry point or by tests)
and passed explicitly to the TransportServer.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from .constants import ServerConstants, WatcherConstants


def default_remote_address() -> str:
    """Remote Studio address, overridable through the environment."""
    return os.environ.get(
        ServerConstants.REMOTE_ADDRESS_ENV,
        ServerConstants.DEFAULT_REMOTE_ADDRESS,
    )


@dataclass
class StudioConfig:
    """
    Settings for one server instance.

    Attributes:
        file_path: The watched specification file
        port: Port to listen on (0 picks a free port)
        host: Interface to bind to
        remote: Use the hosted Studio UI instead of serving it locally
        remote_address: Base URL of the hosted Studio UI
        static_dir: Directory holding the built Studio UI (local mode)
        open_browser: Open the Studio URL once the server is listening
        debounce_delay: Quiet period used to coalesce filesystem events
        client_queue_size: Bound of each connection's send buffer
    """
    file_path: Union[str, Path]
    port: int = ServerConstants.DEFAULT_PORT
    host: str = ServerConstants.DEFAULT_HOST
    remote: bool = False
    remote_address: Optional[str] = None
    static_dir: Optional[Union[str, Path]] = None
    open_browser: bool = True
    debounce_delay: float = WatcherConstants.DEBOUNCE_DELAY_SECONDS
    client_queue_size: int = ServerConstants.CLIENT_QUEUE_SIZE

    def __post_init__(self):
        self.file_path = Path(self.file_path).expanduser().absolute()
        if self.port is None:
            self.port = ServerConstants.DEFAULT_PORT
        if not ServerConstants.MIN_PORT <= self.port <= ServerConstants.MAX_PORT:
            raise ValueError(f"Port must be between {ServerConstants.MIN_PORT} and {ServerConstants.MAX_PORT}, got {self.port}")
        if not self.remote_address:
            self.remote_address = default_remote_address()
        if self.static_dir is not None:
            self.static_dir = Path(self.static_dir).expanduser().absolute()

    def studio_url(self, port: Optional[int] = None) -> str:
        """
        Build the URL the browser should open.

        Args:
            port: Actually bound port (defaults to the configured one)

        Returns:
            Studio URL carrying the live-server port as a query parameter
        """
        port = self.port if port is None else port
        query = f"{ServerConstants.LIVE_SERVER_QUERY}={port}"
        if self.remote:
            return f"{self.remote_address}?{query}"
        return f"http://{self.host}:{port}?{query}"
