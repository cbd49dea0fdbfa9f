"""HTTP/WebSocket listener multiplexing the Studio UI and the live-sync channel."""

import asyncio
import logging
from http import HTTPStatus
from typing import List, Optional

from websockets.asyncio.server import Server, ServerConnection, serve
from websockets.exceptions import ConnectionClosed
from websockets.http11 import Request, Response

from ..errors import SpecificationFileNotFound, StaticAssetsNotFound
from ..server.config import StudioConfig
from ..server.constants import ServerConstants
from ..server.services.sync_service import (
    ConnectionClosed as ConnectionClosedEvent,
    ConnectionOpened,
    MessageReceived,
    SyncService,
)
from ..server.static_files import StaticFiles, make_response
from ..server.watcher import FileWatcher
from .registry import describe


logger = logging.getLogger(__name__)


def is_upgrade_request(request: Request) -> bool:
    """Check whether a request asks for a WebSocket upgrade."""
    return "websocket" in request.headers.get("Upgrade", "").lower()


class TransportServer:
    """
    Listener for one watched file.

    On a single port it:
    - upgrades requests for the live-sync path to WebSocket connections
    - drops upgrade requests for any other path without answering
    - serves the Studio UI from a directory (local mode) or answers plain
      HTTP requests with an empty response (remote mode)
    """

    def __init__(
        self,
        config: StudioConfig,
        service: Optional[SyncService] = None,
        watcher: Optional[FileWatcher] = None,
    ):
        """
        Initialize the transport.

        Args:
            config: Settings for this run
            service: Sync service (default: one built from config)
            watcher: File watcher (default: one built from config)
        """
        self.config = config
        self.service = service or SyncService(
            config.file_path,
            client_queue_size=config.client_queue_size,
        )
        self.watcher = watcher or FileWatcher(config.file_path, debounce_delay=config.debounce_delay)
        self.static_files: Optional[StaticFiles] = None
        self.server: Optional[Server] = None
        self._tasks: List[asyncio.Task] = []
        self._running = False

    async def start(self) -> None:
        """
        Validate the configuration, start watching and start listening.

        Raises:
            SpecificationFileNotFound: If the watched file does not exist
            StaticAssetsNotFound: In local mode, if the UI build is missing
            WatcherError: If the watched file cannot be observed
            OSError: If the port cannot be bound
            OverflowError: If the port is outside 0-65535
        """
        if self._running:
            logger.warning("Server is already running")
            return

        if not self.service.gateway.exists(self.config.file_path):
            raise SpecificationFileNotFound(self.config.file_path)

        if not self.config.remote:
            static_dir = self.config.static_dir
            if static_dir is None or not static_dir.is_dir():
                raise StaticAssetsNotFound(static_dir)
            self.static_files = StaticFiles(static_dir)

        self.watcher.start()
        self._tasks = [
            asyncio.create_task(self.service.run()),
            asyncio.create_task(self._pump_watcher_events()),
        ]

        try:
            self.server = await serve(
                self._handle_client,
                self.config.host,
                self.config.port,
                process_request=self._process_request,
                max_size=ServerConstants.MAX_FRAME_SIZE,
            )
        except (OSError, OverflowError):
            await self._stop_background()
            raise

        self._running = True
        logger.info(f"Studio is running at {self.studio_url}")
        logger.info(f"Watching changes on file {self.config.file_path}")

    async def stop(self) -> None:
        """Stop listening, stop watching and disconnect every client."""
        if not self._running:
            return

        logger.info("Stopping live server")
        self._running = False

        if self.server:
            self.server.close()
            await self.server.wait_closed()

        await self._stop_background()
        await self.service.registry.close_all()

        logger.info("Live server stopped")

    async def _stop_background(self) -> None:
        for task in self._tasks:
            task.cancel()
        for task in self._tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._tasks = []
        self.watcher.stop()

    async def _pump_watcher_events(self) -> None:
        """Forward watcher events into the sync service inbox."""
        async for event in self.watcher.events():
            self.service.submit(event)

    def _process_request(self, connection: ServerConnection, request: Request) -> Optional[Response]:
        """
        Route a request before the WebSocket handshake.

        Returns None to let the handshake proceed, or a response that
        replaces it.
        """
        if is_upgrade_request(request):
            if request.path == ServerConstants.LIVE_SERVER_PATH:
                return None
            logger.debug(f"Rejecting upgrade request for {request.path}")
            # Nothing is written once the transport is aborted
            connection.transport.abort()
            return make_response(HTTPStatus.NOT_FOUND)

        if self.config.remote or self.static_files is None:
            return make_response(HTTPStatus.NO_CONTENT)

        return self.static_files.serve(request.path, request.headers.raw_items())

    async def _handle_client(self, websocket: ServerConnection) -> None:
        """
        Handle a live-sync connection for its whole lifetime.

        Args:
            websocket: WebSocket connection
        """
        self.service.submit(ConnectionOpened(websocket))

        try:
            async for message in websocket:
                self.service.submit(MessageReceived(websocket, message))
        except ConnectionClosed:
            logger.debug(f"Client {describe(websocket)} connection closed")
        except Exception as e:
            logger.error(f"Error in client handler: {e}")
        finally:
            self.service.submit(ConnectionClosedEvent(websocket))

    @property
    def bound_port(self) -> int:
        """Port actually bound by the listener."""
        if self.server and self.server.sockets:
            return self.server.sockets[0].getsockname()[1]
        return self.config.port

    @property
    def studio_url(self) -> str:
        """URL where the Studio UI can reach this live server."""
        return self.config.studio_url(self.bound_port)

    def get_client_count(self) -> int:
        """
        Get the number of connected clients.

        Returns:
            Number of connected clients
        """
        return self.service.registry.get_client_count()

    def is_running(self) -> bool:
        """
        Check if the server is running.

        Returns:
            True if running, False otherwise
        """
        return self._running


async def start(config: StudioConfig) -> TransportServer:
    """
    Build and start a live server for a configuration.

    Args:
        config: Settings for this run

    Returns:
        The running TransportServer
    """
    server = TransportServer(config)
    await server.start()
    return server
