"""
Static file serving for the locally hosted Studio UI.

Plain HTTP requests reaching the listener in local mode are answered from
a build directory through werkzeug; the resulting WSGI response is turned
into a websockets Response for the process_request hook.
"""

import logging
from email.utils import formatdate
from http import HTTPStatus
from pathlib import Path
from typing import Iterable, Optional, Tuple, Union
from urllib.parse import unquote, urlsplit

from websockets.datastructures import Headers
from websockets.http11 import Response
from werkzeug.exceptions import HTTPException, InternalServerError
from werkzeug.test import EnvironBuilder, run_wsgi_app
from werkzeug.utils import send_from_directory

from .constants import ServerConstants

logger = logging.getLogger(__name__)


def make_response(status: HTTPStatus, body: bytes = b"",
                  content_type: str = "text/plain; charset=utf-8") -> Response:
    """
    Build a complete HTTP response.

    Args:
        status: HTTP status
        body: Response body
        content_type: Value of the Content-Type header

    Returns:
        Response ready to be returned from a process_request hook
    """
    headers = Headers([
        ("Date", formatdate(usegmt=True)),
        ("Connection", "close"),
        ("Content-Length", str(len(body))),
    ])
    if body:
        headers["Content-Type"] = content_type
    return Response(status.value, status.phrase, headers, body)


class StaticFiles:
    """Serves files from one directory."""

    def __init__(self, directory: Union[str, Path], index_file: str = ServerConstants.INDEX_FILE):
        """
        Initialize the file server.

        Args:
            directory: Root of the files to serve
            index_file: File served for directory paths
        """
        self.directory = Path(directory).resolve()
        self.index_file = index_file

    def _relative_path(self, request_path: str) -> str:
        relative = unquote(urlsplit(request_path).path).lstrip("/")
        if not relative or relative.endswith("/"):
            relative += self.index_file
        return relative

    def _wsgi_app(self, request_path: str):
        def app(environ, start_response):
            try:
                response = send_from_directory(self.directory, self._relative_path(request_path), environ)
            except HTTPException as e:
                logger.debug(f"Static file {request_path}: {e.code} {e.name}")
                response = e.get_response(environ)
            except OSError as e:
                logger.error(f"Failed to serve {request_path}: {e}")
                response = InternalServerError().get_response(environ)
            return response(environ, start_response)
        return app

    def serve(self, request_path: str,
              request_headers: Optional[Iterable[Tuple[str, str]]] = None) -> Response:
        """
        Answer a GET request.

        Args:
            request_path: Raw request target
            request_headers: Headers of the incoming request, for conditional GETs

        Returns:
            200 with the file, 404 if not found or outside the directory,
            500 if unreadable
        """
        environ = EnvironBuilder(method="GET", headers=list(request_headers or [])).get_environ()
        app_iter, status, wsgi_headers = run_wsgi_app(self._wsgi_app(request_path), environ)
        try:
            body = b"".join(app_iter)
        finally:
            if hasattr(app_iter, "close"):
                app_iter.close()

        # werkzeug upper-cases the reason phrase
        status = HTTPStatus(int(status.split(" ", 1)[0]))
        headers = Headers(list(wsgi_headers.items()))
        headers["Connection"] = "close"
        return Response(status.value, status.phrase, headers, body)
