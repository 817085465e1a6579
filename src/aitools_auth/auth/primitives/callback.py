"""Single-request loopback HTTP listener for authorization code redirects.

Binds an OS-assigned port on 127.0.0.1, accepts exactly one connection,
reads only the request line (``GET /?code=...&state=... HTTP/1.1``), writes a
static HTML page and closes the connection.
"""

from __future__ import annotations

import html
import logging
import socket
from urllib.parse import parse_qs, urlsplit

from aitools_auth.auth.models.errors import (
    AuthorizationCallbackError,
    CallbackTimeoutError,
)
from aitools_auth.auth.models.flow import AuthorizationResponse

logger = logging.getLogger(__name__)

MAX_REQUEST_LINE_BYTES = 16 * 1024

SUCCESS_PAGE = (
    "<html><body><h2>Authentication Successful!</h2>"
    "<p>You can close this window and return to the terminal.</p>"
    "</body></html>"
)

ERROR_PAGE = (
    "<html><body><h2>Authentication Failed</h2>"
    "<p>{message}</p><p>You can close this window.</p></body></html>"
)


class LoopbackCallbackServer:
    """Ephemeral listener that captures one authorization redirect."""

    def __init__(self, host: str = "127.0.0.1"):
        self._socket = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            self._socket.bind((host, 0))
            self._socket.listen(1)
        except OSError:
            self._socket.close()
            raise
        self.port: int = self._socket.getsockname()[1]

    @property
    def redirect_uri(self) -> str:
        return f"http://localhost:{self.port}"

    def wait_for_callback(self, timeout: float | None) -> AuthorizationResponse:
        """Block until the browser redirect arrives, then answer it.

        Args:
            timeout: Seconds to wait for the connection, None waits forever

        Returns:
            AuthorizationResponse: Parsed query parameters of the redirect

        Raises:
            CallbackTimeoutError: If no connection arrives in time
            AuthorizationCallbackError: If the request line is malformed
        """
        self._socket.settimeout(timeout)
        try:
            connection, address = self._socket.accept()
        except TimeoutError as e:
            raise CallbackTimeoutError(
                f"No authorization redirect received within {timeout:g} seconds"
            ) from e
        except OSError as e:
            raise AuthorizationCallbackError(
                f"Failed to accept callback connection: {e}"
            ) from e

        logger.debug(f"Accepted callback connection from {address[0]}")
        with connection:
            connection.settimeout(timeout)
            try:
                with connection.makefile("rb") as reader:
                    request_line = reader.readline(MAX_REQUEST_LINE_BYTES)
            except OSError as e:
                raise AuthorizationCallbackError(
                    f"Failed to read callback request: {e}"
                ) from e

            try:
                response = self.parse_request_line(
                    request_line.decode("latin-1")
                )
            except AuthorizationCallbackError:
                self._respond(connection, 400, ERROR_PAGE.format(
                    message="Invalid callback request."
                ))
                raise

            if response.is_error():
                message = html.escape(
                    f"{response.error}: {response.error_description or ''}"
                )
                self._respond(connection, 400, ERROR_PAGE.format(message=message))
            elif response.code is None:
                self._respond(connection, 400, ERROR_PAGE.format(
                    message="No authorization code in callback."
                ))
            else:
                self._respond(connection, 200, SUCCESS_PAGE)

            return response

    @staticmethod
    def parse_request_line(request_line: str) -> AuthorizationResponse:
        """Recover the query parameters from ``GET <target> HTTP/1.1``."""
        parts = request_line.split()
        if len(parts) < 2 or parts[0] != "GET":
            raise AuthorizationCallbackError("Invalid callback request")

        query_params = parse_qs(urlsplit(parts[1]).query)

        def get_single_param(key: str) -> str | None:
            values = query_params.get(key, [])
            return values[0] if values else None

        return AuthorizationResponse(
            code=get_single_param("code"),
            state=get_single_param("state"),
            error=get_single_param("error"),
            error_description=get_single_param("error_description"),
        )

    def _respond(self, connection: socket.socket, status: int, body: str) -> None:
        reason = "OK" if status == 200 else "Bad Request"
        payload = body.encode("utf-8")
        head = (
            f"HTTP/1.1 {status} {reason}\r\n"
            "Content-Type: text/html; charset=utf-8\r\n"
            f"Content-Length: {len(payload)}\r\n"
            "Connection: close\r\n\r\n"
        ).encode("ascii")
        try:
            connection.sendall(head + payload)
        except OSError as e:
            # The redirect is already parsed, a closed browser tab is not fatal
            logger.warning(f"Failed to write callback response: {e}")

    def close(self) -> None:
        self._socket.close()

    def __enter__(self) -> LoopbackCallbackServer:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
