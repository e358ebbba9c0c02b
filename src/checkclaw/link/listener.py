"""Single-shot loopback HTTP listener for the consent page callback.

The listener binds 127.0.0.1 on an OS-assigned port and accepts exactly one
callback. It serves requests on the caller's thread: ``wait()`` blocks in
``select`` between requests, so the timeout and the one-callback rule are
enforced by the loop itself rather than by a background server thread.
"""

import ipaddress
import json
import socketserver
import time
from enum import Enum
from http import HTTPStatus
from http.server import BaseHTTPRequestHandler, HTTPServer
from typing import Any, Optional
from urllib.parse import urlparse

from checkclaw.link.errors import (
    InvalidCallbackPayloadError,
    LinkTimeoutError,
    ListenerStartError,
)
from checkclaw.models.link import CallbackResult, parse_callback_body
from checkclaw.utils.logging_config import get_logger

logger = get_logger(__name__)

LOOPBACK_HOST = "127.0.0.1"
CALLBACK_PATH = "/callback"
PAGE_PATH = "/"

# Largest callback body accepted; consent metadata is a few KB at most
MAX_BODY_BYTES = 64 * 1024

# Per-connection socket timeout so a stalled client cannot hold the wait loop
HANDLER_TIMEOUT = 5.0

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}

# Chromium preflights public-origin requests to loopback with this header
PRIVATE_NETWORK_REQUEST = "Access-Control-Request-Private-Network"
PRIVATE_NETWORK_ALLOW = "Access-Control-Allow-Private-Network"


class ListenerState(Enum):
    """Lifecycle of a LinkListener."""

    LISTENING = "listening"
    FULFILLED = "fulfilled"
    TIMED_OUT = "timed_out"
    ERRORED = "errored"
    CLOSED = "closed"


class LinkMode(Enum):
    """Who hosts the consent UI.

    CALLBACK: a remote page hosts it; the listener is only a callback sink.
    LOCAL_PAGE: the listener also serves the consent page at "/".
    """

    CALLBACK = "callback"
    LOCAL_PAGE = "local_page"


class _CallbackHandler(BaseHTTPRequestHandler):
    server: "_CallbackServer"
    timeout = HANDLER_TIMEOUT
    server_version = "checkclaw-link"

    def _route(self) -> str:
        return urlparse(self.path).path

    def _send(
        self,
        status: HTTPStatus,
        body: bytes = b"",
        content_type: Optional[str] = None,
    ) -> None:
        self.send_response(status)
        for name, value in CORS_HEADERS.items():
            self.send_header(name, value)
        if self.headers.get(PRIVATE_NETWORK_REQUEST, "").lower() == "true":
            self.send_header(PRIVATE_NETWORK_ALLOW, "true")
        if content_type:
            self.send_header("Content-Type", content_type)
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        if body:
            self.wfile.write(body)

    def _send_json(self, status: HTTPStatus, payload: dict[str, Any]) -> None:
        self._send(status, json.dumps(payload).encode("utf-8"), "application/json")

    def _read_body(self) -> Optional[bytes]:
        try:
            length = int(self.headers.get("Content-Length", "0"))
        except ValueError:
            return None
        if length < 0 or length > MAX_BODY_BYTES:
            return None
        return self.rfile.read(length)

    def do_OPTIONS(self) -> None:  # noqa: N802
        if self._route() != CALLBACK_PATH:
            self._send(HTTPStatus.NOT_FOUND)
            return
        self._send(HTTPStatus.NO_CONTENT)

    def do_GET(self) -> None:  # noqa: N802
        page = self.server.listener.page_html
        if self._route() != PAGE_PATH or page is None:
            self._send(HTTPStatus.NOT_FOUND, b"Not found", "text/plain; charset=utf-8")
            return
        self._send(HTTPStatus.OK, page.encode("utf-8"), "text/html; charset=utf-8")

    def do_POST(self) -> None:  # noqa: N802
        # Drain the body first; closing with unread input resets the connection
        raw_body = self._read_body()

        if self._route() != CALLBACK_PATH:
            self._send(HTTPStatus.NOT_FOUND, b"Not found", "text/plain; charset=utf-8")
            return

        listener = self.server.listener
        if listener.state is not ListenerState.LISTENING:
            logger.warning("Ignoring duplicate link callback")
            self._send_json(HTTPStatus.CONFLICT, {"ok": False, "error": "callback already received"})
            return

        result: Optional[CallbackResult] = None
        if raw_body is not None:
            try:
                result = parse_callback_body(json.loads(raw_body))
            except (ValueError, RecursionError):
                # RecursionError: nesting deep enough to exhaust the decoder
                result = None

        if result is None:
            self._send_json(HTTPStatus.BAD_REQUEST, {"ok": False, "error": "invalid JSON body"})
            listener._reject("Callback body was not a JSON object")
            return

        # Answer before recording so the page can show its confirmation
        self._send_json(HTTPStatus.OK, {"ok": True})
        listener._fulfil(result)

    def log_message(self, format: str, *args: Any) -> None:  # noqa: A002
        logger.debug("link listener: " + format % args)


class _CallbackServer(HTTPServer):
    def __init__(self, listener: "LinkListener", address: tuple[str, int]):
        self.listener = listener
        super().__init__(address, _CallbackHandler)

    def server_bind(self) -> None:
        # HTTPServer.server_bind resolves the FQDN of the bind address, which
        # can stall on hosts with slow reverse DNS; loopback needs no name.
        socketserver.TCPServer.server_bind(self)
        host, port = self.server_address[:2]
        self.server_name = str(host)
        self.server_port = port

    def handle_error(self, request: Any, client_address: Any) -> None:
        logger.exception(f"Error handling link callback from {client_address}")


class LinkListener:
    """Ephemeral loopback listener that accepts exactly one callback.

    Lifecycle: LISTENING -> FULFILLED | TIMED_OUT | ERRORED -> CLOSED.
    ``close()`` is idempotent and always releases the port. Use as a context
    manager so every exit path closes it.

    Attributes:
        host: Bound address (always a loopback address).
        port: Bound port.
        state: Current ListenerState.
        result: The callback outcome once FULFILLED.
        page_html: Consent page served at "/" in local-page mode.
    """

    def __init__(
        self,
        host: str = LOOPBACK_HOST,
        port: int = 0,
        page_html: Optional[str] = None,
    ):
        """Bind the listener.

        Args:
            host: Loopback address to bind.
            port: Port to bind, 0 for an OS-assigned ephemeral port.
            page_html: Consent page to serve at "/", None to serve none.

        Raises:
            ValueError: If host is not a loopback address.
            ListenerStartError: If the socket cannot be bound.
        """
        if not ipaddress.ip_address(host).is_loopback:
            raise ValueError(f"Link listener must bind a loopback address, got {host}")

        self.page_html = page_html
        self.state = ListenerState.LISTENING
        self.result: Optional[CallbackResult] = None
        self.error: Optional[str] = None

        try:
            self._server = _CallbackServer(self, (host, port))
        except OSError as e:
            raise ListenerStartError(f"Could not listen on {host}:{port}: {e}") from e

        self.host, self.port = self._server.server_address[:2]
        logger.info(f"Link listener bound to {self.host}:{self.port}")

    @property
    def callback_url(self) -> str:
        return f"http://{self.host}:{self.port}{CALLBACK_PATH}"

    @property
    def page_url(self) -> str:
        return f"http://{self.host}:{self.port}{PAGE_PATH}"

    @property
    def closed(self) -> bool:
        return self.state is ListenerState.CLOSED

    def _fulfil(self, result: CallbackResult) -> None:
        self.result = result
        self.state = ListenerState.FULFILLED
        logger.info(f"Link callback received: {type(result).__name__}")

    def _reject(self, error: str) -> None:
        self.error = error
        self.state = ListenerState.ERRORED
        logger.warning(f"Link callback rejected: {error}")

    def wait(self, timeout: float) -> CallbackResult:
        """Serve requests until the callback arrives or timeout elapses.

        Args:
            timeout: Seconds to wait in total.

        Returns:
            The parsed callback outcome.

        Raises:
            RuntimeError: If the listener is already closed.
            InvalidCallbackPayloadError: If the callback body was not a JSON object.
            LinkTimeoutError: If no callback arrived in time.
        """
        if self.closed:
            raise RuntimeError("Link listener is closed")

        deadline = time.monotonic() + timeout
        while self.state is ListenerState.LISTENING:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                self.state = ListenerState.TIMED_OUT
                logger.warning(f"Link callback timed out after {timeout:g}s")
                break
            self._server.timeout = remaining
            self._server.handle_request()

        if self.state is ListenerState.FULFILLED and self.result is not None:
            return self.result
        if self.state is ListenerState.ERRORED:
            raise InvalidCallbackPayloadError(self.error or "Invalid callback payload")
        raise LinkTimeoutError(timeout)

    def close(self) -> None:
        """Release the port. Safe to call more than once."""
        if self.closed:
            return
        self._server.server_close()
        self.state = ListenerState.CLOSED
        logger.debug(f"Link listener on port {self.port} closed")

    def __enter__(self) -> "LinkListener":
        return self

    def __exit__(
        self,
        exc_type: type | None,
        exc_val: BaseException | None,
        exc_tb: object | None,
    ) -> bool:
        self.close()
        return False

    def __repr__(self) -> str:
        return f"LinkListener(host={self.host!r}, port={self.port}, state={self.state.value})"
