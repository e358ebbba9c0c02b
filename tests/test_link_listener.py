"""Tests for the loopback link callback listener."""

import threading
import time
from http.server import BaseHTTPRequestHandler, HTTPServer
from typing import Any

import pytest
import requests

from checkclaw.link.errors import (
    InvalidCallbackPayloadError,
    LinkTimeoutError,
    ListenerStartError,
)
from checkclaw.link.listener import LinkListener, ListenerState
from checkclaw.models.link import LinkCancelled, LinkSuccess


def send_in_background(
    calls: list[tuple[str, str, dict[str, Any]]],
    delay: float = 0.05,
) -> tuple[threading.Thread, list[requests.Response]]:
    """Issue HTTP requests in order on a background thread.

    Args:
        calls: (method, url, requests kwargs) triples.
        delay: Seconds to sleep before the first request.

    Returns:
        The started thread and the list responses are appended to.
    """
    responses: list[requests.Response] = []

    def run() -> None:
        time.sleep(delay)
        session = requests.Session()
        session.trust_env = False
        for method, url, kwargs in calls:
            responses.append(session.request(method, url, timeout=5, **kwargs))

    thread = threading.Thread(target=run, daemon=True)
    thread.start()
    return thread, responses


class TestListenerBinding:
    """Tests for binding and closing."""

    def test_binds_ephemeral_loopback_port(self) -> None:
        with LinkListener() as listener:
            assert listener.host == "127.0.0.1"
            assert listener.port > 0
            assert listener.state is ListenerState.LISTENING
            assert listener.callback_url == f"http://127.0.0.1:{listener.port}/callback"

    def test_rejects_non_loopback_host(self) -> None:
        with pytest.raises(ValueError, match="loopback"):
            LinkListener(host="0.0.0.0")

    def test_port_in_use_raises_listener_start_error(self) -> None:
        with LinkListener() as occupant:
            with pytest.raises(ListenerStartError):
                LinkListener(port=occupant.port)

    def test_close_is_idempotent_and_releases_port(self) -> None:
        listener = LinkListener()
        port = listener.port

        listener.close()
        listener.close()

        assert listener.closed
        server = HTTPServer(("127.0.0.1", port), BaseHTTPRequestHandler)
        server.server_close()

    def test_wait_after_close_raises(self) -> None:
        listener = LinkListener()
        listener.close()

        with pytest.raises(RuntimeError):
            listener.wait(1)

    def test_context_manager_closes_on_error(self) -> None:
        with pytest.raises(KeyError):
            with LinkListener() as listener:
                raise KeyError("boom")

        assert listener.state is ListenerState.CLOSED


class TestCallback:
    """Tests for the /callback endpoint."""

    def test_success_payload(self) -> None:
        with LinkListener() as listener:
            body = {"public_token": "public-sandbox-1", "metadata": {"institution": {"name": "Chase"}}}
            thread, responses = send_in_background(
                [("POST", listener.callback_url, {"json": body})]
            )

            result = listener.wait(5)
            thread.join(5)

        assert result == LinkSuccess(
            public_token="public-sandbox-1",
            metadata={"institution": {"name": "Chase"}},
        )
        assert responses[0].status_code == 200
        assert responses[0].json() == {"ok": True}
        assert responses[0].headers["Access-Control-Allow-Origin"] == "*"

    def test_error_payload_is_cancellation(self) -> None:
        with LinkListener() as listener:
            thread, responses = send_in_background(
                [("POST", listener.callback_url, {"json": {"error": "user exited"}})]
            )
            result = listener.wait(5)
            thread.join(5)

        assert result == LinkCancelled(reason="user exited")
        assert responses[0].status_code == 200

    def test_object_without_token_is_cancellation(self) -> None:
        with LinkListener() as listener:
            thread, _ = send_in_background([("POST", listener.callback_url, {"json": {}})])
            result = listener.wait(5)
            thread.join(5)

        assert result == LinkCancelled()

    def test_invalid_json_rejected(self) -> None:
        with LinkListener() as listener:
            thread, responses = send_in_background(
                [("POST", listener.callback_url, {
                    "data": "not json",
                    "headers": {"Content-Type": "application/json"},
                })]
            )
            with pytest.raises(InvalidCallbackPayloadError):
                listener.wait(5)
            thread.join(5)

            assert listener.state is ListenerState.ERRORED

        assert responses[0].status_code == 400

    def test_json_array_rejected(self) -> None:
        with LinkListener() as listener:
            thread, responses = send_in_background(
                [("POST", listener.callback_url, {"json": ["public-token"]})]
            )
            with pytest.raises(InvalidCallbackPayloadError):
                listener.wait(5)
            thread.join(5)

        assert responses[0].status_code == 400

    def test_deeply_nested_json_rejected(self) -> None:
        with LinkListener() as listener:
            thread, responses = send_in_background(
                [("POST", listener.callback_url, {
                    "data": "[" * 30000 + "]" * 30000,
                    "headers": {"Content-Type": "application/json"},
                })]
            )
            with pytest.raises(InvalidCallbackPayloadError):
                listener.wait(5)
            thread.join(5)

        assert responses[0].status_code == 400

    def test_private_network_preflight(self) -> None:
        with LinkListener() as listener:
            thread, responses = send_in_background([
                ("OPTIONS", listener.callback_url, {
                    "headers": {"Access-Control-Request-Private-Network": "true"},
                }),
                ("POST", listener.callback_url, {"json": {}}),
            ])
            listener.wait(5)
            thread.join(5)

        assert responses[0].status_code == 204
        assert responses[0].headers["Access-Control-Allow-Private-Network"] == "true"
        assert "Access-Control-Allow-Private-Network" not in responses[1].headers

    def test_preflight_then_post(self) -> None:
        with LinkListener() as listener:
            thread, responses = send_in_background([
                ("OPTIONS", listener.callback_url, {}),
                ("POST", listener.callback_url, {"json": {"public_token": "public-2"}}),
            ])
            result = listener.wait(5)
            thread.join(5)

        assert responses[0].status_code == 204
        assert "POST" in responses[0].headers["Access-Control-Allow-Methods"]
        assert isinstance(result, LinkSuccess)

    def test_unknown_path_does_not_resolve(self) -> None:
        with LinkListener() as listener:
            thread, responses = send_in_background([
                ("POST", f"http://127.0.0.1:{listener.port}/other", {"json": {"public_token": "x"}}),
                ("POST", listener.callback_url, {"json": {"public_token": "public-3"}}),
            ])
            result = listener.wait(5)
            thread.join(5)

        assert responses[0].status_code == 404
        assert result == LinkSuccess(public_token="public-3")

    def test_second_callback_conflicts_while_open(self) -> None:
        with LinkListener() as listener:
            listener._fulfil(LinkCancelled())
            thread, responses = send_in_background(
                [("POST", listener.callback_url, {"json": {"public_token": "late"}})],
                delay=0,
            )
            listener._server.timeout = 5
            listener._server.handle_request()
            thread.join(5)

            assert listener.result == LinkCancelled()

        assert responses[0].status_code == 409

    def test_callback_after_close_is_refused(self) -> None:
        with LinkListener() as listener:
            url = listener.callback_url
            thread, _ = send_in_background([("POST", url, {"json": {"public_token": "first"}})])
            listener.wait(5)
            thread.join(5)

        session = requests.Session()
        session.trust_env = False
        with pytest.raises(requests.ConnectionError):
            session.post(url, json={"public_token": "second"}, timeout=2)


class TestTimeout:
    """Tests for the wait deadline."""

    def test_timeout_raises_and_marks_state(self) -> None:
        with LinkListener() as listener:
            start = time.monotonic()
            with pytest.raises(LinkTimeoutError) as exc_info:
                listener.wait(0.3)
            elapsed = time.monotonic() - start

            assert listener.state is ListenerState.TIMED_OUT

        assert exc_info.value.timeout == 0.3
        assert 0.25 <= elapsed < 3

    def test_port_free_after_timeout(self) -> None:
        with LinkListener() as listener:
            port = listener.port
            with pytest.raises(LinkTimeoutError):
                listener.wait(0.2)

        server = HTTPServer(("127.0.0.1", port), BaseHTTPRequestHandler)
        server.server_close()


class TestConsentPage:
    """Tests for GET / in both modes."""

    def test_no_page_in_callback_mode(self) -> None:
        with LinkListener() as listener:
            thread, responses = send_in_background([
                ("GET", listener.page_url, {}),
                ("POST", listener.callback_url, {"json": {}}),
            ])
            listener.wait(5)
            thread.join(5)

        assert responses[0].status_code == 404

    def test_serves_page_when_configured(self) -> None:
        with LinkListener(page_html="<html>consent</html>") as listener:
            thread, responses = send_in_background([
                ("GET", listener.page_url, {}),
                ("POST", listener.callback_url, {"json": {}}),
            ])
            listener.wait(5)
            thread.join(5)

        assert responses[0].status_code == 200
        assert responses[0].headers["Content-Type"].startswith("text/html")
        assert responses[0].text == "<html>consent</html>"
