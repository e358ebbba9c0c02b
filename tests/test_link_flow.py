"""Tests for the bank-link flow coordinator.

The coordinator runs against a real loopback listener. The injected browser
opener plays the consent page: it posts the callback from a background thread.
"""

import threading
import time
from http.server import BaseHTTPRequestHandler, HTTPServer
from typing import Any, Optional
from unittest.mock import MagicMock
from urllib.parse import parse_qs, urlsplit

import pytest
import requests
from rich.console import Console

from checkclaw.api.client import ApiError
from checkclaw.link import (
    ExchangeError,
    FlowState,
    InvalidCallbackPayloadError,
    LinkFlowCoordinator,
    LinkMode,
    LinkTimeoutError,
    ListenerStartError,
    TokenRequestError,
    build_consent_url,
    run_link_flow,
)
from checkclaw.link.listener import LinkListener
from checkclaw.models.link import LinkCancelled, LinkExchanged, LinkItem, LinkToken


def port_from_url(url: str) -> int:
    """Listener port from a consent URL (query parameter) or a local page URL."""
    parts = urlsplit(url)
    query = parse_qs(parts.query)
    if "port" in query:
        return int(query["port"][0])
    assert parts.port is not None
    return parts.port


class FakeConsentPage:
    """Browser opener that answers the listener like the consent page would."""

    def __init__(
        self,
        body: Optional[dict[str, Any]] = None,
        raw: Optional[str] = None,
        opened: bool = True,
        raises: Optional[Exception] = None,
        fetch_page: bool = False,
        respond: bool = True,
    ):
        self.body = body if body is not None else {"public_token": "public-sandbox-abc"}
        self.raw = raw
        self.opened = opened
        self.raises = raises
        self.fetch_page = fetch_page
        self.respond = respond
        self.urls: list[str] = []
        self.responses: list[requests.Response] = []
        self.thread: Optional[threading.Thread] = None

    def _run(self, port: int) -> None:
        time.sleep(0.05)
        session = requests.Session()
        session.trust_env = False
        base = f"http://127.0.0.1:{port}"
        if self.fetch_page:
            self.responses.append(session.get(f"{base}/", timeout=5))
        if self.raw is not None:
            response = session.post(
                f"{base}/callback",
                data=self.raw,
                headers={"Content-Type": "application/json"},
                timeout=5,
            )
        else:
            response = session.post(f"{base}/callback", json=self.body, timeout=5)
        self.responses.append(response)

    def __call__(self, url: str) -> bool:
        self.urls.append(url)
        if self.respond:
            self.thread = threading.Thread(target=self._run, args=(port_from_url(url),), daemon=True)
            self.thread.start()
        if self.raises is not None:
            raise self.raises
        return self.opened

    def join(self) -> None:
        if self.thread is not None:
            self.thread.join(5)


@pytest.fixture
def connection() -> LinkItem:
    return LinkItem(id="item-1", institution="Chase", accounts=2)


@pytest.fixture
def api(connection: LinkItem) -> MagicMock:
    api = MagicMock()
    api.create_link_token.return_value = LinkToken(value="link-sandbox-123")
    api.exchange_public_token.return_value = connection
    return api


def make_coordinator(api: MagicMock, console: Console, page: FakeConsentPage, **kwargs: Any) -> LinkFlowCoordinator:
    kwargs.setdefault("timeout", 5)
    kwargs.setdefault("consent_url", "https://app.example.test/link")
    return LinkFlowCoordinator(api, console=console, open_browser=page, **kwargs)


def assert_port_released(port: int) -> None:
    server = HTTPServer(("127.0.0.1", port), BaseHTTPRequestHandler)
    server.server_close()


class TestSuccessfulLink:
    """Tests for a completed consent flow."""

    def test_exchanges_public_token(self, api: MagicMock, console: Console, output: Any, connection: LinkItem) -> None:
        page = FakeConsentPage(body={
            "public_token": "public-sandbox-abc",
            "metadata": {"institution": {"name": "Chase"}},
        })
        coordinator = make_coordinator(api, console, page)

        outcome = coordinator.run()
        page.join()

        assert outcome == LinkExchanged(connection=connection)
        assert coordinator.state is FlowState.EXCHANGED
        api.exchange_public_token.assert_called_once_with(
            "public-sandbox-abc", {"institution": {"name": "Chase"}}
        )
        assert page.responses[0].status_code == 200
        assert "Browser opened" in output.getvalue()

    def test_empty_metadata_not_sent(self, api: MagicMock, console: Console) -> None:
        page = FakeConsentPage(body={"public_token": "public-sandbox-abc", "metadata": {}})

        make_coordinator(api, console, page).run()
        page.join()

        api.exchange_public_token.assert_called_once_with("public-sandbox-abc", None)

    def test_consent_url_carries_token_and_port(self, api: MagicMock, console: Console) -> None:
        page = FakeConsentPage()

        make_coordinator(api, console, page).run()
        page.join()

        parts = urlsplit(page.urls[0])
        query = parse_qs(parts.query)
        assert f"{parts.scheme}://{parts.netloc}{parts.path}" == "https://app.example.test/link"
        assert query["token"] == ["link-sandbox-123"]
        assert int(query["port"][0]) > 0

    def test_api_supplied_consent_url_wins(self, api: MagicMock, console: Console) -> None:
        api.create_link_token.return_value = LinkToken(
            value="link-sandbox-123",
            consent_url="https://consent.example.test/start?v=2",
        )
        page = FakeConsentPage()

        make_coordinator(api, console, page).run()
        page.join()

        assert page.urls[0].startswith("https://consent.example.test/start?v=2&token=link-sandbox-123&port=")

    def test_listener_released_after_success(self, api: MagicMock, console: Console) -> None:
        page = FakeConsentPage()

        make_coordinator(api, console, page).run()
        page.join()

        assert_port_released(port_from_url(page.urls[0]))

    def test_run_link_flow_helper(self, api: MagicMock, console: Console, connection: LinkItem) -> None:
        page = FakeConsentPage()

        outcome = run_link_flow(api, console=console, open_browser=page, timeout=5)
        page.join()

        assert outcome == LinkExchanged(connection=connection)

    def test_coordinator_can_run_again(self, api: MagicMock, console: Console) -> None:
        first = FakeConsentPage()
        coordinator = make_coordinator(api, console, first)
        coordinator.run()
        first.join()

        second = FakeConsentPage(body={"error": "user_exit"})
        coordinator.open_browser = second
        outcome = coordinator.run()
        second.join()

        assert outcome == LinkCancelled(reason="user_exit")
        assert api.create_link_token.call_count == 2


class TestBrowserFallback:
    """Tests for the printed-URL fallback."""

    def test_prints_url_when_browser_unavailable(self, api: MagicMock, console: Console, output: Any) -> None:
        page = FakeConsentPage(opened=False)

        outcome = make_coordinator(api, console, page).run()
        page.join()

        assert isinstance(outcome, LinkExchanged)
        text = output.getvalue()
        assert "Could not open a browser" in text
        assert page.urls[0] in text

    def test_prints_url_when_browser_raises(self, api: MagicMock, console: Console, output: Any) -> None:
        page = FakeConsentPage(raises=OSError("no display"))

        outcome = make_coordinator(api, console, page).run()
        page.join()

        assert isinstance(outcome, LinkExchanged)
        assert page.urls[0] in output.getvalue()


class TestCancellation:
    """Tests for the user declining consent."""

    def test_error_field_cancels_without_exchange(self, api: MagicMock, console: Console) -> None:
        page = FakeConsentPage(body={"error": "user_exit"})
        coordinator = make_coordinator(api, console, page)

        outcome = coordinator.run()
        page.join()

        assert outcome == LinkCancelled(reason="user_exit")
        assert coordinator.state is FlowState.CANCELLED
        api.exchange_public_token.assert_not_called()

    def test_missing_public_token_cancels(self, api: MagicMock, console: Console) -> None:
        page = FakeConsentPage(body={"status": "closed"})

        outcome = make_coordinator(api, console, page).run()
        page.join()

        assert outcome == LinkCancelled()
        api.exchange_public_token.assert_not_called()


class TestFailures:
    """Tests for each failure path."""

    def test_no_token_fails_before_listening(self, api: MagicMock, console: Console) -> None:
        api.create_link_token.return_value = None
        page = FakeConsentPage(respond=False)
        coordinator = make_coordinator(api, console, page)

        with pytest.raises(TokenRequestError):
            coordinator.run()

        assert coordinator.state is FlowState.FAILED
        assert page.urls == []

    def test_token_api_error_is_wrapped(self, api: MagicMock, console: Console) -> None:
        api.create_link_token.side_effect = ApiError("Plan limit reached", 402)
        coordinator = make_coordinator(api, console, FakeConsentPage(respond=False))

        with pytest.raises(TokenRequestError, match="Plan limit reached") as exc_info:
            coordinator.run()

        assert isinstance(exc_info.value.__cause__, ApiError)

    def test_listener_start_failure(self, api: MagicMock, console: Console) -> None:
        page = FakeConsentPage(respond=False)
        with LinkListener() as occupant:
            coordinator = make_coordinator(api, console, page, port=occupant.port)
            with pytest.raises(ListenerStartError):
                coordinator.run()

        assert coordinator.state is FlowState.FAILED
        assert page.urls == []

    def test_timeout_releases_port(self, api: MagicMock, console: Console) -> None:
        page = FakeConsentPage(respond=False)
        coordinator = make_coordinator(api, console, page, timeout=0.3)

        with pytest.raises(LinkTimeoutError):
            coordinator.run()

        assert coordinator.state is FlowState.FAILED
        api.exchange_public_token.assert_not_called()
        assert_port_released(port_from_url(page.urls[0]))

    def test_invalid_payload(self, api: MagicMock, console: Console) -> None:
        page = FakeConsentPage(raw="{not json")
        coordinator = make_coordinator(api, console, page)

        with pytest.raises(InvalidCallbackPayloadError):
            coordinator.run()
        page.join()

        assert coordinator.state is FlowState.FAILED
        assert page.responses[0].status_code == 400
        api.exchange_public_token.assert_not_called()

    def test_exchange_failure(self, api: MagicMock, console: Console) -> None:
        api.exchange_public_token.side_effect = ApiError("Invalid public token", 400)
        page = FakeConsentPage()
        coordinator = make_coordinator(api, console, page)

        with pytest.raises(ExchangeError, match="Invalid public token"):
            coordinator.run()
        page.join()

        assert coordinator.state is FlowState.FAILED
        assert_port_released(port_from_url(page.urls[0]))

    def test_timeout_must_be_positive(self, api: MagicMock, console: Console) -> None:
        with pytest.raises(ValueError):
            LinkFlowCoordinator(api, console=console, timeout=0)


class TestLocalPageMode:
    """Tests for serving the consent page from the listener."""

    def test_serves_page_and_accepts_callback(self, api: MagicMock, console: Console, connection: LinkItem) -> None:
        page = FakeConsentPage(fetch_page=True)
        coordinator = make_coordinator(api, console, page, mode=LinkMode.LOCAL_PAGE)

        outcome = coordinator.run()
        page.join()

        url = page.urls[0]
        assert url == f"http://127.0.0.1:{port_from_url(url)}/"
        assert page.responses[0].status_code == 200
        assert '"link-sandbox-123"' in page.responses[0].text
        assert outcome == LinkExchanged(connection=connection)


class TestBuildConsentUrl:
    """Tests for consent URL construction."""

    def test_appends_token_and_port(self) -> None:
        url = build_consent_url("https://app.example.test/link", "link-1", 5123)
        assert url == "https://app.example.test/link?token=link-1&port=5123"

    def test_keeps_other_parameters_and_replaces_stale_ones(self) -> None:
        url = build_consent_url("https://app.example.test/link?theme=dark&port=1", "link-1", 5123)
        assert url == "https://app.example.test/link?theme=dark&token=link-1&port=5123"
