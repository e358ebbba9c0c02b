"""Bank-link flow coordinator.

Drives one link attempt between the CLI, the user's browser and the API:

1. request a single-use link token
2. bind a loopback listener on an ephemeral port
3. open the browser on the consent page (printing the URL if that fails)
4. wait for the consent page to post its outcome, or time out
5. exchange the public token for a persisted connection

The listener is closed exactly once before ``run()`` returns or raises.
"""

from enum import Enum
from typing import Any, Callable, Optional, Protocol
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from rich.console import Console

from checkclaw.api.client import ApiError
from checkclaw.config import DEFAULT_CONSENT_URL, DEFAULT_LINK_TIMEOUT
from checkclaw.link.errors import ExchangeError, TokenRequestError
from checkclaw.link.listener import LOOPBACK_HOST, LinkListener, LinkMode
from checkclaw.link.page import build_link_page
from checkclaw.models.link import (
    LinkCancelled,
    LinkExchanged,
    LinkItem,
    LinkOutcome,
    LinkSuccess,
    LinkToken,
)
from checkclaw.utils.browser import open_url
from checkclaw.utils.logging_config import LogContext, get_logger

logger = get_logger(__name__)


class LinkApi(Protocol):
    """The two API calls the flow needs."""

    def create_link_token(self) -> Optional[LinkToken]: ...

    def exchange_public_token(
        self,
        public_token: str,
        metadata: Optional[dict[str, Any]] = None,
    ) -> LinkItem: ...


class FlowState(Enum):
    """States of a link attempt."""

    IDLE = "idle"
    TOKEN_REQUESTED = "token_requested"
    LISTENER_BOUND = "listener_bound"
    AWAITING_BROWSER = "awaiting_browser"
    CALLBACK_RECEIVED = "callback_received"
    EXCHANGING = "exchanging"
    EXCHANGED = "exchanged"
    CANCELLED = "cancelled"
    FAILED = "failed"


TERMINAL_STATES = frozenset({FlowState.EXCHANGED, FlowState.CANCELLED, FlowState.FAILED})

_TRANSITIONS: dict[FlowState, frozenset[FlowState]] = {
    FlowState.IDLE: frozenset({FlowState.TOKEN_REQUESTED}),
    FlowState.TOKEN_REQUESTED: frozenset({FlowState.LISTENER_BOUND, FlowState.FAILED}),
    FlowState.LISTENER_BOUND: frozenset({FlowState.AWAITING_BROWSER, FlowState.FAILED}),
    FlowState.AWAITING_BROWSER: frozenset({FlowState.CALLBACK_RECEIVED, FlowState.FAILED}),
    FlowState.CALLBACK_RECEIVED: frozenset(
        {FlowState.EXCHANGING, FlowState.CANCELLED, FlowState.FAILED}
    ),
    FlowState.EXCHANGING: frozenset({FlowState.EXCHANGED, FlowState.FAILED}),
    FlowState.EXCHANGED: frozenset(),
    FlowState.CANCELLED: frozenset(),
    FlowState.FAILED: frozenset(),
}


def build_consent_url(base_url: str, link_token: str, port: int) -> str:
    """Add token and port query parameters to the hosted consent URL.

    Existing query parameters are kept; token and port replace any present.
    """
    parts = urlsplit(base_url)
    query = [
        (k, v)
        for k, v in parse_qsl(parts.query, keep_blank_values=True)
        if k not in ("token", "port")
    ]
    query.extend([("token", link_token), ("port", str(port))])
    return urlunsplit(parts._replace(query=urlencode(query)))


class LinkFlowCoordinator:
    """Runs bank-link attempts against an injected API capability.

    Each ``run()`` is an independent attempt with its own link token and
    listener. ``state`` reflects the most recent attempt.
    """

    def __init__(
        self,
        api: LinkApi,
        console: Optional[Console] = None,
        open_browser: Callable[[str], bool] = open_url,
        timeout: float = DEFAULT_LINK_TIMEOUT,
        consent_url: str = DEFAULT_CONSENT_URL,
        mode: LinkMode = LinkMode.CALLBACK,
        host: str = LOOPBACK_HOST,
        port: int = 0,
    ):
        """Initialize the coordinator.

        Args:
            api: Client providing create_link_token and exchange_public_token.
            console: Console for user-facing messages.
            open_browser: Callable opening a URL, returning False on failure.
            timeout: Seconds to wait for the consent page callback.
            consent_url: Hosted consent page used in callback mode.
            mode: Whether the consent page is hosted remotely or by the listener.
            host: Loopback address for the listener.
            port: Listener port, 0 for an ephemeral one.
        """
        if timeout <= 0:
            raise ValueError(f"timeout must be positive, got {timeout}")
        self.api = api
        self.console = console or Console()
        self.open_browser = open_browser
        self.timeout = timeout
        self.consent_url = consent_url
        self.mode = mode
        self.host = host
        self.port = port
        self.state = FlowState.IDLE

    def _transition(self, new_state: FlowState) -> None:
        if new_state not in _TRANSITIONS[self.state]:
            raise RuntimeError(
                f"Illegal link flow transition {self.state.name} -> {new_state.name}"
            )
        logger.debug(f"Link flow {self.state.value} -> {new_state.value}")
        self.state = new_state

    def run(self) -> LinkOutcome:
        """Run one link attempt.

        Returns:
            LinkExchanged with the new connection, or LinkCancelled when the
            user declined on the consent page.

        Raises:
            TokenRequestError: No link token could be obtained.
            ListenerStartError: The loopback listener could not be bound.
            InvalidCallbackPayloadError: The consent page posted garbage.
            LinkTimeoutError: The consent page never reported back.
            ExchangeError: The public token could not be exchanged.
            RuntimeError: The coordinator is already running an attempt.
        """
        if self.state not in TERMINAL_STATES and self.state is not FlowState.IDLE:
            raise RuntimeError(f"Link flow already in progress ({self.state.value})")
        self.state = FlowState.IDLE

        with LogContext(logger, "link flow", mode=self.mode.value, timeout=self.timeout):
            try:
                return self._run()
            except BaseException:
                # Every non-terminal state may fail directly
                if self.state not in TERMINAL_STATES:
                    logger.debug(f"Link flow {self.state.value} -> {FlowState.FAILED.value}")
                    self.state = FlowState.FAILED
                raise

    def _run(self) -> LinkOutcome:
        self._transition(FlowState.TOKEN_REQUESTED)
        token = self._request_token()

        page_html = build_link_page(token.value) if self.mode is LinkMode.LOCAL_PAGE else None
        with LinkListener(host=self.host, port=self.port, page_html=page_html) as listener:
            self._transition(FlowState.LISTENER_BOUND)

            url = self._consent_url_for(token, listener)
            self._transition(FlowState.AWAITING_BROWSER)
            self._hand_off(url)

            self.console.print(
                f"[dim]Waiting for the bank connection to finish "
                f"(timeout {self.timeout:g}s)...[/dim]"
            )
            result = listener.wait(self.timeout)
            listener.close()

        self._transition(FlowState.CALLBACK_RECEIVED)
        if isinstance(result, LinkCancelled):
            logger.info(f"Link cancelled: {result.reason}")
            self._transition(FlowState.CANCELLED)
            return result

        self._transition(FlowState.EXCHANGING)
        connection = self._exchange(result)
        self._transition(FlowState.EXCHANGED)
        return LinkExchanged(connection=connection)

    def _request_token(self) -> LinkToken:
        self.console.print("[dim]Creating link token...[/dim]")
        try:
            token = self.api.create_link_token()
        except ApiError as e:
            raise TokenRequestError(f"Failed to create link token: {e}") from e
        if token is None:
            raise TokenRequestError("Failed to create link token: the API returned none")
        return token

    def _consent_url_for(self, token: LinkToken, listener: LinkListener) -> str:
        if self.mode is LinkMode.LOCAL_PAGE:
            return listener.page_url
        return build_consent_url(token.consent_url or self.consent_url, token.value, listener.port)

    def _hand_off(self, url: str) -> None:
        """Open the consent page, degrading to printing the URL."""
        try:
            opened = self.open_browser(url)
        except Exception as e:
            logger.warning(f"Browser launch raised {type(e).__name__}: {e}", exc_info=True)
            opened = False

        if opened:
            self.console.print("[dim]Browser opened. Complete the bank connection there.[/dim]")
            return

        self.console.print("[yellow]Could not open a browser.[/yellow] Open this URL to continue:")
        self.console.print(url, markup=False, highlight=False, soft_wrap=True)

    def _exchange(self, result: LinkSuccess) -> LinkItem:
        try:
            return self.api.exchange_public_token(result.public_token, result.metadata or None)
        except ApiError as e:
            raise ExchangeError(f"Failed to exchange public token: {e}") from e


def run_link_flow(api: LinkApi, **options: Any) -> LinkOutcome:
    """Run a single link attempt with a fresh coordinator.

    Keyword options are passed to LinkFlowCoordinator.
    """
    return LinkFlowCoordinator(api, **options).run()
