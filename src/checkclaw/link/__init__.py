"""Bank-link flow: loopback callback listener, browser handoff and token exchange.

Example usage:
    from checkclaw.link import LinkFlowCoordinator, LinkError

    coordinator = LinkFlowCoordinator(api_client, console=console)
    try:
        outcome = coordinator.run()
    except LinkError as e:
        console.print(f"[red]{e}[/red]")
"""

from checkclaw.link.errors import (
    ExchangeError,
    InvalidCallbackPayloadError,
    LinkError,
    LinkTimeoutError,
    ListenerStartError,
    TokenRequestError,
)
from checkclaw.link.flow import (
    FlowState,
    LinkApi,
    LinkFlowCoordinator,
    build_consent_url,
    run_link_flow,
)
from checkclaw.link.listener import LinkListener, LinkMode, ListenerState

__all__ = [
    # Coordinator
    "LinkFlowCoordinator",
    "LinkApi",
    "FlowState",
    "build_consent_url",
    "run_link_flow",
    # Listener
    "LinkListener",
    "LinkMode",
    "ListenerState",
    # Errors
    "LinkError",
    "TokenRequestError",
    "ListenerStartError",
    "InvalidCallbackPayloadError",
    "LinkTimeoutError",
    "ExchangeError",
]
