"""Failures of a bank-link attempt.

Every error here is terminal for the attempt it came from: the link token has
been spent, so the only recovery is to run the whole flow again. A user
cancelling consent is not an error and is never raised.
"""


class LinkError(Exception):
    """Base exception for bank-link failures."""

    pass


class TokenRequestError(LinkError):
    """The API refused or failed to issue a link token."""

    pass


class ListenerStartError(LinkError):
    """The local callback listener could not be bound."""

    pass


class InvalidCallbackPayloadError(LinkError):
    """The consent page posted a body that is not a JSON object."""

    pass


class LinkTimeoutError(LinkError):
    """The consent page did not report back before the deadline."""

    def __init__(self, timeout: float):
        super().__init__(f"No response from the consent page within {timeout:g} seconds")
        self.timeout = timeout


class ExchangeError(LinkError):
    """The API rejected or failed to exchange the public token."""

    pass
