"""Bank-link data models.

A link attempt moves through three kinds of value:

- ``LinkToken``: short-lived, single-use credential for one attempt. Lives in
  memory only.
- ``CallbackResult``: what the consent page reported back, either
  ``LinkSuccess`` or ``LinkCancelled``.
- ``LinkItem``: the durable connection the API created from the public token.
"""

from dataclasses import dataclass, field
from typing import Any, Optional, Union

DEFAULT_CANCEL_REASON = "cancelled"


@dataclass(frozen=True)
class LinkToken:
    """Link token issued by POST /link/token.

    Attributes:
        value: The opaque token.
        consent_url: Hosted consent page URL, when the API chose one.
    """

    value: str
    consent_url: Optional[str] = None

    def __repr__(self) -> str:
        return f"LinkToken(value='***', consent_url={self.consent_url!r})"

    @classmethod
    def from_response(cls, data: object) -> Optional["LinkToken"]:
        """Extract the token from a /link/token response, None if absent."""
        if not isinstance(data, dict):
            return None
        value = data.get("link_token") or data.get("linkToken")
        if not value or not isinstance(value, str):
            return None
        consent_url = data.get("link_url") or data.get("linkUrl")
        return cls(value=value, consent_url=str(consent_url) if consent_url else None)


@dataclass(frozen=True)
class LinkSuccess:
    """The consent page finished and handed over a public token."""

    public_token: str
    metadata: dict[str, Any] = field(default_factory=dict)

    def __repr__(self) -> str:
        return f"LinkSuccess(public_token='***', metadata={self.metadata!r})"


@dataclass(frozen=True)
class LinkCancelled:
    """The user backed out, or the consent widget reported an error.

    This is a normal terminal outcome of a link attempt, not a failure.
    """

    reason: str = DEFAULT_CANCEL_REASON


CallbackResult = Union[LinkSuccess, LinkCancelled]


def parse_callback_body(data: object) -> Optional[CallbackResult]:
    """Interpret a decoded /callback JSON body.

    Args:
        data: The decoded JSON value.

    Returns:
        LinkSuccess when a public token is present and no error is reported,
        LinkCancelled for any other JSON object, None if data is not an object.
    """
    if not isinstance(data, dict):
        return None

    error = data.get("error")
    if error:
        return LinkCancelled(reason=str(error))

    public_token = data.get("public_token")
    if isinstance(public_token, str) and public_token:
        metadata = data.get("metadata")
        return LinkSuccess(
            public_token=public_token,
            metadata=metadata if isinstance(metadata, dict) else {},
        )

    return LinkCancelled()


@dataclass
class LinkItem:
    """A persisted bank connection owned by the API.

    Attributes:
        id: Connection identifier, used for deletion.
        institution: Institution display name.
        accounts: Number of accounts under the connection.
        status: Connection health as reported by the API.
        created_at: Creation timestamp string.
    """

    id: str
    institution: str
    accounts: int = 0
    status: str = "active"
    created_at: str = ""

    @property
    def accounts_display(self) -> str:
        suffix = "" if self.accounts == 1 else "s"
        return f"{self.accounts} account{suffix}"

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "LinkItem":
        """Create a LinkItem from an API object.

        Older API versions used itemId/institutionName/createdAt; both shapes
        are accepted.
        """
        item_id = str(data.get("id") or data.get("itemId") or data.get("item_id") or "")
        institution = (
            data.get("institution")
            or data.get("institutionName")
            or data.get("institution_name")
            or data.get("institutionId")
            or "Unknown"
        )
        if isinstance(institution, dict):
            institution = institution.get("name") or "Unknown"
        accounts = data.get("accounts", 0)
        if isinstance(accounts, list):
            accounts = len(accounts)
        try:
            account_count = int(accounts)
        except (TypeError, ValueError):
            account_count = 0
        return cls(
            id=item_id,
            institution=str(institution),
            accounts=account_count,
            status=str(data.get("status") or "active"),
            created_at=str(data.get("created_at") or data.get("createdAt") or ""),
        )


@dataclass(frozen=True)
class LinkExchanged:
    """A link attempt that ended with a new persisted connection."""

    connection: LinkItem


LinkOutcome = Union[LinkExchanged, LinkCancelled]
