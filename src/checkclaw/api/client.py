"""HTTP client for the checkclaw REST API."""

import re
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

import requests

from checkclaw.config import AUTH_APIKEY, AUTH_SESSION, Config
from checkclaw.models.account import Account
from checkclaw.models.billing import BillingPlan, Invoice
from checkclaw.models.link import LinkItem, LinkToken
from checkclaw.models.transaction import RecurringTransaction, Transaction, TransactionPage
from checkclaw.models.user import AuthResult, User
from checkclaw.utils.logging_config import LogContext, get_logger

logger = get_logger(__name__)

# Set-Cookie headers joined by requests/urllib3 are comma separated; split only
# on commas that start a new name=value pair (expires dates contain commas too)
_COOKIE_SPLIT = re.compile(r",(?=\s*[\w.-]+=)")


class ApiError(Exception):
    """Raised when the API answers with a non-2xx status.

    Attributes:
        status: HTTP status code, None when no response was received.
    """

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class ApiConnectionError(ApiError):
    """Raised when the API could not be reached at all."""

    pass


def _error_message(status: int, data: object) -> str:
    if isinstance(data, dict):
        for key in ("error", "message"):
            value = data.get(key)
            if isinstance(value, str) and value:
                return value
            if isinstance(value, dict) and value.get("message"):
                return str(value["message"])
    return f"Request failed with status {status}"


def parse_set_cookie(header: str) -> str:
    """Reduce a Set-Cookie header to a Cookie header value ("a=1; b=2")."""
    cookies = [part.split(";", 1)[0].strip() for part in _COOKIE_SPLIT.split(header)]
    return "; ".join(c for c in cookies if c)


@dataclass
class ApiClient:
    """Thin wrapper over requests for the checkclaw API.

    This client provides:
    - Auth headers from the stored config (bearer API key or session cookie)
    - Session cookie capture from Set-Cookie, handed to on_session
    - Typed helpers per endpoint returning model objects
    - ApiError for every failure, so callers handle one exception family
    """

    config: Config
    on_session: Optional[Callable[[str], None]] = None
    session: requests.Session = field(default_factory=requests.Session, repr=False)

    def _headers(self) -> dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        auth_type = self.config.active_auth_type
        if auth_type == AUTH_APIKEY and self.config.active_api_key:
            headers["Authorization"] = f"Bearer {self.config.active_api_key}"
        elif auth_type == AUTH_SESSION and self.config.session_token:
            headers["Cookie"] = self.config.session_token
        return headers

    def _url(self, path: str) -> str:
        return self.config.active_api_url.rstrip("/") + "/" + path.lstrip("/")

    def request(
        self,
        method: str,
        path: str,
        body: Optional[dict[str, Any]] = None,
        query: Optional[dict[str, object]] = None,
    ) -> Any:
        """Make a single API request.

        Args:
            method: HTTP method.
            path: Path below api_url (e.g. "/link/items").
            body: JSON body, omitted when None.
            query: Query parameters; None and "" values are dropped.

        Returns:
            Decoded JSON for JSON responses, text otherwise.

        Raises:
            ApiConnectionError: If the request could not be sent.
            ApiError: If the API answered with a non-2xx status.
        """
        params = None
        if query:
            params = {k: str(v) for k, v in query.items() if v is not None and v != ""}

        with LogContext(logger, "api request", method=method, path=path):
            try:
                response = self.session.request(
                    method,
                    self._url(path),
                    headers=self._headers(),
                    params=params,
                    json=body,
                    timeout=self.config.request_timeout,
                    allow_redirects=False,
                )
            except requests.RequestException as e:
                raise ApiConnectionError(f"Could not reach {self.config.active_api_url}: {e}") from e

            set_cookie = response.headers.get("set-cookie")
            if set_cookie:
                cookies = parse_set_cookie(set_cookie)
                if cookies and self.on_session is not None:
                    self.on_session(cookies)

            content_type = response.headers.get("content-type", "")
            if "application/json" in content_type:
                try:
                    data = response.json()
                except ValueError:
                    data = response.text
            else:
                data = response.text

            logger.debug(f"{method} {path} -> {response.status_code}")
            if not response.ok:
                raise ApiError(_error_message(response.status_code, data), response.status_code)

        return data

    def get(self, path: str, query: Optional[dict[str, object]] = None) -> Any:
        return self.request("GET", path, query=query)

    def post(self, path: str, body: Optional[dict[str, Any]] = None) -> Any:
        return self.request("POST", path, body=body)

    def delete(self, path: str) -> Any:
        return self.request("DELETE", path)

    # Auth

    def signup(self, email: str, password: str) -> AuthResult:
        data = self.post("/auth/signup", {"email": email, "password": password})
        return AuthResult.from_dict(_as_dict(data))

    def login(self, email: str, password: str) -> AuthResult:
        data = self.post("/auth/login", {"email": email, "password": password})
        return AuthResult.from_dict(_as_dict(data))

    def me(self) -> User:
        return User.from_dict(_as_dict(self.get("/auth/me")))

    # Link

    def create_link_token(self) -> Optional[LinkToken]:
        """Request a single-use link token, None if the response carried none."""
        return LinkToken.from_response(self.post("/link/token"))

    def exchange_public_token(
        self,
        public_token: str,
        metadata: Optional[dict[str, Any]] = None,
    ) -> LinkItem:
        """Exchange a consent-page public token for a persisted connection."""
        body: dict[str, Any] = {"public_token": public_token}
        if metadata:
            body["metadata"] = metadata
        data = _as_dict(self.post("/link/exchange", body))
        item = data.get("item")
        return LinkItem.from_dict(item if isinstance(item, dict) else data)

    def list_link_items(self) -> list[LinkItem]:
        data = _as_dict(self.get("/link/items"))
        return [LinkItem.from_dict(i) for i in _as_list(data.get("items"))]

    def delete_link_item(self, item_id: str) -> None:
        self.delete(f"/link/{item_id}")

    # Accounts and transactions

    def get_accounts(self) -> list[Account]:
        data = _as_dict(self.get("/accounts/balance"))
        return [Account.from_dict(a) for a in _as_list(data.get("accounts"))]

    def get_transactions(self, **query: object) -> TransactionPage:
        """Query /transactions; keyword arguments become query parameters."""
        data = _as_dict(self.get("/transactions", query=query))
        total = data.get("total")
        return TransactionPage(
            transactions=[Transaction.from_dict(t) for t in _as_list(data.get("transactions"))],
            total=int(total) if isinstance(total, (int, float)) else None,
            has_more=bool(data.get("has_more")),
        )

    def get_recurring(self) -> list[RecurringTransaction]:
        data = _as_dict(self.get("/transactions/recurring"))
        return [RecurringTransaction.from_dict(r) for r in _as_list(data.get("recurring"))]

    # Billing

    def get_billing_plan(self) -> BillingPlan:
        return BillingPlan.from_dict(_as_dict(self.get("/billing/plan")))

    def get_invoices(self) -> list[Invoice]:
        data = _as_dict(self.get("/billing/invoices"))
        return [Invoice.from_dict(i) for i in _as_list(data.get("invoices"))]


def _as_dict(data: object) -> dict[str, Any]:
    if isinstance(data, dict):
        return data
    raise ApiError(f"Unexpected response from API: {str(data)[:200]}")


def _as_list(data: object) -> list[dict[str, Any]]:
    if data is None:
        return []
    if not isinstance(data, list):
        raise ApiError(f"Unexpected list payload from API: {type(data).__name__}")
    return [d for d in data if isinstance(d, dict)]
