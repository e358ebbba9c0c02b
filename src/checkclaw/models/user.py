"""User identity models returned by the auth endpoints."""

from dataclasses import dataclass
from typing import Any


@dataclass
class User:
    """The account behind the stored credentials."""

    id: str
    email: str
    plan: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "User":
        return cls(
            id=str(data.get("id", "")),
            email=str(data.get("email") or ""),
            plan=str(data.get("plan") or ""),
        )


@dataclass
class AuthResult:
    """Response of /auth/signup and /auth/login."""

    api_key: str
    user: User

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AuthResult":
        user = data.get("user") or {}
        return cls(
            api_key=str(data.get("api_key") or ""),
            user=User.from_dict(user if isinstance(user, dict) else {}),
        )
