"""checkclaw REST API client."""

from checkclaw.api.client import ApiClient, ApiConnectionError, ApiError

__all__ = ["ApiClient", "ApiConnectionError", "ApiError"]
