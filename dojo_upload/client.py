"""DefectDojo API v2 client.

Usage:
    client   = DojoClient(url="https://dojo.example.com", token="abc123")
    products = client.get("products/", {"name": "OWASP Juice Shop"})
    created  = client.post("engagements/", {"name": "CI/CD Run", ...})
"""

import logging
from typing import Any

import requests

API_PATH = "/api/v2/"

_LOG = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------

class DojoClientError(Exception):
    """Base exception for all client errors."""


class AuthenticationError(DojoClientError):
    """Raised on HTTP 401/403 — invalid token or insufficient permissions."""


class NotFoundError(DojoClientError):
    """Raised on HTTP 404 — endpoint or record not found."""


class NetworkError(DojoClientError):
    """Raised on connection timeout or unreachable server."""


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------

class DojoClient:
    """Thin wrapper around the DefectDojo REST API."""

    def __init__(self, url: str, token: str, timeout: int = 30) -> None:
        self.base_url = url.rstrip("/")
        self.api_url = f"{self.base_url}{API_PATH}"
        self._timeout = timeout
        self._session = requests.Session()
        self._session.headers["Authorization"] = f"Token {token}"

    # ------------------------------------------------------------------
    # Public interface
    # ------------------------------------------------------------------

    def get(self, endpoint: str, params: dict[str, Any] | None = None) -> dict:
        """Perform a GET request and return the parsed JSON response.

        Raises:
            AuthenticationError: HTTP 401 / 403
            NotFoundError:       HTTP 404
            DojoClientError:     Any other non-2xx response
            NetworkError:        Timeout or connection failure
        """
        return self._request("GET", endpoint, params=params or {})

    def post(self, endpoint: str, payload: dict[str, Any]) -> dict:
        """POST a JSON body."""
        return self._request("POST", endpoint, json=payload)

    def patch(self, endpoint: str, payload: dict[str, Any]) -> dict:
        """PATCH a JSON body."""
        return self._request("PATCH", endpoint, json=payload)

    def post_multipart(
        self,
        endpoint: str,
        data: dict[str, Any],
        files: dict[str, Any],
    ) -> dict:
        """POST a multipart form. *files* is passed straight to ``requests``."""
        return self._request("POST", endpoint, data=data, files=files)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _request(self, method: str, endpoint: str, **kwargs: Any) -> dict:
        url = f"{self.api_url}{endpoint.lstrip('/')}"
        _LOG.debug("%s %s", method, url)
        try:
            response = self._session.request(method, url, timeout=self._timeout, **kwargs)
        except requests.exceptions.Timeout as exc:
            raise NetworkError(
                f"Request timed out after {self._timeout}s while contacting '{url}'"
            ) from exc
        except requests.exceptions.ConnectionError as exc:
            raise NetworkError(
                f"Unable to reach DefectDojo server at '{self.base_url}'"
            ) from exc

        if response.status_code in (401, 403):
            raise AuthenticationError(
                f"Authentication failed ({response.status_code}) — "
                "check that DEFECTDOJO_API_TOKEN is valid."
            )
        if response.status_code == 404:
            raise NotFoundError(f"Resource not found: {url}")
        if not response.ok:
            raise DojoClientError(
                f"Unexpected response {response.status_code} from {url}: {response.text[:200]}"
            )

        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as exc:
            raise DojoClientError(
                f"Invalid JSON from {url}: {response.text[:200]}"
            ) from exc
