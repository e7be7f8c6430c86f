"""Builder for the HTTP client used to call source APIs."""

from __future__ import annotations

import logging
import re

import httpx

logger = logging.getLogger(__name__)

_HEADER_NAME = re.compile(r"[!#$%&'*+\-.^_`|~0-9A-Za-z]+")

_REQUEST_TIMEOUT = 30.0
_CONNECT_TIMEOUT = 10.0
_MAX_IDLE_PER_HOST = 10
_IDLE_TIMEOUT = 90.0


def _valid_header_name(name: str) -> bool:
    return _HEADER_NAME.fullmatch(name) is not None


def _valid_header_value(value: str) -> bool:
    return all(ch == "\t" or (ord(ch) >= 32 and ord(ch) != 127) for ch in value)


class Http:
    """Collects a base URL, query parameters, headers and a bearer token."""

    def __init__(self, url: str) -> None:
        self.url = str(url)
        self._params: dict[str, str] | None = None
        self._headers: dict[str, str] | None = None
        self._bearer: str | None = None

    def param(self, key: str, value: str) -> Http:
        """Add a query parameter; returns self for chaining."""
        if self._params is None:
            self._params = {}
        self._params[str(key)] = str(value)
        return self

    def header(self, key: str, value: str) -> Http:
        """Add a default header; returns self for chaining."""
        if self._headers is None:
            self._headers = {}
        self._headers[str(key)] = str(value)
        return self

    def bearer_auth(self, token: str) -> Http:
        """Send ``Authorization: Bearer <token>`` with every request."""
        self._bearer = str(token)
        return self

    def build_client(self) -> httpx.AsyncClient:
        """Build an async client carrying the configured headers.

        Headers with invalid names or values are skipped silently; an invalid
        bearer token is skipped with a warning.
        """
        headers: dict[str, str] = {}
        for key, value in (self._headers or {}).items():
            if _valid_header_name(key) and _valid_header_value(value):
                headers[key.lower()] = value

        if self._bearer is not None:
            value = f"Bearer {self._bearer}"
            if _valid_header_value(value):
                headers["authorization"] = value
            else:
                logger.warning(
                    "Invalid characters in bearer token, skipping authorization header"
                )

        return httpx.AsyncClient(
            headers=headers,
            timeout=httpx.Timeout(_REQUEST_TIMEOUT, connect=_CONNECT_TIMEOUT),
            limits=httpx.Limits(
                max_keepalive_connections=_MAX_IDLE_PER_HOST,
                keepalive_expiry=_IDLE_TIMEOUT,
            ),
        )

    def get_url(self) -> str:
        """Return the base URL with its parameters, leaving out any ``page``."""
        query = [f"{k}={v}" for k, v in (self._params or {}).items() if k != "page"]
        if not query:
            return self.url
        return f"{self.url}?{'&'.join(query)}"