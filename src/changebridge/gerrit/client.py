# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: 2025 The Linux Foundation
"""
Gerrit REST client with retry, timeout, caching and transient error handling.

This module provides a typed wrapper for Gerrit REST API calls with:
- Bounded retries using exponential backoff with jitter
- Request timeouts
- Transient error classification (HTTP 5xx/429 and network errors)
- XSSI guard stripping for Gerrit responses
- An in-memory GET response cache that callers may bypass per request

Requests go through pygerrit2, which prefixes authenticated calls with
``/a/`` and decodes JSON bodies.

Usage:
    from changebridge.gerrit.client import GerritRestClient, build_client

    client = build_client("https://gerrit.example.org/", timeout=10.0)
    changes = client.get("changes/?q=status:open", use_cache=False)
"""

from __future__ import annotations

import copy
import logging
import os
import random
import time
from dataclasses import dataclass
from typing import Any, Final
from urllib.parse import urljoin, urlparse

import requests
from pygerrit2 import GerritRestAPI, HTTPBasicAuth

log = logging.getLogger("changebridge.gerrit.client")


_XSSI_GUARD: Final[str] = ")]}'"

_TRANSIENT_ERR_SUBSTRINGS: Final[tuple[str, ...]] = (
    "timed out",
    "temporarily unavailable",
    "temporary failure",
    "connection reset",
    "connection aborted",
    "broken pipe",
    "connection refused",
    "bad gateway",
    "service unavailable",
    "gateway timeout",
)

_RETRYABLE_HTTP_CODES: Final[frozenset[int]] = frozenset(
    {429, 500, 502, 503, 504}
)


class GerritRestError(RuntimeError):
    """Raised for non-retryable REST errors or exhausted retries."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response_body: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body


class GerritAuthError(GerritRestError):
    """Raised for authentication failures (401/403)."""


class GerritNotFoundError(GerritRestError):
    """Raised when a resource is not found (404)."""


@dataclass(frozen=True)
class _Auth:
    """Authentication credentials."""

    user: str
    password: str


def _mask_secret(s: str) -> str:
    """Mask a secret for logging, preserving first/last 2 chars."""
    if not s:
        return s
    if len(s) <= 4:
        return "****"
    return s[:2] + "*" * (len(s) - 4) + s[-2:]


def _is_transient_error(exc: Exception) -> bool:
    """Check if an exception represents a transient/retryable error."""
    if isinstance(exc, (requests.ConnectionError, requests.Timeout)):
        return True
    exc_str = str(exc).lower()
    return any(sub in exc_str for sub in _TRANSIENT_ERR_SUBSTRINGS)


def _calculate_backoff(
    attempt: int,
    base_delay: float = 1.0,
    max_delay: float = 30.0,
    jitter: float = 0.5,
) -> float:
    """Calculate exponential backoff delay with jitter."""
    delay = min(base_delay * (2**attempt), max_delay)
    jitter_amount = delay * jitter * float(random.random())
    return float(delay + jitter_amount)


def _strip_xssi_guard(text: str) -> str:
    """
    Strip Gerrit's XSSI guard from responses.

    Gerrit prepends ")]}'" to JSON responses to prevent JSON hijacking.
    This function removes that prefix if present.
    """
    if text.startswith(_XSSI_GUARD):
        # Common patterns: ")]}'\n" or ")]}'\r\n"
        if text[4:6] == "\r\n":
            return text[6:]
        if text[4:5] == "\n":
            return text[5:]
        return text[4:]
    return text


def _classify_http_error(
    exc: requests.HTTPError, method: str, path: str
) -> GerritRestError:
    """Map an HTTPError raised by pygerrit2 onto the error hierarchy."""
    response = exc.response
    status = response.status_code if response is not None else None
    body = ""
    if response is not None:
        try:
            body = response.text
        except Exception as read_exc:
            log.debug("Failed to read HTTP error response body: %s", read_exc)

    if status == 401:
        return GerritAuthError(
            f"Authentication failed for {path}",
            status_code=status,
            response_body=body,
        )
    if status == 403:
        return GerritAuthError(
            f"Access forbidden for {path}",
            status_code=status,
            response_body=body,
        )
    if status == 404:
        return GerritNotFoundError(
            f"Resource not found: {path}",
            status_code=status,
            response_body=body,
        )
    return GerritRestError(
        f"Gerrit REST {method} {path} failed with HTTP {status}",
        status_code=status,
        response_body=body,
    )


class GerritRestClient:
    """
    REST client for Gerrit with retry, timeout and response caching.

    Paths are given relative to the server's REST root (e.g.
    ``changes/123``); the ``a/`` prefix for authenticated access is added
    by pygerrit2. GET responses are cached by path unless the caller
    passes ``use_cache=False``, which both skips the cache lookup and
    refreshes the stored entry.
    """

    def __init__(
        self,
        *,
        base_url: str,
        auth: tuple[str, str] | None = None,
        timeout: float = 10.0,
        max_attempts: int = 5,
    ) -> None:
        """
        Initialize the Gerrit REST client.

        Args:
            base_url: The base URL of the Gerrit server (e.g.,
                     "https://gerrit.example.org/").
            auth: Optional tuple of (username, password) for HTTP Basic auth.
            timeout: Request timeout in seconds.
            max_attempts: Maximum number of retry attempts for transient errors.
        """
        # Normalize base URL to end with '/'
        self._base_url: str = base_url.rstrip("/") + "/"
        self._timeout: float = float(timeout)
        self._max_attempts: int = int(max_attempts)
        self._auth: _Auth | None = None
        self._cache: dict[str, Any] = {}

        if auth and auth[0] and auth[1]:
            self._auth = _Auth(auth[0], auth[1])

        if self._auth is not None:
            self._api = GerritRestAPI(
                url=self._base_url,
                auth=HTTPBasicAuth(self._auth.user, self._auth.password),
            )
        else:
            self._api = GerritRestAPI(url=self._base_url)

        log.debug(
            "GerritRestClient initialized: base_url=%s, timeout=%.1fs, "
            "max_attempts=%d, auth_user=%s",
            self._base_url,
            self._timeout,
            self._max_attempts,
            self._auth.user if self._auth else "(none)",
        )

    @property
    def base_url(self) -> str:
        """Get the base URL of the Gerrit server."""
        return self._base_url

    @property
    def is_authenticated(self) -> bool:
        """Check if the client has authentication credentials."""
        return self._auth is not None

    def clear_cache(self) -> None:
        """Drop every cached GET response."""
        self._cache.clear()

    def get(self, path: str, *, use_cache: bool = True) -> Any:
        """
        Perform an HTTP GET request.

        Args:
            path: The API path (e.g., "changes/12345").
            use_cache: If False, bypass the cached response and refresh it.

        Returns:
            The parsed JSON response, or the response text for non-JSON
            endpoints.

        Raises:
            GerritRestError: On non-retryable errors or exhausted retries.
            GerritAuthError: On authentication failures.
            GerritNotFoundError: When the resource is not found.
        """
        if use_cache and path in self._cache:
            log.debug("Gerrit REST GET %s served from cache", path)
            return copy.deepcopy(self._cache[path])

        result = self._request_with_retry("GET", path)
        self._cache[path] = result
        return copy.deepcopy(result)

    def post(self, path: str, data: Any | None = None) -> Any:
        """
        Perform an HTTP POST request.

        Args:
            path: The API path.
            data: Optional JSON-serializable data to send.

        Returns:
            The parsed JSON response.

        Raises:
            GerritRestError: On non-retryable errors or exhausted retries.
            GerritAuthError: On authentication failures.
        """
        return self._request_with_retry("POST", path, data=data)

    def put(self, path: str, data: Any | None = None) -> Any:
        """
        Perform an HTTP PUT request.

        Args:
            path: The API path.
            data: Optional JSON-serializable data to send.

        Returns:
            The parsed JSON response.

        Raises:
            GerritRestError: On non-retryable errors or exhausted retries.
            GerritAuthError: On authentication failures.
        """
        return self._request_with_retry("PUT", path, data=data)

    def get_public_text(self, path: str) -> str:
        """
        Fetch a non-REST resource (e.g. ``tools/hooks/commit-msg``).

        These paths live outside the authenticated ``a/`` namespace, so
        they are requested directly against the base URL.
        """
        url = urljoin(self._base_url, path.lstrip("/"))
        scheme = urlparse(url).scheme
        if scheme not in ("http", "https"):
            raise GerritRestError(f"Unsupported URL scheme: {scheme}")

        log.debug("Gerrit GET %s (public)", url)
        try:
            response = requests.get(url, timeout=self._timeout)
            response.raise_for_status()
        except requests.HTTPError as exc:
            raise _classify_http_error(exc, "GET", path) from exc
        except requests.RequestException as exc:
            raise GerritRestError(f"Gerrit GET {path} failed: {exc}") from exc
        return _strip_xssi_guard(response.text)

    def _request_with_retry(
        self,
        method: str,
        path: str,
        data: Any | None = None,
    ) -> Any:
        """Perform a request with automatic retry on transient failures."""
        last_exception: Exception | None = None

        for attempt in range(self._max_attempts):
            try:
                return self._request(method, path, data)
            except GerritAuthError:
                # Don't retry authentication failures
                raise
            except GerritNotFoundError:
                # Don't retry not found errors
                raise
            except GerritRestError as exc:
                last_exception = exc
                if exc.status_code and exc.status_code in _RETRYABLE_HTTP_CODES:
                    if attempt < self._max_attempts - 1:
                        delay = _calculate_backoff(attempt)
                        log.warning(
                            "Gerrit REST %s %s failed (HTTP %d), "
                            "retrying in %.1fs (attempt %d/%d)",
                            method,
                            path,
                            exc.status_code,
                            delay,
                            attempt + 1,
                            self._max_attempts,
                        )
                        time.sleep(delay)
                        continue
                raise
            except Exception as exc:
                last_exception = exc
                if _is_transient_error(exc):
                    if attempt < self._max_attempts - 1:
                        delay = _calculate_backoff(attempt)
                        log.warning(
                            "Gerrit REST %s %s failed (%s), "
                            "retrying in %.1fs (attempt %d/%d)",
                            method,
                            path,
                            exc,
                            delay,
                            attempt + 1,
                            self._max_attempts,
                        )
                        time.sleep(delay)
                        continue
                raise GerritRestError(
                    f"Gerrit REST {method} {path} failed: {exc}"
                ) from exc

        if last_exception:
            raise last_exception
        raise GerritRestError(f"Gerrit REST {method} {path} failed unexpectedly")

    def _request(
        self,
        method: str,
        path: str,
        data: Any | None = None,
    ) -> Any:
        """Perform a single HTTP request (no retry)."""
        if not path:
            raise ValueError("path is required")

        # pygerrit2 adds the a/ prefix itself when authenticated
        rel_path = path.lstrip("/")
        if rel_path.startswith("a/"):
            rel_path = rel_path[2:]
        endpoint = f"/{rel_path}"

        log.debug(
            "Gerrit REST %s %s (auth=%s)",
            method,
            endpoint,
            "yes" if self._auth else "no",
        )

        kwargs: dict[str, Any] = {"timeout": self._timeout}
        if data is not None:
            kwargs["json"] = data

        try:
            if method == "GET":
                result = self._api.get(endpoint, **kwargs)
            elif method == "POST":
                result = self._api.post(endpoint, **kwargs)
            elif method == "PUT":
                result = self._api.put(endpoint, **kwargs)
            else:
                raise ValueError(f"Unsupported method: {method}")
        except requests.HTTPError as exc:
            raise _classify_http_error(exc, method, path) from exc

        if isinstance(result, str):
            return _strip_xssi_guard(result)
        if result is None:
            return {}
        return result

    def __repr__(self) -> str:
        """String representation for debugging."""
        masked = ""
        if self._auth is not None:
            masked = f"{self._auth.user}:{_mask_secret(self._auth.password)}@"
        return f"GerritRestClient(base_url='{masked}{self._base_url}')"


def build_client(
    endpoint: str,
    *,
    timeout: float = 10.0,
    max_attempts: int = 5,
    username: str | None = None,
    password: str | None = None,
) -> GerritRestClient:
    """
    Build a GerritRestClient for a server endpoint.

    Args:
        endpoint: Gerrit server URL (e.g., "https://gerrit.example.org/r/").
        timeout: Request timeout in seconds.
        max_attempts: Maximum retry attempts for transient failures.
        username: HTTP username. Falls back to GERRIT_USERNAME or
                  GERRIT_HTTP_USER environment variables.
        password: HTTP password. Falls back to GERRIT_PASSWORD or
                  GERRIT_HTTP_PASSWORD environment variables.

    Returns:
        A configured GerritRestClient instance.
    """
    user = (
        (username or "").strip()
        or os.getenv("GERRIT_USERNAME", "").strip()
        or os.getenv("GERRIT_HTTP_USER", "").strip()
    )
    passwd = (
        (password or "").strip()
        or os.getenv("GERRIT_PASSWORD", "").strip()
        or os.getenv("GERRIT_HTTP_PASSWORD", "").strip()
    )

    auth: tuple[str, str] | None = None
    if user and passwd:
        auth = (user, passwd)

    return GerritRestClient(
        base_url=endpoint,
        auth=auth,
        timeout=timeout,
        max_attempts=max_attempts,
    )


__all__ = [
    "GerritAuthError",
    "GerritNotFoundError",
    "GerritRestClient",
    "GerritRestError",
    "build_client",
]
