"""API client primitives for the PRTG monitoring backend.

This module provides the error taxonomy, URL construction with
authentication, and the single-shot HTTP transport with status
classification.
"""

import logging
import time
from collections.abc import Callable, Mapping
from typing import NoReturn

import httpx

from .const import (
    API_PATH,
    AUTH_PARAMS,
    DEFAULT_REQUEST_TIMEOUT,
    ENDPOINT_PATHS,
    ENDPOINT_REQUIRED_PARAMS,
    USER_AGENT,
)
from .models import Credentials, DataSourceSettings, Endpoint

_LOGGER = logging.getLogger(__name__)

# HTTP status codes
HTTP_OK = 200
HTTP_UNAUTHORIZED = 401
HTTP_FORBIDDEN = 403

REDACTED = "***"


class PrtgApiError(Exception):
    """Base exception for PRTG data source errors."""


class ConfigurationError(PrtgApiError):
    """Exception raised for invalid data source settings."""


class InvalidURL(PrtgApiError):  # noqa: N818
    """Exception raised when the base host cannot form a valid URL."""


class InvalidQueryError(PrtgApiError):
    """Exception raised for a query rejected before any network call."""


class NetworkError(PrtgApiError):
    """Exception raised for connection, timeout and body read failures."""


class PrtgApiAuthError(PrtgApiError):
    """Base exception for credential and permission errors."""


class AuthenticationError(PrtgApiAuthError):
    """Exception raised when the backend rejects the credentials (HTTP 401)."""


class AuthorizationError(PrtgApiAuthError):
    """Exception raised when the credentials lack permission (HTTP 403)."""


class BackendError(PrtgApiError):
    """Exception raised for any other non-200 HTTP status."""

    def __init__(self, status: int, message: str | None = None) -> None:
        """Initialize the error with the HTTP status code."""
        self.status = status
        super().__init__(message or f"Unexpected status code: {status}")


class DecodeError(PrtgApiError):
    """Exception raised when a response body cannot be decoded.

    Attributes:
        snippet: Leading part of the undecodable body.

    """

    def __init__(self, message: str, snippet: str) -> None:
        """Initialize the error with a snippet of the raw body."""
        self.snippet = snippet
        super().__init__(f"{message}: {snippet!r}")


class DateParseError(PrtgApiError):
    """Exception raised when a backend datetime string matches no known layout."""

    def __init__(self, value: str, message: str | None = None) -> None:
        """Initialize the error with the offending string."""
        self.value = value
        super().__init__(message or f"Failed to parse time '{value}'")


class EmptyResultError(PrtgApiError):
    """Exception raised when a valid query yields no usable records."""


def build_url(
    base_url: str,
    endpoint: Endpoint,
    credentials: Credentials,
    params: Mapping[str, str] | None = None,
) -> str:
    """Build an authenticated API URL.

    Authentication parameters are placed first. Caller parameters are
    appended afterwards, except those that would override authentication.

    Args:
        base_url: Backend base URL, e.g. ``https://prtg.example.com``.
        endpoint: Logical endpoint to call.
        credentials: Credentials to inject.
        params: Endpoint specific query parameters.

    Returns:
        The full request URL.

    Raises:
        InvalidURL: If the base URL is not an absolute http(s) URL.
        InvalidQueryError: If a required endpoint parameter is missing.

    """
    params = dict(params or {})
    _validate_required_params(endpoint, params)

    try:
        base = httpx.URL(base_url.rstrip("/"))
    except (httpx.InvalidURL, TypeError) as err:
        error_msg = f"Invalid URL: {base_url!r}"
        raise InvalidURL(error_msg) from err

    if base.scheme not in ("http", "https") or not base.host:
        error_msg = f"Invalid URL: {base_url!r}"
        raise InvalidURL(error_msg)

    query: list[tuple[str, str]] = list(credentials.as_params().items())
    for key, value in params.items():
        if key in AUTH_PARAMS:
            _LOGGER.warning(
                "Ignoring query parameter %s overriding authentication", key
            )
            continue
        query.append((key, str(value)))

    path = f"{base.path.rstrip('/')}/{API_PATH}/{ENDPOINT_PATHS[endpoint]}"
    return str(base.copy_with(path=path, params=query))


def _validate_required_params(endpoint: Endpoint, params: Mapping[str, str]) -> None:
    missing = [
        name
        for name in sorted(ENDPOINT_REQUIRED_PARAMS[endpoint])
        if not str(params.get(name, "")).strip()
    ]
    if missing:
        error_msg = f"Invalid query: missing {', '.join(missing)} for {endpoint}"
        raise InvalidQueryError(error_msg)


def redact_url(url: str) -> str:
    """Return the URL with credential values replaced, for logging."""
    parsed = httpx.URL(url)
    query = [
        (key, REDACTED if key in AUTH_PARAMS and key != "username" else value)
        for key, value in parsed.params.multi_items()
    ]
    return str(parsed.copy_with(params=query))


def create_headers() -> dict[str, str]:
    """Create HTTP headers for backend requests.

    Returns:
        Dictionary containing HTTP headers for API requests.

    """
    return {
        "accept": "application/json, text/xml;q=0.9, */*;q=0.8",
        "user-agent": USER_AGENT,
    }


def is_auth_error(status: int) -> bool:
    """Check if HTTP status code indicates invalid credentials.

    Args:
        status: HTTP status code to check.

    Returns:
        True if status code is 401, False otherwise.

    """
    return status == HTTP_UNAUTHORIZED


def is_forbidden_error(status: int) -> bool:
    """Check if HTTP status code indicates missing permissions.

    Args:
        status: HTTP status code to check.

    Returns:
        True if status code is 403, False otherwise.

    """
    return status == HTTP_FORBIDDEN


def validate_status(status: int) -> None:
    """Raise the typed error for a non-200 HTTP status.

    Args:
        status: HTTP status code of the response.

    Raises:
        AuthenticationError: On HTTP 401.
        AuthorizationError: On HTTP 403.
        BackendError: On any other status except 200.

    """
    if status == HTTP_OK:
        return

    if is_auth_error(status):
        auth_error = f"Invalid username, password or API token (HTTP {status})"
        raise AuthenticationError(auth_error)

    if is_forbidden_error(status):
        _LOGGER.error("Access denied: please verify API token and permissions")
        access_error = "Access denied: please verify API token and permissions"
        raise AuthorizationError(access_error)

    raise BackendError(status)


def create_session_client(settings: DataSourceSettings) -> httpx.Client:
    """Create the HTTP client used for backend requests.

    Certificate validation is on unless the operator explicitly allowed
    self-signed certificates. No retry transport is installed; every request
    is single-shot.

    Args:
        settings: Data source settings.

    Returns:
        Configured httpx Client.

    """
    if settings.allow_self_signed:
        _LOGGER.warning(
            "TLS certificate verification disabled for %s", settings.base_url
        )
    return httpx.Client(
        headers=create_headers(),
        timeout=settings.request_timeout,
        verify=not settings.allow_self_signed,
    )


def execute_request(
    session: httpx.Client,
    url: str,
    timeout: float = DEFAULT_REQUEST_TIMEOUT,
    clock: Callable[[], float] = time.monotonic,
) -> tuple[bytes, httpx.Headers]:
    """Issue a single GET request and return the body and headers.

    The timeout bounds every connect and read step and, through a deadline
    checked while the body streams in, the request as a whole. A server
    trickling its body cannot hold the caller past the deadline.

    Args:
        session: HTTP client session.
        url: Fully built request URL.
        timeout: Overall deadline for connect and read, in seconds.
        clock: Monotonic clock, replaceable for tests.

    Returns:
        Tuple of (body, headers).

    Raises:
        NetworkError: If the connection or the body read fails, or the
            deadline passes.
        AuthenticationError: On HTTP 401.
        AuthorizationError: On HTTP 403.
        BackendError: On any other non-200 status.

    """
    _LOGGER.debug("Requesting %s", redact_url(url))
    deadline = clock() + timeout
    try:
        with session.stream("GET", url, timeout=timeout) as response:
            validate_status(response.status_code)
            chunks: list[bytes] = []
            try:
                for chunk in response.iter_bytes():
                    if clock() > deadline:
                        _raise_deadline_exceeded(url, timeout)
                    chunks.append(chunk)
            except (httpx.TransportError, httpx.StreamError) as err:
                error_msg = f"Failed to read response body: {err}"
                _LOGGER.error(error_msg)
                raise NetworkError(error_msg) from err
            if clock() > deadline:
                _raise_deadline_exceeded(url, timeout)
            return b"".join(chunks), response.headers
    except httpx.TransportError as err:
        error_msg = f"Request failed: {err}"
        _LOGGER.error("Request to %s failed: %s", redact_url(url), err)
        raise NetworkError(error_msg) from err


def _raise_deadline_exceeded(url: str, timeout: float) -> NoReturn:
    error_msg = f"Request exceeded the {timeout:g}s deadline"
    _LOGGER.error("Request to %s exceeded the %gs deadline", redact_url(url), timeout)
    raise NetworkError(error_msg)
