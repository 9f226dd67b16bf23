"""Unified HTTP client with timeout, retry, and exponential backoff."""

from __future__ import annotations

import logging
import time
from typing import Any

import requests

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30
DEFAULT_RETRIES = 3
BACKOFF_BASE = 2.0

_AUTH_STATUSES = {401, 403}


class NetworkError(Exception):
    """Raised on unrecoverable HTTP / connectivity failures."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class AuthError(NetworkError):
    """Raised when the server rejects the credentials or session token."""


class ParseError(Exception):
    """Raised when response content cannot be parsed."""


def _backoff(attempt: int) -> float:
    return BACKOFF_BASE ** attempt


def _error_detail(resp: requests.Response | None) -> str:
    if resp is None:
        return ""
    try:
        body = resp.json()
    except ValueError:
        return resp.text.strip()[:200]
    if isinstance(body, dict):
        return str(body.get("error") or body.get("message") or body.get("detail") or body)
    return str(body)


def request(
    method: str,
    url: str,
    *,
    timeout: float = DEFAULT_TIMEOUT,
    retries: int | None = None,
    headers: dict[str, str] | None = None,
    params: dict[str, Any] | None = None,
    json: Any = None,
    session: requests.Session | None = None,
) -> requests.Response:
    """
    Send one HTTP request. Raises AuthError on 401/403, NetworkError otherwise.

    GET retries with backoff (``DEFAULT_RETRIES`` attempts); other methods are
    attempted once unless *retries* says otherwise.  Auth failures and 4xx
    responses are never retried.
    """
    method = method.upper()
    if retries is None:
        retries = DEFAULT_RETRIES if method == "GET" else 1
    client = session or requests.Session()
    last_exc: Exception | None = None

    for attempt in range(retries):
        try:
            resp = client.request(method, url, timeout=timeout, headers=headers, params=params, json=json)
            resp.raise_for_status()
            return resp
        except requests.exceptions.Timeout as exc:
            last_exc = exc
            logger.warning("Timeout on attempt %d/%d: %s %s", attempt + 1, retries, method, url)
        except requests.exceptions.ConnectionError as exc:
            last_exc = exc
            logger.warning("Connection error on attempt %d/%d: %s %s", attempt + 1, retries, method, url)
        except requests.exceptions.HTTPError as exc:
            status = exc.response.status_code if exc.response is not None else None
            detail = _error_detail(exc.response)
            if status in _AUTH_STATUSES:
                raise AuthError(detail or f"HTTP {status}", status_code=status) from exc
            logger.warning(
                "HTTP %s on attempt %d/%d: %s %s",
                status if status is not None else "?",
                attempt + 1,
                retries,
                method,
                url,
            )
            if status is not None and status < 500:
                raise NetworkError(detail or f"HTTP {status} for {method} {url}", status_code=status) from exc
            last_exc = exc

        if attempt < retries - 1:
            wait = _backoff(attempt)
            logger.debug("Backing off %.1fs before retry…", wait)
            time.sleep(wait)

    raise NetworkError(f"Failed to {method} {url} after {retries} attempt(s): {last_exc}") from last_exc


def get(url: str, **kwargs: Any) -> requests.Response:
    return request("GET", url, **kwargs)


def request_json(method: str, url: str, **kwargs: Any) -> Any:
    """Send a request and decode the JSON body; an empty body decodes to None."""
    resp = request(method, url, **kwargs)
    if resp.status_code == 204 or not resp.content:
        return None
    try:
        return resp.json()
    except ValueError as exc:
        raise ParseError(f"Response from {method} {url} is not JSON") from exc
