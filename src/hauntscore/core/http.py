"""
HTTP helpers.

This module centralizes the minimal HTTP client logic used by provider adapters.

Design goals:
- Small surface area (GET JSON, plus a retrying variant).
- Deterministic defaults (timeout + User-Agent).
- Raise on non-2xx so callers can decide how to fail (stale cache, fallback, or fail-open).
"""

from __future__ import annotations

import logging
import time
from typing import Any

import httpx

from hauntscore.config.settings import RetrySettings

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "hauntscore/0.1.0 (+https://local)"
RETRYABLE_STATUS = frozenset({429, 500, 502, 503, 504})


class MissingApiKeyError(RuntimeError):
    """Raised when a provider is called without its credential configured."""


def get_json(
    url: str,
    *,
    params: dict[str, Any] | None = None,
    headers: dict[str, str] | None = None,
    timeout_seconds: float = 5,
) -> Any:
    """GET `url` and return the decoded JSON response.

    Raises:
        httpx.HTTPError: On transport errors or non-2xx status codes.
        ValueError: If the response body is not valid JSON.
    """
    request_headers = {"User-Agent": DEFAULT_USER_AGENT}
    if headers:
        request_headers.update(headers)

    with httpx.Client(timeout=timeout_seconds) as client:
        resp = client.get(url, params=params, headers=request_headers)
        resp.raise_for_status()
        return resp.json()


def _parse_retry_after_seconds(value: str | None) -> float | None:
    if not value:
        return None
    try:
        seconds = float(value)
    except ValueError:
        return None
    return seconds if seconds >= 0 else None


def get_json_with_retry(
    url: str,
    *,
    params: dict[str, Any] | None = None,
    headers: dict[str, str] | None = None,
    timeout_seconds: float = 5,
    retry: RetrySettings | None = None,
    label: str = "upstream",
) -> Any:
    """GET JSON with simple retry/backoff for 429, 5xx and transport errors.

    Other 4xx responses (bad key, unknown location) are raised immediately.
    """
    retry = retry or RetrySettings()
    max_attempts = int(retry.max_attempts)
    base_delay_seconds = float(retry.base_delay_seconds)
    max_delay_seconds = float(retry.max_delay_seconds)

    last_exc: Exception | None = None
    for attempt in range(max_attempts + 1):
        try:
            return get_json(url, params=params, headers=headers, timeout_seconds=timeout_seconds)
        except httpx.HTTPStatusError as exc:
            last_exc = exc
            status = exc.response.status_code
            if status not in RETRYABLE_STATUS or attempt >= max_attempts:
                raise

            delay = min(max_delay_seconds, base_delay_seconds * (2**attempt))
            retry_after = _parse_retry_after_seconds(exc.response.headers.get("Retry-After"))
            if retry_after is not None:
                delay = max(delay, retry_after)

            logger.warning(
                "%s request failed with status=%s; retrying in %.2fs (attempt %s/%s)",
                label,
                status,
                delay,
                attempt + 1,
                max_attempts,
            )
            time.sleep(delay)
        except httpx.TransportError as exc:
            last_exc = exc
            if attempt >= max_attempts:
                raise
            delay = min(max_delay_seconds, base_delay_seconds * (2**attempt))
            logger.warning(
                "%s transport error; retrying in %.2fs (attempt %s/%s)",
                label,
                delay,
                attempt + 1,
                max_attempts,
            )
            time.sleep(delay)

    if last_exc:
        raise last_exc
    raise RuntimeError(f"{label} request failed without an exception (unexpected).")
