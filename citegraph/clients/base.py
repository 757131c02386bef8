"""HTTP plumbing shared by upstream clients.

Every request goes through three layers: an optional :class:`RequestThrottle`
that spaces calls out to respect upstream rate limits, a tenacity retry loop
for transport failures and retryable status codes, and a final mapping of the
response status onto the :class:`ClientError` hierarchy.
"""

from __future__ import annotations

import logging
import threading
import time
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Callable, Dict, Optional

import requests
from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception_type,
    retry_if_result,
    stop_after_attempt,
    wait_exponential,
)

logger = logging.getLogger(__name__)

DEFAULT_HEADERS: Dict[str, str] = {
    "User-Agent": "citegraph",
    "Accept": "application/json",
}

RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})

_EXCERPT_LIMIT = 200

_default_session: Optional[requests.Session] = None


class ClientError(Exception):
    """Base exception for HTTP client errors."""


class NotFoundError(ClientError):
    """HTTP 404."""


class RateLimitedError(ClientError):
    """HTTP 429 that persisted through every retry."""

    def __init__(self, message: str, retry_after: Optional[float] = None) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class RequestRejectedError(ClientError):
    """Any other 4xx; carries the status and a short body excerpt."""

    def __init__(self, status: int, message: str, body_excerpt: Optional[str] = None) -> None:
        super().__init__(message)
        self.status = status
        self.body_excerpt = body_excerpt


class UpstreamError(ClientError):
    """5xx responses, transport failures and unusable payloads."""

    def __init__(self, message: str, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.status = status


def default_session() -> requests.Session:
    """Return the process-wide session used when a client is built without one."""

    global _default_session
    if _default_session is None:
        _default_session = requests.Session()
        _default_session.headers.update(DEFAULT_HEADERS)
    return _default_session


def parse_retry_after(value: Optional[str]) -> Optional[float]:
    """Return the delay in seconds encoded by a ``Retry-After`` header value."""

    if not value:
        return None
    value = value.strip()
    try:
        return max(float(value), 0.0)
    except ValueError:
        pass
    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if when is None:
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    return max((when - datetime.now(timezone.utc)).total_seconds(), 0.0)


class RequestThrottle:
    """Keep successive requests at least ``1 / rate_per_second`` apart.

    Safe to share between threads: each caller reserves the next free slot
    under a lock and sleeps outside it.
    """

    def __init__(
        self,
        rate_per_second: float,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if rate_per_second <= 0:
            raise ValueError("rate_per_second must be positive")
        self.interval = 1.0 / rate_per_second
        self._clock = clock
        self._sleep = sleep
        self._lock = threading.Lock()
        self._next_slot = 0.0

    def wait(self) -> None:
        with self._lock:
            now = self._clock()
            slot = max(now, self._next_slot)
            self._next_slot = slot + self.interval
        delay = slot - now
        if delay > 0:
            self._sleep(delay)


_backoff = wait_exponential(multiplier=0.5, min=0.5, max=8)


def _wait_for(retry_state: RetryCallState) -> float:
    """Honour ``Retry-After`` on retryable responses, else back off exponentially."""

    outcome = retry_state.outcome
    if outcome is not None and not outcome.failed:
        delay = parse_retry_after(outcome.result().headers.get("Retry-After"))
        if delay is not None:
            return delay
    return _backoff(retry_state)


def _is_retryable(response: requests.Response) -> bool:
    return response.status_code in RETRYABLE_STATUS_CODES


def _final_outcome(retry_state: RetryCallState) -> requests.Response:
    # returns the last response, or re-raises the last transport error
    return retry_state.outcome.result()


def _log_retry(retry_state: RetryCallState) -> None:
    outcome = retry_state.outcome
    if outcome is None:
        return
    reason = outcome.exception() if outcome.failed else f"HTTP {outcome.result().status_code}"
    logger.debug("Retrying request (attempt %s): %s", retry_state.attempt_number, reason)


def _excerpt(response: requests.Response) -> Optional[str]:
    try:
        text = response.text
    except (UnicodeDecodeError, LookupError, RuntimeError):
        return None
    cleaned = " ".join((text or "").split())
    return cleaned[:_EXCERPT_LIMIT] or None


class BaseHttpClient:
    """Blocking client with throttling, retries and status-to-exception mapping."""

    BASE_URL = ""

    def __init__(
        self,
        *,
        session: Optional[requests.Session] = None,
        base_url: Optional[str] = None,
        timeout: float = 10.0,
        max_attempts: int = 3,
        throttle: Optional[RequestThrottle] = None,
    ) -> None:
        self.session = session or default_session()
        for key, value in DEFAULT_HEADERS.items():
            self.session.headers.setdefault(key, value)
        self.base_url = (base_url or self.BASE_URL).rstrip("/")
        self.timeout = timeout
        self.max_attempts = max_attempts
        self.throttle = throttle

    def _attempt(self, method: str, url: str, **kwargs: Any) -> requests.Response:
        if self.throttle is not None:
            self.throttle.wait()
        return self.session.request(method, url, timeout=self.timeout, **kwargs)

    def _send(self, method: str, url: str, **kwargs: Any) -> requests.Response:
        retrying = Retrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=_wait_for,
            retry=(
                retry_if_exception_type((requests.ConnectionError, requests.Timeout))
                | retry_if_result(_is_retryable)
            ),
            before_sleep=_log_retry,
            retry_error_callback=_final_outcome,
        )
        return retrying(self._attempt, method, url, **kwargs)

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
        **kwargs: Any,
    ) -> requests.Response:
        url = f"{self.base_url}{path}"
        try:
            response = self._send(method, url, params=params, headers=headers, **kwargs)
        except requests.RequestException as exc:
            raise UpstreamError(f"Request to {url} failed: {exc}") from exc
        return self._check(response)

    def _check(self, response: requests.Response) -> requests.Response:
        status = response.status_code
        if status < 400:
            return response
        if status == 404:
            raise NotFoundError(f"Resource not found: {response.url}")
        if status == 429:
            raise RateLimitedError(
                "Rate limit exceeded",
                retry_after=parse_retry_after(response.headers.get("Retry-After")),
            )

        excerpt = _excerpt(response)
        detail = f": {excerpt}" if excerpt else ""
        if status >= 500:
            raise UpstreamError(f"Upstream service error{detail} ({status})", status=status)
        raise RequestRejectedError(status, f"Client request rejected{detail} ({status})", body_excerpt=excerpt)
