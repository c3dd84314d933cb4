# === NAVMAP v1 ===
# {
#   "module": "Pokedex.SpriteDownload.networking",
#   "purpose": "Bounded HTTP fetcher with Tenacity retries and status mapping",
#   "sections": [
#     {
#       "id": "build-http-client",
#       "name": "build_http_client",
#       "anchor": "function-build-http-client",
#       "kind": "function"
#     },
#     {
#       "id": "on-request",
#       "name": "_on_request",
#       "anchor": "function-on-request",
#       "kind": "function"
#     },
#     {
#       "id": "on-response",
#       "name": "_on_response",
#       "anchor": "function-on-response",
#       "kind": "function"
#     },
#     {
#       "id": "boundedfetcher",
#       "name": "BoundedFetcher",
#       "anchor": "class-boundedfetcher",
#       "kind": "class"
#     }
#   ]
# }
# === /NAVMAP ===

"""
Bounded HTTP fetching with shared retry and backoff.

Every outbound request of a run goes through one :class:`BoundedFetcher`:

1. ``build_http_client(cfg)`` → HTTPX client with a fixed timeout, pool
   limits and polite headers; event hooks log per-request timing.
2. ``BoundedFetcher.fetch(url)`` → Tenacity controller that retries
   :class:`RateLimited` and :class:`TransientNetworkError` against one shared
   attempt budget, waiting per :class:`BackoffWait`.
3. A process-wide bounded semaphore is held only while an HTTP exchange is in
   progress, so the number of simultaneous connections never exceeds the
   configured limit no matter how many entities are being processed.
   Backoff sleeps hold no slot.
"""

from __future__ import annotations

import contextlib
import json
import logging
import threading
import time
from typing import Any, Callable, Iterator, Optional

import httpx
from tenacity import RetryCallState, Retrying, retry_if_exception_type, stop_after_attempt

from Pokedex.SpriteDownload.backoff import BackoffScheduler, BackoffWait, parse_retry_after
from Pokedex.SpriteDownload.config.models import HttpClientConfig, SpriteDownloadConfig
from Pokedex.SpriteDownload.errors import (
    MalformedPayloadError,
    RateLimited,
    RequestFailedError,
    TerminalHTTPError,
    TransientNetworkError,
)

LOGGER = logging.getLogger(__name__)

__all__ = ["BoundedFetcher", "build_http_client"]


# ============================================================================
# Client Construction
# ============================================================================


def build_http_client(
    cfg: HttpClientConfig, *, transport: Optional[httpx.BaseTransport] = None
) -> httpx.Client:
    """Build an HTTPX client from ``cfg``.

    Args:
        cfg: HTTP client settings.
        transport: Optional transport override (tests pass ``httpx.MockTransport``).
    """
    timeout = httpx.Timeout(cfg.timeout_s)
    limits = httpx.Limits(
        max_connections=cfg.max_connections,
        max_keepalive_connections=cfg.max_keepalive_connections,
    )
    client = httpx.Client(
        transport=transport,
        timeout=timeout,
        limits=limits,
        verify=cfg.verify_tls,
        headers={
            "User-Agent": cfg.user_agent,
            "Accept": "image/*,application/json",
        },
        follow_redirects=True,
    )
    client.event_hooks["request"] = [_on_request]
    client.event_hooks["response"] = [_on_response]
    return client


def _on_request(request: httpx.Request) -> None:
    request.extensions["t0_perf"] = time.perf_counter()


def _on_response(response: httpx.Response) -> None:
    req = response.request
    t0 = req.extensions.get("t0_perf", time.perf_counter())
    elapsed_ms = (time.perf_counter() - t0) * 1000.0
    LOGGER.debug(
        "net.request method=%s url=%s status=%s elapsed_ms=%.1f",
        req.method,
        req.url,
        response.status_code,
        elapsed_ms,
    )


# ============================================================================
# Fetcher
# ============================================================================


class BoundedFetcher:
    """Fetch URLs with retries under a global concurrency ceiling."""

    def __init__(
        self,
        client: httpx.Client,
        *,
        concurrency: int,
        scheduler: Optional[BackoffScheduler] = None,
        sleep: Callable[[float], None] = time.sleep,
        owns_client: bool = False,
    ) -> None:
        if concurrency < 1:
            raise ValueError("concurrency must be >= 1")
        self._client = client
        self._owns_client = owns_client
        self.concurrency = concurrency
        self.scheduler = scheduler or BackoffScheduler()
        self._sleep = sleep
        self._semaphore = threading.BoundedSemaphore(concurrency)
        self._counter_lock = threading.Lock()
        self._in_flight = 0
        self.peak_in_flight = 0

    @classmethod
    def from_config(
        cls,
        config: SpriteDownloadConfig,
        *,
        transport: Optional[httpx.BaseTransport] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> "BoundedFetcher":
        client = build_http_client(config.http, transport=transport)
        return cls(
            client,
            concurrency=config.download.concurrency,
            scheduler=BackoffScheduler.from_policy(config.retries),
            sleep=sleep,
            owns_client=True,
        )

    @property
    def in_flight(self) -> int:
        return self._in_flight

    @contextlib.contextmanager
    def _slot(self) -> Iterator[None]:
        with self._semaphore:
            with self._counter_lock:
                self._in_flight += 1
                self.peak_in_flight = max(self.peak_in_flight, self._in_flight)
            try:
                yield
            finally:
                with self._counter_lock:
                    self._in_flight -= 1

    def _attempt(self, url: str) -> bytes:
        with self._slot():
            try:
                response = self._client.get(url)
            except httpx.TimeoutException as exc:
                raise TransientNetworkError(
                    f"Timeout fetching {url}: {exc}", url=url, cause=exc
                ) from exc
            except httpx.TransportError as exc:
                raise TransientNetworkError(
                    f"Network error for {url}: {exc}", url=url, cause=exc
                ) from exc
            except (httpx.RequestError, httpx.InvalidURL) as exc:
                raise RequestFailedError(
                    f"Request failed for {url}: {exc}", url=url, cause=exc
                ) from exc

        status = response.status_code
        if 200 <= status < 300:
            return response.content
        if status == 429:
            retry_after = parse_retry_after(response.headers.get("Retry-After"))
            raise RateLimited(f"429 for {url}", url=url, retry_after=retry_after)
        raise TerminalHTTPError(f"Unexpected status {status} for {url}", url=url, status=status)

    def _before_sleep(self, retry_state: RetryCallState) -> None:
        outcome = retry_state.outcome
        exc = outcome.exception() if outcome is not None else None
        delay = 0.0
        if retry_state.next_action is not None and retry_state.next_action.sleep is not None:
            delay = float(retry_state.next_action.sleep)
        attempt = retry_state.attempt_number - 1

        if isinstance(exc, RateLimited):
            if exc.retry_after is not None:
                LOGGER.warning(
                    "429 + Retry-After=%dms for %s; waiting...", int(delay * 1000), exc.url
                )
            else:
                LOGGER.warning(
                    "429 for %s. Backing off %dms (attempt %s)", exc.url, int(delay * 1000), attempt
                )
            return
        LOGGER.warning("%s. Retrying in %dms (attempt %s)", exc, int(delay * 1000), attempt)

    def _build_retrying(self) -> Retrying:
        return Retrying(
            retry=retry_if_exception_type((RateLimited, TransientNetworkError)),
            wait=BackoffWait(self.scheduler),
            stop=stop_after_attempt(self.scheduler.max_attempts),
            sleep=self._sleep,
            before_sleep=self._before_sleep,
            reraise=True,
        )

    def fetch(self, url: str) -> bytes:
        """Return the body of ``url``.

        Raises:
            TerminalHTTPError: Non-2xx, non-429 response (not retried).
            RequestFailedError: Undecodable body, redirect loop or invalid URL
                (not retried).
            RateLimited: Still rate limited once the attempt budget is spent.
            TransientNetworkError: Network failures outlasted the attempt budget.
        """
        if not url:
            raise ValueError("URL must be provided")
        retrying = self._build_retrying()
        return retrying(self._attempt, url)

    def fetch_json(self, url: str) -> Any:
        """Return the decoded JSON body of ``url``."""
        payload = self.fetch(url)
        try:
            return json.loads(payload)
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise MalformedPayloadError(f"Invalid JSON from {url}: {exc}", url=url) from exc

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> "BoundedFetcher":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
