# === NAVMAP v1 ===
# {
#   "module": "Pokedex.SpriteDownload.backoff",
#   "purpose": "Backoff scheduling and Retry-After parsing shared by every fetch",
#   "sections": [
#     {
#       "id": "parse-retry-after",
#       "name": "parse_retry_after",
#       "anchor": "function-parse-retry-after",
#       "kind": "function"
#     },
#     {
#       "id": "backoffscheduler",
#       "name": "BackoffScheduler",
#       "anchor": "class-backoffscheduler",
#       "kind": "class"
#     },
#     {
#       "id": "backoffwait",
#       "name": "BackoffWait",
#       "anchor": "class-backoffwait",
#       "kind": "class"
#     }
#   ]
# }
# === /NAVMAP ===

"""Backoff scheduling for retryable fetch failures.

The scheduler answers one question: given a 0-based attempt index and an
optional server hint, how long should the caller wait before trying again?

- A ``Retry-After`` hint (delta-seconds or HTTP-date) is honoured exactly;
  an HTTP-date already in the past becomes ``0``.
- Without a hint the wait is ``base * 2**attempt`` plus uniform jitter. Network
  failures use a wider jitter bound than rate-limit responses so that workers
  knocked over by the same outage do not reconnect in lockstep.

:class:`BackoffWait` adapts the scheduler to Tenacity so the retry controller
in :mod:`Pokedex.SpriteDownload.networking` never computes waits inline.
"""

from __future__ import annotations

import logging
import math
import random
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Literal, Optional

from tenacity import RetryCallState
from tenacity.wait import wait_base

from Pokedex.SpriteDownload.config.models import RetryPolicy
from Pokedex.SpriteDownload.errors import RateLimited

LOGGER = logging.getLogger(__name__)

FailureKind = Literal["rate_limit", "network"]


def parse_retry_after(value: Optional[str], *, now: Optional[datetime] = None) -> Optional[float]:
    """Parse a ``Retry-After`` header value into seconds to wait.

    Args:
        value: Raw header value, either delta-seconds or an HTTP-date.
        now: Reference time for HTTP-date values (defaults to current UTC).

    Returns:
        Seconds to wait (``0.0`` for dates in the past), or ``None`` when the
        header is absent or unparseable.

    Examples:
        >>> parse_retry_after("2")
        2.0
        >>> parse_retry_after("Wed, 21 Oct 2015 07:28:00 GMT")
        0.0
        >>> parse_retry_after("soon") is None
        True
    """

    if value is None:
        return None
    text = value.strip()
    if not text:
        return None

    try:
        seconds = float(text)
    except ValueError:
        pass
    else:
        if not math.isfinite(seconds):
            return None
        return max(0.0, seconds)

    try:
        target_time = parsedate_to_datetime(text)
    except (TypeError, ValueError, IndexError):
        return None
    if target_time is None:
        return None
    if target_time.tzinfo is None:
        target_time = target_time.replace(tzinfo=timezone.utc)

    reference = now or datetime.now(timezone.utc)
    delta = (target_time - reference).total_seconds()
    return max(0.0, delta)


class BackoffScheduler:
    """Compute wait durations between retries of a single request."""

    def __init__(
        self,
        *,
        base_s: float = 0.5,
        rate_limit_jitter_s: float = 0.25,
        network_jitter_s: float = 0.5,
        max_retries: int = 6,
        retry_after_cap_s: Optional[float] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        if base_s < 0 or rate_limit_jitter_s < 0 or network_jitter_s < 0:
            raise ValueError("Backoff durations must be non-negative")
        if max_retries < 0:
            raise ValueError("max_retries must be non-negative")
        self.base_s = base_s
        self.rate_limit_jitter_s = rate_limit_jitter_s
        self.network_jitter_s = network_jitter_s
        self.max_retries = max_retries
        self.retry_after_cap_s = retry_after_cap_s
        self._rng = rng or random.Random()

    @classmethod
    def from_policy(
        cls, policy: RetryPolicy, *, rng: Optional[random.Random] = None
    ) -> "BackoffScheduler":
        return cls(
            base_s=policy.base_delay_ms / 1000.0,
            rate_limit_jitter_s=policy.rate_limit_jitter_ms / 1000.0,
            network_jitter_s=policy.network_jitter_ms / 1000.0,
            max_retries=policy.max_retries,
            retry_after_cap_s=policy.retry_after_cap_s,
            rng=rng,
        )

    @property
    def max_attempts(self) -> int:
        """Total attempts allowed per request (first try plus retries)."""
        return self.max_retries + 1

    def exhausted(self, attempt: int) -> bool:
        """Return ``True`` when attempt ``attempt`` (0-based) may not be retried."""
        return attempt >= self.max_retries

    def compute_wait(
        self,
        attempt: int,
        *,
        hint: Optional[float] = None,
        kind: FailureKind = "rate_limit",
    ) -> float:
        """Return seconds to wait after failed attempt ``attempt`` (0-based)."""

        if attempt < 0:
            raise ValueError("attempt must be >= 0")

        if hint is not None:
            wait = max(0.0, float(hint))
            if self.retry_after_cap_s is not None:
                wait = min(wait, self.retry_after_cap_s)
            return wait

        jitter_bound = self.network_jitter_s if kind == "network" else self.rate_limit_jitter_s
        jitter = self._rng.uniform(0.0, jitter_bound) if jitter_bound > 0 else 0.0
        return self.base_s * (2**attempt) + jitter


class BackoffWait(wait_base):
    """Tenacity wait strategy delegating to a :class:`BackoffScheduler`."""

    def __init__(self, scheduler: BackoffScheduler) -> None:
        self.scheduler = scheduler

    def __call__(self, retry_state: RetryCallState) -> float:
        attempt = max(0, retry_state.attempt_number - 1)
        outcome = retry_state.outcome
        exc = outcome.exception() if outcome is not None and outcome.failed else None

        if isinstance(exc, RateLimited):
            return self.scheduler.compute_wait(attempt, hint=exc.retry_after, kind="rate_limit")
        return self.scheduler.compute_wait(attempt, kind="network")
