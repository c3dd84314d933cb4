# === NAVMAP v1 ===
# {
#   "module": "Pokedex.SpriteDownload.errors",
#   "purpose": "Error taxonomy, failure classification and run summary formatting",
#   "sections": [
#     {
#       "id": "spritedownloaderror",
#       "name": "SpriteDownloadError",
#       "anchor": "class-spritedownloaderror",
#       "kind": "class"
#     },
#     {
#       "id": "fetcherror",
#       "name": "FetchError",
#       "anchor": "class-fetcherror",
#       "kind": "class"
#     },
#     {
#       "id": "transientnetworkerror",
#       "name": "TransientNetworkError",
#       "anchor": "class-transientnetworkerror",
#       "kind": "class"
#     },
#     {
#       "id": "ratelimited",
#       "name": "RateLimited",
#       "anchor": "class-ratelimited",
#       "kind": "class"
#     },
#     {
#       "id": "terminalhttperror",
#       "name": "TerminalHTTPError",
#       "anchor": "class-terminalhttperror",
#       "kind": "class"
#     },
#     {
#       "id": "malformedpayloaderror",
#       "name": "MalformedPayloadError",
#       "anchor": "class-malformedpayloaderror",
#       "kind": "class"
#     },
#     {
#       "id": "requestfailederror",
#       "name": "RequestFailedError",
#       "anchor": "class-requestfailederror",
#       "kind": "class"
#     },
#     {
#       "id": "exhaustedcandidateserror",
#       "name": "ExhaustedCandidatesError",
#       "anchor": "class-exhaustedcandidateserror",
#       "kind": "class"
#     },
#     {
#       "id": "malformedrecorderror",
#       "name": "MalformedRecordError",
#       "anchor": "class-malformedrecorderror",
#       "kind": "class"
#     },
#     {
#       "id": "missingasseterror",
#       "name": "MissingAssetError",
#       "anchor": "class-missingasseterror",
#       "kind": "class"
#     },
#     {
#       "id": "setuperror",
#       "name": "SetupError",
#       "anchor": "class-setuperror",
#       "kind": "class"
#     },
#     {
#       "id": "outputsetuperror",
#       "name": "OutputSetupError",
#       "anchor": "class-outputsetuperror",
#       "kind": "class"
#     },
#     {
#       "id": "storeopenerror",
#       "name": "StoreOpenError",
#       "anchor": "class-storeopenerror",
#       "kind": "class"
#     },
#     {
#       "id": "metadirectorymissingerror",
#       "name": "MetaDirectoryMissingError",
#       "anchor": "class-metadirectorymissingerror",
#       "kind": "class"
#     },
#     {
#       "id": "describe-error",
#       "name": "describe_error",
#       "anchor": "function-describe-error",
#       "kind": "function"
#     },
#     {
#       "id": "get-actionable-error-message",
#       "name": "get_actionable_error_message",
#       "anchor": "function-get-actionable-error-message",
#       "kind": "function"
#     },
#     {
#       "id": "log-entity-failure",
#       "name": "log_entity_failure",
#       "anchor": "function-log-entity-failure",
#       "kind": "function"
#     },
#     {
#       "id": "format-run-summary",
#       "name": "format_run_summary",
#       "anchor": "function-format-run-summary",
#       "kind": "function"
#     }
#   ]
# }
# === /NAVMAP ===

"""Error taxonomy and logging helpers for the sprite pipeline.

Responsibilities
----------------
- Define the exception hierarchy shared by the fetch pass and the load pass.
  Retryable fetch failures (:class:`TransientNetworkError`,
  :class:`RateLimited`) are distinguished from terminal ones
  (:class:`TerminalHTTPError`) so the retry controller can classify outcomes
  without inspecting responses.
- Separate per-entity errors, which are recorded and never abort a run, from
  :class:`SetupError` subclasses, which are fatal.
- Render exceptions into short, machine-distinguishable reason strings via
  :func:`describe_error` for run summaries and loader log lines.
- Translate HTTP statuses into remediation hints via
  :func:`get_actionable_error_message`.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Optional

__all__ = (
    "SpriteDownloadError",
    "FetchError",
    "TransientNetworkError",
    "RateLimited",
    "TerminalHTTPError",
    "MalformedPayloadError",
    "RequestFailedError",
    "ExhaustedCandidatesError",
    "MalformedRecordError",
    "MissingAssetError",
    "SetupError",
    "OutputSetupError",
    "StoreOpenError",
    "MetaDirectoryMissingError",
    "describe_error",
    "get_actionable_error_message",
    "log_entity_failure",
    "format_run_summary",
)

LOGGER = logging.getLogger(__name__)


class SpriteDownloadError(Exception):
    """Base class for every error raised by the sprite pipeline."""


# ---------------------------------------------------------------------------
# Fetch errors
# ---------------------------------------------------------------------------


class FetchError(SpriteDownloadError):
    """Raised when a single URL could not be fetched."""

    def __init__(self, message: str, *, url: Optional[str] = None) -> None:
        super().__init__(message)
        self.url = url


class TransientNetworkError(FetchError):
    """Connection, read or timeout failure; retryable."""

    def __init__(
        self, message: str, *, url: Optional[str] = None, cause: Optional[BaseException] = None
    ) -> None:
        super().__init__(message, url=url)
        self.cause = cause


class RateLimited(FetchError):
    """Upstream answered 429; retryable, optionally with a wait hint in seconds."""

    def __init__(
        self, message: str, *, url: Optional[str] = None, retry_after: Optional[float] = None
    ) -> None:
        super().__init__(message, url=url)
        self.retry_after = retry_after
        self.status = 429


class TerminalHTTPError(FetchError):
    """Non-2xx, non-429 response. Never retried."""

    def __init__(self, message: str, *, url: Optional[str] = None, status: int) -> None:
        super().__init__(message, url=url)
        self.status = status


class MalformedPayloadError(FetchError):
    """Response body could not be decoded into the expected shape."""


class RequestFailedError(FetchError):
    """Request could not complete for a non-transport reason. Never retried.

    Covers undecodable content encodings, redirect loops and invalid URLs.
    """

    def __init__(
        self, message: str, *, url: Optional[str] = None, cause: Optional[BaseException] = None
    ) -> None:
        super().__init__(message, url=url)
        self.cause = cause


# ---------------------------------------------------------------------------
# Entity and record errors
# ---------------------------------------------------------------------------


class ExhaustedCandidatesError(SpriteDownloadError):
    """Every candidate image URL for an entity failed, or there were none."""

    def __init__(
        self,
        entity_id: int,
        *,
        last_error: Optional[BaseException] = None,
        attempted: int = 0,
    ) -> None:
        if attempted == 0:
            message = f"No image candidates for #{entity_id}"
        else:
            message = f"All {attempted} image candidates failed for #{entity_id}"
        if last_error is not None:
            message = f"{message}: {describe_error(last_error)}"
        super().__init__(message)
        self.entity_id = entity_id
        self.last_error = last_error
        self.attempted = attempted


class MalformedRecordError(SpriteDownloadError):
    """A metadata descriptor is unparseable or misses required fields."""

    def __init__(self, message: str, *, path: Optional[Path] = None, reason: str) -> None:
        super().__init__(message)
        self.path = path
        self.reason = reason


class MissingAssetError(SpriteDownloadError):
    """A descriptor references a primary asset file that does not exist."""

    def __init__(self, message: str, *, path: Optional[Path] = None) -> None:
        super().__init__(message)
        self.path = path
        self.reason = "missing-original"


# ---------------------------------------------------------------------------
# Fatal setup errors
# ---------------------------------------------------------------------------


class SetupError(SpriteDownloadError):
    """Fatal error raised before any per-entity work starts."""


class OutputSetupError(SetupError):
    """The output directory tree could not be created."""


class StoreOpenError(SetupError):
    """The SQLite catalog could not be opened or initialised."""


class MetaDirectoryMissingError(SetupError):
    """The metadata directory handed to the loader does not exist."""


def describe_error(exc: BaseException) -> str:
    """Return a one-line description of ``exc`` suitable for summaries.

    Examples:
        >>> describe_error(TerminalHTTPError("Unexpected status 404", status=404))
        'Unexpected status 404'
        >>> describe_error(ValueError(""))
        'ValueError'
    """

    text = str(exc).strip()
    if not text:
        return type(exc).__name__
    return " ".join(text.split())


def get_actionable_error_message(http_status: Optional[int]) -> tuple[str, Optional[str]]:
    """Map an HTTP status to a short message and an optional suggestion."""

    if http_status == 404:
        return (
            "Resource not found (HTTP 404)",
            "The sprite may have been removed upstream; fallback candidates are tried next.",
        )
    if http_status == 429:
        return (
            "Rate limit exceeded (HTTP 429)",
            "Lower --concurrency; the upstream rate limit is not documented.",
        )
    if http_status in (502, 503, 504):
        return (
            f"Upstream temporarily unavailable (HTTP {http_status})",
            "Re-run the download pass later; completed ids are overwritten idempotently.",
        )
    if http_status is not None and http_status >= 400:
        return (f"HTTP error {http_status}", None)
    return ("Download failed", None)


def log_entity_failure(
    logger: logging.Logger,
    entity_id: int,
    exc: BaseException,
    *,
    url: Optional[str] = None,
) -> None:
    """Log a per-entity failure with structured context."""

    status = getattr(exc, "status", None)
    message, suggestion = get_actionable_error_message(status)
    fields: dict[str, Any] = {
        "entity_id": entity_id,
        "url": url or getattr(exc, "url", None),
        "http_status": status,
        "exception_type": type(exc).__name__,
        "exception_message": describe_error(exc),
    }
    logger.error(
        "Failed downloading #%s: %s", entity_id, describe_error(exc), extra={"extra_fields": fields}
    )
    if suggestion and status is not None:
        logger.info("Suggestion for #%s (%s): %s", entity_id, message, suggestion)


def format_run_summary(total: int, successes: int, failures_by_reason: dict[str, int]) -> str:
    """Format a human-readable fetch pass summary.

    Examples:
        >>> print(format_run_summary(4, 3, {"HTTP 404": 1}))
        Download Summary:
        - Total entities: 4
        - Successes: 3 (75.0%)
        - Failures: 1 (25.0%)
        <BLANKLINE>
        Top failure reasons:
        1. HTTP 404: 1
    """

    failures = total - successes
    success_rate = (successes / total * 100) if total > 0 else 0
    failure_rate = (failures / total * 100) if total > 0 else 0

    lines = [
        "Download Summary:",
        f"- Total entities: {total}",
        f"- Successes: {successes} ({success_rate:.1f}%)",
        f"- Failures: {failures} ({failure_rate:.1f}%)",
    ]
    if failures_by_reason:
        lines.append("")
        lines.append("Top failure reasons:")
        ranked = sorted(failures_by_reason.items(), key=lambda item: item[1], reverse=True)
        for idx, (reason, count) in enumerate(ranked[:5], 1):
            lines.append(f"{idx}. {reason}: {count}")
    return "\n".join(lines)
