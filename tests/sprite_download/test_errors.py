"""Error taxonomy and reporting helpers."""

from __future__ import annotations

import logging

import pytest

from Pokedex.SpriteDownload.errors import (
    ExhaustedCandidatesError,
    FetchError,
    MetaDirectoryMissingError,
    OutputSetupError,
    RateLimited,
    SetupError,
    SpriteDownloadError,
    StoreOpenError,
    TerminalHTTPError,
    TransientNetworkError,
    describe_error,
    format_run_summary,
    get_actionable_error_message,
    log_entity_failure,
)


@pytest.mark.parametrize("cls", [TransientNetworkError, RateLimited])
def test_retryable_errors_are_fetch_errors(cls) -> None:
    assert issubclass(cls, FetchError)
    assert issubclass(cls, SpriteDownloadError)


@pytest.mark.parametrize("cls", [OutputSetupError, StoreOpenError, MetaDirectoryMissingError])
def test_setup_errors_share_base(cls) -> None:
    assert issubclass(cls, SetupError)


def test_rate_limited_carries_hint() -> None:
    exc = RateLimited("429", url="https://x", retry_after=2.0)
    assert exc.status == 429
    assert exc.retry_after == 2.0
    assert exc.url == "https://x"


def test_exhausted_message_includes_last_error() -> None:
    last = TerminalHTTPError("Unexpected status 404 for https://x", status=404)
    exc = ExhaustedCandidatesError(1, last_error=last, attempted=3)
    assert str(exc) == "All 3 image candidates failed for #1: Unexpected status 404 for https://x"


def test_describe_error_collapses_whitespace() -> None:
    assert describe_error(RuntimeError("line one\n   line two")) == "line one line two"
    assert describe_error(KeyError()) == "KeyError"


def test_actionable_messages() -> None:
    message, hint = get_actionable_error_message(429)
    assert "429" in message and "concurrency" in hint
    assert get_actionable_error_message(None) == ("Download failed", None)
    assert get_actionable_error_message(418) == ("HTTP error 418", None)


def test_log_entity_failure_attaches_fields(caplog) -> None:
    logger = logging.getLogger("Pokedex.test")
    exc = TerminalHTTPError("Unexpected status 404", url="https://x/1.png", status=404)

    with caplog.at_level(logging.INFO, logger="Pokedex.test"):
        log_entity_failure(logger, 1, exc)

    error = next(r for r in caplog.records if r.levelno == logging.ERROR)
    assert error.getMessage() == "Failed downloading #1: Unexpected status 404"
    assert error.extra_fields["http_status"] == 404
    assert error.extra_fields["url"] == "https://x/1.png"
    assert any("Suggestion for #1" in r.getMessage() for r in caplog.records)


def test_format_run_summary() -> None:
    text = format_run_summary(4, 3, {"ExhaustedCandidatesError": 1})
    assert "- Successes: 3 (75.0%)" in text
    assert "1. ExhaustedCandidatesError: 1" in text
    assert "Top failure reasons" not in format_run_summary(0, 0, {})
