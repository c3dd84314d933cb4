"""Bounded fetcher: retry classification, Retry-After handling and the connection cap."""

from __future__ import annotations

import threading
import time

import httpx
import pytest
from sprite_fakes import SPRITE_HOST, make_png

from Pokedex.SpriteDownload.config.models import SpriteDownloadConfig
from Pokedex.SpriteDownload.errors import (
    FetchError,
    MalformedPayloadError,
    RateLimited,
    RequestFailedError,
    TerminalHTTPError,
    TransientNetworkError,
)
from Pokedex.SpriteDownload.networking import BoundedFetcher, build_http_client

URL = f"{SPRITE_HOST}/1.png"


def test_success_returns_body(make_fetcher, fake_api, png_bytes, recording_sleep) -> None:
    fake_api.add_image(URL, png_bytes)
    assert make_fetcher().fetch(URL) == png_bytes
    assert recording_sleep.calls == []


def test_retry_after_is_honoured_before_success(
    make_fetcher, fake_api, png_bytes, recording_sleep
) -> None:
    fake_api.add(
        URL,
        httpx.Response(429, headers={"Retry-After": "2"}),
        httpx.Response(429, headers={"Retry-After": "2"}),
        httpx.Response(200, content=png_bytes),
    )

    assert make_fetcher().fetch(URL) == png_bytes
    assert fake_api.count(URL) == 3
    assert recording_sleep.calls == [2.0, 2.0]


def test_429_without_hint_uses_exponential_backoff(
    make_fetcher, fake_api, png_bytes, recording_sleep
) -> None:
    fake_api.add(URL, httpx.Response(429), httpx.Response(429), httpx.Response(200, content=png_bytes))

    make_fetcher().fetch(URL)

    first, second = recording_sleep.calls
    assert 0.5 <= first <= 0.75
    assert 1.0 <= second <= 1.25


def test_terminal_status_is_not_retried(make_fetcher, fake_api, recording_sleep) -> None:
    fake_api.add(URL, httpx.Response(404))

    with pytest.raises(TerminalHTTPError) as excinfo:
        make_fetcher().fetch(URL)

    assert excinfo.value.status == 404
    assert excinfo.value.url == URL
    assert fake_api.count(URL) == 1
    assert recording_sleep.calls == []


def test_server_error_is_terminal(make_fetcher, fake_api) -> None:
    fake_api.add(URL, httpx.Response(503))
    with pytest.raises(TerminalHTTPError):
        make_fetcher().fetch(URL)
    assert fake_api.count(URL) == 1


def test_network_errors_exhaust_shared_budget(make_fetcher, recording_sleep) -> None:
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request.url)
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(TransientNetworkError):
        make_fetcher(max_retries=3, handler=handler).fetch(URL)

    assert len(calls) == 4
    assert len(recording_sleep.calls) == 3
    for attempt, wait in enumerate(recording_sleep.calls):
        assert 0.5 * 2**attempt <= wait <= 0.5 * 2**attempt + 0.5


def test_rate_limit_outlasting_budget_raises_rate_limited(make_fetcher, fake_api) -> None:
    fake_api.add(URL, httpx.Response(429, headers={"Retry-After": "1"}))

    with pytest.raises(RateLimited) as excinfo:
        make_fetcher(max_retries=2).fetch(URL)

    assert excinfo.value.retry_after == 1.0
    assert fake_api.count(URL) == 3


def test_timeout_is_transient(make_fetcher, png_bytes) -> None:
    attempts = []

    def handler(request: httpx.Request) -> httpx.Response:
        attempts.append(1)
        if len(attempts) == 1:
            raise httpx.ReadTimeout("slow", request=request)
        return httpx.Response(200, content=png_bytes)

    assert make_fetcher(handler=handler).fetch(URL) == png_bytes
    assert len(attempts) == 2


def test_fetch_json_rejects_non_json(make_fetcher, fake_api) -> None:
    fake_api.add(URL, httpx.Response(200, content=b"<html>"))
    with pytest.raises(MalformedPayloadError):
        make_fetcher().fetch_json(URL)


def test_fetch_requires_url(make_fetcher) -> None:
    with pytest.raises(ValueError):
        make_fetcher().fetch("")


def test_concurrency_cap_is_never_exceeded(make_fetcher) -> None:
    limit = 2
    active = 0
    peak = 0
    lock = threading.Lock()
    body = make_png()

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal active, peak
        with lock:
            active += 1
            peak = max(peak, active)
        time.sleep(0.02)
        with lock:
            active -= 1
        return httpx.Response(200, content=body)

    fetcher = make_fetcher(concurrency=limit, handler=handler)
    threads = [
        threading.Thread(target=fetcher.fetch, args=(f"{SPRITE_HOST}/{i}.png",)) for i in range(8)
    ]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert peak <= limit
    assert fetcher.peak_in_flight <= limit
    assert fetcher.in_flight == 0


def test_backoff_sleep_does_not_hold_a_slot(make_fetcher, png_bytes) -> None:
    responses = iter([429, 200])
    seen_in_flight = []

    def handler(request: httpx.Request) -> httpx.Response:
        if next(responses) == 429:
            return httpx.Response(429, headers={"Retry-After": "0"})
        return httpx.Response(200, content=png_bytes)

    fetcher = make_fetcher(concurrency=1, handler=handler)

    def sleep(seconds: float) -> None:
        seen_in_flight.append(fetcher.in_flight)

    fetcher._sleep = sleep
    assert fetcher.fetch(URL) == png_bytes
    assert seen_in_flight == [0]


def test_constructor_rejects_zero_concurrency() -> None:
    with pytest.raises(ValueError):
        BoundedFetcher(httpx.Client(), concurrency=0)


def test_build_http_client_sets_headers_and_timeout() -> None:
    cfg = SpriteDownloadConfig().http
    client = build_http_client(cfg, transport=httpx.MockTransport(lambda r: httpx.Response(200)))
    try:
        assert client.headers["User-Agent"] == cfg.user_agent
        assert client.timeout.read == cfg.timeout_s
        assert client.follow_redirects is True
    finally:
        client.close()


def _corrupt_gzip(request: httpx.Request) -> httpx.Response:
    return httpx.Response(
        200, headers={"Content-Encoding": "gzip"}, stream=httpx.ByteStream(b"not gzip")
    )


def test_undecodable_body_is_terminal_fetch_error(
    make_fetcher, fake_api, recording_sleep
) -> None:
    fake_api.add(URL, _corrupt_gzip)

    with pytest.raises(RequestFailedError) as excinfo:
        make_fetcher().fetch(URL)

    assert isinstance(excinfo.value, FetchError)
    assert isinstance(excinfo.value.cause, httpx.DecodingError)
    assert excinfo.value.url == URL
    assert fake_api.count(URL) == 1
    assert recording_sleep.calls == []
