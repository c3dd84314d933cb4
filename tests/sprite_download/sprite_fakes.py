"""Scripted HTTP upstream, recording sleep and in-memory sprite builders."""

from __future__ import annotations

import io
import json
import threading
from collections import Counter
from typing import Any, Callable, Dict, List, Optional, Union

import httpx
from PIL import Image


API_BASE = "https://pokeapi.test/api/v2"
SPRITE_HOST = "https://sprites.test"

Reply = Union[httpx.Response, Exception, Callable[[httpx.Request], httpx.Response]]


def make_png(size=(64, 48), color=(200, 30, 30, 255)) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGBA", size, color).save(buffer, format="PNG")
    return buffer.getvalue()


def make_jpeg(size=(120, 80), color=(10, 120, 200)) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", size, color).save(buffer, format="JPEG")
    return buffer.getvalue()


def sprite_url(name: str) -> str:
    return f"{SPRITE_HOST}/{name}"


def detail_payload(
    entity_id: int,
    name: str,
    *,
    artwork: Optional[str] = None,
    dream_world: Optional[str] = None,
    home: Optional[str] = None,
    front: Optional[str] = None,
    types=("grass",),
) -> Dict[str, Any]:
    return {
        "id": entity_id,
        "name": name,
        "types": [{"slot": i + 1, "type": {"name": t}} for i, t in enumerate(types)],
        "sprites": {
            "front_default": front,
            "other": {
                "official-artwork": {"front_default": artwork},
                "dream_world": {"front_default": dream_world},
                "home": {"front_default": home},
            },
        },
    }


class RecordingSleep:
    """Drop-in for ``time.sleep`` that records requested durations."""

    def __init__(self) -> None:
        self.calls: List[float] = []
        self._lock = threading.Lock()

    def __call__(self, seconds: float) -> None:
        with self._lock:
            self.calls.append(seconds)


class FakeApi:
    """Scripted upstream: each URL answers from a queue whose last reply repeats."""

    def __init__(self, base: str = API_BASE) -> None:
        self.base = base
        self.routes: Dict[str, List[Reply]] = {}
        self.calls: Counter = Counter()
        self._lock = threading.Lock()

    def add(self, url: str, *replies: Reply) -> None:
        self.routes[url] = list(replies)

    def add_json(self, url: str, payload: Any, status: int = 200) -> None:
        self.add(url, httpx.Response(status, content=json.dumps(payload).encode()))

    def add_entity(self, entity_id: int, name: str, **sprites: Any) -> None:
        self.add_json(f"{self.base}/pokemon/{entity_id}/", detail_payload(entity_id, name, **sprites))

    def add_image(self, url: str, content: bytes, status: int = 200) -> None:
        self.add(url, httpx.Response(status, content=content))

    def count(self, url: str) -> int:
        return self.calls[url]

    def handler(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        with self._lock:
            self.calls[url] += 1
            queue = self.routes.get(url)
            if not queue:
                return httpx.Response(404, content=b"not found")
            reply = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(reply, Exception):
            raise reply
        if callable(reply):
            return reply(request)
        # fresh copy per request; queued replies may be served more than once
        return httpx.Response(reply.status_code, headers=reply.headers, content=reply.content)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

