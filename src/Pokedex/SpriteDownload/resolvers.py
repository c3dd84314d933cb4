# === NAVMAP v1 ===
# {
#   "module": "Pokedex.SpriteDownload.resolvers",
#   "purpose": "Entity detail parsing, sprite candidate fallback and list paging",
#   "sections": [
#     {
#       "id": "entitydescriptor",
#       "name": "EntityDescriptor",
#       "anchor": "class-entitydescriptor",
#       "kind": "class"
#     },
#     {
#       "id": "cataloglisting",
#       "name": "CatalogListing",
#       "anchor": "class-cataloglisting",
#       "kind": "class"
#     },
#     {
#       "id": "resolvedasset",
#       "name": "ResolvedAsset",
#       "anchor": "class-resolvedasset",
#       "kind": "class"
#     },
#     {
#       "id": "dig",
#       "name": "_dig",
#       "anchor": "function-dig",
#       "kind": "function"
#     },
#     {
#       "id": "extract-candidates",
#       "name": "extract_candidates",
#       "anchor": "function-extract-candidates",
#       "kind": "function"
#     },
#     {
#       "id": "extract-types",
#       "name": "extract_types",
#       "anchor": "function-extract-types",
#       "kind": "function"
#     },
#     {
#       "id": "id-from-resource-url",
#       "name": "id_from_resource_url",
#       "anchor": "function-id-from-resource-url",
#       "kind": "function"
#     },
#     {
#       "id": "spriteresolver",
#       "name": "SpriteResolver",
#       "anchor": "class-spriteresolver",
#       "kind": "class"
#     }
#   ]
# }
# === /NAVMAP ===

"""Sprite resolution against the PokeAPI detail and list endpoints.

``SpriteResolver.resolve(entity_id)`` performs one detail request, derives an
ordered list of candidate image URLs (official artwork first, the plain front
sprite last) and walks it until one candidate downloads. The MIME type of the
winning payload is sniffed from its bytes; neither the URL suffix nor the
server's ``Content-Type`` is trusted.
"""

from __future__ import annotations

import logging
import random
import re
import time
from dataclasses import dataclass, field
from typing import Any, Callable, List, Mapping, Optional, Sequence, Tuple

from Pokedex.SpriteDownload.artifacts import detect_mime
from Pokedex.SpriteDownload.errors import (
    ExhaustedCandidatesError,
    FetchError,
    MalformedPayloadError,
    describe_error,
)
from Pokedex.SpriteDownload.networking import BoundedFetcher

LOGGER = logging.getLogger(__name__)

# Preferred → fallback. Each entry is a path into the ``sprites`` object.
CANDIDATE_PATHS: Tuple[Tuple[str, ...], ...] = (
    ("other", "official-artwork", "front_default"),
    ("other", "dream_world", "front_default"),
    ("other", "home", "front_default"),
    ("front_default",),
)

_ID_FROM_URL = re.compile(r"/(\d+)/?$")


@dataclass(frozen=True)
class EntityDescriptor:
    """One catalog entity as described by the detail endpoint."""

    id: int
    name: str
    types: Tuple[str, ...] = ()
    source_candidates: Tuple[str, ...] = ()


@dataclass(frozen=True)
class CatalogListing:
    """One row of the paginated list endpoint."""

    id: int
    name: str
    url: str


@dataclass(frozen=True)
class ResolvedAsset:
    """Payload of the first candidate that downloaded successfully."""

    descriptor: EntityDescriptor
    content: bytes = field(repr=False)
    mime: str
    source_url: str

    @property
    def size_bytes(self) -> int:
        return len(self.content)


def _dig(mapping: Any, path: Sequence[str]) -> Any:
    current = mapping
    for key in path:
        if not isinstance(current, Mapping):
            return None
        current = current.get(key)
    return current


def extract_candidates(sprites: Optional[Mapping[str, Any]]) -> List[str]:
    """Return candidate image URLs in priority order, without blanks or duplicates.

    Examples:
        >>> extract_candidates({"front_default": "https://x/1.png", "other": {}})
        ['https://x/1.png']
        >>> extract_candidates(None)
        []
    """

    seen = set()
    candidates: List[str] = []
    for path in CANDIDATE_PATHS:
        value = _dig(sprites or {}, path)
        if not isinstance(value, str):
            continue
        url = value.strip()
        if not url or url in seen:
            continue
        seen.add(url)
        candidates.append(url)
    return candidates


def extract_types(payload: Mapping[str, Any]) -> Tuple[str, ...]:
    """Return type names ordered by slot, e.g. ``("grass", "poison")``."""

    slots = payload.get("types") or []
    named = []
    for slot in slots:
        name = _dig(slot, ("type", "name"))
        if isinstance(name, str) and name:
            order = slot.get("slot", len(named) + 1) if isinstance(slot, Mapping) else 0
            named.append((order, name))
    return tuple(name for _, name in sorted(named, key=lambda item: item[0]))


def id_from_resource_url(url: str) -> Optional[int]:
    match = _ID_FROM_URL.search(url or "")
    return int(match.group(1)) if match else None


class SpriteResolver:
    """Resolve entity ids into downloaded sprite payloads."""

    def __init__(
        self,
        fetcher: BoundedFetcher,
        *,
        api_base: str = "https://pokeapi.co/api/v2",
        candidate_delay_s: float = 0.2,
        candidate_jitter_s: float = 0.2,
        list_page_size: int = 151,
        sleep: Callable[[float], None] = time.sleep,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.fetcher = fetcher
        self.api_base = api_base.rstrip("/")
        self.candidate_delay_s = candidate_delay_s
        self.candidate_jitter_s = candidate_jitter_s
        self.list_page_size = list_page_size
        self._sleep = sleep
        self._rng = rng or random.Random()

    def detail_url(self, entity_id: int) -> str:
        return f"{self.api_base}/pokemon/{entity_id}/"

    def describe(self, entity_id: int) -> EntityDescriptor:
        """Fetch the detail payload for ``entity_id`` and build its descriptor."""

        url = self.detail_url(entity_id)
        payload = self.fetcher.fetch_json(url)
        if not isinstance(payload, Mapping):
            raise MalformedPayloadError(f"Detail payload for #{entity_id} is not an object", url=url)
        raw_id = payload.get("id")
        name = payload.get("name")
        if isinstance(raw_id, bool) or not isinstance(raw_id, int) or not isinstance(name, str):
            raise MalformedPayloadError(f"Detail payload for #{entity_id} lacks id/name", url=url)
        return EntityDescriptor(
            id=raw_id,
            name=name,
            types=extract_types(payload),
            source_candidates=tuple(extract_candidates(payload.get("sprites"))),
        )

    def _polite_pause(self) -> None:
        delay = self.candidate_delay_s
        if self.candidate_jitter_s > 0:
            delay += self._rng.uniform(0.0, self.candidate_jitter_s)
        if delay > 0:
            self._sleep(delay)

    def download(self, descriptor: EntityDescriptor) -> ResolvedAsset:
        """Try ``descriptor``'s candidates in order and return the first success."""

        last_error: Optional[BaseException] = None
        for url in descriptor.source_candidates:
            try:
                content = self.fetcher.fetch(url)
            except FetchError as exc:
                last_error = exc
                LOGGER.warning(
                    "Failed candidate %s for #%s: %s. Trying fallback if any.",
                    url,
                    descriptor.id,
                    describe_error(exc),
                )
                self._polite_pause()
                continue
            return ResolvedAsset(
                descriptor=descriptor,
                content=content,
                mime=detect_mime(content),
                source_url=url,
            )

        raise ExhaustedCandidatesError(
            descriptor.id,
            last_error=last_error,
            attempted=len(descriptor.source_candidates),
        )

    def resolve(self, entity_id: int) -> ResolvedAsset:
        """Describe ``entity_id`` and download its sprite.

        Raises:
            FetchError: The detail request failed.
            ExhaustedCandidatesError: No candidate URL produced a payload.
        """
        return self.download(self.describe(entity_id))

    def list_entities(self, limit: int, offset: int = 0) -> List[CatalogListing]:
        """Read up to ``limit`` rows of the list endpoint, following ``next`` links."""

        if limit < 1:
            return []
        page_size = min(self.list_page_size, limit)
        url: Optional[str] = f"{self.api_base}/pokemon?limit={page_size}&offset={offset}"
        listings: List[CatalogListing] = []
        while url and len(listings) < limit:
            payload = self.fetcher.fetch_json(url)
            results = payload.get("results") if isinstance(payload, Mapping) else None
            if not isinstance(results, list):
                raise MalformedPayloadError("List payload lacks a results array", url=url)
            for row in results:
                if not isinstance(row, Mapping):
                    continue
                entity_url = row.get("url")
                name = row.get("name")
                entity_id = id_from_resource_url(entity_url) if isinstance(entity_url, str) else None
                if entity_id is None or not isinstance(name, str):
                    LOGGER.debug("Ignoring malformed list row %r", row)
                    continue
                listings.append(CatalogListing(id=entity_id, name=name, url=entity_url))
                if len(listings) >= limit:
                    break
            next_url = payload.get("next")
            url = next_url if isinstance(next_url, str) and next_url else None
        return listings
