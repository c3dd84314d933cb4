"""
Sprite catalog: the embedded SQLite store and the loader that fills it.

The loader walks the metadata descriptors produced by the fetch pass and
upserts one row per entity id, each in its own transaction. Re-running it on
unchanged descriptors leaves the store unchanged.
"""

from __future__ import annotations

from Pokedex.SpriteDownload.catalog.loader import (
    CatalogLoader,
    LoadOutcome,
    LoadReport,
    LoadState,
    SkipReason,
)
from Pokedex.SpriteDownload.catalog.models import CatalogRow, StoredImage
from Pokedex.SpriteDownload.catalog.store import CatalogStore

__all__ = [
    "CatalogLoader",
    "CatalogRow",
    "CatalogStore",
    "LoadOutcome",
    "LoadReport",
    "LoadState",
    "SkipReason",
    "StoredImage",
]
