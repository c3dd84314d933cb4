# === NAVMAP v1 ===
# {
#   "module": "Pokedex.SpriteDownload.catalog.models",
#   "purpose": "Catalog row and load report value types",
#   "sections": [
#     {
#       "id": "catalogrow",
#       "name": "CatalogRow",
#       "anchor": "class-catalogrow",
#       "kind": "class"
#     },
#     {
#       "id": "storedimage",
#       "name": "StoredImage",
#       "anchor": "class-storedimage",
#       "kind": "class"
#     }
#   ]
# }
# === /NAVMAP ===

"""Row types for the sprite catalog."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional


@dataclass(frozen=True)
class CatalogRow:
    """One entity as stored in the ``catalog`` table."""

    id: int
    name: str
    meta_json: str
    image_blob: bytes = field(repr=False)
    image_mime: str
    types: List[str] = field(default_factory=list)
    thumb_blob: Optional[bytes] = field(default=None, repr=False)
    thumb_mime: Optional[str] = None
    checksum: Optional[str] = None
    image_size: Optional[int] = None
    created_at: Optional[str] = None


@dataclass(frozen=True)
class StoredImage:
    """What the image endpoint needs: the blob, its MIME type and an ETag source."""

    blob: bytes = field(repr=False)
    mime: str
    checksum: Optional[str] = None
