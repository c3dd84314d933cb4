# === NAVMAP v1 ===
# {
#   "module": "Pokedex.SpriteDownload.artifacts",
#   "purpose": "Sprite MIME sniffing, checksums and WebP thumbnail rendering",
#   "sections": [
#     {
#       "id": "thumbnail",
#       "name": "Thumbnail",
#       "anchor": "class-thumbnail",
#       "kind": "class"
#     },
#     {
#       "id": "processedartifact",
#       "name": "ProcessedArtifact",
#       "anchor": "class-processedartifact",
#       "kind": "class"
#     },
#     {
#       "id": "thumbnailerror",
#       "name": "ThumbnailError",
#       "anchor": "class-thumbnailerror",
#       "kind": "class"
#     },
#     {
#       "id": "detect-mime",
#       "name": "detect_mime",
#       "anchor": "function-detect-mime",
#       "kind": "function"
#     },
#     {
#       "id": "looks-like-svg",
#       "name": "_looks_like_svg",
#       "anchor": "function-looks-like-svg",
#       "kind": "function"
#     },
#     {
#       "id": "extension-for-mime",
#       "name": "extension_for_mime",
#       "anchor": "function-extension-for-mime",
#       "kind": "function"
#     },
#     {
#       "id": "sha256-hex",
#       "name": "sha256_hex",
#       "anchor": "function-sha256-hex",
#       "kind": "function"
#     },
#     {
#       "id": "make-thumbnail",
#       "name": "make_thumbnail",
#       "anchor": "function-make-thumbnail",
#       "kind": "function"
#     },
#     {
#       "id": "artifactprocessor",
#       "name": "ArtifactProcessor",
#       "anchor": "class-artifactprocessor",
#       "kind": "class"
#     }
#   ]
# }
# === /NAVMAP ===

"""Payload classification, checksums and thumbnails for downloaded sprites."""

from __future__ import annotations

import hashlib
import io
import logging
from dataclasses import dataclass
from typing import Optional, Tuple

from PIL import Image, ImageOps, UnidentifiedImageError

LOGGER = logging.getLogger(__name__)

__all__ = [
    "GENERIC_MIME",
    "THUMBNAIL_MIME",
    "ArtifactProcessor",
    "ProcessedArtifact",
    "Thumbnail",
    "ThumbnailError",
    "detect_mime",
    "extension_for_mime",
    "make_thumbnail",
    "sha256_hex",
]

GENERIC_MIME = "application/octet-stream"
THUMBNAIL_MIME = "image/webp"

_EXTENSIONS = {
    "image/png": "png",
    "image/jpeg": "jpg",
    "image/gif": "gif",
    "image/webp": "webp",
    "image/bmp": "bmp",
    "image/tiff": "tif",
    "image/x-icon": "ico",
    "image/avif": "avif",
    "image/svg+xml": "svg",
}


@dataclass(frozen=True)
class Thumbnail:
    content: bytes
    mime: str = THUMBNAIL_MIME


@dataclass(frozen=True)
class ProcessedArtifact:
    """Everything derived from one original payload."""

    mime: str
    checksum: str
    size_bytes: int
    thumbnail: Optional[Thumbnail] = None


class ThumbnailError(Exception):
    """Raised when a payload cannot be decoded or re-encoded as a thumbnail."""


def detect_mime(content: bytes) -> str:
    """Classify ``content`` by its binary signature.

    File extensions and HTTP headers are never consulted.

    Examples:
        >>> detect_mime(b"\\x89PNG\\r\\n\\x1a\\n" + b"\\x00" * 8)
        'image/png'
        >>> detect_mime(b"hello")
        'application/octet-stream'
    """

    head = content[:64] if content else b""
    if head.startswith(b"\x89PNG\r\n\x1a\n"):
        return "image/png"
    if head.startswith(b"\xff\xd8\xff"):
        return "image/jpeg"
    if head.startswith((b"GIF87a", b"GIF89a")):
        return "image/gif"
    if head[:4] == b"RIFF" and head[8:12] == b"WEBP":
        return "image/webp"
    if head[4:8] == b"ftyp" and head[8:12] in (b"avif", b"avis"):
        return "image/avif"
    if head.startswith((b"II*\x00", b"MM\x00*")):
        return "image/tiff"
    if head.startswith(b"\x00\x00\x01\x00"):
        return "image/x-icon"
    if head.startswith(b"BM") and len(content) > 14:
        return "image/bmp"
    if _looks_like_svg(content):
        return "image/svg+xml"
    return GENERIC_MIME


def _looks_like_svg(content: bytes) -> bool:
    prefix = content[:1024].lstrip(b"\xef\xbb\xbf").lstrip().lower()
    if prefix.startswith(b"<svg"):
        return True
    return prefix.startswith((b"<?xml", b"<!doctype svg", b"<!--")) and b"<svg" in prefix


def extension_for_mime(mime: str) -> str:
    """Return the file extension (without dot) used for ``mime``; ``bin`` if unknown."""
    return _EXTENSIONS.get(mime, "bin")


def sha256_hex(content: bytes) -> str:
    return hashlib.sha256(content).hexdigest()


def make_thumbnail(
    content: bytes, *, box: Tuple[int, int] = (200, 200), quality: int = 75
) -> Thumbnail:
    """Fit ``content`` inside ``box`` (aspect preserved) and encode it as WebP.

    Raises:
        ThumbnailError: If Pillow cannot decode or encode the image.
    """

    try:
        with Image.open(io.BytesIO(content)) as img:
            img.load()
            has_alpha = "A" in img.getbands() or "transparency" in img.info
            converted = img.convert("RGBA" if has_alpha else "RGB")
            fitted = ImageOps.contain(converted, box)
            out = io.BytesIO()
            fitted.save(out, format="WEBP", quality=quality)
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as exc:
        raise ThumbnailError(f"Cannot create thumbnail: {exc}") from exc
    return Thumbnail(content=out.getvalue())


class ArtifactProcessor:
    """Derive MIME, checksum and an optional thumbnail from raw bytes."""

    def __init__(self, *, thumb_size: int = 200, thumb_quality: int = 75) -> None:
        self.box = (thumb_size, thumb_size)
        self.quality = thumb_quality

    def process(self, content: bytes, *, label: str = "") -> ProcessedArtifact:
        mime = detect_mime(content)
        checksum = sha256_hex(content)
        thumbnail: Optional[Thumbnail]
        try:
            thumbnail = make_thumbnail(content, box=self.box, quality=self.quality)
        except ThumbnailError as exc:
            LOGGER.warning("Thumbnail skipped%s (%s): %s", f" for {label}" if label else "", mime, exc)
            thumbnail = None
        return ProcessedArtifact(
            mime=mime, checksum=checksum, size_bytes=len(content), thumbnail=thumbnail
        )
