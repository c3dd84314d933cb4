"""MIME sniffing, checksums and thumbnail generation."""

from __future__ import annotations

import hashlib
import io

import pytest
from PIL import Image
from sprite_fakes import make_jpeg, make_png

from Pokedex.SpriteDownload.artifacts import (
    GENERIC_MIME,
    ArtifactProcessor,
    ThumbnailError,
    detect_mime,
    extension_for_mime,
    make_thumbnail,
)

SVG = b'<?xml version="1.0"?>\n<svg xmlns="http://www.w3.org/2000/svg" width="10" height="10"/>'


@pytest.mark.parametrize(
    ("content", "expected"),
    [
        (make_png(), "image/png"),
        (make_jpeg(), "image/jpeg"),
        (b"GIF89a" + b"\x00" * 16, "image/gif"),
        (b"RIFF\x00\x00\x00\x00WEBPVP8 ", "image/webp"),
        (SVG, "image/svg+xml"),
        (b"<svg></svg>", "image/svg+xml"),
        (b"plain text payload", GENERIC_MIME),
        (b"", GENERIC_MIME),
    ],
)
def test_detect_mime_uses_magic_bytes(content, expected) -> None:
    assert detect_mime(content) == expected


def test_extension_for_mime() -> None:
    assert extension_for_mime("image/png") == "png"
    assert extension_for_mime("image/jpeg") == "jpg"
    assert extension_for_mime("image/svg+xml") == "svg"
    assert extension_for_mime("application/x-unknown") == "bin"


def test_thumbnail_fits_box_and_keeps_aspect() -> None:
    thumb = make_thumbnail(make_png(size=(475, 475)), box=(200, 200))

    with Image.open(io.BytesIO(thumb.content)) as img:
        assert img.format == "WEBP"
        assert img.size == (200, 200)
    assert thumb.mime == "image/webp"


def test_thumbnail_of_wide_image() -> None:
    thumb = make_thumbnail(make_jpeg(size=(400, 100)), box=(200, 200))
    with Image.open(io.BytesIO(thumb.content)) as img:
        assert img.size == (200, 50)


def test_thumbnail_rejects_undecodable_bytes() -> None:
    with pytest.raises(ThumbnailError):
        make_thumbnail(b"\x89PNG\r\n\x1a\n-truncated-")


def test_processor_keeps_going_without_thumbnail(caplog) -> None:
    corrupt = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32

    with caplog.at_level("WARNING"):
        artifact = ArtifactProcessor().process(corrupt, label="#1")

    assert artifact.thumbnail is None
    assert artifact.mime == "image/png"
    assert artifact.checksum == hashlib.sha256(corrupt).hexdigest()
    assert artifact.size_bytes == len(corrupt)
    assert any("Thumbnail skipped for #1" in r.getMessage() for r in caplog.records)


def test_processor_svg_has_no_thumbnail() -> None:
    artifact = ArtifactProcessor().process(SVG)
    assert artifact.mime == "image/svg+xml"
    assert artifact.thumbnail is None


def test_processor_builds_thumbnail_for_png() -> None:
    artifact = ArtifactProcessor(thumb_size=32, thumb_quality=50).process(make_png(size=(64, 64)))
    assert artifact.thumbnail is not None
    with Image.open(io.BytesIO(artifact.thumbnail.content)) as img:
        assert img.size == (32, 32)
