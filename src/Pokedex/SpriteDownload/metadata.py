# === NAVMAP v1 ===
# {
#   "module": "Pokedex.SpriteDownload.metadata",
#   "purpose": "Versioned metadata descriptors, run layout and summary writer",
#   "sections": [
#     {
#       "id": "utc-timestamp",
#       "name": "utc_timestamp",
#       "anchor": "function-utc-timestamp",
#       "kind": "function"
#     },
#     {
#       "id": "entity-stem",
#       "name": "entity_stem",
#       "anchor": "function-entity-stem",
#       "kind": "function"
#     },
#     {
#       "id": "metadatarecord",
#       "name": "MetadataRecord",
#       "anchor": "class-metadatarecord",
#       "kind": "class"
#     },
#     {
#       "id": "outputlayout",
#       "name": "OutputLayout",
#       "anchor": "class-outputlayout",
#       "kind": "class"
#     },
#     {
#       "id": "metadatawriter",
#       "name": "MetadataWriter",
#       "anchor": "class-metadatawriter",
#       "kind": "class"
#     },
#     {
#       "id": "is-summary-file",
#       "name": "is_summary_file",
#       "anchor": "function-is-summary-file",
#       "kind": "function"
#     },
#     {
#       "id": "read-metadata",
#       "name": "read_metadata",
#       "anchor": "function-read-metadata",
#       "kind": "function"
#     }
#   ]
# }
# === /NAVMAP ===

"""Metadata descriptors: the contract between the fetch and load passes.

Each successfully fetched entity produces three files under the run root::

    originals/<paddedId>_<name>.<ext>
    thumbs/<paddedId>_<name>.webp        (absent when no thumbnail)
    meta/<paddedId>_<name>.json

The JSON descriptor is written last, so its presence implies the binaries it
points at were already persisted. Every run also appends one
``meta/summary_<epochMillis>.json`` listing each success and failure.

Descriptors are modelled by :class:`MetadataRecord`, a versioned schema that
is validated on read. Keys written by newer or older runs that this version
does not know about are preserved untouched.
"""

from __future__ import annotations

import json
import logging
import re
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, ClassVar, Dict, List, Mapping, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from Pokedex.SpriteDownload.artifacts import ProcessedArtifact, extension_for_mime
from Pokedex.SpriteDownload.errors import MalformedRecordError, OutputSetupError
from Pokedex.SpriteDownload.io_utils import atomic_write_bytes, atomic_write_json
from Pokedex.SpriteDownload.resolvers import ResolvedAsset

LOGGER = logging.getLogger(__name__)

SCHEMA_VERSION = 1
SUMMARY_PREFIX = "summary_"

_UNSAFE_NAME_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def utc_timestamp() -> str:
    """Return the current UTC time as ISO-8601 with a ``Z`` suffix."""
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def entity_stem(entity_id: int, name: str) -> str:
    """Return the deterministic file stem for an entity.

    Examples:
        >>> entity_stem(1, "bulbasaur")
        '001_bulbasaur'
        >>> entity_stem(1010, "iron/leaves")
        '1010_iron-leaves'
    """
    safe = _UNSAFE_NAME_CHARS.sub("-", name).strip("-.") or "unnamed"
    return f"{entity_id:03d}_{safe}"


class MetadataRecord(BaseModel):
    """Per-entity descriptor persisted as ``meta/<stem>.json``."""

    model_config: ClassVar[ConfigDict] = ConfigDict(extra="allow", populate_by_name=True)

    schema_version: int = Field(default=SCHEMA_VERSION)
    id: int = Field(ge=1)
    name: str = Field(min_length=1)
    types: List[str] = Field(default_factory=list)
    source_url: Optional[str] = None
    saved_original: Optional[str] = None
    saved_thumb: Optional[str] = None
    image_mime: Optional[str] = None
    checksum: Optional[str] = None
    byte_count: Optional[int] = Field(default=None, alias="bytes")
    timestamp: Optional[str] = None

    def to_json_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class OutputLayout:
    """Directory layout of one run's artifacts."""

    def __init__(self, root: Path | str) -> None:
        self.root = Path(root).expanduser().resolve()
        self.originals = self.root / "originals"
        self.thumbs = self.root / "thumbs"
        self.meta = self.root / "meta"

    def ensure(self) -> "OutputLayout":
        """Create the layout; failure is fatal for the run."""
        for directory in (self.root, self.originals, self.thumbs, self.meta):
            try:
                directory.mkdir(parents=True, exist_ok=True)
            except OSError as exc:
                raise OutputSetupError(f"Cannot create output directory {directory}: {exc}") from exc
        return self

    def original_path(self, entity_id: int, name: str, mime: str) -> Path:
        return self.originals / f"{entity_stem(entity_id, name)}.{extension_for_mime(mime)}"

    def thumb_path(self, entity_id: int, name: str) -> Path:
        return self.thumbs / f"{entity_stem(entity_id, name)}.webp"

    def meta_path(self, entity_id: int, name: str) -> Path:
        return self.meta / f"{entity_stem(entity_id, name)}.json"


class MetadataWriter:
    """Persist sprites, thumbnails, descriptors and run summaries."""

    def __init__(self, layout: OutputLayout) -> None:
        self.layout = layout

    def write(self, asset: ResolvedAsset, artifact: ProcessedArtifact) -> MetadataRecord:
        descriptor = asset.descriptor
        original = self.layout.original_path(descriptor.id, descriptor.name, artifact.mime)
        atomic_write_bytes(original, asset.content)

        thumb: Optional[Path] = None
        if artifact.thumbnail is not None:
            thumb = self.layout.thumb_path(descriptor.id, descriptor.name)
            atomic_write_bytes(thumb, artifact.thumbnail.content)

        record = MetadataRecord(
            id=descriptor.id,
            name=descriptor.name,
            types=list(descriptor.types),
            source_url=asset.source_url,
            saved_original=str(original),
            saved_thumb=str(thumb) if thumb is not None else None,
            image_mime=artifact.mime,
            checksum=artifact.checksum,
            byte_count=artifact.size_bytes,
            timestamp=utc_timestamp(),
        )
        atomic_write_json(self.layout.meta_path(descriptor.id, descriptor.name), record.to_json_dict())
        LOGGER.info(
            "Saved #%s %s: %s (%d bytes), thumb %s",
            descriptor.id,
            descriptor.name,
            original.name,
            artifact.size_bytes,
            thumb.name if thumb is not None else "-",
        )
        return record

    def write_summary(self, results: Sequence[Mapping[str, Any]]) -> Path:
        """Write a new ``summary_<epochMillis>.json``; existing summaries are never replaced."""

        millis = int(time.time() * 1000)
        path = self.layout.meta / f"{SUMMARY_PREFIX}{millis}.json"
        suffix = 1
        while path.exists():
            path = self.layout.meta / f"{SUMMARY_PREFIX}{millis}_{suffix}.json"
            suffix += 1
        atomic_write_json(path, {"createdAt": utc_timestamp(), "results": list(results)})
        return path


def is_summary_file(path: Path) -> bool:
    return path.name.startswith(SUMMARY_PREFIX)


def read_metadata(path: Path) -> MetadataRecord:
    """Read and validate the descriptor at ``path``.

    Raises:
        MalformedRecordError: ``reason`` is ``invalid-json`` when the file does
            not parse into an object, ``no-id-or-name`` when the required
            fields are absent, ``invalid-record`` for other schema violations.
    """

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise MalformedRecordError(
            f"Invalid JSON in {path}: {exc}", path=path, reason="invalid-json"
        ) from exc
    if not isinstance(data, dict):
        raise MalformedRecordError(
            f"Descriptor {path} is not a JSON object", path=path, reason="invalid-json"
        )

    raw_id = data.get("id")
    raw_name = data.get("name")
    if not raw_id or not raw_name:
        raise MalformedRecordError(
            f"Descriptor {path} has no id/name", path=path, reason="no-id-or-name"
        )

    try:
        return MetadataRecord.model_validate(data)
    except ValidationError as exc:
        bad_fields = {str(err["loc"][0]) for err in exc.errors() if err.get("loc")}
        reason = "no-id-or-name" if bad_fields & {"id", "name"} else "invalid-record"
        raise MalformedRecordError(
            f"Descriptor {path} failed validation: {exc.error_count()} error(s) in "
            f"{', '.join(sorted(bad_fields)) or 'record'}",
            path=path,
            reason=reason,
        ) from exc
