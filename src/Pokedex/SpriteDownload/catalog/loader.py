# === NAVMAP v1 ===
# {
#   "module": "Pokedex.SpriteDownload.catalog.loader",
#   "purpose": "Load pass reading metadata descriptors into the catalog",
#   "sections": [
#     {
#       "id": "loadstate",
#       "name": "LoadState",
#       "anchor": "class-loadstate",
#       "kind": "class"
#     },
#     {
#       "id": "skipreason",
#       "name": "SkipReason",
#       "anchor": "class-skipreason",
#       "kind": "class"
#     },
#     {
#       "id": "loadoutcome",
#       "name": "LoadOutcome",
#       "anchor": "class-loadoutcome",
#       "kind": "class"
#     },
#     {
#       "id": "loadreport",
#       "name": "LoadReport",
#       "anchor": "class-loadreport",
#       "kind": "class"
#     },
#     {
#       "id": "catalogloader",
#       "name": "CatalogLoader",
#       "anchor": "class-catalogloader",
#       "kind": "class"
#     }
#   ]
# }
# === /NAVMAP ===

"""Catalog loader: metadata descriptors → SQLite rows.

Each descriptor walks a small state machine::

    Pending ──read+validate──▶ MetaRead ──read files──▶ AssetsRead ──upsert──▶ Upserted
       │                          │
       └──▶ Skipped(invalid-json | no-id-or-name | invalid-record)
                                  └──▶ Skipped(missing-original)

An unexpected exception while handling one file is logged with reason
``error`` and the scan moves on; one bad descriptor never aborts a load. The
checksum and MIME type recorded by the fetch pass are trusted as-is; only
records that lack them get them derived from the original bytes.
"""

from __future__ import annotations

import enum
import json
import logging
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from Pokedex.SpriteDownload.artifacts import THUMBNAIL_MIME, detect_mime, sha256_hex
from Pokedex.SpriteDownload.catalog.models import CatalogRow
from Pokedex.SpriteDownload.catalog.store import CatalogStore
from Pokedex.SpriteDownload.errors import (
    MalformedRecordError,
    MetaDirectoryMissingError,
    MissingAssetError,
    describe_error,
)
from Pokedex.SpriteDownload.metadata import MetadataRecord, is_summary_file, read_metadata

LOGGER = logging.getLogger(__name__)


class LoadState(str, enum.Enum):
    PENDING = "pending"
    META_READ = "meta-read"
    ASSETS_READ = "assets-read"
    UPSERTED = "upserted"
    SKIPPED = "skipped"
    FAILED = "failed"


class SkipReason:
    """Machine-distinguishable reason codes written to loader logs."""

    INVALID_JSON = "invalid-json"
    NO_ID_OR_NAME = "no-id-or-name"
    INVALID_RECORD = "invalid-record"
    MISSING_ORIGINAL = "missing-original"
    ERROR = "error"


@dataclass
class LoadOutcome:
    path: Path
    state: LoadState
    entity_id: Optional[int] = None
    name: Optional[str] = None
    reason: Optional[str] = None
    detail: Optional[str] = None


@dataclass
class LoadReport:
    outcomes: List[LoadOutcome] = field(default_factory=list)

    @property
    def upserted(self) -> List[int]:
        return [o.entity_id for o in self.outcomes if o.state is LoadState.UPSERTED]

    @property
    def error_count(self) -> int:
        return sum(1 for o in self.outcomes if o.state is LoadState.FAILED)

    def skipped_by_reason(self) -> Dict[str, int]:
        return dict(Counter(o.reason for o in self.outcomes if o.state is LoadState.SKIPPED))


class CatalogLoader:
    """Upsert every valid descriptor of a metadata directory into a store."""

    def __init__(self, store: CatalogStore, *, asset_root: Optional[Path] = None) -> None:
        self.store = store
        self.asset_root = asset_root

    def _resolve(self, raw: str, meta_path: Path) -> Path:
        candidate = Path(raw).expanduser()
        if candidate.is_absolute():
            return candidate
        root = self.asset_root or meta_path.parent.parent
        return root / candidate

    def _read_assets(
        self, record: MetadataRecord, meta_path: Path
    ) -> Tuple[bytes, Optional[bytes]]:
        if not record.saved_original:
            raise MissingAssetError(f"Descriptor {meta_path} names no original image")
        original = self._resolve(record.saved_original, meta_path)
        if not original.is_file():
            raise MissingAssetError(
                f"Missing original image for #{record.id} {record.name}: {original}", path=original
            )
        image = original.read_bytes()

        thumb: Optional[bytes] = None
        if record.saved_thumb:
            thumb_path = self._resolve(record.saved_thumb, meta_path)
            try:
                thumb = thumb_path.read_bytes()
            except OSError as exc:
                LOGGER.info(
                    "Thumbnail unreadable for #%s (%s); storing without thumbnail",
                    record.id,
                    describe_error(exc),
                )
        return image, thumb

    def build_row(self, record: MetadataRecord, image: bytes, thumb: Optional[bytes]) -> CatalogRow:
        extra = record.model_extra or {}
        return CatalogRow(
            id=record.id,
            name=record.name,
            types=list(record.types),
            meta_json=json.dumps(record.to_json_dict(), ensure_ascii=False),
            image_blob=image,
            image_mime=record.image_mime or detect_mime(image),
            thumb_blob=thumb,
            thumb_mime=(extra.get("thumb_mime") or THUMBNAIL_MIME) if thumb is not None else None,
            checksum=record.checksum or sha256_hex(image),
            image_size=len(image),
        )

    def load_file(self, meta_path: Path) -> LoadOutcome:
        """Drive one descriptor through the state machine.

        Expected failures become ``SKIPPED`` outcomes; anything else propagates
        to :meth:`load_directory`.
        """

        try:
            record = read_metadata(meta_path)
        except MalformedRecordError as exc:
            LOGGER.warning("Skipping %s [%s]: %s", meta_path, exc.reason, describe_error(exc))
            return LoadOutcome(meta_path, LoadState.SKIPPED, reason=exc.reason, detail=str(exc))

        try:
            image, thumb = self._read_assets(record, meta_path)
        except MissingAssetError as exc:
            LOGGER.warning("Skipping #%s [%s]: %s", record.id, exc.reason, describe_error(exc))
            return LoadOutcome(
                meta_path,
                LoadState.SKIPPED,
                entity_id=record.id,
                name=record.name,
                reason=SkipReason.MISSING_ORIGINAL,
                detail=str(exc),
            )

        self.store.upsert(self.build_row(record, image, thumb))
        LOGGER.info(
            "Inserted/Updated #%s %s (bytes=%d, thumb=%s)",
            record.id,
            record.name,
            len(image),
            "yes" if thumb is not None else "no",
        )
        return LoadOutcome(meta_path, LoadState.UPSERTED, entity_id=record.id, name=record.name)

    def descriptor_paths(self, meta_dir: Path) -> List[Path]:
        return sorted(
            p for p in meta_dir.glob("*.json") if p.is_file() and not is_summary_file(p)
        )

    def load_directory(self, meta_dir: Path | str) -> LoadReport:
        """Load every descriptor under ``meta_dir``.

        Raises:
            MetaDirectoryMissingError: ``meta_dir`` does not exist.
        """

        directory = Path(meta_dir)
        if not directory.is_dir():
            raise MetaDirectoryMissingError(f"Meta directory does not exist: {directory}")

        paths = self.descriptor_paths(directory)
        LOGGER.info("Found %d meta files in %s", len(paths), directory)

        report = LoadReport()
        for path in paths:
            try:
                outcome = self.load_file(path)
            except Exception as exc:
                LOGGER.error("Error processing %s [%s]: %s", path.name, SkipReason.ERROR, describe_error(exc))
                LOGGER.debug("Traceback for %s", path, exc_info=True)
                outcome = LoadOutcome(
                    path, LoadState.FAILED, reason=SkipReason.ERROR, detail=describe_error(exc)
                )
            report.outcomes.append(outcome)

        LOGGER.info(
            "Load complete: %d upserted, %d skipped, %d errors",
            len(report.upserted),
            sum(report.skipped_by_reason().values()),
            report.error_count,
        )
        return report
