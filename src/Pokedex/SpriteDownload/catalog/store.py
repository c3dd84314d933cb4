# === NAVMAP v1 ===
# {
#   "module": "Pokedex.SpriteDownload.catalog.store",
#   "purpose": "SQLite catalog store with WAL mode and idempotent upserts",
#   "sections": [
#     {
#       "id": "catalogstore",
#       "name": "CatalogStore",
#       "anchor": "class-catalogstore",
#       "kind": "class"
#     }
#   ]
# }
# === /NAVMAP ===

"""SQLite-based implementation of the sprite catalog store."""

from __future__ import annotations

import json
import logging
import sqlite3
import threading
from pathlib import Path
from typing import List, Optional

from Pokedex.SpriteDownload.catalog.models import CatalogRow, StoredImage
from Pokedex.SpriteDownload.errors import StoreOpenError

logger = logging.getLogger(__name__)

_UPSERT_SQL = """
INSERT INTO catalog (
    id, name, types, meta_json, image_blob, image_mime,
    thumb_blob, thumb_mime, checksum, image_size
)
VALUES (
    :id, :name, :types, :meta_json, :image_blob, :image_mime,
    :thumb_blob, :thumb_mime, :checksum, :image_size
)
ON CONFLICT(id) DO UPDATE SET
    name = excluded.name,
    types = excluded.types,
    meta_json = excluded.meta_json,
    image_blob = excluded.image_blob,
    image_mime = excluded.image_mime,
    thumb_blob = excluded.thumb_blob,
    thumb_mime = excluded.thumb_mime,
    checksum = excluded.checksum,
    image_size = excluded.image_size
"""

_SELECT_COLUMNS = (
    "id, name, types, meta_json, image_blob, image_mime, "
    "thumb_blob, thumb_mime, checksum, image_size, created_at"
)


class CatalogStore:
    """Owned handle on the SQLite catalog.

    The handle is constructed explicitly by whoever needs it (the loader CLI,
    the image endpoint) and closed by that owner, usually through ``with``.
    Every :meth:`upsert` is its own transaction, so an interrupted load keeps
    all rows committed before the interruption.
    """

    def __init__(self, path: str | Path, *, wal_mode: bool = True, synchronous: str = "NORMAL"):
        """Open (and if needed create) the catalog at ``path``.

        Raises:
            StoreOpenError: If the file cannot be created, opened or initialised.
        """
        self.path = Path(path)
        self.wal_mode = wal_mode
        self._lock = threading.RLock()

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.conn = sqlite3.connect(str(self.path), check_same_thread=False, timeout=30.0)
        except (OSError, sqlite3.Error) as e:
            raise StoreOpenError(f"Cannot open catalog at {self.path}: {e}") from e
        self.conn.row_factory = sqlite3.Row

        try:
            if wal_mode:
                self.conn.execute("PRAGMA journal_mode=WAL")
            self.conn.execute(f"PRAGMA synchronous={synchronous.upper()}")
            self._init_schema()
        except (OSError, sqlite3.Error) as e:
            self.conn.close()
            raise StoreOpenError(f"Cannot initialise catalog at {self.path}: {e}") from e
        logger.info("Opened SQLite catalog at %s", self.path)

    def _init_schema(self) -> None:
        """Load and execute schema.sql."""
        schema_path = Path(__file__).parent / "schema.sql"
        self.conn.executescript(schema_path.read_text(encoding="utf-8"))
        self.conn.commit()

    def upsert(self, row: CatalogRow) -> None:
        """Insert ``row`` or fully replace the mutable columns of an existing id."""
        params = {
            "id": row.id,
            "name": row.name,
            "types": json.dumps(list(row.types)),
            "meta_json": row.meta_json,
            "image_blob": sqlite3.Binary(row.image_blob),
            "image_mime": row.image_mime,
            "thumb_blob": sqlite3.Binary(row.thumb_blob) if row.thumb_blob is not None else None,
            "thumb_mime": row.thumb_mime if row.thumb_blob is not None else None,
            "checksum": row.checksum,
            "image_size": row.image_size if row.image_size is not None else len(row.image_blob),
        }
        with self._lock, self.conn:
            self.conn.execute(_UPSERT_SQL, params)

    def get(self, entity_id: int) -> Optional[CatalogRow]:
        with self._lock:
            cursor = self.conn.execute(
                f"SELECT {_SELECT_COLUMNS} FROM catalog WHERE id = ?", (entity_id,)
            )
            row = cursor.fetchone()
        return self._row_to_record(row) if row else None

    def get_image(self, entity_id: int) -> Optional[StoredImage]:
        """Return the blob, MIME type and checksum the image endpoint serves."""
        with self._lock:
            row = self.conn.execute(
                "SELECT image_blob, image_mime, checksum FROM catalog WHERE id = ?", (entity_id,)
            ).fetchone()
        if not row or row["image_blob"] is None:
            return None
        return StoredImage(blob=bytes(row["image_blob"]), mime=row["image_mime"], checksum=row["checksum"])

    def ids(self) -> List[int]:
        with self._lock:
            return [r[0] for r in self.conn.execute("SELECT id FROM catalog ORDER BY id")]

    def count(self) -> int:
        with self._lock:
            return int(self.conn.execute("SELECT COUNT(*) FROM catalog").fetchone()[0])

    def close(self) -> None:
        with self._lock:
            self.conn.close()

    def __enter__(self) -> "CatalogStore":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @staticmethod
    def _row_to_record(row: sqlite3.Row) -> CatalogRow:
        try:
            types = json.loads(row["types"] or "[]")
        except json.JSONDecodeError:
            types = []
        thumb = row["thumb_blob"]
        return CatalogRow(
            id=row["id"],
            name=row["name"],
            types=list(types),
            meta_json=row["meta_json"],
            image_blob=bytes(row["image_blob"]),
            image_mime=row["image_mime"],
            thumb_blob=bytes(thumb) if thumb is not None else None,
            thumb_mime=row["thumb_mime"],
            checksum=row["checksum"],
            image_size=row["image_size"],
            created_at=row["created_at"],
        )
