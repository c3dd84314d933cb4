# === NAVMAP v1 ===
# {
#   "module": "Pokedex.SpriteDownload.io_utils",
#   "purpose": "Atomic file writes used by the artifact writers",
#   "sections": [
#     {
#       "id": "atomic-write-bytes",
#       "name": "atomic_write_bytes",
#       "anchor": "function-atomic-write-bytes",
#       "kind": "function"
#     },
#     {
#       "id": "atomic-write-json",
#       "name": "atomic_write_json",
#       "anchor": "function-atomic-write-json",
#       "kind": "function"
#     }
#   ]
# }
# === /NAVMAP ===

"""Atomic file writes for run artifacts.

Metadata descriptors, sprites and thumbnails are written with a temporary
file + fsync + ``os.replace`` pattern. A descriptor either exists with its
full contents or not at all, so the catalog loader never reads a torn file
just because its name is present.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Union

__all__ = ["atomic_write_bytes", "atomic_write_json"]

logger = logging.getLogger(__name__)

PathLike = Union[str, "os.PathLike[str]"]


def atomic_write_bytes(dest_path: PathLike, payload: bytes, *, fsync_dir: bool = True) -> int:
    """Write ``payload`` to ``dest_path`` atomically and return the byte count.

    Args:
        dest_path: Final location. Parent directories are created if missing.
        payload: Bytes to persist.
        fsync_dir: Also fsync the directory so the rename survives a crash.

    Raises:
        OSError: If file I/O fails (permission denied, disk full, etc.). The
            temporary file is removed before the error propagates.
    """
    dest = Path(dest_path)
    dest_dir = dest.parent
    dest_dir.mkdir(parents=True, exist_ok=True)

    fd, tmp_path = tempfile.mkstemp(dir=str(dest_dir), prefix=".part-", suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(payload)
            f.flush()
            os.fsync(f.fileno())

        os.replace(tmp_path, dest)

        if fsync_dir and hasattr(os, "O_DIRECTORY"):
            dir_fd = os.open(str(dest_dir), os.O_DIRECTORY)
            try:
                os.fsync(dir_fd)
            finally:
                os.close(dir_fd)
    except BaseException:
        try:
            os.unlink(tmp_path)
        except FileNotFoundError:
            pass
        raise

    logger.debug("Wrote %s (%d bytes)", dest, len(payload))
    return len(payload)


def atomic_write_json(dest_path: PathLike, data: Any) -> int:
    """Serialise ``data`` as indented UTF-8 JSON and write it atomically."""
    text = json.dumps(data, indent=2, ensure_ascii=False) + "\n"
    return atomic_write_bytes(dest_path, text.encode("utf-8"))
