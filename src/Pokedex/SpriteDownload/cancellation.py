# === NAVMAP v1 ===
# {
#   "module": "Pokedex.SpriteDownload.cancellation",
#   "purpose": "Cooperative cancellation token for the fetch pass",
#   "sections": [
#     {
#       "id": "cancellationtoken",
#       "name": "CancellationToken",
#       "anchor": "class-cancellationtoken",
#       "kind": "class"
#     }
#   ]
# }
# === /NAVMAP ===

"""Cooperative cancellation for the sprite fetch pass.

Worker threads are never interrupted. Each per-entity pipeline checks the
token before it starts, so a cancelled run stops picking up new ids while
the pipelines already in flight finish and persist their metadata.
"""

from __future__ import annotations

import threading
from typing import Optional


class CancellationToken:
    """Thread-safe cancellation token for cooperative task cancellation.

    Examples:
        >>> token = CancellationToken()
        >>> token.is_cancelled()
        False
        >>> token.cancel("operator requested stop")
        >>> token.is_cancelled(), token.reason
        (True, 'operator requested stop')
    """

    def __init__(self) -> None:
        self._is_cancelled = threading.Event()
        self._lock = threading.Lock()
        self._reason: Optional[str] = None

    def cancel(self, reason: Optional[str] = None) -> None:
        """Signal that cancellation has been requested."""
        with self._lock:
            if not self._is_cancelled.is_set():
                self._reason = reason
            self._is_cancelled.set()

    def is_cancelled(self) -> bool:
        """Return ``True`` once cancellation has been requested."""
        return self._is_cancelled.is_set()

    @property
    def reason(self) -> Optional[str]:
        return self._reason

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until cancelled or ``timeout`` elapses; return the cancelled state."""
        return self._is_cancelled.wait(timeout)
