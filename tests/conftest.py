"""
Pytest Configuration

Puts ``src`` on ``sys.path`` so the suite runs against the working tree
without an editable install, and resets the ``Pokedex`` logger between tests
so handlers installed by CLI invocations do not leak into ``caplog``.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import pytest

# --- Globals ---

ROOT = Path(__file__).resolve().parent.parent
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))


# --- Fixtures ---


@pytest.fixture(autouse=True)
def _reset_pokedex_logger():
    yield
    logger = logging.getLogger("Pokedex")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.NOTSET)
    logger.propagate = True
