"""Wall-clock source shared by every timestamp the engine writes or compares.

All persisted times are integer unix seconds. Call ``clock.now()`` through the
module (not ``from ... import now``) so tests can move time by patching it.
"""

from __future__ import annotations

import time


def now() -> int:
    """Return the current unix time in whole seconds."""
    return int(time.time())
