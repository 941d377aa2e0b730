"""Wait registry: lets long-poll callers block until an id is paid.

Each key maps to a one-shot broadcast slot. ``signal`` wakes every current
waiter of the key; with ``sticky=True`` (the default) the value is also
cached so later registrations return it immediately instead of waiting.
Unresolved slots disappear as soon as their last waiter leaves (timeout,
cancellation, or normal exit), so abandoned long-polls leave nothing behind.

The registry is process-local and holds no durable state: after a restart
it starts empty and paid state is read from the store.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

from lightning_charge.utils import clock

if TYPE_CHECKING:
    from collections.abc import Iterator

logger = logging.getLogger(__name__)


class _Slot:
    __slots__ = ("event", "resolved_at", "value", "waiters")

    def __init__(self) -> None:
        self.event = asyncio.Event()
        self.value: Any = None
        self.resolved_at: int | None = None
        self.waiters = 0

    @property
    def resolved(self) -> bool:
        return self.event.is_set()


class Waiter:
    """Handle returned by :meth:`WaitRegistry.subscribe`."""

    def __init__(self, slot: _Slot) -> None:
        self._slot = slot

    @property
    def resolved(self) -> bool:
        """Whether a value has already been signalled."""
        return self._slot.resolved

    async def wait(self, timeout: float | None) -> Any | None:
        """Wait up to *timeout* seconds for the signal.

        Returns:
            The signalled value, or ``None`` on timeout.
        """
        if not self._slot.resolved:
            if timeout is not None and timeout <= 0:
                return None
            try:
                async with asyncio.timeout(timeout):
                    await self._slot.event.wait()
            except TimeoutError:
                return None
        return self._slot.value


class WaitRegistry:
    """In-memory registry of payment waiters keyed by invoice/offer id.

    Usage::

        registry = WaitRegistry()
        paid = await registry.register(invoice_id, timeout=30)   # elsewhere:
        registry.signal(invoice_id, snapshot)
    """

    def __init__(self) -> None:
        self._slots: dict[str, _Slot] = {}

    def __len__(self) -> int:
        return len(self._slots)

    def __contains__(self, key: object) -> bool:
        return key in self._slots

    @property
    def pending_count(self) -> int:
        """Number of callers currently blocked on an unresolved key."""
        return sum(s.waiters for s in self._slots.values() if not s.resolved)

    @contextmanager
    def subscribe(self, key: str) -> Iterator[Waiter]:
        """Register interest in *key* for the duration of the block.

        Subscribing before re-reading the store closes the gap in which a
        payment could be signalled between the read and the wait.
        """
        slot = self._slots.get(key)
        if slot is None:
            slot = _Slot()
            self._slots[key] = slot
        slot.waiters += 1
        try:
            yield Waiter(slot)
        finally:
            slot.waiters -= 1
            if slot.waiters == 0 and not slot.resolved and self._slots.get(key) is slot:
                del self._slots[key]

    async def register(self, key: str, timeout: float | None) -> Any | None:
        """Wait for *key* to be signalled, at most *timeout* seconds.

        Returns the signalled value, or ``None`` on timeout. Keys already
        resolved return their cached value immediately.
        """
        with self.subscribe(key) as waiter:
            return await waiter.wait(timeout)

    def signal(self, key: str, value: Any, *, sticky: bool = True) -> int:
        """Resolve *key* with *value*, waking every current waiter.

        The first sticky signal for a key wins; repeated signals are ignored.

        Returns:
            The number of waiters woken.
        """
        slot = self._slots.get(key)
        if slot is not None and slot.resolved:
            logger.debug("Ignoring repeated signal for %s", key)
            return 0
        if slot is None:
            if not sticky:
                return 0
            slot = _Slot()
            self._slots[key] = slot

        woken = slot.waiters
        slot.value = value
        slot.resolved_at = clock.now()
        slot.event.set()
        if not sticky:
            # Current waiters keep their slot reference; new ones start fresh
            del self._slots[key]
        logger.debug("Signalled %s to %d waiter(s)", key, woken)
        return woken

    def clear(self, key: str) -> None:
        """Forget a resolved key, e.g. after its invoice was deleted."""
        slot = self._slots.get(key)
        if slot is not None and (slot.resolved or slot.waiters == 0):
            del self._slots[key]

    def prune(self, max_age: int) -> int:
        """Drop cached resolutions older than *max_age* seconds.

        Returns:
            The number of keys removed.
        """
        cutoff = clock.now() - max_age
        stale = [
            key
            for key, slot in self._slots.items()
            if slot.resolved and slot.waiters == 0 and (slot.resolved_at or 0) < cutoff
        ]
        for key in stale:
            del self._slots[key]
        return len(stale)
