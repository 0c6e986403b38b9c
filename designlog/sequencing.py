"""
Per-record ordering of mutations.

Two edits to the same record may be issued before the first one completes. The
`RecordSequencer` makes them apply in the order they were issued:

- `guard(record_id, operation)` serializes operations on one record id through a
  FIFO lock and tracks them as pending while they wait or run.
- `commit(record_id)` stamps a record with a fresh ticket whenever its local copy changes.
- `ticket()` hands out monotonic numbers; a collection load takes one when it is
  issued and uses `committed_since` to keep records that changed locally while the
  load was in flight.
"""
# designlog/sequencing.py

import asyncio
import itertools
from contextlib import asynccontextmanager


class RecordSequencer:
    def __init__(self):
        self._tickets = itertools.count(1)
        self._locks = {}
        self._pending = {}
        self._committed = {}

    def ticket(self) -> int:
        return next(self._tickets)

    @asynccontextmanager
    async def guard(self, record_id, operation):
        """Runs the enclosed block exclusively for `record_id`, in issue order.

        Yields:
            int: The ticket of this operation.
        """
        ticket = self.ticket()
        lock = self._locks.setdefault(record_id, asyncio.Lock())
        self._pending.setdefault(record_id, []).append(operation)
        try:
            async with lock:
                yield ticket
        finally:
            operations = self._pending[record_id]
            operations.remove(operation)
            if not operations:
                del self._pending[record_id]
                # Locks bind to the running loop once contended, so idle ones are dropped.
                self._locks.pop(record_id, None)

    def commit(self, record_id) -> int:
        ticket = self.ticket()
        self._committed[record_id] = ticket
        return ticket

    def committed_since(self, record_id, ticket) -> bool:
        return self._committed.get(record_id, 0) > ticket

    def is_pending(self, record_id) -> bool:
        return record_id in self._pending

    def pending(self) -> dict:
        """Returns a snapshot of the pending operations, keyed by record id."""
        return {record_id: list(ops) for record_id, ops in self._pending.items()}

    def reset(self):
        """Forgets local commits, e.g. when the identity owning the collection changes."""
        self._committed.clear()
