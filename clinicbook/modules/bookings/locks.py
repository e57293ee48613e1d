"""Mutual exclusion for the overlap-check-then-insert sequence.

Admission for one (practitioner, date) pair must not interleave with another
admission for the same pair, or two requests can both see a free slot and
both insert. ``SlotLocks.hold`` serializes them inside one process with an
``asyncio.Lock`` and across processes with a PostgreSQL advisory lock bound
to the current transaction (released on commit or rollback).
"""
import asyncio
import hashlib
import logging
import weakref
from contextlib import asynccontextmanager
from datetime import date

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from clinicbook.modules.directory.views import PractitionerRef

log = logging.getLogger(__name__)


def lock_key(ref: PractitionerRef, day: date) -> str:
    return f"booking:{ref.kind}:{ref.id}:{day.isoformat()}"


def advisory_key(key: str) -> int:
    # pg advisory locks take a signed bigint
    digest = hashlib.blake2b(key.encode(), digest_size=8).digest()
    return int.from_bytes(digest, "big", signed=True)


class SlotLocks:
    def __init__(self):
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    def _local(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    @asynccontextmanager
    async def hold(self, session: AsyncSession, ref: PractitionerRef, day: date):
        """Hold the (practitioner, date) lock; the caller commits before leaving the block."""
        key = lock_key(ref, day)
        async with self._local(key):
            if session.bind is not None and session.bind.dialect.name == "postgresql":
                await session.execute(text("SELECT pg_advisory_xact_lock(:k)"), {"k": advisory_key(key)})
            log.debug("Acquired slot lock %s", key)
            yield


slot_locks = SlotLocks()
