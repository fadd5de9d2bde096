"""Serialisation of check-then-act sequences.

Capacity checks, uniqueness checks, staff linking and admin-quorum counts all
read state and then write based on it. ``tenant_lock`` makes concurrent
callers for the same key take turns, and the lock is held until the
session's transaction commits or rolls back, so the next caller reads the
previous caller's committed write:

- PostgreSQL: ``pg_advisory_xact_lock`` keyed by a stable 64-bit hash of
  (scope, key).
- Other dialects (SQLite in tests, local runs): a per-key in-process
  ``asyncio.Lock``, released from the session's ``after_transaction_end``
  event. Only covers a single worker; the unique indexes in models.py remain
  the backstop across processes. Take the lock before reading, since a
  SQLite read transaction opened earlier blocks the holder's commit.

Both paths are reentrant within one session: a bulk operation may lock the
same key once per item.

Usage:
    async with tenant_lock(db, "class", class_id):
        ...check capacity, then insert...
"""

import asyncio
import hashlib
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy import event, text
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session, SessionTransaction

_local_locks: dict[tuple[str, str], asyncio.Lock] = {}
_locks_lock = asyncio.Lock()  # Protects _local_locks dict itself

# Session.info key: locks this session holds until its transaction ends
_HELD_LOCKS = "tenant_locks"


def advisory_key(scope: str, key: str) -> int:
    """Stable signed 64-bit key for pg_advisory_xact_lock."""
    digest = hashlib.blake2b(f"{scope}:{key}".encode(), digest_size=8).digest()
    return int.from_bytes(digest, "big", signed=True)


async def _get_local_lock(scope: str, key: str) -> asyncio.Lock:
    async with _locks_lock:
        lock = _local_locks.get((scope, key))
        if lock is None:
            lock = _local_locks[(scope, key)] = asyncio.Lock()
        return lock


def _release_held_locks(session: Session, transaction: SessionTransaction) -> None:
    # Savepoints end inside the outer transaction; only the outermost releases.
    if transaction.parent is not None:
        return
    for lock in session.info.pop(_HELD_LOCKS, {}).values():
        lock.release()


def _dialect_name(db: AsyncSession) -> str:
    bind = db.get_bind()
    return bind.dialect.name if bind else ""


@asynccontextmanager
async def tenant_lock(db: AsyncSession, scope: str, key: str) -> AsyncIterator[None]:
    """Hold an exclusive lock on (scope, key) until ``db``'s transaction ends."""
    if _dialect_name(db) == "postgresql":
        await db.execute(
            text("SELECT pg_advisory_xact_lock(:key)"),
            {"key": advisory_key(scope, key)},
        )
        yield
        return

    session = db.sync_session
    if (scope, key) not in session.info.get(_HELD_LOCKS, {}):
        lock = await _get_local_lock(scope, key)
        await lock.acquire()
        if not event.contains(session, "after_transaction_end", _release_held_locks):
            event.listen(session, "after_transaction_end", _release_held_locks)
        if not session.in_transaction():
            session.begin()
        session.info.setdefault(_HELD_LOCKS, {})[(scope, key)] = lock
    yield
