import threading
from contextlib import contextmanager

_registry_lock = threading.Lock()
# key -> [lock, number of holders and waiters]
_entity_locks = {}


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but PostgreSQL honors it.
    """
    return query.with_for_update()


def _checkout(key):
    with _registry_lock:
        entry = _entity_locks.setdefault(key, [threading.Lock(), 0])
        entry[1] += 1
        return entry[0]


def _checkin(key):
    with _registry_lock:
        entry = _entity_locks[key]
        entry[1] -= 1
        if entry[1] == 0:
            del _entity_locks[key]


@contextmanager
def entity_lock(*keys: str):
    """
    Hold in-process locks for the given entity keys for the duration of the block.

    Keys are acquired in sorted order so two operations touching the same
    item and membership cannot deadlock each other. A key's lock is dropped
    from the registry once nobody holds or waits for it.
    """
    ordered = sorted(set(k for k in keys if k))
    locks = [(key, _checkout(key)) for key in ordered]
    acquired = []
    try:
        for key, lock in locks:
            lock.acquire()
            acquired.append(lock)
        yield
    finally:
        for lock in reversed(acquired):
            lock.release()
        for key, _ in locks:
            _checkin(key)


def item_key(serial_no: str) -> str:
    return f"item:{serial_no}"


def membership_key(membership_id: str) -> str:
    return f"membership:{membership_id}"
