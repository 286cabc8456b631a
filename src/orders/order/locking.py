"""Per-order serialisation of read-modify-write commands.

Commands against the same order never interleave; commands against
different orders run in parallel.
"""

import threading
from contextlib import contextmanager

from protean.utils.globals import current_domain

_registry_lock = threading.Lock()
_locks: dict[str, list] = {}  # order_id -> [lock, waiters]


@contextmanager
def order_lock(order_id: str):
    key = str(order_id)
    with _registry_lock:
        entry = _locks.setdefault(key, [threading.Lock(), 0])
        entry[1] += 1
    try:
        with entry[0]:
            yield
    finally:
        with _registry_lock:
            entry[1] -= 1
            if entry[1] == 0:
                del _locks[key]


def process_for_order(command):
    """Process ``command`` synchronously while holding its order's lock.

    The lock spans the whole unit of work, so the commit happens before the
    next command for the same order reads the aggregate.
    """
    with order_lock(command.order_id):
        return current_domain.process(command, asynchronous=False)
