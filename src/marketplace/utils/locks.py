"""In-process lock registry serializing work on shared keys.

Keys (product ids, order ids, the order-number sequence) hash onto a fixed
set of re-entrant lock stripes. ``hold`` acquires every stripe a unit of work
touches in ascending stripe order, so two callers can never wait on each
other in a cycle.
"""

import threading
import zlib
from contextlib import contextmanager


class KeyedLocks:
    def __init__(self, stripes: int = 64):
        self._locks = [threading.RLock() for _ in range(stripes)]

    def _stripe(self, key: str) -> int:
        return zlib.crc32(str(key).encode("utf-8")) % len(self._locks)

    @contextmanager
    def hold(self, *keys: str):
        """Hold the locks guarding ``keys`` for the duration of the block."""
        stripes = sorted({self._stripe(key) for key in keys if key is not None})
        acquired = []
        try:
            for stripe in stripes:
                self._locks[stripe].acquire()
                acquired.append(stripe)
            yield
        finally:
            for stripe in reversed(acquired):
                self._locks[stripe].release()


# Shared by every lifecycle entry point in this process
locks = KeyedLocks()


def product_key(product_id) -> str:
    return f"product:{product_id}"


def order_key(order_id) -> str:
    return f"order:{order_id}"


def vendor_key(vendor_id) -> str:
    return f"vendor:{vendor_id}"


ORDER_NUMBER_KEY = "order-number"
