"""
Per-tick buffer ownership.

Every tick allocates a fresh frame copy, a resized image, a float image and
an input tensor. BufferScope releases whatever it tracked when the `with`
block exits, on the error path too, so nothing is carried into the next tick.
"""

import threading


class BufferLedger:
    """Counts acquisitions and releases so leaks and double releases show up."""

    def __init__(self):
        self._lock = threading.Lock()
        self._live = set()
        self.acquired = 0
        self.released = 0
        self.double_released = 0

    def acquire(self, buffer):
        with self._lock:
            self._live.add(id(buffer))
            self.acquired += 1

    def release(self, buffer):
        with self._lock:
            key = id(buffer)
            if key not in self._live:
                self.double_released += 1
                return
            self._live.discard(key)
            self.released += 1

    @property
    def outstanding(self):
        with self._lock:
            return len(self._live)


class BufferScope:
    """
    Context manager that owns buffers for the duration of a `with` block.

    Objects with a release() method (e.g. Frame) have it called; plain numpy
    arrays are released by dropping the scope's reference.
    """

    def __init__(self, ledger=None):
        self._ledger = ledger
        self._buffers = []

    def track(self, buffer):
        self._buffers.append(buffer)
        if self._ledger is not None:
            self._ledger.acquire(buffer)
        return buffer

    def release_all(self):
        # Reverse order: derived buffers go before the buffers they came from
        while self._buffers:
            buffer = self._buffers.pop()
            release = getattr(buffer, "release", None)
            if callable(release):
                release()
            if self._ledger is not None:
                self._ledger.release(buffer)

    def __len__(self):
        return len(self._buffers)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.release_all()
        return False
