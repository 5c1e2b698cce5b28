"""
Shared fixtures: an in-memory connection and a fast-retrying device manager.
"""

import queue
import threading
import time
from collections.abc import Callable

import pytest

from relaypanel.device.manager import DeviceManager


class FakeConnection:
    """
    In-memory stand-in for a serial port / TCP link.

    Lines pushed with ``feed()`` are returned by ``readline()``; when none
    are queued ``readline()`` returns ``b""`` (idle).  ``fail()`` makes the
    next read raise.  Writes are recorded in ``written``.
    """

    def __init__(self, lines: tuple[bytes, ...] = (), write_error: Exception | None = None):
        self._inbox: queue.Queue = queue.Queue()
        for line in lines:
            self._inbox.put(line)
        self.written: list[bytes] = []
        self.write_error = write_error
        self.closed = threading.Event()
        self.reads = 0

    def feed(self, line: bytes) -> None:
        self._inbox.put(line)

    def fail(self, exc: Exception | None = None) -> None:
        self._inbox.put(exc or ConnectionResetError("connection reset by peer"))

    def readline(self) -> bytes:
        if self.closed.is_set():
            raise OSError("connection closed")
        try:
            item = self._inbox.get(timeout=0.02)
        except queue.Empty:
            return b""
        self.reads += 1
        if isinstance(item, Exception):
            raise item
        return item

    def write(self, data: bytes) -> int:
        if self.write_error is not None:
            raise self.write_error
        self.written.append(data)
        return len(data)

    def close(self) -> None:
        self.closed.set()


def _wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


@pytest.fixture
def wait_until() -> Callable[..., bool]:
    return _wait_until


@pytest.fixture
def fake_connection_cls() -> type[FakeConnection]:
    return FakeConnection


@pytest.fixture
def manager():
    mgr = DeviceManager(idle_retry=0.01, backoff_base=0.01, backoff_max=0.05)
    yield mgr
    mgr.close()
