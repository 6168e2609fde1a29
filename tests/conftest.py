"""
Shared test fixtures and fakes for shapes_interop tests.
"""

import time
from collections import deque

import pytest

from shapes_interop import DomainParticipant, force_unlink, list_segments
from shapes_interop.exceptions import ReadError


def wait_for(fn, timeout=5.0, interval=0.01):
    """Poll fn() until it returns truthy or timeout expires."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        result = fn()
        if result:
            return result
        time.sleep(interval)
    return None


@pytest.fixture()
def participant():
    """A participant on a private domain; its segments are removed after
    the test."""
    dp = DomainParticipant(77)
    yield dp
    for name in list_segments("shapes_d77_"):
        force_unlink(name)


class FakeClock:
    def __init__(self, now=0.0):
        self.now = now

    def __call__(self):
        return self.now


class FakePoller:
    """Hands out a scripted sequence of wakeups."""

    def __init__(self, wakeups):
        self._wakeups = deque(wakeups)
        self.timeouts = []

    def poll(self, timeout=None):
        self.timeouts.append(timeout)
        return list(self._wakeups.popleft()) if self._wakeups else []


class FakeWriter:
    def __init__(self, fail_after=None):
        self.written = []
        self.statuses = deque()
        self._fail_after = fail_after

    def write(self, shape):
        from shapes_interop.exceptions import WriteError
        if self._fail_after is not None and len(self.written) >= self._fail_after:
            raise WriteError("transport gone")
        self.written.append(shape)

    def try_recv_status(self):
        return self.statuses.popleft() if self.statuses else None


class FakeReader:
    """Returns queued items; an exception instance in the queue is raised."""

    def __init__(self, items=()):
        self.items = deque(items)
        self.takes = 0
        self.statuses = deque()

    def take_next_sample(self):
        self.takes += 1
        if not self.items:
            return None
        item = self.items.popleft()
        if isinstance(item, ReadError):
            raise item
        return item

    def try_recv_status(self):
        return self.statuses.popleft() if self.statuses else None
