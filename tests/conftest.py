"""Shared fakes and fixtures for Kubestern tests."""

import io
import queue
import threading
import time
from typing import Callable, Dict, List

import pytest

from kubestern.models import InstanceKey, LogOptions
from kubestern.output import OutputWriter
from kubestern.settings import resolve_settings

_END = object()


class FakeLogRead:
    """Queue-backed following read: blocks until lines are pushed or it is closed."""

    def __init__(self, lines=(), end: bool = False):
        self._queue: "queue.Queue" = queue.Queue()
        self.closed = threading.Event()
        for line in lines:
            self.push(line)
        if end:
            self.end()

    def push(self, line: str) -> None:
        self._queue.put(line)

    def end(self) -> None:
        self._queue.put(_END)

    def fail(self, error: Exception) -> None:
        self._queue.put(error)

    def __iter__(self):
        while True:
            item = self._queue.get()
            if item is _END:
                return
            if isinstance(item, Exception):
                raise item
            yield item

    def close(self) -> None:
        self.closed.set()
        self._queue.put(_END)


class FakeLogSource:
    """Log source returning scripted reads (or raising scripted errors) per instance."""

    def __init__(self):
        self._lock = threading.Lock()
        self._scripts: Dict[InstanceKey, List] = {}
        self.opened: List = []
        self.reads: Dict[InstanceKey, List[FakeLogRead]] = {}

    def script(self, key: InstanceKey, *items) -> None:
        self._scripts.setdefault(key, []).extend(items)

    def open_count(self, key: InstanceKey) -> int:
        with self._lock:
            return sum(1 for k, _ in self.opened if k == key)

    def open_following_read(self, key: InstanceKey, options: LogOptions):
        with self._lock:
            self.opened.append((key, options))
            script = self._scripts.get(key)
            item = script.pop(0) if script else FakeLogRead()
        if isinstance(item, Exception):
            raise item
        with self._lock:
            self.reads.setdefault(key, []).append(item)
        return item


class FakeInstanceSource:
    """Discovery returning scripted results; the last result repeats forever."""

    def __init__(self, *results):
        self._results = list(results)
        self.calls = 0

    def list_instances(self, namespaces, pattern):
        self.calls += 1
        if len(self._results) > 1:
            result = self._results.pop(0)
        else:
            result = self._results[0]
        if isinstance(result, Exception):
            raise result
        return [k for k in result if pattern.search(k.name)]


def wait_for(predicate: Callable[[], bool], timeout: float = 2.0, interval: float = 0.01) -> bool:
    """Poll ``predicate`` until it is true or ``timeout`` expires."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


def output_lines(stream: io.StringIO) -> List[str]:
    return [line for line in stream.getvalue().split("\n") if line]


@pytest.fixture
def stream() -> io.StringIO:
    return io.StringIO()


@pytest.fixture
def writer(stream: io.StringIO) -> OutputWriter:
    return OutputWriter(stream=stream, color_mode="never")


@pytest.fixture
def log_source() -> FakeLogSource:
    return FakeLogSource()


@pytest.fixture
def make_settings():
    def _make(**values):
        return resolve_settings({}, values)
    return _make


@pytest.fixture
def web1() -> InstanceKey:
    return InstanceKey("default", "web-1")


@pytest.fixture
def web2() -> InstanceKey:
    return InstanceKey("default", "web-2")
