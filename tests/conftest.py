"""Shared fixtures: an in-memory serial port and a manually driven timer."""

from __future__ import annotations

import queue
import threading
import time
from dataclasses import dataclass, field
from typing import Callable

import pytest
import serial

from grbl_link import GrblEngine
from grbl_link.events import drain
from grbl_link.utils.config import Settings


class FakeSerial:
    """Stands in for ``serial.Serial``.

    Bytes pushed with :meth:`feed` come back from :meth:`read`; everything
    written is recorded in :attr:`writes`, one entry per ``write`` call.
    """

    def __init__(self, port, baudrate=115200, timeout=None, write_timeout=None):
        self.port = port
        self.baudrate = baudrate
        self.timeout = timeout
        self.write_timeout = write_timeout
        self.is_open = True
        self.writes: list[bytes] = []
        self.fail_writes = False
        self.max_write: int | None = None
        self._rx: queue.Queue = queue.Queue()
        self._lock = threading.Lock()

    def feed(self, data: bytes) -> None:
        self._rx.put(data)

    def fail_next_read(self, exc: Exception) -> None:
        self._rx.put(exc)

    def read(self, size=1):
        if not self.is_open:
            raise serial.SerialException("port closed")
        try:
            item = self._rx.get(timeout=self.timeout or 0.01)
        except queue.Empty:
            return b""
        if isinstance(item, Exception):
            raise item
        return item

    def write(self, data):
        if not self.is_open:
            raise serial.SerialException("port closed")
        if self.fail_writes:
            raise serial.SerialException("device disconnected")
        data = bytes(data)
        if self.max_write is not None:
            data = data[: self.max_write]
        with self._lock:
            self.writes.append(data)
        return len(data)

    def reset_input_buffer(self):
        pass

    def close(self):
        self.is_open = False

    def written(self) -> list[bytes]:
        with self._lock:
            return list(self.writes)

    def lines(self) -> list[str]:
        """Command lines written so far (status queries left out)."""
        return [
            w.decode().rstrip("\n")
            for w in self.written()
            if w.endswith(b"\n")
        ]

    def realtime(self) -> list[bytes]:
        """Single-byte writes other than status queries."""
        return [w for w in self.written() if not w.endswith(b"\n") and w != b"?"]


class ManualTimer:
    def __init__(self, delay: float, callback: Callable[[], None]):
        self.delay = delay
        self.callback = callback
        self.started = False
        self.cancelled = False

    def start(self) -> None:
        self.started = True

    def cancel(self) -> None:
        self.cancelled = True

    def fire(self) -> None:
        if not self.cancelled:
            self.callback()


class ManualTimers:
    def __init__(self) -> None:
        self.created: list[ManualTimer] = []

    def __call__(self, delay: float, callback: Callable[[], None]) -> ManualTimer:
        timer = ManualTimer(delay, callback)
        self.created.append(timer)
        return timer

    @property
    def last(self) -> ManualTimer:
        return self.created[-1]


def wait_for(predicate: Callable[[], bool], timeout: float = 2.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.005)
    return predicate()


@dataclass
class Rig:
    engine: GrblEngine
    timers: ManualTimers
    events: queue.Queue
    ports: dict[str, FakeSerial] = field(default_factory=dict)
    seen: list = field(default_factory=list)

    @property
    def ser(self) -> FakeSerial:
        return list(self.ports.values())[-1]

    def reply(self, *lines: str) -> None:
        """Deliver CRLF-terminated replies as if the RX thread read them."""
        self.engine._on_rx_data("".join(f"{ln}\r\n" for ln in lines).encode())

    def collect(self) -> list:
        self.seen.extend(drain(self.events))
        return list(self.seen)

    def events_of(self, kind: str) -> list:
        return [e for e in self.collect() if e[0] == kind]


@pytest.fixture
def settings(tmp_path) -> Settings:
    s = Settings(str(tmp_path / "grbl_link.json"))
    # Keep the poller quiet; tests drive status reports themselves.
    s.set("status_poll_interval", 30.0)
    return s


@pytest.fixture
def make_rig(settings):
    rigs: list[Rig] = []

    def _make(**overrides) -> Rig:
        for key, value in overrides.items():
            settings.set(key, value)
        ports: dict[str, FakeSerial] = {}

        def factory(port, **kwargs):
            ser = FakeSerial(port, **kwargs)
            ports[port] = ser
            return ser

        timers = ManualTimers()
        engine = GrblEngine(settings, serial_factory=factory, timer_factory=timers)
        rig = Rig(engine=engine, timers=timers, events=engine.subscribe(), ports=ports)
        rigs.append(rig)
        return rig

    yield _make
    for rig in rigs:
        rig.engine.disconnect()


@pytest.fixture
def rig(make_rig) -> Rig:
    r = make_rig()
    r.engine.connect("/dev/ttyFAKE0")
    return r
