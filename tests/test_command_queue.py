import pytest

from grbl_link.command_queue import SOURCE_JOB, SOURCE_MANUAL, FlowControlledQueue
from grbl_link.utils.exceptions import (
    GrblNotConnectedException,
    InvalidParameterError,
    InvalidRangeError,
)


class Wire:
    def __init__(self):
        self.connected = True
        self.payloads: list[bytes] = []

    def __call__(self, payload: bytes) -> bool:
        if not self.connected:
            return False
        self.payloads.append(payload)
        return True


@pytest.fixture
def wire():
    return Wire()


@pytest.mark.parametrize("cap", [1, 4, 8])
def test_cap_plus_one_sends_exactly_cap_writes(wire, cap):
    q = FlowControlledQueue(wire, cap)
    results = [q.send(f"G1 X{i}") for i in range(cap + 1)]
    assert results == [True] * cap + [False]
    assert len(wire.payloads) == cap
    assert q.pending == cap
    assert q.backlog_size == 1


def test_ack_releases_held_line_in_order(wire):
    q = FlowControlledQueue(wire, 2)
    for line in ("A", "B", "C", "D"):
        q.send(line)
    source, released = q.on_ack()
    assert source == SOURCE_MANUAL
    assert released == ["C"]
    q.on_ack()
    assert wire.payloads == [b"A\n", b"B\n", b"C\n", b"D\n"]
    assert q.pending == 2
    assert q.backlog_size == 0


def test_lines_are_trimmed_and_terminated(wire):
    q = FlowControlledQueue(wire)
    q.send("  G0 X1 Y2 \r\n")
    assert wire.payloads == [b"G0 X1 Y2\n"]


@pytest.mark.parametrize("line", ["", "   ", "\n", None])
def test_empty_line_rejected_without_write(wire, line):
    q = FlowControlledQueue(wire)
    with pytest.raises(InvalidParameterError):
        q.send(line)
    assert wire.payloads == []
    assert q.pending == 0


def test_write_while_disconnected_raises(wire):
    wire.connected = False
    q = FlowControlledQueue(wire)
    with pytest.raises(GrblNotConnectedException):
        q.send("G0 X0")
    assert q.pending == 0


def test_ack_reports_source_of_oldest_line(wire):
    q = FlowControlledQueue(wire)
    q.send("G1 X1", SOURCE_JOB)
    q.send("$X", SOURCE_MANUAL)
    assert q.on_ack()[0] == SOURCE_JOB
    assert q.on_ack()[0] == SOURCE_MANUAL


def test_unexpected_ack_is_harmless(wire):
    q = FlowControlledQueue(wire)
    assert q.on_ack() == (None, [])
    assert q.pending == 0


def test_has_capacity_false_while_backlog_waits(wire):
    q = FlowControlledQueue(wire, 1)
    q.send("A")
    q.send("B")
    q.on_ack()
    assert q.pending == 1
    assert not q.has_capacity()


def test_reset_forgets_everything(wire):
    q = FlowControlledQueue(wire, 1)
    q.send("A")
    q.send("B")
    q.reset()
    assert q.pending == 0
    assert q.backlog_size == 0
    assert q.has_capacity()


def test_on_sent_callback(wire):
    sent = []
    q = FlowControlledQueue(wire, on_sent=lambda line, source: sent.append((line, source)))
    q.send("G0 X0", SOURCE_JOB)
    assert sent == [("G0 X0", SOURCE_JOB)]


def test_invalid_cap_rejected(wire):
    with pytest.raises(InvalidRangeError):
        FlowControlledQueue(wire, 0)
