import pytest

from grbl_link.command_queue import SOURCE_JOB, FlowControlledQueue
from grbl_link.job_streamer import JobStreamer, clean_job_lines
from grbl_link.types import ErrorPolicy, JobStatus
from grbl_link.utils.constants import RT_HOLD, RT_RESUME
from grbl_link.utils.exceptions import GcodeValidationError, GrblStreamingException

from conftest import ManualTimers


class FakeClock:
    def __init__(self):
        self.now = 100.0

    def __call__(self):
        return self.now


class Harness:
    def __init__(self, cap=4, policy=ErrorPolicy.CONTINUE):
        self.payloads: list[bytes] = []
        self.realtime: list[bytes] = []
        self.events: list = []
        self.resets = 0
        self.clock = FakeClock()
        self.timers = ManualTimers()
        self.queue = FlowControlledQueue(self._write, cap)
        self.streamer = JobStreamer(
            self.queue,
            self.events.append,
            self.realtime.append,
            self._reset,
            error_policy=policy,
            clock=self.clock,
            timer_factory=self.timers,
        )

    def _write(self, payload):
        self.payloads.append(payload)
        return True

    def _reset(self):
        self.resets += 1
        self.queue.reset()

    def ack(self, ok=True, code=None):
        source, _ = self.queue.on_ack()
        if source == SOURCE_JOB:
            self.streamer.on_ack(ok, code, f"error:{code}" if code else "")
        elif self.streamer.is_active():
            self.streamer.pump()

    def progress(self):
        return [e[1] for e in self.events if e[0] == "progress"]

    def states(self):
        return [e[1] for e in self.events if e[0] == "job_state"]


def test_clean_job_lines_drops_blanks_and_comments():
    assert clean_job_lines(["G21", "", "  ", "; note", "(header)", " G0 X1 "]) == ("G21", "G0 X1")


def test_three_line_job_acked_three_times_completes_at_100_percent():
    h = Harness()
    h.streamer.start(["G0 X1", "G0 X2", "G0 X3"])
    assert h.payloads == [b"G0 X1\n", b"G0 X2\n", b"G0 X3\n"]
    for _ in range(3):
        h.ack()
    assert h.streamer.status is JobStatus.COMPLETED
    assert h.progress()[-1].percent_complete == 100.0
    assert h.states() == [JobStatus.RUNNING, JobStatus.COMPLETED]


@pytest.mark.parametrize("total", [1, 5, 37])
def test_every_line_acked_completes_with_monotonic_percent(total):
    h = Harness()
    lines = [f"G1 X{i}" for i in range(total)]
    h.streamer.start(lines)
    acked = 0
    while acked < total:
        assert h.queue.pending <= 4
        h.ack()
        acked += 1
    job = h.streamer.job
    assert job.status is JobStatus.COMPLETED
    assert job.cursor == total
    assert job.pending_in_queue == 0
    percents = [p.percent_complete for p in h.progress()]
    assert percents == sorted(percents)
    assert len(h.payloads) == total


def test_progress_fields():
    h = Harness()
    h.streamer.start([f"G1 X{i}" for i in range(8)])
    # First four lines go out at t=100; advance the clock before the next.
    h.clock.now = 104.0
    h.ack()
    p = h.progress()[-1]
    assert p.current_line == 5
    assert p.total_lines == 8
    assert p.percent_complete == pytest.approx(62.5)
    assert p.elapsed_time == pytest.approx(4.0)
    assert p.estimated_remaining == pytest.approx(4.0 / 5 * 3)


def test_remaining_is_zero_before_any_line():
    h = Harness()
    progress = h.streamer.progress()
    assert progress.estimated_remaining == 0.0
    assert progress.percent_complete == 0.0


def test_second_start_rejected_while_active():
    h = Harness()
    h.streamer.start(["G0 X1"])
    with pytest.raises(GrblStreamingException):
        h.streamer.start(["G0 X2"])


def test_empty_job_rejected():
    h = Harness()
    with pytest.raises(GcodeValidationError):
        h.streamer.start(["", "; only comments", "(nothing)"])
    assert h.streamer.status is JobStatus.IDLE


def test_restart_after_completion():
    h = Harness()
    h.streamer.start(["G0 X1"])
    h.ack()
    h.streamer.start(["G0 X2"])
    assert h.streamer.status is JobStatus.RUNNING
    assert h.streamer.job.cursor == 1


def test_pause_sends_hold_and_keeps_pumping():
    h = Harness(cap=2)
    h.streamer.start(["A", "B", "C", "D"])
    assert h.streamer.pause()
    assert h.realtime == [RT_HOLD]
    assert h.streamer.status is JobStatus.PAUSED
    h.ack()
    assert h.payloads[-1] == b"C\n"
    assert h.streamer.resume()
    assert h.realtime == [RT_HOLD, RT_RESUME]
    assert h.streamer.status is JobStatus.RUNNING


def test_pause_and_resume_ignored_in_wrong_state():
    h = Harness()
    assert not h.streamer.pause()
    assert not h.streamer.resume()
    assert h.realtime == []


def test_stop_holds_then_resets_after_delay():
    h = Harness(cap=2)
    h.streamer.start(["A", "B", "C"])
    assert h.streamer.stop("user")
    assert h.streamer.status is JobStatus.STOPPED
    assert h.realtime == [RT_HOLD]
    timer = h.timers.last
    assert timer.started
    assert timer.delay == pytest.approx(0.1)
    assert h.resets == 0
    timer.fire()
    assert h.resets == 1
    # Late acks for lines already on the wire send nothing new.
    h.ack()
    assert h.payloads == [b"A\n", b"B\n"]


def test_start_refused_until_stopped_job_is_flushed():
    h = Harness()
    h.streamer.start([f"G1 X{i}" for i in range(6)])
    h.streamer.stop("user")
    assert h.streamer.reset_pending
    with pytest.raises(GrblStreamingException):
        h.streamer.start([f"G1 Y{i}" for i in range(5)])
    timer = h.timers.last
    assert not timer.cancelled
    timer.fire()
    assert h.resets == 1
    assert not h.streamer.reset_pending
    assert h.queue.pending == 0

    h.streamer.start([f"G1 Y{i}" for i in range(5)])
    assert h.streamer.job.cursor == 4
    assert h.streamer.job.pending_in_queue == 4
    for _ in range(4):
        h.ack()
    assert h.streamer.job.cursor == 5
    assert h.streamer.job.pending_in_queue == 1
    assert h.streamer.status is JobStatus.RUNNING
    h.ack()
    assert h.streamer.status is JobStatus.COMPLETED


def test_abort_sends_nothing():
    h = Harness(cap=2)
    h.streamer.start(["A", "B", "C"])
    assert h.streamer.abort("Disconnected")
    assert h.streamer.status is JobStatus.STOPPED
    assert h.realtime == []
    assert h.timers.created == []
    assert ("job_state", JobStatus.STOPPED, "Disconnected") in h.events


def test_error_policy_continue():
    h = Harness(cap=1)
    h.streamer.start(["A", "B"])
    h.ack(ok=False, code=20)
    assert h.streamer.status is JobStatus.RUNNING
    assert h.streamer.job.error_count == 1
    assert h.payloads[-1] == b"B\n"


def test_error_policy_pause():
    h = Harness(cap=1, policy=ErrorPolicy.PAUSE)
    h.streamer.start(["A", "B"])
    h.ack(ok=False, code=20)
    assert h.streamer.status is JobStatus.PAUSED
    assert h.realtime == [RT_HOLD]
    assert any(
        e[0] == "job_state" and e[1] is JobStatus.PAUSED and "line 1" in e[2]
        for e in h.events
    )


def test_error_policy_stop_fails_job():
    h = Harness(cap=1, policy=ErrorPolicy.STOP)
    h.streamer.start(["A", "B"])
    h.ack(ok=False, code=20)
    assert h.streamer.status is JobStatus.FAILED
    assert h.payloads == [b"A\n"]
    assert h.realtime == [RT_HOLD]
    h.timers.last.fire()
    assert h.resets == 1


def test_manual_ack_does_not_advance_job():
    h = Harness(cap=2)
    h.queue.send("$X")
    h.streamer.start(["A", "B", "C"])
    assert h.payloads == [b"$X\n", b"A\n"]
    h.ack()  # acknowledges $X
    assert h.payloads[-1] == b"B\n"
    assert h.streamer.job.cursor == 2
    assert h.streamer.job.pending_in_queue == 2
