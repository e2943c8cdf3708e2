"""GRBL protocol engine.

This module wires the transport, line framer, status parser, flow-controlled
queue, job streamer, override controller and status poller into one object
that owns a single connection.
"""

import logging
import threading
import time
from typing import Any, Callable, Optional

from .command_queue import FlowControlledQueue
from .engine_commands import EngineCommandMixin
from .engine_connection import EngineConnectionMixin
from .engine_status import EngineStatusMixin
from .engine_streaming import EngineStreamingMixin
from .events import EventStream
from .framer import LineFramer
from .job_streamer import JobStreamer, TimerFactory
from .overrides import OverrideController
from .status_parser import StatusParser
from .status_poller import StatusPoller
from .transport import SerialTransport
from .types import ErrorPolicy
from .utils.config import DEFAULT_SETTINGS, Settings
from .utils.constants import (
    STATUS_QUERY_BACKOFF_BASE,
    STATUS_QUERY_BACKOFF_MAX,
)

logger = logging.getLogger(__name__)


class GrblEngine(
    EngineConnectionMixin,
    EngineCommandMixin,
    EngineStatusMixin,
    EngineStreamingMixin,
):
    """Owns one connection to a GRBL controller.

    This class handles:
    - Connection and disconnection
    - Flow-controlled command sending
    - Job streaming with pause, resume and stop
    - Status polling and decoding
    - Real-time commands and overrides

    Every wire write and every change to the in-flight count or job cursor
    happens under one re-entrant lock. Events are published on
    ``self.events``; each subscriber reads its own queue.

    Example:
        with GrblEngine() as engine:
            events = engine.subscribe()
            engine.connect("/dev/ttyUSB0")
            engine.start_job(lines, name="part.nc")
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        events: Optional[EventStream] = None,
        serial_factory: Optional[Callable[..., Any]] = None,
        clock: Callable[[], float] = time.monotonic,
        timer_factory: Optional[TimerFactory] = None,
    ):
        """Initialize the engine.

        Args:
            settings: Settings to read defaults from (built-in defaults if None)
            events: Event stream to publish on (a new one if None)
            serial_factory: Replacement for ``serial.Serial`` (tests)
            clock: Monotonic clock used for job timing
            timer_factory: Replacement for the stop-reset timer (tests)
        """
        self.settings = settings
        self._config = dict(DEFAULT_SETTINGS)
        if settings is not None:
            settings.validate()
            self._config.update(settings.data)

        self.events = events if events is not None else EventStream()
        self._lock = threading.RLock()

        # Connection state
        self._handle = None
        self._ready = False
        self._alarm_active = False
        self._status = None
        self._port_watcher = None

        # Pipeline
        self._framer = LineFramer()
        self._parser = StatusParser()
        self._transport = SerialTransport(
            self._on_rx_data,
            self._signal_disconnect,
            serial_factory=serial_factory,
        )
        self._queue = FlowControlledQueue(
            self._write_raw,
            self._config["max_in_flight"],
            on_sent=self._on_line_sent,
        )
        streamer_kwargs: dict[str, Any] = {
            "error_policy": ErrorPolicy(self._config["error_policy"]),
            "stop_reset_delay": self._config["stop_reset_delay"],
            "clock": clock,
        }
        if timer_factory is not None:
            streamer_kwargs["timer_factory"] = timer_factory
        self._streamer = JobStreamer(
            self._queue,
            self._emit,
            self.send_realtime,
            self._deliver_stop_reset,
            **streamer_kwargs,
        )
        self._overrides = OverrideController(self.send_realtime)
        self._poller = StatusPoller(
            self._query_status,
            self._signal_disconnect,
            interval=self._config["status_poll_interval"],
            failure_limit=self._config["status_query_failure_limit"],
            backoff_base=STATUS_QUERY_BACKOFF_BASE,
            backoff_max=STATUS_QUERY_BACKOFF_MAX,
        )

    # ========================================================================
    # CONTEXT MANAGER SUPPORT
    # ========================================================================

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit - ensures cleanup."""
        try:
            self.stop_port_watch()
            self.disconnect()
        except Exception as e:
            logger.error(f"Error during cleanup: {e}")
        return False  # Don't suppress exceptions

    # ========================================================================
    # EVENTS
    # ========================================================================

    def subscribe(self):
        """Return a new queue that receives every event from now on."""
        return self.events.subscribe()

    def unsubscribe(self, q) -> None:
        self.events.unsubscribe(q)

    def _emit(self, event) -> None:
        self.events.put(event)
