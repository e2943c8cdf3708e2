"""GRBL Link - GRBL 1.1 protocol engine.

Serial transport, flow-controlled streaming, status decoding and real-time
control for GRBL-class CNC controllers.
"""

__version__ = "1.0"
__author__ = "Bob Kolbasowski"

from .engine import GrblEngine
from .events import EventStream
from .ports import PortWatcher, list_ports
from .types import (
    ConnectionHandle,
    ErrorPolicy,
    JobProgress,
    JobStatus,
    MachineStatus,
    PortInfo,
)
from .utils import Settings, setup_logging

__all__ = [
    "ConnectionHandle",
    "ErrorPolicy",
    "EventStream",
    "GrblEngine",
    "JobProgress",
    "JobStatus",
    "MachineStatus",
    "PortInfo",
    "PortWatcher",
    "Settings",
    "list_ports",
    "setup_logging",
]
