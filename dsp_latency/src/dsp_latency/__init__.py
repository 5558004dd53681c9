"""DSP latency test: round-trip latency benchmarking over ZMQ PUSH/PULL."""

from .channels import Receiver, SendResult, Sender
from .config import LatencyTestConfig, load_config
from .correlation import CorrelationRecord, CorrelationStore
from .harness import LatencyTestRunner
from .reporting import LatencyReport, Percentiles, StatsReporter, render_report

__version__ = "1.3.0"

__all__ = [
    "CorrelationRecord",
    "CorrelationStore",
    "LatencyReport",
    "LatencyTestConfig",
    "LatencyTestRunner",
    "Percentiles",
    "Receiver",
    "SendResult",
    "Sender",
    "StatsReporter",
    "load_config",
    "render_report",
]
