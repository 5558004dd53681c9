"""Exceptions raised by the DSP latency test."""


class LatencyTestError(Exception):
    """Base class for fatal harness errors."""


class ListLoadError(LatencyTestError, ValueError):
    """A domain or IP list could not be loaded or is empty."""

    def __init__(self, path: str, reason: str):
        super().__init__(f"Failed to load list from {path}: {reason}")
        self.path = path
        self.reason = reason


class ChannelBindError(LatencyTestError, RuntimeError):
    """A ZMQ socket could not be bound to its address."""

    def __init__(self, address: str, reason: str):
        super().__init__(f"Failed to bind socket at {address}: {reason}")
        self.address = address
        self.reason = reason
