"""Shared fixtures for the DSP latency test suite."""

import itertools
from typing import List, Optional, Set

import pytest
import zmq
import zmq.asyncio

from dsp_latency.core.clock import now_ns
from dsp_latency.core.protocol import decode_id

_address_counter = itertools.count(1)


class FakePushSocket:
    """Records outgoing frames and their send times instead of hitting the network."""

    def __init__(self, fail_ids: Optional[Set[int]] = None, peer_connected: bool = True):
        self.sent: List[List[bytes]] = []
        self.send_times: List[int] = []
        self.fail_ids = fail_ids or set()
        self.peer_connected = peer_connected
        self.poll_calls: List[tuple] = []
        self.closed = False
        self.close_calls = 0
        self.linger: Optional[int] = None

    async def poll(self, timeout=None, flags=zmq.POLLIN):
        self.poll_calls.append((timeout, flags))
        return zmq.POLLOUT if self.peer_connected else 0

    async def send_multipart(self, frames, flags=0):
        if not self.peer_connected or decode_id(frames[0]) in self.fail_ids:
            raise zmq.ZMQError(zmq.EAGAIN)
        self.send_times.append(now_ns())
        self.sent.append(list(frames))

    def close(self, linger=None):
        self.closed = True
        self.close_calls += 1
        self.linger = linger

    @property
    def sent_ids(self) -> List[int]:
        return [decode_id(frames[0]) for frames in self.sent]


@pytest.fixture
def fake_push_socket():
    return FakePushSocket()


@pytest.fixture
def domains():
    return ["example.com", "example.org", "example.net", "test.io"]


@pytest.fixture
def ips():
    return ["10.0.0.1", "10.0.0.2", "192.168.1.7"]


@pytest.fixture
def zmq_context():
    """Async ZMQ context torn down without lingering."""
    context = zmq.asyncio.Context()
    yield context
    context.destroy(linger=0)


@pytest.fixture
def inproc_address():
    """Factory for unique inproc endpoints."""
    def make(name: str = "endpoint") -> str:
        return f"inproc://{name}-{next(_address_counter)}"
    return make
