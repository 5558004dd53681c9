"""Binding of the PUSH (requests) and PULL (replies) sockets."""

from __future__ import annotations

import zmq
import zmq.asyncio

from dsp_latency.core.errors import ChannelBindError
from dsp_latency.core.logging import get_logger

logger = get_logger(__name__)

DEFAULT_LINGER_MS = 1000  # 1s
DEFAULT_SEND_HWM = 0  # no limit on frames queued per peer


def tcp_address(host: str, port: int) -> str:
    """Build a ZMQ tcp endpoint, e.g. ``tcp://*:58501``."""
    return f"tcp://{host}:{port}"


def _bind(socket: zmq.asyncio.Socket, address: str) -> None:
    try:
        socket.bind(address)
    except zmq.ZMQError as e:
        socket.close(linger=0)
        logger.error("Socket bind failed", address=address, error=str(e))
        raise ChannelBindError(address, str(e)) from e


def bind_push(
    context: zmq.asyncio.Context,
    address: str,
    linger_ms: int = DEFAULT_LINGER_MS,
    send_hwm: int = DEFAULT_SEND_HWM,
) -> zmq.asyncio.Socket:
    """Create a PUSH socket bound at ``address``.

    Frames queue without limit once a peer is connected, so non-blocking
    sends only fail while no DSP is attached.
    """
    socket = context.socket(zmq.PUSH)
    socket.setsockopt(zmq.LINGER, linger_ms)
    socket.setsockopt(zmq.SNDHWM, send_hwm)
    _bind(socket, address)
    logger.info("Sender socket bound", address=address, linger_ms=linger_ms)
    return socket


def bind_pull(
    context: zmq.asyncio.Context,
    address: str,
    linger_ms: int = DEFAULT_LINGER_MS,
) -> zmq.asyncio.Socket:
    """Create a PULL socket bound at ``address``.

    No RCVTIMEO is set: the Receiver polls with its own idle timeout before
    every receive, which is what bounds an idle wait.
    """
    socket = context.socket(zmq.PULL)
    socket.setsockopt(zmq.LINGER, linger_ms)
    _bind(socket, address)
    logger.info("Receiver socket bound", address=address, linger_ms=linger_ms)
    return socket
