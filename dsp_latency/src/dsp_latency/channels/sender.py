# ===================================================================================
# ==                 DSP Latency Test: Request Sender                              ==
# ===================================================================================
#
# Paced generator of synthetic DSP requests.
#
# Its ONLY job is to:
#   1. Wait a bounded time for the DSP to connect
#   2. Issue round(rate * duration) requests on the PUSH socket
#   3. Keep every request on its schedule-from-start slot (no cumulative drift)
#   4. Record each send time in the CorrelationStore
#   5. Close the socket and wait a bounded drain window for outstanding replies
#
# Requests are fire-and-forget: nothing is ever retried. Sends never block;
# a request that cannot be queued (no DSP attached) is counted as failed.
# ===================================================================================

from __future__ import annotations

import asyncio
import random
from dataclasses import dataclass
from typing import Any, Optional, Sequence

import zmq

from dsp_latency.core.clock import (
    micros_since,
    now_ns,
    scheduled_offset_us,
    sleep_us,
    total_requests,
)
from dsp_latency.core.logging import get_sender_logger
from dsp_latency.core.protocol import Request
from dsp_latency.correlation.store import CorrelationStore

# Configuration
DRAIN_TIMEOUT_SEC = 10.0  # Max time to wait for the last replies
DRAIN_POLL_INTERVAL_SEC = 0.1
CLOSE_LINGER_MS = 1000  # Grace period for frames still queued at close
PEER_WAIT_TIMEOUT_SEC = 10.0  # Max time to wait for a DSP before the send phase


@dataclass
class SendResult:
    """Outcome of a Sender run."""
    sent: int
    elapsed_seconds: float
    failed: int = 0
    drained: bool = True


class Sender:
    """
    Rate-paced request generator.

    Request ``i`` (0-based) is due ``floor(i * 1e6 / rate)`` microseconds after
    the run started. When the loop is ahead of schedule it sleeps until the
    slot; when behind it sends at once, so a transient stall is absorbed
    instead of pushing every later request back.
    """

    def __init__(
        self,
        socket: Any,
        store: CorrelationStore,
        rng: Optional[random.Random] = None,
        verbose: bool = False,
        drain_timeout_seconds: float = DRAIN_TIMEOUT_SEC,
        drain_poll_seconds: float = DRAIN_POLL_INTERVAL_SEC,
        linger_ms: int = CLOSE_LINGER_MS,
        peer_wait_seconds: float = PEER_WAIT_TIMEOUT_SEC,
    ):
        self.socket = socket
        self.store = store
        self.rng = rng if rng is not None else random.Random()
        self.verbose = verbose
        self.drain_timeout_seconds = drain_timeout_seconds
        self.drain_poll_seconds = drain_poll_seconds
        self.linger_ms = linger_ms
        self.peer_wait_seconds = peer_wait_seconds
        self.logger = get_sender_logger()
        self.started_ns: Optional[int] = None
        self._closed = False

    def generate_request(
        self,
        request_id: int,
        domains: Sequence[str],
        ips: Sequence[str],
    ) -> Request:
        """Draw a domain and an IP independently, with replacement."""
        return Request(
            id=request_id,
            domain=self.rng.choice(domains),
            ip=self.rng.choice(ips),
        )

    async def wait_for_peer(self) -> bool:
        """Wait until the PUSH socket can queue a frame, i.e. a DSP is connected.

        Returns False when no peer showed up within ``peer_wait_seconds``.
        """
        timeout_ms = int(self.peer_wait_seconds * 1000)
        events = await self.socket.poll(timeout_ms, zmq.POLLOUT)
        if events & zmq.POLLOUT:
            return True
        self.logger.warning("No DSP connected, sends will fail", waited_s=self.peer_wait_seconds)
        return False

    async def send_request(self, request: Request) -> bool:
        """Push one request and record its send time on success."""
        if self.verbose:
            self.logger.debug(
                "Sending message", request_id=request.id, domain=request.domain, ip=request.ip
            )
        try:
            await self.socket.send_multipart(request.to_frames(), flags=zmq.NOBLOCK)
        except zmq.ZMQError as e:
            self.logger.debug("Failed to send request", request_id=request.id, error=str(e))
            return False

        self.store.record_sent(request.id)
        return True

    async def run(
        self,
        target_rate_hz: float,
        duration_seconds: float,
        domains: Sequence[str],
        ips: Sequence[str],
    ) -> SendResult:
        """Send every request on schedule, close the socket, then drain."""
        if target_rate_hz <= 0:
            raise ValueError(f"Target rate must be positive, got {target_rate_hz}")
        if duration_seconds < 0:
            raise ValueError(f"Test duration must not be negative, got {duration_seconds}")
        if not domains or not ips:
            raise ValueError("Domain and IP pools must not be empty")

        count = total_requests(target_rate_hz, duration_seconds)
        self.logger.info(
            "Starting send phase",
            requests=count,
            rate_hz=target_rate_hz,
            duration_s=duration_seconds,
            domains=len(domains),
            ips=len(ips),
        )

        if count > 0:
            await self.wait_for_peer()

        self.started_ns = now_ns()
        sent = 0
        failed = 0

        for i in range(count):
            # time really spent since start vs. time this slot is due
            due_us = scheduled_offset_us(i, target_rate_hz)
            spent_us = micros_since(self.started_ns)
            if due_us > spent_us:
                await sleep_us(due_us - spent_us)

            request = self.generate_request(i + 1, domains, ips)
            if await self.send_request(request):
                sent += 1
            else:
                failed += 1

        self.close()
        self.logger.info(
            "Send phase complete",
            sent=sent,
            failed=failed,
            send_phase_s=round(micros_since(self.started_ns) / 1e6, 3),
        )
        if failed:
            self.logger.error("Requests could not be queued", failed=failed, requested=count)

        drained = await self.drain()
        elapsed = micros_since(self.started_ns) / 1e6

        return SendResult(sent=sent, elapsed_seconds=elapsed, failed=failed, drained=drained)

    def close(self) -> None:
        """Close the PUSH socket, letting queued frames flush for the linger period."""
        if self._closed:
            return
        self._closed = True
        self.socket.close(linger=self.linger_ms)

    async def drain(self) -> bool:
        """Wait until no reply is pending or the drain window runs out.

        Returns True when every reply arrived.
        """
        self.logger.debug(
            "Waiting for the last replies to be received",
            pending=self.store.pending,
            timeout_s=self.drain_timeout_seconds,
        )
        drain_start = now_ns()
        timeout_us = int(self.drain_timeout_seconds * 1e6)

        while micros_since(drain_start) < timeout_us and self.store.pending > 0:
            await asyncio.sleep(self.drain_poll_seconds)

        pending = self.store.pending
        if pending > 0:
            self.logger.warning("Drain window elapsed with replies outstanding", pending=pending)
        return pending == 0
