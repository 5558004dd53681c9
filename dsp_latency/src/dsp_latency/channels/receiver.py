# ===================================================================================
# ==                 DSP Latency Test: Reply Receiver                              ==
# ===================================================================================
#
# Listens on the PULL socket for DSP replies and stamps their arrival time in
# the CorrelationStore. Score and category frames are consumed but never
# inspected. Runs until stop() is called; it never terminates on its own.
# ===================================================================================

from __future__ import annotations

import asyncio
from typing import Any, Optional, Sequence

import zmq

from dsp_latency.core.clock import now_ns
from dsp_latency.core.logging import get_receiver_logger
from dsp_latency.core.protocol import decode_reply
from dsp_latency.correlation.store import CorrelationStore, ReplyOutcome

IDLE_POLL_TIMEOUT_MS = 100
CLOSE_LINGER_MS = 1000


class Receiver:
    """Reply ingestion loop bound to one PULL socket."""

    def __init__(
        self,
        socket: Any,
        store: CorrelationStore,
        verbose: bool = False,
        idle_timeout_ms: int = IDLE_POLL_TIMEOUT_MS,
        linger_ms: int = CLOSE_LINGER_MS,
    ):
        self.socket = socket
        self.store = store
        self.verbose = verbose
        self.idle_timeout_ms = idle_timeout_ms
        self.linger_ms = linger_ms
        self.logger = get_receiver_logger()
        self.malformed = 0
        self._stopping = asyncio.Event()
        self._task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def handle_message(self, frames: Sequence[bytes]) -> Optional[ReplyOutcome]:
        """Record one reply message. Returns None for a malformed message."""
        received_at = now_ns()

        if self.verbose:
            self.logger.debug("Received message", parts=len(frames))

        try:
            reply = decode_reply(frames)
        except ValueError as e:
            self.malformed += 1
            self.logger.warning("Malformed reply ignored", error=str(e))
            return None

        outcome = self.store.record_reply(reply.id, received_at)
        if outcome is ReplyOutcome.UNKNOWN:
            self.logger.warning("Reply for unknown request id", request_id=reply.id)
        elif outcome is ReplyOutcome.DUPLICATE:
            self.logger.warning("Duplicate reply", request_id=reply.id)
        return outcome

    async def run(self) -> None:
        """Consume replies until stopped."""
        self.logger.info("Receiver listening")
        while not self._stopping.is_set():
            try:
                ready = await self.socket.poll(self.idle_timeout_ms, zmq.POLLIN)
                if not ready:
                    continue
                frames = await self.socket.recv_multipart()
            except asyncio.CancelledError:
                self.logger.info("Receiver cancelled")
                raise
            except zmq.ZMQError as e:
                if self._stopping.is_set():
                    break
                self.logger.error("ZMQ error while receiving", error=str(e))
                await asyncio.sleep(self.idle_timeout_ms / 1000)
                continue

            self.handle_message(frames)

        self.logger.info("Receiver stopped", received=self.store.received, malformed=self.malformed)

    def start(self) -> asyncio.Task:
        """Run the receive loop as a background task."""
        if self.is_running:
            return self._task
        self._stopping.clear()
        self._task = asyncio.create_task(self.run())
        return self._task

    async def stop(self) -> None:
        """Stop the receive loop and close the socket."""
        self._stopping.set()
        try:
            if self._task is not None:
                try:
                    await asyncio.wait_for(self._task, timeout=(self.idle_timeout_ms / 1000) * 5 + 1)
                except asyncio.TimeoutError:
                    self._task.cancel()
                    try:
                        await self._task
                    except asyncio.CancelledError:
                        pass  # Expected when cancelling task
        finally:
            self._task = None
            self.socket.close(linger=self.linger_ms)
