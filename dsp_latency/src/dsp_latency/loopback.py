# ===================================================================================
# ==                 DSP Latency Test: Loopback Endpoint                           ==
# ===================================================================================
#
# A stand-in for the decision endpoint. It connects a PULL socket to the
# harness request port and a PUSH socket to its reply port, and answers each
# request with [id][score][category]. Optional delay and drop rate make it
# useful for exercising the harness without a real DSP.
# ===================================================================================

from __future__ import annotations

import asyncio
import random
from typing import Optional

import zmq
import zmq.asyncio

from dsp_latency.core.logging import get_logger
from dsp_latency.core.protocol import decode_request, encode_reply

DEFAULT_SCORE = b"0.5"
DEFAULT_CATEGORY = b"unknown"


class LoopbackEndpoint:
    """Echoes every request id back to the harness."""

    def __init__(
        self,
        context: zmq.asyncio.Context,
        request_address: str,
        reply_address: str,
        delay_seconds: float = 0.0,
        drop_rate: float = 0.0,
        seed: Optional[int] = None,
    ):
        if not 0.0 <= drop_rate <= 1.0:
            raise ValueError(f"drop_rate must be within [0, 1], got {drop_rate}")
        self.context = context
        self.request_address = request_address
        self.reply_address = reply_address
        self.delay_seconds = delay_seconds
        self.drop_rate = drop_rate
        self.rng = random.Random(seed)
        self.logger = get_logger("dsp_latency.loopback")
        self.handled = 0
        self.dropped = 0
        self._pull: Optional[zmq.asyncio.Socket] = None
        self._push: Optional[zmq.asyncio.Socket] = None
        self._task: Optional[asyncio.Task] = None

    def connect(self) -> None:
        self._pull = self.context.socket(zmq.PULL)
        self._pull.setsockopt(zmq.LINGER, 0)
        self._pull.connect(self.request_address)

        self._push = self.context.socket(zmq.PUSH)
        self._push.setsockopt(zmq.LINGER, 0)
        self._push.connect(self.reply_address)
        self.logger.info(
            "Loopback endpoint connected",
            requests=self.request_address,
            replies=self.reply_address,
        )

    async def serve(self) -> None:
        """Answer requests until cancelled."""
        if self._pull is None or self._push is None:
            self.connect()

        while True:
            frames = await self._pull.recv_multipart()
            try:
                request = decode_request(frames)
            except ValueError as e:
                self.logger.warning("Malformed request ignored", error=str(e))
                continue

            if self.drop_rate and self.rng.random() < self.drop_rate:
                self.dropped += 1
                continue

            if self.delay_seconds > 0:
                await asyncio.sleep(self.delay_seconds)

            await self._push.send_multipart(
                encode_reply(request.id, DEFAULT_SCORE, DEFAULT_CATEGORY)
            )
            self.handled += 1

    def start(self) -> asyncio.Task:
        self.connect()
        self._task = asyncio.create_task(self.serve())
        return self._task

    async def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass  # Expected when cancelling task
            self._task = None

        for socket in (self._pull, self._push):
            if socket is not None:
                socket.close(linger=0)
        self._pull = None
        self._push = None
        self.logger.info("Loopback endpoint stopped", handled=self.handled, dropped=self.dropped)
