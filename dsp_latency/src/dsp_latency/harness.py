"""Orchestration of a full latency test run."""

from __future__ import annotations

import asyncio
import random
from typing import Optional

import zmq.asyncio

from dsp_latency.channels.receiver import Receiver
from dsp_latency.channels.sender import SendResult, Sender
from dsp_latency.channels.sockets import bind_pull, bind_push
from dsp_latency.config import LatencyTestConfig
from dsp_latency.core.logging import RunContext, get_logger, log_run_summary
from dsp_latency.correlation.store import CorrelationStore
from dsp_latency.lists import PayloadPools
from dsp_latency.reporting.stats import LatencyReport, StatsReporter

logger = get_logger(__name__)


class LatencyTestRunner:
    """
    Binds the sockets, runs the Sender and the Receiver side by side and
    reports once the drain window closes.

    A fresh CorrelationStore is created per run and shared only between the
    two components.
    """

    def __init__(
        self,
        config: LatencyTestConfig,
        pools: PayloadPools,
        context: Optional[zmq.asyncio.Context] = None,
        send_address: Optional[str] = None,
        receive_address: Optional[str] = None,
    ):
        self.config = config
        self.pools = pools
        self.context = context
        self.send_address = send_address or config.send_address
        self.receive_address = receive_address or config.receive_address
        self.store: Optional[CorrelationStore] = None
        self.reporter = StatsReporter()
        self._owns_context = context is None

    async def run(self) -> LatencyReport:
        """Execute one run and return its report.

        Raises ``ChannelBindError`` if either socket cannot be bound.
        """
        if self.context is None:
            self.context = zmq.asyncio.Context()

        self.store = CorrelationStore()
        linger = self.config.linger_ms

        with RunContext(rate_hz=self.config.messages_per_second, send=self.send_address):
            push = bind_push(self.context, self.send_address, linger_ms=linger)
            try:
                pull = bind_pull(self.context, self.receive_address, linger_ms=linger)
            except Exception:
                push.close(linger=0)
                raise

            receiver = Receiver(pull, self.store, verbose=self.config.verbose, linger_ms=linger)
            sender = Sender(
                push,
                self.store,
                rng=random.Random(self.config.seed),
                verbose=self.config.verbose,
                drain_timeout_seconds=self.config.drain_timeout_seconds,
                linger_ms=linger,
                peer_wait_seconds=self.config.peer_wait_seconds,
            )

            receiver.start()
            try:
                if self.config.start_delay_seconds > 0:
                    logger.info("Delaying start", seconds=self.config.start_delay_seconds)
                    await asyncio.sleep(self.config.start_delay_seconds)

                result: SendResult = await sender.run(
                    self.config.messages_per_second,
                    self.config.test_duration_seconds,
                    self.pools.domains,
                    self.pools.ips,
                )
            finally:
                sender.close()
                await receiver.stop()

            report = self.reporter.report(self.store, result.elapsed_seconds, failed=result.failed)
            log_run_summary(
                logger,
                sent=report.sent,
                received=report.received,
                duration_seconds=report.duration_seconds,
                timed_out=report.timed_out,
                unmatched=report.unmatched or None,
                malformed=receiver.malformed or None,
                failed=result.failed or None,
            )
            return report

    def close(self) -> None:
        """Terminate the ZMQ context if this runner created it."""
        if self._owns_context and self.context is not None:
            self.context.term()
            self.context = None
