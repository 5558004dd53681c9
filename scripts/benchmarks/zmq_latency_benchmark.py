"""Run the latency harness against the in-process loopback endpoint.

Measures the overhead of the harness and the ZMQ transport itself, without a
real DSP on the other end.
"""

import argparse
import asyncio

import zmq.asyncio

from dsp_latency.config import LatencyTestConfig
from dsp_latency.core.logging import configure_structlog
from dsp_latency.harness import LatencyTestRunner
from dsp_latency.lists import PayloadPools
from dsp_latency.loopback import LoopbackEndpoint
from dsp_latency.reporting.stats import render_report

SEND_URL = "tcp://127.0.0.1:58501"
RECEIVE_URL = "tcp://127.0.0.1:58505"
DOMAINS = ["example.com", "example.org", "example.net"]
IPS = ["10.0.0.1", "10.0.0.2"]


async def run(rate: float, duration: float, delay: float, drop_rate: float) -> None:
    ctx = zmq.asyncio.Context()
    endpoint = LoopbackEndpoint(ctx, SEND_URL, RECEIVE_URL, delay_seconds=delay, drop_rate=drop_rate)
    config = LatencyTestConfig(
        target_address="127.0.0.1",
        messages_per_second=rate,
        test_duration_seconds=duration,
        domains_file="-",
        ips_file="-",
        drain_timeout_seconds=2,
    )
    runner = LatencyTestRunner(config, PayloadPools(DOMAINS, IPS), context=ctx)

    endpoint.start()
    try:
        report = await runner.run()
    finally:
        await endpoint.stop()
        ctx.term()

    print(render_report(report))


def main():
    parser = argparse.ArgumentParser(description="Loopback latency benchmark")
    parser.add_argument("--MPS", type=float, default=1000)
    parser.add_argument("--test_duration", type=float, default=2)
    parser.add_argument("--delay", type=float, default=0.0, help="Endpoint reply delay (s)")
    parser.add_argument("--drop-rate", type=float, default=0.0)
    args = parser.parse_args()

    configure_structlog(log_level="WARNING")
    asyncio.run(run(args.MPS, args.test_duration, args.delay, args.drop_rate))


if __name__ == "__main__":
    main()
