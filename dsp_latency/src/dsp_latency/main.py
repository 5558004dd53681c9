"""Command-line entry point for the DSP latency test.

Usage:
    dsp-latency-test --dspIP=1.2.3.4 --domainsFile=./domain-list.txt \
        --IPsFile=./ip-list.txt --MPS=100 --test_duration=5
"""

from __future__ import annotations

import asyncio
import functools
import sys
from typing import Any, Callable, Optional, Sequence

from pydantic import ValidationError

from dsp_latency.config import LatencyTestConfig, load_config
from dsp_latency.core.errors import LatencyTestError
from dsp_latency.core.logging import configure_structlog, get_logger
from dsp_latency.harness import LatencyTestRunner
from dsp_latency.lists import PayloadPools
from dsp_latency.reporting.stats import render_report


logger = get_logger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_USAGE = 2


async def run_latency_test(config: LatencyTestConfig) -> int:
    """Load the payload pools, run the test and print the report."""
    pools = PayloadPools.from_files(config.domains_file, config.ips_file)
    logger.info("Input data vectors created", domains=len(pools.domains), ips=len(pools.ips))

    runner = LatencyTestRunner(config, pools)
    try:
        report = await runner.run()
    finally:
        runner.close()

    print(render_report(report))
    return EXIT_OK


def select_runner() -> Callable[..., Any]:
    """Pick the event loop runner for this platform.

    zmq.asyncio needs a selector loop, so Windows gets a SelectorEventLoop
    instead of the default Proactor loop. uvloop drives everything else.
    """
    if sys.platform == "win32":
        return functools.partial(asyncio.run, loop_factory=asyncio.SelectorEventLoop)

    import uvloop
    return uvloop.run


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main application entry point."""
    try:
        config = load_config(argv)
    except ValidationError as e:
        configure_structlog(log_level="INFO")
        logger.error("Invalid configuration", errors=e.errors(include_url=False))
        return EXIT_USAGE

    configure_structlog(
        log_level=config.log_level,
        json_format=config.log_format == "json",
        include_process_metrics=config.verbose,
    )
    if config.verbose:
        logger.debug("DSP latency test started", **config.model_dump(mode="json"))

    run = select_runner()
    try:
        return run(run_latency_test(config))
    except LatencyTestError as e:
        logger.error("Latency test failed", error=str(e))
        return EXIT_FAILURE
    except KeyboardInterrupt:
        logger.info("Received keyboard interrupt")
        return EXIT_FAILURE


if __name__ == "__main__":
    sys.exit(main())
