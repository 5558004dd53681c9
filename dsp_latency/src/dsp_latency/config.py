"""Run configuration: command-line flags, environment and defaults."""

from __future__ import annotations

import argparse
import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Sequence

from dotenv import find_dotenv, load_dotenv
from pydantic import BaseModel, Field, field_validator

from dsp_latency.channels.sockets import tcp_address

# Environment variable names (shared with the docker-compose setup)
ENV_VARS = {
    "target_address": "DSP_IP",
    "send_port": "SND_PORT",
    "receive_port": "RCV_PORT",
    "messages_per_second": "MPS",
    "test_duration_seconds": "TEST_TIME",
    "domains_file": "DOMAINS_FILE",
    "ips_file": "IPS_FILE",
    "start_delay_seconds": "DELAY_START",
    "drain_timeout_seconds": "DRAIN_TIMEOUT",
    "peer_wait_seconds": "PEER_WAIT",
    "linger_ms": "LINGER_MS",
    "seed": "SEED",
    "verbose": "VERBOSE",
    "log_format": "LOG_FORMAT",
}

_TRUE_VALUES = {"1", "true", "yes", "on"}


class LatencyTestConfig(BaseModel):
    """Settings of one latency test run."""

    # Network
    target_address: str = Field("*", description="Interface both sockets bind to")
    send_port: int = Field(58501, ge=1, le=65535, description="PUSH port requests are sent from")
    receive_port: int = Field(58505, ge=1, le=65535, description="PULL port replies arrive on")

    # Load shape
    messages_per_second: float = Field(30000, gt=0, description="Target request rate (MPS)")
    test_duration_seconds: float = Field(60, ge=0, description="Length of the send phase")

    # Payload pools
    domains_file: Path = Field(..., description="Domain list, one per line")
    ips_file: Path = Field(..., description="IP list, one per line")

    # Timing
    start_delay_seconds: float = Field(0, ge=0, description="Wait before the send phase starts")
    drain_timeout_seconds: float = Field(10, ge=0, description="Max wait for outstanding replies")
    peer_wait_seconds: float = Field(10, ge=0, description="Max wait for a DSP to connect before sending")
    linger_ms: int = Field(1000, ge=0, description="Socket linger on close")

    # Misc
    seed: Optional[int] = Field(None, description="Seed for payload selection")
    verbose: bool = Field(False, description="Log every message")
    log_format: str = Field("console", description="console or json")

    @field_validator("log_format")
    @classmethod
    def _check_log_format(cls, value: str) -> str:
        value = value.lower()
        if value not in ("console", "json"):
            raise ValueError("log_format must be 'console' or 'json'")
        return value

    @property
    def send_address(self) -> str:
        return tcp_address(self.target_address, self.send_port)

    @property
    def receive_address(self) -> str:
        return tcp_address(self.target_address, self.receive_port)

    @property
    def log_level(self) -> str:
        return "DEBUG" if self.verbose else "INFO"


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dsp-latency-test",
        description="Round-trip latency test for a DSP over ZMQ PUSH/PULL sockets",
    )
    parser.add_argument("--domainsFile", dest="domains_file", help="Domain list file")
    parser.add_argument("--IPsFile", dest="ips_file", help="IP list file")
    parser.add_argument("--MPS", dest="messages_per_second", type=float,
                        help="Queries per second (rate)")
    parser.add_argument("-d", "--dspIP", dest="target_address",
                        help="Address the sockets bind to")
    parser.add_argument("-r", "--rcvport", dest="receive_port", type=int,
                        help="Port replies are received on")
    parser.add_argument("-s", "--sndport", dest="send_port", type=int,
                        help="Port requests are sent from")
    parser.add_argument("--test_duration", dest="test_duration_seconds", type=float,
                        help="Test duration in seconds")
    parser.add_argument("--delay-start", dest="start_delay_seconds", type=float,
                        help="Seconds to wait before sending")
    parser.add_argument("--drain-timeout", dest="drain_timeout_seconds", type=float,
                        help="Seconds to wait for the last replies")
    parser.add_argument("--peer-wait", dest="peer_wait_seconds", type=float,
                        help="Seconds to wait for the DSP to connect before sending")
    parser.add_argument("--linger", dest="linger_ms", type=int,
                        help="Socket linger on close, in milliseconds")
    parser.add_argument("--seed", type=int, help="Seed for random payload selection")
    parser.add_argument("--log-format", dest="log_format", choices=["console", "json"],
                        help="Log output format")
    parser.add_argument("-v", "--verbose", action="store_true", default=None,
                        help="Print debug info")
    return parser


def _values_from_env(environ: Mapping[str, str]) -> Dict[str, Any]:
    values: Dict[str, Any] = {}
    for field_name, env_name in ENV_VARS.items():
        raw = environ.get(env_name)
        if raw is None or raw == "":
            continue
        if field_name == "verbose":
            values[field_name] = raw.strip().lower() in _TRUE_VALUES
        else:
            values[field_name] = raw
    return values


def load_config(
    argv: Optional[Sequence[str]] = None,
    environ: Optional[Mapping[str, str]] = None,
    dotenv_path: Optional[str] = None,
) -> LatencyTestConfig:
    """Build the run configuration.

    Precedence: command-line flag, then environment (including ``.env``),
    then the model defaults. Raises ``pydantic.ValidationError`` on bad input.
    """
    if environ is None:
        load_dotenv(dotenv_path or find_dotenv(usecwd=True))
        environ = os.environ

    values = _values_from_env(environ)

    args = build_arg_parser().parse_args(argv)
    for key, value in vars(args).items():
        if value is not None:
            values[key] = value

    return LatencyTestConfig(**values)
