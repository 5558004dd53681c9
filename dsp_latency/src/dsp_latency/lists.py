"""Loading of the domain and IP pools used as request payloads."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import List, Union

from dsp_latency.core.errors import ListLoadError
from dsp_latency.core.logging import get_logger

logger = get_logger(__name__)


def load_list(path: Union[str, Path]) -> List[str]:
    """Read a text file as a list of non-empty lines (LF or CRLF separated)."""
    path = Path(path)
    try:
        data = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ListLoadError(str(path), str(e)) from e

    items = [item for item in data.splitlines() if item != ""]
    if not items:
        raise ListLoadError(str(path), "file contains no entries")

    logger.debug("List loaded", path=str(path), entries=len(items))
    return items


@dataclass(frozen=True)
class PayloadPools:
    """Domain names and IP addresses requests are drawn from."""
    domains: List[str]
    ips: List[str]

    @classmethod
    def from_files(cls, domains_file: Union[str, Path], ips_file: Union[str, Path]) -> PayloadPools:
        domains = load_list(domains_file)
        logger.info("Domain list read", path=str(domains_file), count=len(domains))
        ips = load_list(ips_file)
        logger.info("IP list read", path=str(ips_file), count=len(ips))
        return cls(domains=domains, ips=ips)
