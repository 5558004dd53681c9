"""Latency percentile reporting."""

from __future__ import annotations

from typing import List, Optional, Sequence

from pydantic import BaseModel, Field

from dsp_latency.core.clock import round_half_up
from dsp_latency.correlation.store import CorrelationStore

# (label, fraction) pairs in report order
REPORTED_PERCENTILES = (
    ("max", 1.0),
    ("p999", 0.999),
    ("p99", 0.99),
    ("p90", 0.90),
)


class Percentiles(BaseModel):
    """Latency percentiles in milliseconds."""

    max: float = Field(..., description="Largest observed latency (ms)")
    p999: float = Field(..., description="99.9th percentile latency (ms)")
    p99: float = Field(..., description="99th percentile latency (ms)")
    p90: float = Field(..., description="90th percentile latency (ms)")


class LatencyReport(BaseModel):
    """Outcome of a latency test run."""

    sent: int = Field(..., description="Requests sent")
    received: int = Field(..., description="Replies received, matched or not")
    completed: int = Field(0, description="Requests with a matched reply")
    timed_out: int = Field(0, description="Requests without a reply at report time")
    unmatched: int = Field(0, description="Replies for unknown or already completed ids")
    failed: int = Field(0, description="Requests that could not be queued for sending")
    duration_seconds: float = Field(..., description="Wall-clock run duration")
    percentiles: Optional[Percentiles] = Field(None, description="None when no request completed")

    @property
    def has_data(self) -> bool:
        return self.percentiles is not None


def percentile_ms(sorted_latencies_us: Sequence[int], fraction: float) -> float:
    """Latency at ``fraction`` of an ascending sample, in milliseconds.

    The index is ``round(fraction * n) - 1`` clamped to the sample bounds.
    """
    n = len(sorted_latencies_us)
    if n == 0:
        raise ValueError("Cannot compute a percentile of an empty sample")
    index = min(max(round_half_up(fraction * n) - 1, 0), n - 1)
    return sorted_latencies_us[index] / 1000


def compute_percentiles(latencies_us: Sequence[int]) -> Optional[Percentiles]:
    """Percentiles of a latency sample, or None when the sample is empty."""
    if not latencies_us:
        return None
    ordered = sorted(latencies_us)
    return Percentiles(**{
        label: percentile_ms(ordered, fraction)
        for label, fraction in REPORTED_PERCENTILES
    })


class StatsReporter:
    """Turns a drained CorrelationStore into a LatencyReport."""

    def report(
        self,
        store: CorrelationStore,
        duration_seconds: float,
        failed: int = 0,
    ) -> LatencyReport:
        snapshot = store.snapshot()
        latencies = store.completed_latencies_us()

        return LatencyReport(
            sent=snapshot.sent,
            received=snapshot.received,
            completed=len(latencies),
            timed_out=snapshot.pending,
            unmatched=snapshot.unmatched,
            failed=failed,
            duration_seconds=duration_seconds,
            percentiles=compute_percentiles(latencies),
        )


def _format_ms(value: Optional[float]) -> str:
    return "n/a" if value is None else f"{value:.3f}"


def render_report(report: LatencyReport) -> str:
    """Textual report of a run."""
    p = report.percentiles
    lines: List[str] = [
        f"# of messages sent: {report.sent}",
        f"# of messages received: {report.received}",
        f"Test duration: {report.duration_seconds:.3f} s",
        f"Max latency: {_format_ms(p.max if p else None)} ms",
        f"Percentile 99.9: {_format_ms(p.p999 if p else None)} ms",
        f"Percentile 99.0: {_format_ms(p.p99 if p else None)} ms",
        f"Percentile 90.0: {_format_ms(p.p90 if p else None)} ms",
    ]
    lines.append(f"# of requests without reply: {report.timed_out}")
    if report.unmatched:
        lines.append(f"# of unmatched replies: {report.unmatched}")
    if report.failed:
        lines.append(f"# of requests not sent: {report.failed}")
    return "\n".join(lines)
