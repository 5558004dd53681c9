"""Latency statistics and report rendering."""

from .stats import (
    LatencyReport,
    Percentiles,
    StatsReporter,
    compute_percentiles,
    percentile_ms,
    render_report,
)

__all__ = [
    "LatencyReport",
    "Percentiles",
    "StatsReporter",
    "compute_percentiles",
    "percentile_ms",
    "render_report",
]
