"""Per-request response timing.

Start is marked when the request enters the middleware, end when the
response headers are emitted. Either mark missing means the latency is
unknown, reported as None rather than 0.
"""

from __future__ import annotations

import math
import time


class TimingTracker:
    """Monotonic start/end marks for one request."""

    def __init__(self) -> None:
        self.start_ns: int | None = None
        self.end_ns: int | None = None

    def mark_start(self) -> None:
        self.start_ns = time.perf_counter_ns()

    def mark_end(self) -> None:
        self.end_ns = time.perf_counter_ns()

    def response_time_ms(self) -> int | None:
        return response_time_ms(self.start_ns, self.end_ns)


def response_time_ms(start_ns: int | None, end_ns: int | None) -> int | None:
    """Elapsed milliseconds between two nanosecond marks, halves rounded up."""
    if start_ns is None or end_ns is None:
        return None
    return math.floor((end_ns - start_ns) / 1e6 + 0.5)
