"""
Lightweight execution tracing.

The renewal pipeline spends most of its time waiting on a remote robot:
three HTTP calls plus two fixed pauses. When a user reports an empty
renewal date, the first question is which stage stalled or failed, and
plain log lines do not answer it.

trace_span wraps each stage and each dialog turn and emits one structured
latency record per wrapped block.
"""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager

logger = logging.getLogger("renewal_agent.trace")


@contextmanager
def trace_span(name: str, **metadata):
    """
    Measure execution duration of a pipeline stage or dialog turn.

    Example log:
    [TRACE] orchestrator.start_job duration_ms=20051.37 policy=12345

    The record is written even when the block raises; exceptions are
    never suppressed. Never pass secrets (passwords, bearer tokens) as
    metadata.
    """
    start = time.perf_counter()
    try:
        yield
    finally:
        duration_ms = (time.perf_counter() - start) * 1000

        meta = " ".join(f"{k}={v}" for k, v in metadata.items())
        logger.info("[TRACE] %s duration_ms=%.2f %s", name, duration_ms, meta)
