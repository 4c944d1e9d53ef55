"""
Timing utilities for the fixture builder.

Usage:
    from fixture_builder.utils.profiler import profile_block

    with profile_block("populate") as stats:
        populate(context)

    print(stats.duration_seconds)
"""

from __future__ import annotations

import contextlib
import time
from dataclasses import dataclass, field
from typing import Any, Generator


@dataclass
class ProfileStats:
    """
    Container for timing measurements.
    """

    label: str
    start_ts: float = field(default=0.0)
    end_ts: float = field(default=0.0)
    duration_seconds: float = field(default=0.0)
    extra: dict[str, Any] = field(default_factory=dict)


@contextlib.contextmanager
def profile_block(label: str) -> Generator[ProfileStats, None, None]:
    """
    Measure the wall-clock duration of a block.

    The stats are filled in even when the block raises.
    """
    stats = ProfileStats(label=label)
    stats.start_ts = time.perf_counter()
    try:
        yield stats
    finally:
        stats.end_ts = time.perf_counter()
        stats.duration_seconds = stats.end_ts - stats.start_ts


__all__ = ["ProfileStats", "profile_block"]
