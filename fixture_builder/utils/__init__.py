"""
Utilities package for the fixture builder.

Exports shared helpers for logging and timing. Keep this package lightweight
and free of database or fixture logic.
"""

from fixture_builder.utils.logging import configure_logging, get_logger
from fixture_builder.utils.profiler import ProfileStats, profile_block

__all__ = [
    "configure_logging",
    "get_logger",
    "ProfileStats",
    "profile_block",
]
