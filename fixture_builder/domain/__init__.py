"""
Domain package for the fixture builder.

Exports the data definitions shared by the tracker, the orchestrator and the
reporter. Keep this package free of database and filesystem access.
"""

from fixture_builder.domain.models import BuildResult, Fingerprint, TableDump

__all__ = [
    "BuildResult",
    "Fingerprint",
    "TableDump",
]
