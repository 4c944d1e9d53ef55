"""
Infrastructure package for the fixture builder.

Centralizes database concerns (engine creation, table listing, integrity
switching) and loading of legacy fixture files. Keep this layer focused on
I/O, decoupled from naming and serialization decisions.
"""

from fixture_builder.infrastructure.database import (
    connect_engine,
    list_tables,
    primary_key_columns,
    quote_table,
    referential_integrity_disabled,
)
from fixture_builder.infrastructure.legacy_fixtures import load_legacy_fixtures

__all__ = [
    "connect_engine",
    "list_tables",
    "load_legacy_fixtures",
    "primary_key_columns",
    "quote_table",
    "referential_integrity_disabled",
]
