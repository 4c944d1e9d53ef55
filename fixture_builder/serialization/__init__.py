"""
Serialization package for the fixture builder.

Column codecs convert attribute values to fixture-safe primitives; the YAML
module writes and reads the fixture files themselves.
"""

from fixture_builder.serialization.codecs import (
    AbstractColumnCodec,
    ColumnCodec,
    resolve_codecs,
    serialize_raw_row,
    serialize_record,
)
from fixture_builder.serialization.fixture_yaml import (
    FixtureDumper,
    database_date_format,
    dump_fixture,
    load_fixture,
)

__all__ = [
    "AbstractColumnCodec",
    "ColumnCodec",
    "FixtureDumper",
    "database_date_format",
    "dump_fixture",
    "load_fixture",
    "resolve_codecs",
    "serialize_raw_row",
    "serialize_record",
]
