"""
Loading of hand-written ("legacy") fixture files before population.

Each file is named `<table>.yml` and maps a label to a row. Rows are inserted
as-is; a row without its single primary key gets an id derived from its label,
so the same label always lands on the same id. Labels become the record keys
when the table is dumped again.
"""

from __future__ import annotations

import json
import zlib
from pathlib import Path
from typing import Any, Dict, Iterable

from sqlalchemy import column, insert, table
from sqlalchemy.engine import Connection

from fixture_builder.infrastructure.database import primary_key_columns
from fixture_builder.naming import Identity, Namer
from fixture_builder.serialization.fixture_yaml import load_fixture
from fixture_builder.utils.logging import get_logger

log = get_logger(__name__)

MAX_ID = 2**30 - 1


def identify(label: str) -> int:
    """Stable integer id for a fixture label."""
    return zlib.crc32(label.encode("utf-8")) % MAX_ID


def _storable(value: Any) -> Any:
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return value


def load_legacy_fixture(conn: Connection, path: Path, namer: Namer) -> int:
    table_name = path.stem
    fixtures = load_fixture(path)
    pk = primary_key_columns(conn, table_name)
    names: Dict[Identity, str] = {}

    for label, attributes in fixtures.items():
        row = {key: _storable(value) for key, value in (attributes or {}).items()}
        if len(pk) == 1 and pk[0] not in row:
            row[pk[0]] = identify(str(label))
        target = table(table_name, *(column(key) for key in row))
        conn.execute(insert(target).values(row))
        if pk and all(key in row for key in pk):
            names[tuple(row[key] for key in pk)] = str(label)

    namer.populate_custom_names(table_name, names)
    log.info(f"=> Loaded legacy fixtures {path.name}", extra={"table": table_name, "rows": len(fixtures)})
    return len(fixtures)


def load_legacy_fixtures(conn: Connection, paths: Iterable[Path], namer: Namer) -> int:
    return sum(load_legacy_fixture(conn, path, namer) for path in paths)


__all__ = ["MAX_ID", "identify", "load_legacy_fixture", "load_legacy_fixtures"]
