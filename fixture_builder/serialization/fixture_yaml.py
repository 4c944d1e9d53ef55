"""
YAML output for fixture files.

`FixtureDumper` is a `SafeDumper`, so nothing it writes needs a Python tag to
load again. While `database_date_format()` is active, dates and timestamps are
written in the database's textual format instead of YAML timestamps.
"""

from __future__ import annotations

import contextlib
import datetime as dt
import enum
import uuid
from decimal import Decimal
from pathlib import Path
from typing import Any, Generator, Mapping

import yaml

DB_DATE_FORMAT = "%Y-%m-%d"
DB_DATETIME_FORMAT = "%Y-%m-%d %H:%M:%S"


class FixtureDumper(yaml.SafeDumper):
    """SafeDumper that also knows the scalar types database drivers hand back."""

    def ignore_aliases(self, data: Any) -> bool:
        return True


def _represent_as_string(dumper: yaml.SafeDumper, value: Any) -> yaml.Node:
    return dumper.represent_str(str(value))


def _represent_time(dumper: yaml.SafeDumper, value: dt.time) -> yaml.Node:
    return dumper.represent_str(value.isoformat())


def _represent_enum(dumper: yaml.SafeDumper, value: enum.Enum) -> yaml.Node:
    return dumper.represent_data(value.value)


def _represent_memoryview(dumper: yaml.SafeDumper, value: memoryview) -> yaml.Node:
    return dumper.represent_binary(bytes(value))


def _represent_db_date(dumper: yaml.SafeDumper, value: dt.date) -> yaml.Node:
    return dumper.represent_str(value.strftime(DB_DATE_FORMAT))


def _represent_db_datetime(dumper: yaml.SafeDumper, value: dt.datetime) -> yaml.Node:
    text = value.strftime(DB_DATETIME_FORMAT)
    if value.microsecond:
        text = f"{text}.{value.microsecond:06d}"
    if value.utcoffset() is not None:
        text = f"{text}{value.strftime('%z')}"
    return dumper.represent_str(text)


FixtureDumper.add_representer(Decimal, _represent_as_string)
FixtureDumper.add_representer(uuid.UUID, _represent_as_string)
FixtureDumper.add_representer(dt.time, _represent_time)
FixtureDumper.add_representer(memoryview, _represent_memoryview)
FixtureDumper.add_multi_representer(enum.Enum, _represent_enum)


@contextlib.contextmanager
def database_date_format() -> Generator[None, None, None]:
    """
    Write `date`/`datetime` values in database textual format for the duration.

    The previous representers are restored on exit, including when the body raises.
    """
    representers = FixtureDumper.yaml_representers
    saved = {kind: representers.get(kind) for kind in (dt.date, dt.datetime)}
    FixtureDumper.add_representer(dt.date, _represent_db_date)
    FixtureDumper.add_representer(dt.datetime, _represent_db_datetime)
    try:
        yield
    finally:
        for kind, previous in saved.items():
            if previous is None:
                FixtureDumper.yaml_representers.pop(kind, None)
            else:
                FixtureDumper.yaml_representers[kind] = previous


def dump_fixture(fixture_data: Mapping[str, Any], path: Path) -> None:
    with path.open("w", encoding="utf-8") as f:
        yaml.dump(
            dict(fixture_data),
            f,
            Dumper=FixtureDumper,
            default_flow_style=False,
            sort_keys=False,
            allow_unicode=True,
        )


def load_fixture(path: Path) -> dict:
    with path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f)
    return data or {}


__all__ = ["FixtureDumper", "database_date_format", "dump_fixture", "load_fixture"]
