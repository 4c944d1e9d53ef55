"""
Column codecs: turning in-memory attribute values into fixture-safe primitives.

Each mapped column gets one codec, resolved once per table by
`resolve_codecs()`:

- `OpaqueCodec` for columns without a declared type (`NullType`) and for rows
  of tables that have no mapped class; values are written as stored.
- `StructuredJsonCodec` for JSON-flavored types stored in a JSON/JSONB column;
  values are written as plain mappings/sequences.
- `TypeCodec` for everything else; the column type's bind processor produces
  the primitive the database itself would store.

`None` always serializes to `None`, which callers drop from the row.
"""

from __future__ import annotations

import abc
import dataclasses
from typing import Any, Dict, Mapping, Optional, Protocol, runtime_checkable

from sqlalchemy import Column
from sqlalchemy import inspect as sa_inspect
from sqlalchemy.engine import Dialect
from sqlalchemy.exc import CompileError
from sqlalchemy.orm.exc import UnmappedColumnError
from sqlalchemy.types import JSON, NullType, TypeDecorator, TypeEngine

JSON_STORAGE_TYPES = frozenset({"json", "jsonb"})


@runtime_checkable
class ColumnCodec(Protocol):
    """
    Common interface of all column codecs.

    Attributes
    ----------
    column_name : str
        Name of the database column, used as the key in fixture rows.
    attribute : str
        Name of the mapped attribute the value is read from.
    """

    column_name: str
    attribute: str

    def serialize(self, value: Any) -> Any:
        """Return a fixture-safe primitive, or None when the value is absent."""
        ...

    def deserialize(self, primitive: Any) -> Any:
        """Return the in-memory value for a primitive read from a fixture."""
        ...


class AbstractColumnCodec(abc.ABC):
    """
    Base class for codecs bound to one column of one dialect.
    """

    def __init__(self, column: Column, attribute: str, dialect: Dialect) -> None:
        self.column = column
        self.column_name = column.name
        self.attribute = attribute
        self.dialect = dialect

    def serialize(self, value: Any) -> Any:
        if value is None:
            return None
        return _plain(self._serialize(value))

    @abc.abstractmethod
    def _serialize(self, value: Any) -> Any:  # pragma: no cover - interface only
        raise NotImplementedError

    def deserialize(self, primitive: Any) -> Any:
        return primitive

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.column.table.name}.{self.column_name})"


class OpaqueCodec(AbstractColumnCodec):
    def _serialize(self, value: Any) -> Any:
        return value


class StructuredJsonCodec(AbstractColumnCodec):
    def _serialize(self, value: Any) -> Any:
        return structured_export(value)

    def deserialize(self, primitive: Any) -> Any:
        if primitive is not None and isinstance(self.column.type, TypeDecorator):
            return self.column.type.process_result_value(primitive, self.dialect)
        return primitive


class TypeCodec(AbstractColumnCodec):
    def __init__(self, column: Column, attribute: str, dialect: Dialect) -> None:
        super().__init__(column, attribute, dialect)
        impl = column.type.dialect_impl(dialect)
        self._bind = impl.bind_processor(dialect)
        self._result = impl.result_processor(dialect, None)

    def _serialize(self, value: Any) -> Any:
        return self._bind(value) if self._bind is not None else value

    def deserialize(self, primitive: Any) -> Any:
        if primitive is None or self._result is None:
            return primitive
        return self._result(primitive)


def structured_export(value: Any) -> Any:
    """
    Plain mapping/sequence form of a JSON-like value.

    Prefers the object's own export (`as_json`, pydantic's `model_dump`), then
    a generic conversion (`to_dict`, dataclasses), then the value itself.
    """
    if hasattr(value, "as_json"):
        return value.as_json()
    if hasattr(value, "model_dump"):
        return value.model_dump(mode="json")
    if hasattr(value, "to_dict"):
        return value.to_dict()
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return dataclasses.asdict(value)
    return value


def storage_type(type_: TypeEngine, dialect: Dialect) -> Optional[str]:
    """Lower-cased DDL name of the column type for `dialect` (`"jsonb"`, `"varchar"`)."""
    try:
        ddl = type_.compile(dialect=dialect)
    except CompileError:
        return None
    return ddl.split("(", 1)[0].strip().lower()


def is_json_flavored(type_: TypeEngine) -> bool:
    if isinstance(type_, JSON):
        return True
    return isinstance(type_, TypeDecorator) and isinstance(type_.impl, JSON)


def codec_for(column: Column, attribute: str, dialect: Dialect) -> AbstractColumnCodec:
    type_ = column.type
    if isinstance(type_, NullType):
        return OpaqueCodec(column, attribute, dialect)
    if is_json_flavored(type_) and storage_type(type_, dialect) in JSON_STORAGE_TYPES:
        return StructuredJsonCodec(column, attribute, dialect)
    return TypeCodec(column, attribute, dialect)


def resolve_codecs(model: type, dialect: Dialect) -> Dict[str, ColumnCodec]:
    """
    Codecs for every table column of a mapped class, in table column order.

    Columns not mapped to an attribute, column properties and other virtual
    attributes are left out.
    """
    mapper = sa_inspect(model)
    codecs: Dict[str, ColumnCodec] = {}
    for column in mapper.local_table.columns:
        try:
            prop = mapper.get_property_by_column(column)
        except UnmappedColumnError:
            continue
        codecs[column.name] = codec_for(column, prop.key, dialect)
    return codecs


def serialize_record(record: Any, codecs: Mapping[str, ColumnCodec]) -> Dict[str, Any]:
    row: Dict[str, Any] = {}
    for column_name, codec in codecs.items():
        value = codec.serialize(getattr(record, codec.attribute))
        if value is not None:
            row[column_name] = value
    return row


def serialize_raw_row(row: Mapping[str, Any]) -> Dict[str, Any]:
    return {key: _plain(value) for key, value in row.items() if value is not None}


def _plain(value: Any) -> Any:
    if isinstance(value, memoryview):
        return bytes(value)
    return value


__all__ = [
    "AbstractColumnCodec",
    "ColumnCodec",
    "OpaqueCodec",
    "StructuredJsonCodec",
    "TypeCodec",
    "codec_for",
    "is_json_flavored",
    "resolve_codecs",
    "serialize_raw_row",
    "serialize_record",
    "storage_type",
    "structured_export",
]
