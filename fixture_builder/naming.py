"""
Record key resolution for fixture tables.

Precedence for a row's key:

1. an explicit name registered for the row's primary key,
2. the naming rule registered for its table,
3. a snake-cased value from the first populated `record_name_fields` column,
4. `<table>_<index>` with the zero-padded row index.
"""

from __future__ import annotations

import re
from collections import defaultdict
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from sqlalchemy import inspect as sa_inspect

from fixture_builder.utils.logging import get_logger

log = get_logger(__name__)

Identity = Tuple[Any, ...]


def format_index(index: int) -> str:
    return f"{index:03d}"


def snake_case(value: str) -> str:
    """`"King Bob"` -> `king_bob`, `"HTTPServer"` -> `http_server`."""
    text = re.sub(r"([A-Z]+)([A-Z][a-z])", r"\1_\2", value)
    text = re.sub(r"([a-z\d])([A-Z])", r"\1_\2", text).replace("-", "_").lower()
    text = re.sub(r"\W", " ", text)
    return re.sub(r" +", " ", text).strip().replace(" ", "_")


def record_identity(record: Any) -> Optional[Tuple[str, Identity]]:
    """(table name, primary key) of a persistent mapped instance, else None."""
    state = sa_inspect(record, raiseerr=False)
    if state is None or not (getattr(state, "persistent", False) or getattr(state, "detached", False)):
        return None
    if state.identity is None:
        return None
    return state.mapper.local_table.name, tuple(state.identity)


class Namer:
    """
    Holds naming rules and explicit names for one build.
    """

    def __init__(
        self,
        name_rules: Optional[Mapping[str, Any]] = None,
        record_name_fields: Sequence[str] = (),
    ) -> None:
        self._name_rules = dict(name_rules or {})
        self._record_name_fields = list(record_name_fields)
        self._custom_names: Dict[Tuple[str, Identity], str] = {}
        self._record_names: Dict[str, List[str]] = defaultdict(list)

    @property
    def custom_names(self) -> Dict[Tuple[str, Identity], str]:
        return dict(self._custom_names)

    def name(self, custom_name: str, *records: Any) -> Tuple[Any, ...]:
        """
        Give persisted records an explicit key.

        Several records may share a name when they live in different tables.
        """
        if not custom_name or not str(custom_name).strip():
            raise ValueError("Cannot name a record with a blank name")
        for record in records:
            key = record_identity(record)
            if key is None:
                raise ValueError(f"Cannot name {record!r} {custom_name!r}: it has not been saved")
            self._register(key, str(custom_name))
        return records

    def populate_custom_names(self, table_name: str, names_by_identity: Mapping[Identity, str]) -> None:
        """Register names for rows that were inserted from legacy fixture files."""
        for identity, label in names_by_identity.items():
            self._register((table_name, tuple(identity)), str(label))

    def _register(self, key: Tuple[str, Identity], name: str) -> None:
        existing = self._custom_names.get(key)
        if existing is not None and existing != name:
            raise ValueError(f"Cannot name {key!r} {name!r}: already named {existing!r}")
        self._custom_names[key] = name

    def resolve_name(
        self,
        table_name: str,
        attributes: Mapping[str, Any],
        fallback_index: str,
        identity: Optional[Identity] = None,
    ) -> str:
        if identity is not None:
            custom = self._custom_names.get((table_name, tuple(identity)))
            if custom is not None:
                return self._remember(table_name, custom)

        rule = self._name_rules.get(table_name)
        if rule is not None:
            return self._remember(table_name, str(rule(attributes, fallback_index)))

        inferred = self._inferred_name(table_name, attributes)
        if inferred is not None:
            return self._remember(table_name, inferred)

        return self._remember(table_name, f"{table_name}_{fallback_index}")

    def _inferred_name(self, table_name: str, attributes: Mapping[str, Any]) -> Optional[str]:
        for field in self._record_name_fields:
            value = attributes.get(field)
            if value is None or value == "":
                continue
            inferred = snake_case(str(value))
            if not inferred:
                continue
            used = set(self._record_names[table_name])
            count = sum(1 for name in used if name.startswith(inferred))
            candidate = inferred if count == 0 else f"{inferred}_{count}"
            while candidate in used:
                count += 1
                candidate = f"{inferred}_{count}"
            return candidate
        return None

    def _remember(self, table_name: str, name: str) -> str:
        self._record_names[table_name].append(name)
        return name


__all__ = ["Identity", "Namer", "format_index", "record_identity", "snake_case"]
