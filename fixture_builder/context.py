"""
The object handed to population callables.

    def populate(ctx):
        gnome = ctx.add(MagicalCreature(name="robert", species="gnome"))
        ctx.records["king_of_gnomes"] = gnome

Records placed in `records` are keyed by that name in the fixture files.
Objects injected into the build are reachable as attributes (`ctx.clock`).
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping, Optional

from sqlalchemy.orm import Session

from fixture_builder.naming import Namer


class BuildContext:
    """
    Session, naming helpers and injected objects for one population run.
    """

    def __init__(self, session: Session, namer: Namer, inject: Optional[Mapping[str, Any]] = None) -> None:
        self.session = session
        self.records: Dict[str, Any] = {}
        self._namer = namer
        self._injected = dict(inject or {})

    def __getattr__(self, name: str) -> Any:
        injected = self.__dict__.get("_injected", {})
        if name in injected:
            return injected[name]
        raise AttributeError(f"{type(self).__name__!s} has no attribute or injected object {name!r}")

    def add(self, record: Any, name: Optional[str] = None) -> Any:
        """Add and flush a record, optionally registering it under `name`."""
        self.session.add(record)
        self.session.flush()
        if name is not None:
            self.records[name] = record
        return record

    def add_all(self, records: Iterable[Any]) -> List[Any]:
        added = list(records)
        self.session.add_all(added)
        self.session.flush()
        return added

    def name(self, custom_name: str, *records: Any) -> Any:
        """
        Give one or more records an explicit fixture key right away.

        Returns the record when one is given, otherwise the tuple of records.
        """
        self.session.flush()
        named = self._namer.name(custom_name, *records)
        return named[0] if len(named) == 1 else named


__all__ = ["BuildContext"]
