"""
Orchestrator for regenerating fixture files from a population callable.

Usage:
    from fixture_builder.orchestrator import build_fixtures

    def populate(ctx):
        ctx.add(MagicalCreature(name="robert", species="gnome"), name="king_of_gnomes")

    result = build_fixtures(config, engine, populate)

A build runs only when the fingerprint of the tracked inputs changed:

    START -> CLEAN -> POPULATE -> NAME_INFERENCE -> WRITE -> HOOK -> DONE

An exception raised while populating ends the process (`SystemExit(1)`)
before any fixture file or fingerprint is written.
"""

from __future__ import annotations

import contextlib
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple

from sqlalchemy import inspect as sa_inspect
from sqlalchemy import select
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, lazyload

from fixture_builder.configuration import Configuration
from fixture_builder.context import BuildContext
from fixture_builder.domain.models import BuildResult, TableDump
from fixture_builder.fingerprint import FingerprintTracker
from fixture_builder.infrastructure.database import (
    list_tables,
    primary_key_columns,
    quote_table,
    referential_integrity_disabled,
)
from fixture_builder.infrastructure.legacy_fixtures import load_legacy_fixtures
from fixture_builder.naming import Identity, Namer, format_index, record_identity
from fixture_builder.serialization.codecs import resolve_codecs, serialize_raw_row, serialize_record
from fixture_builder.serialization.fixture_yaml import database_date_format, dump_fixture
from fixture_builder.utils.logging import get_logger
from fixture_builder.utils.profiler import profile_block

log = get_logger(__name__)

PopulateFn = Callable[[BuildContext], Any]
Row = Tuple[Optional[Identity], Dict[str, Any]]


def _to_sentence(items: Sequence[str]) -> str:
    """["a"] -> "a", ["a", "b"] -> "a and b", ["a", "b", "c"] -> "a, b, and c"."""
    if len(items) <= 1:
        return "".join(items)
    if len(items) == 2:
        return f"{items[0]} and {items[1]}"
    return f"{', '.join(items[:-1])}, and {items[-1]}"


def _models_by_table(base: Any) -> Dict[str, type]:
    """Mapped classes of a declarative base keyed by table name; base classes win over subclasses."""
    if base is None:
        return {}
    models: Dict[str, type] = {}
    for mapper in base.registry.mappers:
        table_name = getattr(mapper.local_table, "name", None)
        if table_name is None:
            continue
        if table_name not in models or mapper.inherits is None:
            models[table_name] = mapper.class_
    return models


class Builder:
    """
    Runs one fixture build against a frozen copy of the configuration.
    """

    def __init__(
        self,
        configuration: Configuration,
        engine: Engine,
        populate: PopulateFn,
        inject: Optional[Mapping[str, Any]] = None,
    ) -> None:
        self._config = configuration.frozen_copy()
        self._engine = engine
        self._populate = populate
        self._inject = dict(inject or {})
        self._namer = Namer(self._config.name_rules, self._config.record_name_fields)
        self._models = _models_by_table(self._config.base)

    @property
    def configuration(self) -> Configuration:
        return self._config

    @property
    def namer(self) -> Namer:
        return self._namer

    def generate(self) -> BuildResult:
        log.info("=> Building fixtures")
        with profile_block("build") as stats:
            tables = self.tables()
            self.clean_out_old_data(tables)
            context = self.create_fixture_objects()
            self.names_from_records(context)
            dumps = self.write_data_to_files(tables)
            if self._config.after_build is not None:
                self._config.after_build()
        result = BuildResult(tables=tables, dumps=dumps, duration_seconds=stats.duration_seconds)
        log.info(
            "=> Fixture build complete",
            extra={"tables": len(tables), "files": len(dumps), "duration_seconds": round(stats.duration_seconds, 2)},
        )
        return result

    def tables(self) -> List[str]:
        with self._engine.connect() as conn:
            return list_tables(conn, include=self._config.include_tables, skip=self._config.skip_tables)

    # CLEAN

    def clean_out_old_data(self, tables: Sequence[str]) -> None:
        self.delete_tables(tables)
        self.delete_fixture_files(tables)

    def delete_tables(self, tables: Sequence[str]) -> None:
        with self._engine.connect() as conn, referential_integrity_disabled(conn):
            with conn.begin():
                for table_name in tables:
                    conn.exec_driver_sql(self._config.delete_sql.format(table=quote_table(conn, table_name)))
        log.debug("Tables cleared", extra={"tables": list(tables)})

    def delete_fixture_files(self, tables: Sequence[str]) -> None:
        for table_name in tables:
            with contextlib.suppress(FileNotFoundError):
                self._config.fixture_file(table_name).unlink()

    # POPULATE

    def create_fixture_objects(self) -> BuildContext:
        session = Session(self._engine)
        context = BuildContext(session, self._namer, self._inject)
        try:
            if self._config.legacy_fixtures:
                load_legacy_fixtures(
                    session.connection(),
                    [self._config.resolve(path) for path in self._config.legacy_fixtures],
                    self._namer,
                )
            with profile_block("populate") as stats:
                self._populate(context)
            session.commit()
        except Exception as exc:
            session.rollback()
            session.close()
            self._surface_error(exc)
        log.debug("Population finished", extra={"duration_seconds": round(stats.duration_seconds, 2)})
        return context

    def _surface_error(self, exc: BaseException) -> None:
        log.error(f"=> There was an error building fixtures: {exc!r}", exc_info=exc)
        raise SystemExit(1) from exc

    # NAME_INFERENCE

    def names_from_records(self, context: BuildContext) -> None:
        try:
            for name, value in context.records.items():
                if record_identity(value) is None:
                    log.debug("Ignoring registered value that is not a saved record", extra={"record_name": name})
                    continue
                self._namer.name(name, value)
        except ValueError as exc:
            self._surface_error(exc)
        finally:
            context.session.close()

    # WRITE

    def write_data_to_files(self, tables: Sequence[str]) -> List[TableDump]:
        self.delete_fixture_files(tables)
        self._config.fixtures_dir().mkdir(parents=True, exist_ok=True)
        if self._config.write_empty_files:
            self.dump_empty_fixtures(tables)
        return self.dump_tables(tables)

    def dump_empty_fixtures(self, tables: Sequence[str]) -> None:
        for table_name in tables:
            dump_fixture({}, self._config.fixture_file(table_name))

    def dump_tables(self, tables: Sequence[str]) -> List[TableDump]:
        dumps: List[TableDump] = []
        with database_date_format(), Session(self._engine) as session:
            for table_name in tables:
                fixture_data, row_count = self.fixture_table(session, table_name)
                if not row_count:
                    continue
                path = self._config.fixture_file(table_name)
                dump_fixture(fixture_data, path)
                dumps.append(TableDump(table=table_name, file=path.name, rows=row_count))
        log.info(f"=> Built {_to_sentence([dump.file for dump in dumps])}", extra={"files": len(dumps)})
        return dumps

    def fixture_table(self, session: Session, table_name: str) -> Tuple[Dict[str, Dict[str, Any]], int]:
        model = self._models.get(table_name)
        rows = self._model_rows(session, model) if model is not None else self._raw_rows(session, table_name)

        fixture_data: Dict[str, Dict[str, Any]] = {}
        row_count = 0
        for row_count, (identity, attributes) in enumerate(rows, start=1):
            key = self._namer.resolve_name(table_name, attributes, format_index(row_count), identity)
            if key in fixture_data:
                log.warning(
                    f"Duplicate fixture key {key!r} in {table_name}; the later row replaces the earlier one",
                    extra={"table": table_name, "key": key},
                )
            fixture_data[key] = attributes
        return fixture_data, row_count

    def _model_rows(self, session: Session, model: type) -> Iterator[Row]:
        mapper = sa_inspect(model)
        codecs = resolve_codecs(model, self._engine.dialect)
        stmt = select(model).options(lazyload("*")).order_by(*mapper.primary_key)
        for record in session.scalars(stmt):
            yield tuple(mapper.primary_key_from_instance(record)), serialize_record(record, codecs)

    def _raw_rows(self, session: Session, table_name: str) -> Iterator[Row]:
        conn = session.connection()
        pk = primary_key_columns(conn, table_name)
        sql = self._config.select_sql.format(table=quote_table(conn, table_name))
        for mapping in conn.exec_driver_sql(sql).mappings():
            identity = tuple(mapping[key] for key in pk) if pk and all(key in mapping for key in pk) else None
            yield identity, serialize_raw_row(mapping)


def build_fixtures(
    configuration: Configuration,
    engine: Engine,
    populate: PopulateFn,
    *,
    force: bool = False,
    inject: Optional[Mapping[str, Any]] = None,
) -> Optional[BuildResult]:
    """
    Rebuild fixtures when the tracked inputs changed.

    Parameters
    ----------
    configuration : Configuration
        Options for this build; a frozen copy is used while it runs.
    engine : Engine
        Engine for the database the fixtures are generated from.
    populate : callable
        Receives a `BuildContext` and creates the records.
    force : bool
        Build even when the fingerprint is unchanged.
    inject : mapping | None
        Objects made available as attributes of the context.

    Returns
    -------
    BuildResult | None
        What was written, or None when the fixtures were already up to date.
    """
    snapshot = configuration.frozen_copy()
    tracker = FingerprintTracker(snapshot)
    if not force and not tracker.should_rebuild():
        log.info("=> Fixtures are up to date")
        return None

    result = Builder(snapshot, engine, populate, inject=inject).generate()
    tracker.persist()
    return result


__all__ = [
    "Builder",
    "PopulateFn",
    "build_fixtures",
]
