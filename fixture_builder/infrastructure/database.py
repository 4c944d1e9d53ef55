"""
Database helpers for the fixture builder.

Engine creation with retry for transient connection failures, table listing,
identifier quoting and a scoped switch for referential-integrity checks.
Schema knowledge and query execution stay with SQLAlchemy; this layer only
adds what a fixture build needs around it.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Dict, Generator, Iterable, List, Optional, Union

from sqlalchemy import create_engine, text
from sqlalchemy import inspect as sa_inspect
from sqlalchemy.engine import URL, Connection, Engine, make_url
from sqlalchemy.exc import InterfaceError, OperationalError
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from fixture_builder.utils.logging import get_logger

log = get_logger(__name__)


def _engine_kwargs(url: URL) -> Dict[str, Any]:
    kwargs: Dict[str, Any] = {}
    if url.get_backend_name() == "sqlite":
        kwargs["connect_args"] = {"check_same_thread": False}
    else:
        kwargs["pool_pre_ping"] = True
    return kwargs


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception_type((OperationalError, InterfaceError)),
    reraise=True,
)
def _verify(engine: Engine) -> None:
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))


def connect_engine(url: Union[str, URL]) -> Engine:
    """
    Create an engine and check it can reach the database.

    Retries up to 3 times with exponential backoff for transient connection errors.

    Raises
    ------
    sqlalchemy.exc.OperationalError
        If the database is still unreachable after all attempts.
    """
    engine = create_engine(url, **_engine_kwargs(make_url(url)))
    log.info("Connecting to database", extra={"url": engine.url.render_as_string(hide_password=True)})
    _verify(engine)
    return engine


def list_tables(
    bind: Union[Engine, Connection],
    include: Optional[Iterable[str]] = None,
    skip: Iterable[str] = (),
) -> List[str]:
    """
    Tables present in the database, minus `skip`, restricted to `include` when given.
    """
    names = sa_inspect(bind).get_table_names()
    skipped = set(skip)
    tables = [name for name in names if name not in skipped]
    if include is not None:
        wanted = set(include)
        tables = [name for name in tables if name in wanted]
    return tables


def primary_key_columns(bind: Union[Engine, Connection], table_name: str) -> List[str]:
    constraint = sa_inspect(bind).get_pk_constraint(table_name)
    return list(constraint.get("constrained_columns") or [])


def quote_table(bind: Union[Engine, Connection], table_name: str) -> str:
    return bind.dialect.identifier_preparer.quote(table_name)


# (read current setting, set statement, disabled value) per dialect
_INTEGRITY_SWITCHES = {
    "sqlite": ("PRAGMA foreign_keys", "PRAGMA foreign_keys = {value}", "0"),
    "postgresql": (
        "SHOW session_replication_role",
        "SET session_replication_role = {value}",
        "replica",
    ),
    "mysql": ("SELECT @@FOREIGN_KEY_CHECKS", "SET FOREIGN_KEY_CHECKS = {value}", "0"),
    "mariadb": ("SELECT @@FOREIGN_KEY_CHECKS", "SET FOREIGN_KEY_CHECKS = {value}", "0"),
}


@contextmanager
def referential_integrity_disabled(conn: Connection) -> Generator[Connection, None, None]:
    """
    Suspend foreign-key enforcement on `conn` for the duration of the block.

    The switch is committed on its own, so the block should run its work in
    its own transaction. The previous setting is restored even when the
    block raises; a transaction the block left open is rolled back first.

    Example
    -------
        with engine.connect() as conn, referential_integrity_disabled(conn):
            with conn.begin():
                conn.execute(text("DELETE FROM parents"))
    """
    switch = _INTEGRITY_SWITCHES.get(conn.dialect.name)
    if switch is None:
        log.warning(
            "Referential integrity cannot be toggled for this dialect",
            extra={"dialect": conn.dialect.name},
        )
        yield conn
        return

    read_sql, set_sql, disabled = switch
    previous = conn.exec_driver_sql(read_sql).scalar()
    conn.exec_driver_sql(set_sql.format(value=disabled))
    conn.commit()
    try:
        yield conn
    finally:
        if conn.in_transaction():
            conn.rollback()
        conn.exec_driver_sql(set_sql.format(value=previous))
        conn.commit()


__all__ = [
    "connect_engine",
    "list_tables",
    "primary_key_columns",
    "quote_table",
    "referential_integrity_disabled",
]
