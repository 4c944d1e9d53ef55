"""
Pytest configuration for the fixture builder.

Provides fixtures for:
- A temporary project root with tracked input files
- A SQLite database with the test schema (foreign keys enforced)
- A Configuration pointing at both
"""

from __future__ import annotations

import json
from datetime import date
from pathlib import Path
from typing import Any, Generator, List, Optional

import pytest
from pydantic import BaseModel
from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    ForeignKey,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    create_engine,
    event,
)
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Mapped, column_property, mapped_column
from sqlalchemy.types import TypeDecorator

from fixture_builder.config import get_settings
from fixture_builder.configuration import Configuration


class WizardData(BaseModel):
    """Rich value wrapping a JSON document."""

    level: Optional[int] = None
    title: Optional[str] = None
    allies: List[str] = []


class WizardDataType(TypeDecorator):
    """WizardData stored in a JSON column."""

    impl = JSON
    cache_ok = True

    def process_bind_param(self, value: Any, dialect: Any) -> Any:
        if value is None:
            return None
        if isinstance(value, WizardData):
            return value.model_dump()
        return dict(value)

    def process_result_value(self, value: Any, dialect: Any) -> Any:
        return None if value is None else WizardData.model_validate(value)


class WizardTextType(TypeDecorator):
    """WizardData stored as JSON text."""

    impl = Text
    cache_ok = True

    def process_bind_param(self, value: Any, dialect: Any) -> Any:
        if value is None:
            return None
        if not isinstance(value, WizardData):
            value = WizardData.model_validate(value)
        return value.model_dump_json()

    def process_result_value(self, value: Any, dialect: Any) -> Any:
        return None if value is None else WizardData.model_validate_json(value)


class StringList(TypeDecorator):
    """Ordered list of strings stored as JSON text."""

    impl = Text
    cache_ok = True

    def process_bind_param(self, value: Any, dialect: Any) -> Any:
        return None if value is None else json.dumps([str(item) for item in value])

    def process_result_value(self, value: Any, dialect: Any) -> Any:
        return None if value is None else json.loads(value)


class Base(DeclarativeBase):
    pass


class MagicalCreature(Base):
    __tablename__ = "magical_creatures"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(100))
    species: Mapped[str] = mapped_column(String(100))
    powers: Mapped[Optional[list]] = mapped_column(StringList, nullable=True)
    wizard_data: Mapped[Optional[WizardData]] = mapped_column(WizardTextType, nullable=True)
    born_on: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    deleted: Mapped[bool] = mapped_column(Boolean, default=False)

    virtual: Mapped[str] = column_property(name + " the " + species)


class SimulationModel(Base):
    __tablename__ = "simulation_models"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(100))
    configuration: Mapped[Optional[WizardData]] = mapped_column(WizardDataType, nullable=True)


class Apprentice(Base):
    __tablename__ = "apprentices"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    email: Mapped[str] = mapped_column(String(200))


class Wand(Base):
    __tablename__ = "wands"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    apprentice_id: Mapped[int] = mapped_column(ForeignKey("apprentices.id"))
    wood: Mapped[str] = mapped_column(String(50))


# Tables without a mapped class are dumped from raw rows.
unmapped_metadata = MetaData()
audit_log = Table(
    "audit_log",
    unmapped_metadata,
    Column("id", Integer, primary_key=True),
    Column("message", String(200)),
    Column("detail", Text, nullable=True),
)

ALL_TABLES = ["apprentices", "audit_log", "magical_creatures", "simulation_models", "wands"]


@pytest.fixture(autouse=True)
def _fresh_settings() -> Generator[None, None, None]:
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def project_root(tmp_path: Path) -> Path:
    """
    Temporary project with a schema file and a factory module to fingerprint.
    """
    (tmp_path / "db").mkdir()
    (tmp_path / "db" / "schema.sql").write_text("CREATE TABLE magical_creatures (id INTEGER);\n")
    (tmp_path / "factories.py").write_text("# factories\n")
    return tmp_path


@pytest.fixture
def engine(tmp_path: Path) -> Generator[Engine, None, None]:
    """
    SQLite database file with the test schema and foreign keys enforced.
    """
    db_engine = create_engine(f"sqlite:///{tmp_path / 'test.db'}")

    @event.listens_for(db_engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys = ON")
        cursor.close()

    Base.metadata.create_all(db_engine)
    unmapped_metadata.create_all(db_engine)
    try:
        yield db_engine
    finally:
        db_engine.dispose()


@pytest.fixture
def config(project_root: Path) -> Configuration:
    return Configuration(
        root=project_root,
        base=Base,
        files_to_check=["db/schema.sql", "factories.py"],
        use_sha1_digests=True,
    )
