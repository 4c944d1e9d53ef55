"""
Configuration surface for a fixture build.

A `Configuration` is assembled once by the caller (directly, from `Settings`,
or by a factory module's `configure(config)` hook) and handed to the
orchestrator, which works on a frozen copy for the duration of the build.

Invalid values are rejected when they are assigned, not when the build runs:

    config = Configuration(base=Base, files_to_check=["db/schema.sql"])

    @config.name_model_with(User)
    def user_name(row, index):
        return f"{row['email'].split('@')[0]}_{index}"
"""

from __future__ import annotations

import inspect
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, field_validator

from fixture_builder.config import Settings

NamingRule = Callable[[Mapping[str, Any], str], Any]

DEFAULT_RECORD_NAME_FIELDS = ("unique_name", "display_name", "name", "title", "username", "login")


class ConfigurationError(ValueError):
    """Raised when an option or naming rule cannot be accepted."""


class Configuration(BaseModel):
    """
    Options controlling what is tracked, how records are named and where files go.
    """

    model_config = ConfigDict(validate_assignment=True, arbitrary_types_allowed=True)

    root: Path = Field(default_factory=Path.cwd)
    files_to_check: List[str] = Field(default_factory=lambda: ["db/schema.sql"])
    fixtures_path: str = "tests/fixtures"
    fingerprint_file: str = "tmp/fixture_builder.yml"
    use_sha1_digests: bool = False
    write_empty_files: bool = True
    include_tables: Optional[List[str]] = None
    skip_tables: List[str] = Field(default_factory=lambda: ["alembic_version"])
    record_name_fields: List[str] = Field(default_factory=lambda: list(DEFAULT_RECORD_NAME_FIELDS))
    legacy_fixtures: List[str] = Field(default_factory=list)
    delete_sql: str = "DELETE FROM {table}"
    select_sql: str = "SELECT * FROM {table}"
    after_build: Optional[Callable[[], Any]] = None
    base: Optional[Any] = None
    name_rules: Dict[str, Callable[..., Any]] = Field(default_factory=dict)

    _frozen: bool = PrivateAttr(default=False)

    @field_validator("root", mode="after")
    @classmethod
    def _absolute_root(cls, value: Path) -> Path:
        return value.expanduser().resolve()

    @field_validator("files_to_check", "legacy_fixtures", mode="before")
    @classmethod
    def _paths_as_strings(cls, value: Any) -> Any:
        if isinstance(value, (str, Path)):
            value = [value]
        return [str(item) for item in value]

    @field_validator("delete_sql", "select_sql")
    @classmethod
    def _has_table_placeholder(cls, value: str) -> str:
        if "{table}" not in value:
            raise ValueError("SQL template must contain a '{table}' placeholder")
        return value

    @field_validator("base")
    @classmethod
    def _has_registry(cls, value: Any) -> Any:
        if value is not None and not hasattr(value, "registry"):
            raise ValueError("base must be a declarative base exposing a 'registry'")
        return value

    def __setattr__(self, name: str, value: Any) -> None:
        if not name.startswith("_") and self._frozen:
            raise ConfigurationError(f"Configuration is frozen during a build; cannot set {name!r}")
        super().__setattr__(name, value)

    @classmethod
    def from_settings(cls, settings: Settings, **overrides: Any) -> "Configuration":
        """Build a configuration seeded from environment settings."""
        values: Dict[str, Any] = {
            "fixtures_path": settings.fixtures_path,
            "fingerprint_file": settings.fingerprint_file,
            "use_sha1_digests": settings.use_sha1_digests,
        }
        values.update(overrides)
        return cls(**values)

    def name_model_with(self, model: Any, rule: Optional[NamingRule] = None) -> Any:
        """
        Register a naming rule for a model class or table name.

        The rule receives the row's attribute mapping and the zero-padded row
        index and returns the record key. Usable directly or as a decorator.
        """
        if rule is None:

            def decorator(func: NamingRule) -> NamingRule:
                self.name_model_with(model, func)
                return func

            return decorator

        if not callable(rule):
            raise ConfigurationError(f"Naming rule for {model!r} is not callable")
        try:
            inspect.signature(rule).bind({}, "000")
        except TypeError as exc:
            raise ConfigurationError(
                f"Naming rule for {model!r} must accept (attributes, index): {exc}"
            ) from exc
        except ValueError:
            # Builtins without an introspectable signature are taken on trust.
            pass

        table_name = _table_name_for(model)
        self.name_rules = {**self.name_rules, table_name: rule}
        return rule

    def frozen_copy(self) -> "Configuration":
        """
        Return a copy that rejects further assignment.

        Option lists and the rule mapping are copied; callables and the
        declarative base are shared with this configuration.
        """
        snapshot = self.model_copy(
            update={
                "files_to_check": list(self.files_to_check),
                "include_tables": None if self.include_tables is None else list(self.include_tables),
                "skip_tables": list(self.skip_tables),
                "record_name_fields": list(self.record_name_fields),
                "legacy_fixtures": list(self.legacy_fixtures),
                "name_rules": dict(self.name_rules),
            }
        )
        snapshot._frozen = True
        return snapshot

    def fixtures_dir(self, path: str = "") -> Path:
        return self.root / self.fixtures_path / path

    def fixture_file(self, table_name: str) -> Path:
        return self.fixtures_dir(f"{table_name}.yml")

    @property
    def fingerprint_path(self) -> Path:
        return self.root / self.fingerprint_file

    def tracked_files(self) -> List[str]:
        """Files contributing to the fingerprint: inputs plus legacy fixtures, in order."""
        seen: Dict[str, None] = {}
        for path in [*self.files_to_check, *self.legacy_fixtures]:
            seen.setdefault(path, None)
        return list(seen)

    def resolve(self, path: str) -> Path:
        return self.root / path


def _table_name_for(model: Any) -> str:
    if isinstance(model, str):
        if not model:
            raise ConfigurationError("Table name for a naming rule cannot be blank")
        return model
    table = getattr(model, "__table__", None)
    if table is not None:
        return table.name
    table_name = getattr(model, "__tablename__", None)
    if table_name:
        return table_name
    raise ConfigurationError(f"{model!r} is not a mapped model or table name")


__all__ = ["Configuration", "ConfigurationError", "DEFAULT_RECORD_NAME_FIELDS", "NamingRule"]
