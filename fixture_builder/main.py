from __future__ import annotations

import importlib
import importlib.util
import sys
from pathlib import Path
from types import ModuleType
from typing import Callable, Optional, Tuple

import typer

from fixture_builder.config import get_settings
from fixture_builder.configuration import Configuration
from fixture_builder.fingerprint import FingerprintTracker
from fixture_builder.infrastructure.database import connect_engine
from fixture_builder.orchestrator import build_fixtures
from fixture_builder.reporter import print_build_summary
from fixture_builder.utils.logging import configure_logging

app = typer.Typer(help="Regenerate YAML test fixtures from a population callable.")


def load_factory(target: str) -> Tuple[ModuleType, Callable]:
    """
    Resolve `module:callable` or `path/to/file.py:callable` (callable defaults to `populate`).
    """
    module_ref, sep, attr = target.rpartition(":")
    if not sep:
        module_ref, attr = target, "populate"

    if module_ref.endswith(".py"):
        path = Path(module_ref).resolve()
        if not path.is_file():
            raise typer.BadParameter(f"Factory file not found: {path}", param_hint="--factory")
        spec = importlib.util.spec_from_file_location(path.stem, path)
        if spec is None or spec.loader is None:
            raise typer.BadParameter(f"Cannot load factory file {path}", param_hint="--factory")
        module = importlib.util.module_from_spec(spec)
        sys.modules[spec.name] = module
        spec.loader.exec_module(module)
    else:
        if str(Path.cwd()) not in sys.path:
            sys.path.insert(0, str(Path.cwd()))
        try:
            module = importlib.import_module(module_ref)
        except ImportError as exc:
            raise typer.BadParameter(f"Cannot import {module_ref!r}: {exc}", param_hint="--factory") from exc

    populate = getattr(module, attr, None)
    if not callable(populate):
        raise typer.BadParameter(f"{module_ref!r} has no callable {attr!r}", param_hint="--factory")
    return module, populate


@app.command()
def info() -> None:
    """
    Show effective configuration values.
    """
    settings = get_settings()
    url = settings.build_database_url().render_as_string(hide_password=True)
    typer.echo(
        f"DB={url} | fixtures={settings.fixtures_path} | fingerprint={settings.fingerprint_file} "
        f"| digests={'sha1' if settings.use_sha1_digests else 'mtime'}"
    )


@app.command()
def build(
    factory: str = typer.Option(
        ...,
        "--factory",
        "-f",
        help="Population callable as module:callable or path/to/file.py:callable.",
    ),
    force: bool = typer.Option(
        False,
        "--force",
        help="Rebuild even when no tracked input changed.",
    ),
    database_url: Optional[str] = typer.Option(
        None,
        "--database-url",
        help="Override the database URL from settings.",
    ),
    sha1: Optional[bool] = typer.Option(
        None,
        "--sha1/--mtime",
        help="Fingerprint tracked files by content hash or by modification time and size.",
    ),
    json_logs: bool = typer.Option(
        False,
        "--json-logs",
        help="Emit logs as JSON lines.",
    ),
) -> None:
    """
    Rebuild fixtures when the tracked inputs changed.

    A factory module may define `configure(config)` to register naming rules,
    the declarative base and other options before the build.
    """
    settings = get_settings()
    configure_logging(level=settings.log_level, json_logs=json_logs)

    module, populate = load_factory(factory)
    config = Configuration.from_settings(settings)
    configure = getattr(module, "configure", None)
    if callable(configure):
        configure(config)
    if sha1 is not None:
        config.use_sha1_digests = sha1

    engine = connect_engine(database_url or settings.build_database_url())
    try:
        result = build_fixtures(config, engine, populate, force=force)
    finally:
        engine.dispose()
    print_build_summary(result)


@app.command()
def invalidate() -> None:
    """
    Delete the stored fingerprint so the next build runs unconditionally.
    """
    config = Configuration.from_settings(get_settings())
    if FingerprintTracker(config).invalidate():
        typer.echo(f"Removed {config.fingerprint_path}")
    else:
        typer.echo(f"No fingerprint at {config.fingerprint_path}")


def main() -> None:
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)


if __name__ == "__main__":
    main()
