"""
Fixture Builder - regenerate YAML test fixtures from a population callable.

Integration tests load fast, deterministic fixture files instead of running
factories on every run. The builder:

- fingerprints the inputs (schema, factory modules, config) and skips the
  build when none changed,
- clears the tracked tables and the old fixture files,
- runs the population callable against the live schema,
- names each record (explicit names, per-model rules, name columns, or
  `<table>_<index>`),
- dumps every table to `<table>.yml` with database-faithful values.
"""

from __future__ import annotations

__version__ = "0.1.0"
__license__ = "MIT"

# Public API exports
from fixture_builder.config import Settings, get_settings
from fixture_builder.configuration import Configuration, ConfigurationError
from fixture_builder.context import BuildContext
from fixture_builder.domain.models import BuildResult, Fingerprint, TableDump
from fixture_builder.fingerprint import FingerprintTracker
from fixture_builder.naming import Namer
from fixture_builder.orchestrator import Builder, build_fixtures
from fixture_builder.utils.logging import configure_logging, get_logger

__all__ = [
    # Version info
    "__version__",
    "__license__",
    # Configuration
    "Settings",
    "get_settings",
    "Configuration",
    "ConfigurationError",
    # Orchestration
    "Builder",
    "BuildContext",
    "build_fixtures",
    # Components
    "FingerprintTracker",
    "Namer",
    # Results
    "BuildResult",
    "Fingerprint",
    "TableDump",
    # Logging
    "configure_logging",
    "get_logger",
]
