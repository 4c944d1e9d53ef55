"""
Change detection for fixture builds.

The tracker digests every tracked input file (SHA-1 of the content, or the
cheaper modification time and size) together with the names of the files
currently in the fixtures directory. A build is skipped only when that
fingerprint equals the one persisted after the previous build.
"""

from __future__ import annotations

import hashlib
from pathlib import Path
from typing import Optional

import yaml
from pydantic import ValidationError

from fixture_builder.configuration import Configuration
from fixture_builder.domain.models import Fingerprint
from fixture_builder.utils.logging import get_logger

log = get_logger(__name__)

_CHUNK_SIZE = 64 * 1024


def sha1_digest(path: Path) -> str:
    digest = hashlib.sha1()
    with path.open("rb") as f:
        for chunk in iter(lambda: f.read(_CHUNK_SIZE), b""):
            digest.update(chunk)
    return f"sha1:{digest.hexdigest()}"


def mtime_digest(path: Path) -> str:
    stat = path.stat()
    return f"mtime:{stat.st_mtime_ns}-{stat.st_size}"


def listing_digest(directory: Path) -> str:
    """Digest of the sorted file names in `directory` (empty when it does not exist)."""
    names = sorted(p.name for p in directory.iterdir() if p.is_file()) if directory.is_dir() else []
    return hashlib.sha1("\n".join(names).encode("utf-8")).hexdigest()


class FingerprintTracker:
    """
    Computes, compares and persists the fingerprint for one configuration.
    """

    def __init__(self, configuration: Configuration) -> None:
        self._config = configuration

    @property
    def path(self) -> Path:
        return self._config.fingerprint_path

    def file_digest(self, path: Path) -> Optional[str]:
        if not path.is_file():
            return None
        if self._config.use_sha1_digests:
            return sha1_digest(path)
        return mtime_digest(path)

    def compute(self) -> Fingerprint:
        files = {
            tracked: self.file_digest(self._config.resolve(tracked))
            for tracked in self._config.tracked_files()
        }
        return Fingerprint(files=files, fixture_files=listing_digest(self._config.fixtures_dir()))

    def load(self) -> Optional[Fingerprint]:
        """
        Read the persisted fingerprint; missing or unreadable state yields None.
        """
        try:
            raw = yaml.safe_load(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return None
        except yaml.YAMLError as exc:
            log.warning("Ignoring unparsable fingerprint file", extra={"path": str(self.path), "error": str(exc)})
            return None
        if not isinstance(raw, dict):
            return None
        try:
            return Fingerprint.model_validate(raw)
        except ValidationError:
            log.warning("Ignoring malformed fingerprint file", extra={"path": str(self.path)})
            return None

    def should_rebuild(self) -> bool:
        previous = self.load()
        if previous is None:
            log.info("=> No previous fingerprint, fixtures will be built")
            return True
        current = self.compute()
        if current != previous:
            changed = sorted(
                path
                for path in set(current.files) | set(previous.files)
                if current.files.get(path) != previous.files.get(path)
            )
            log.info(
                "=> Inputs changed, fixtures will be rebuilt",
                extra={
                    "changed_files": changed,
                    "fixture_files_changed": current.fixture_files != previous.fixture_files,
                },
            )
            return True
        return False

    def persist(self) -> Fingerprint:
        fingerprint = self.compute()
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.path.open("w", encoding="utf-8") as f:
            yaml.safe_dump(fingerprint.model_dump(), f, default_flow_style=False, sort_keys=True)
        log.debug("Fingerprint persisted", extra={"path": str(self.path)})
        return fingerprint

    def invalidate(self) -> bool:
        """Delete the persisted fingerprint so the next build runs unconditionally."""
        try:
            self.path.unlink()
        except FileNotFoundError:
            return False
        return True


__all__ = ["FingerprintTracker", "listing_digest", "mtime_digest", "sha1_digest"]
