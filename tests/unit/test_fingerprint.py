from __future__ import annotations

import hashlib
import os
from pathlib import Path

import pytest
import yaml

from fixture_builder.configuration import Configuration
from fixture_builder.domain.models import Fingerprint
from fixture_builder.fingerprint import FingerprintTracker, listing_digest, mtime_digest, sha1_digest

SCHEMA = "db/schema.sql"


@pytest.fixture
def tracker(config: Configuration) -> FingerprintTracker:
    return FingerprintTracker(config)


def test_sha1_digest_matches_hashlib(tmp_path: Path) -> None:
    path = tmp_path / "input.txt"
    path.write_bytes(b"create table gnomes;")

    assert sha1_digest(path) == f"sha1:{hashlib.sha1(b'create table gnomes;').hexdigest()}"


def test_mtime_digest_changes_with_modification_time(tmp_path: Path) -> None:
    path = tmp_path / "input.txt"
    path.write_text("same")
    before = mtime_digest(path)
    stat = path.stat()
    os.utime(path, ns=(stat.st_atime_ns, stat.st_mtime_ns + 5_000_000_000))

    assert mtime_digest(path) != before
    assert mtime_digest(path).startswith("mtime:")


def test_listing_digest_of_missing_directory(tmp_path: Path) -> None:
    assert listing_digest(tmp_path / "missing") == listing_digest(tmp_path / "also_missing")


def test_missing_tracked_file_has_no_digest(config: Configuration, tracker: FingerprintTracker) -> None:
    config.files_to_check = [SCHEMA, "does/not/exist.rb"]

    fingerprint = tracker.compute()

    assert fingerprint.files["does/not/exist.rb"] is None
    assert fingerprint.files[SCHEMA].startswith("sha1:")


def test_first_run_requires_build(tracker: FingerprintTracker) -> None:
    assert tracker.load() is None
    assert tracker.should_rebuild() is True


def test_persisted_fingerprint_skips_next_build(tracker: FingerprintTracker) -> None:
    persisted = tracker.persist()

    assert tracker.path.exists()
    assert tracker.load() == persisted
    assert tracker.should_rebuild() is False


def test_content_change_requires_build(
    tracker: FingerprintTracker, project_root: Path, caplog: pytest.LogCaptureFixture
) -> None:
    tracker.persist()
    (project_root / SCHEMA).write_text("CREATE TABLE wands (id INTEGER);\n")

    with caplog.at_level("INFO", logger="fixture_builder.fingerprint"):
        assert tracker.should_rebuild() is True

    record = next(r for r in caplog.records if "Inputs changed" in r.getMessage())
    assert record.changed_files == [SCHEMA]


def test_same_content_new_mtime_is_unchanged_with_sha1(
    tracker: FingerprintTracker, project_root: Path
) -> None:
    tracker.persist()
    path = project_root / SCHEMA
    stat = path.stat()
    os.utime(path, ns=(stat.st_atime_ns, stat.st_mtime_ns + 5_000_000_000))

    assert tracker.should_rebuild() is False


def test_touch_requires_build_with_mtime_digests(config: Configuration, project_root: Path) -> None:
    config.use_sha1_digests = False
    tracker = FingerprintTracker(config)
    tracker.persist()
    path = project_root / SCHEMA
    stat = path.stat()
    os.utime(path, ns=(stat.st_atime_ns, stat.st_mtime_ns + 5_000_000_000))

    assert tracker.should_rebuild() is True


def test_fixture_listing_change_requires_build(config: Configuration, tracker: FingerprintTracker) -> None:
    config.fixtures_dir().mkdir(parents=True)
    config.fixture_file("wands").write_text("{}\n")
    tracker.persist()

    config.fixture_file("wands").unlink()

    assert tracker.should_rebuild() is True


def test_added_tracked_file_requires_build(config: Configuration, tracker: FingerprintTracker) -> None:
    tracker.persist()
    config.files_to_check = [*config.files_to_check, "db/seeds.sql"]

    assert tracker.should_rebuild() is True


@pytest.mark.parametrize(
    "content",
    [
        "blah blah blah",
        "files: [unterminated",
        "- a\n- list\n",
        "files: {}\nunexpected: 1\n",
    ],
)
def test_unreadable_fingerprint_requires_build(tracker: FingerprintTracker, content: str) -> None:
    tracker.path.parent.mkdir(parents=True, exist_ok=True)
    tracker.path.write_text(content)

    assert tracker.load() is None
    assert tracker.should_rebuild() is True


def test_fingerprint_is_plain_yaml(tracker: FingerprintTracker) -> None:
    tracker.persist()

    text = tracker.path.read_text(encoding="utf-8")
    assert "!!python" not in text
    assert Fingerprint.model_validate(yaml.safe_load(text)) == tracker.compute()


def test_invalidate(tracker: FingerprintTracker) -> None:
    assert tracker.invalidate() is False
    tracker.persist()

    assert tracker.invalidate() is True
    assert not tracker.path.exists()
    assert tracker.should_rebuild() is True
