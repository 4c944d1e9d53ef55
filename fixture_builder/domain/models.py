"""
Domain models for the fixture builder.

`Fingerprint` is the persisted state compared between runs; `BuildResult`
summarizes what a performed build wrote.
"""
from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class Fingerprint(BaseModel):
    """
    Digests of every tracked input plus a digest of the fixture file listing.

    Equality of two fingerprints is field equality, which is what decides
    whether a build can be skipped.
    """

    files: Dict[str, Optional[str]] = Field(
        default_factory=dict, description="Tracked path -> 'sha1:<hex>' or 'mtime:<ns>-<size>'."
    )
    fixture_files: str = Field(..., description="SHA-1 of the sorted fixture file names.")

    model_config = {
        "frozen": True,
        "extra": "forbid",
    }


class TableDump(BaseModel):
    """
    One written fixture file.
    """

    table: str
    file: str
    rows: int


class BuildResult(BaseModel):
    """
    Outcome of a performed build.
    """

    tables: List[str] = Field(default_factory=list, description="Tables that were cleaned and dumped.")
    dumps: List[TableDump] = Field(default_factory=list, description="Files written with rows.")
    duration_seconds: float = 0.0

    @property
    def files(self) -> List[str]:
        return [dump.file for dump in self.dumps]


__all__ = ["BuildResult", "Fingerprint", "TableDump"]
