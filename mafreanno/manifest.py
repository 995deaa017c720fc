"""Run manifest handling.

The manifest records one fingerprint per reannotated input MAF, as a flat
tab-separated file in the working directory. It is handled as a small
key-value store keyed by input path: load everything, upsert, write everything.
"""

from __future__ import annotations

import dataclasses
import os
from pathlib import Path
from typing import List, Optional, Tuple

FIELD_COUNT = 6


@dataclasses.dataclass
class RunFingerprint:
    input_path: str
    input_md5: str
    input_modified: str
    output_path: str
    output_md5: str
    output_modified: str

    def to_line(self) -> str:
        return "\t".join(dataclasses.astuple(self))

    @classmethod
    def from_line(cls, line: str) -> Optional["RunFingerprint"]:
        """Parse one manifest line, returning None if it is malformed."""
        fields = line.rstrip("\r\n").split("\t")
        if len(fields) != FIELD_COUNT or not fields[0]:
            return None
        return cls(*fields)


def load_manifest(path: Path) -> Tuple[List[RunFingerprint], List[str]]:
    """Load a manifest file.

    Returns the parsed entries plus any lines that could not be parsed, so that
    rewriting the manifest does not throw away what a reader did not understand.
    A missing manifest is an empty one.
    """
    entries: List[RunFingerprint] = []
    unparsed: List[str] = []
    path = Path(path)
    if not path.exists():
        return entries, unparsed

    with open(path, "r") as f:
        for line in f:
            if not line.strip():
                continue
            entry = RunFingerprint.from_line(line)
            if entry is None:
                unparsed.append(line.rstrip("\r\n"))
            else:
                entries.append(entry)
    return entries, unparsed


def find_entry(entries: List[RunFingerprint], input_path: str) -> Optional[RunFingerprint]:
    for e in entries:
        if e.input_path == input_path:
            return e
    return None


def upsert_entry(entries: List[RunFingerprint], entry: RunFingerprint) -> List[RunFingerprint]:
    """Replace the entry for ``entry.input_path`` in place, or append it."""
    updated = list(entries)
    for i, e in enumerate(updated):
        if e.input_path == entry.input_path:
            updated[i] = entry
            return updated
    updated.append(entry)
    return updated


def format_manifest(entries: List[RunFingerprint], unparsed: Optional[List[str]] = None) -> str:
    lines = [e.to_line() for e in entries]
    lines.extend(unparsed or [])
    return "".join(f"{line}\n" for line in lines)


def write_manifest(
    path: Path, entries: List[RunFingerprint], unparsed: Optional[List[str]] = None
) -> None:
    """Write the manifest through a temporary file so readers never see half of it."""
    path = Path(path)
    tmp_path = Path(str(path) + ".tmp")
    try:
        tmp_path.write_text(format_manifest(entries, unparsed))
        os.replace(tmp_path, path)
    except OSError:
        tmp_path.unlink(missing_ok=True)
        raise
