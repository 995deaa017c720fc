"""Staleness cache deciding whether a reannotation run can be skipped."""

import logging
from pathlib import Path
from typing import Optional

from mafreanno.manifest import (
    RunFingerprint,
    find_entry,
    load_manifest,
    upsert_entry,
    write_manifest,
)
from mafreanno.utils.validation import compute_md5, get_modified_at, is_nonempty_file


class Fingerprint:
    """Checksum and timestamp of a table, as recorded in the manifest."""

    def checksum(self, path: Path) -> str:
        return compute_md5(path, skip_comments=True)

    def modified_at(self, path: Path) -> str:
        return get_modified_at(path)


class StalenessCache:
    """Maps an (input MAF, output MAF) pair to the fingerprint of its last successful run.

    A side (input or output) matches its recorded fingerprint if either the
    checksum or the timestamp agrees. Both sides must match to skip.

    Args:
        manifest_path: Path to the manifest file, usually ``<tmp-dir>/summary.txt``
        fingerprint: Optional Fingerprint implementation, mostly for tests
        logger: Optional logger, defaults to the package logger
    """

    def __init__(
        self,
        manifest_path: Path | str,
        fingerprint: Optional[Fingerprint] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.manifest_path = Path(manifest_path)
        self.fingerprint = fingerprint or Fingerprint()
        self.logger = logger or logging.getLogger("mafreanno")

    @staticmethod
    def _key(path: Path | str) -> str:
        return str(Path(path).expanduser().resolve())

    def should_skip(self, input_path: Path | str, output_path: Path | str) -> bool:
        """Return True if a prior run already produced ``output_path`` from ``input_path``."""
        if not self.manifest_path.exists():
            self.logger.debug(f"No manifest found at {self.manifest_path}")
            return False

        input_path, output_path = Path(input_path), Path(output_path)
        if not (is_nonempty_file(input_path) and is_nonempty_file(output_path)):
            return False

        entries, _ = load_manifest(self.manifest_path)
        entry = find_entry(entries, self._key(input_path))
        if entry is None or entry.output_path != self._key(output_path):
            self.logger.debug(f"No manifest entry for {input_path} -> {output_path}")
            return False

        input_match = (
            entry.input_md5 == self.fingerprint.checksum(input_path)
            or entry.input_modified == self.fingerprint.modified_at(input_path)
        )
        output_match = (
            entry.output_md5 == self.fingerprint.checksum(output_path)
            or entry.output_modified == self.fingerprint.modified_at(output_path)
        )
        self.logger.debug(f"Manifest match: input={input_match}, output={output_match}")
        return input_match and output_match

    def record(self, input_path: Path | str, output_path: Path | str) -> RunFingerprint:
        """Fingerprint both files after a successful run and upsert the manifest."""
        input_path, output_path = Path(input_path), Path(output_path)
        entry = RunFingerprint(
            input_path=self._key(input_path),
            input_md5=self.fingerprint.checksum(input_path),
            input_modified=self.fingerprint.modified_at(input_path),
            output_path=self._key(output_path),
            output_md5=self.fingerprint.checksum(output_path),
            output_modified=self.fingerprint.modified_at(output_path),
        )

        entries, unparsed = load_manifest(self.manifest_path)
        write_manifest(self.manifest_path, upsert_entry(entries, entry), unparsed)
        self.logger.info(f"Recorded run in manifest: {self.manifest_path}")
        return entry
