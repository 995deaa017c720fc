"""Column merge engine.

Carries user-chosen columns (sequencing center, validation status, ...) from the
original input MAF over to the freshly annotated per-pair MAFs. Values are
matched by variant key, and columns produced by reannotation are never
overwritten.
"""

import logging
import os
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence

from mafreanno.columns import (
    DEFAULT_RETAIN_COLUMNS,
    ColumnClass,
    ColumnRegistry,
    HeaderIndex,
    VariantKey,
    is_comment,
    is_header,
    split_fields,
    variant_key,
)


class RetentionTable:
    """Retained column values of the input MAF, by variant key.

    Column names are stored lower-cased. A recorded empty string is a real value
    and still overrides the annotated column.
    """

    def __init__(self, columns: Iterable[str]):
        self.columns: List[str] = list(columns)
        self._values: Dict[VariantKey, Dict[str, str]] = {}

    def record(self, key: VariantKey, values: Dict[str, str]) -> None:
        # Later rows with the same key replace earlier ones
        self._values[key] = {name.lower(): value for name, value in values.items()}

    def lookup(self, key: VariantKey) -> Optional[Dict[str, str]]:
        return self._values.get(key)

    def __contains__(self, key: VariantKey) -> bool:
        return key in self._values

    def __len__(self) -> int:
        return len(self._values)


def read_annotated_header(maf_paths: Sequence[Path]) -> List[str]:
    """Return the header fields of the first annotated MAF that has a header line."""
    for maf_path in maf_paths:
        with open(maf_path, "r") as f:
            for line in f:
                if is_comment(line) or not line.strip():
                    continue
                if is_header(line):
                    return split_fields(line)
    raise ValueError(f"No MAF header found in annotated tables: {', '.join(map(str, maf_paths))}")


def unified_header(annotated_header: Sequence[str], retain_columns: Sequence[str]) -> List[str]:
    """Annotated header followed by the retain columns it does not already have."""
    header = list(annotated_header)
    present = {c.lower() for c in header}
    for c in retain_columns:
        if c.lower() not in present:
            header.append(c)
            present.add(c.lower())
    return header


class ColumnMergeEngine:
    """Builds the retention table from the input MAF and applies it to annotated MAFs.

    Args:
        retain_columns: Columns to carry over from the input MAF
        registry: Optional pre-built ColumnRegistry (overrides ``retain_columns``)
        logger: Optional logger, defaults to the package logger
    """

    def __init__(
        self,
        retain_columns: Iterable[str] = DEFAULT_RETAIN_COLUMNS,
        registry: Optional[ColumnRegistry] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.registry = registry or ColumnRegistry(retain_columns)
        self.logger = logger or logging.getLogger("mafreanno")

    def _check_requested(self, header: HeaderIndex) -> None:
        """Warn about retain columns that are missing or may not be overridden."""
        for c in self.registry.conflicting():
            self.logger.warning(f"Column '{c}' cannot be overridden in new MAF.")
        for c in self.registry.retainable:
            if c not in header:
                self.logger.warning(f"Column '{c}' not found in old MAF.")

    def build_retention_table(self, input_maf: Path | str) -> RetentionTable:
        """Read the retainable columns of every variant in the input MAF."""
        input_maf = Path(input_maf)
        table = RetentionTable(self.registry.retainable)
        header: Optional[HeaderIndex] = None
        self.logger.debug(f"Building retention table from {input_maf}")

        with open(input_maf, "r") as f:
            for line_no, line in enumerate(f, start=1):
                if is_comment(line) or not line.strip():
                    continue

                if header is None:
                    if is_header(line):
                        header = HeaderIndex.from_fields(split_fields(line))
                        self._check_requested(header)
                    else:
                        self.logger.warning(
                            f"Skipping line {line_no} before the MAF header in {input_maf}"
                        )
                    continue

                fields = split_fields(line)
                table.record(
                    variant_key(header, fields),
                    {c: header.get(fields, c) for c in self.registry.retainable},
                )

        if header is None:
            raise ValueError(f"No MAF header found in {input_maf}")

        self.logger.info(f"Retained columns for {len(table)} variants from {input_maf.name}")
        return table

    def apply_retention(
        self, per_pair_paths: Sequence[Path], retention_table: RetentionTable
    ) -> List[str]:
        """Rewrite every annotated MAF in place with the retained values.

        Every requested column missing from the annotated header is appended,
        force-new ones included; those stay empty.

        Returns:
            The unified header shared by all rewritten tables
        """
        if not per_pair_paths:
            return []

        header = unified_header(read_annotated_header(per_pair_paths), self.registry.requested)
        self.logger.debug(f"Unified header has {len(header)} columns")

        for maf_path in per_pair_paths:
            self._rewrite(Path(maf_path), header, retention_table)
        return header

    @staticmethod
    def _layout(index: HeaderIndex, header: Sequence[str]) -> List[Optional[int]]:
        """Source position in a table's own rows for every unified header column.

        Columns are matched by position first, so names that differ only by
        case (``Strand``/``STRAND``) keep their own values.
        """
        positions: List[Optional[int]] = []
        for i, name in enumerate(header):
            if i < len(index.columns) and index.columns[i].lower() == name.lower():
                positions.append(i)
            else:
                positions.append(index.index(name))
        return positions

    def _rewrite(self, maf_path: Path, header: List[str], table: RetentionTable) -> None:
        tmp_path = Path(str(maf_path) + ".tmp")
        overridable = [
            (i, c.lower())
            for i, c in enumerate(header)
            if self.registry.classify(c) is not ColumnClass.FORCE_NEW
        ]
        index: Optional[HeaderIndex] = None
        layout: List[Optional[int]] = []
        matched = unknown = 0

        try:
            with open(maf_path, "r") as src, open(tmp_path, "w") as dst:
                for line in src:
                    if is_comment(line):
                        dst.write(line)
                        continue
                    if not line.strip():
                        continue

                    if is_header(line):
                        index = HeaderIndex.from_fields(split_fields(line))
                        layout = self._layout(index, header)
                        dst.write("\t".join(header) + "\n")
                        continue

                    if index is None:
                        raise ValueError(f"Data line before the MAF header in {maf_path}")

                    fields = split_fields(line)
                    row = [
                        fields[p] if p is not None and p < len(fields) else ""
                        for p in layout
                    ]
                    retained = table.lookup(variant_key(index, fields))
                    if retained is None:
                        unknown += 1
                    else:
                        matched += 1
                        for i, c in overridable:
                            if c in retained:
                                row[i] = retained[c]
                    dst.write("\t".join(row) + "\n")

            os.replace(tmp_path, maf_path)
        except (OSError, ValueError):
            tmp_path.unlink(missing_ok=True)
            raise

        self.logger.debug(
            f"Merged {maf_path.name}: {matched} rows matched, {unknown} rows without retained data"
        )
