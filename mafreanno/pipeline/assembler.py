"""Assembly of the per-pair MAFs into the final output MAF."""

import contextlib
import csv
import itertools
import logging
import sys
from pathlib import Path
from typing import Iterator, Optional, Sequence, TextIO

from mafreanno import MAF_VERSION_LINE
from mafreanno.columns import is_comment, is_header


@contextlib.contextmanager
def open_output(output_maf: Optional[Path]) -> Iterator[TextIO]:
    """Open the output MAF for writing, or hand out stdout if no path was given."""
    if output_maf is None:
        yield sys.stdout
        sys.stdout.flush()
    else:
        with open(output_maf, "w") as f:
            yield f


class OutputAssembler:
    """Concatenates reconciled per-pair MAFs under a single version line and header."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger("mafreanno")

    def assemble(
        self, per_pair_paths: Sequence[Path], header: Sequence[str], sink: TextIO
    ) -> int:
        """Write the combined MAF to ``sink`` and delete each per-pair MAF once copied.

        Pairs are copied in the order given. Comment lines and per-pair header
        lines are dropped.

        Returns:
            Number of data lines written
        """
        sink.write(f"{MAF_VERSION_LINE}\n")
        if header:
            sink.write("\t".join(header) + "\n")

        written = 0
        for maf_path in per_pair_paths:
            maf_path = Path(maf_path)
            with open(maf_path, "r") as f:
                for line in f:
                    if is_comment(line) or is_header(line) or not line.strip():
                        continue
                    sink.write(line if line.endswith("\n") else line + "\n")
                    written += 1
            maf_path.unlink()
            self.logger.debug(f"Appended and removed {maf_path.name}")

        self.logger.info(f"Wrote {written} variants from {len(per_pair_paths)} pairs")
        return written


def convert_to_parquet(maf_path: Path, parquet_path: Optional[Path] = None) -> Path:
    """Convert a MAF to a Parquet file optimized for duck.db access.

    All columns are kept as strings, matching the MAF itself.

    Args:
        maf_path: Path to the assembled MAF
        parquet_path: Output path, defaults to the MAF path with a .parquet suffix

    Returns:
        Path to the written Parquet file
    """
    try:
        import pandas as pd
        import pyarrow as pa  # type: ignore
        import pyarrow.parquet as pq  # type: ignore
    except ImportError:
        raise ImportError(
            "Converting to Parquet requires additional dependencies. "
            "Please install them with: pip install mafreanno[parquet]"
        ) from None

    maf_path = Path(maf_path)
    if parquet_path is None:
        parquet_path = maf_path.with_suffix(".parquet")

    with open(maf_path, "r") as f:
        comment_lines = sum(1 for _ in itertools.takewhile(is_comment, f))

    df = pd.read_csv(
        maf_path,
        sep="\t",
        skiprows=comment_lines,
        dtype=str,
        keep_default_na=False,
        quoting=csv.QUOTE_NONE,
    )
    table = pa.Table.from_pandas(df, preserve_index=False)
    pq.write_table(
        table,
        parquet_path,
        compression="snappy",
        use_dictionary=True,
        row_group_size=100000,
        data_page_size=65536,
        write_statistics=True,
    )
    return Path(parquet_path)
