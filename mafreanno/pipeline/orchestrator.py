"""Pipeline orchestration for MAF reannotation.

Runs maf2vcf once, vcf2maf once per tumor/normal pair, carries retained
columns over from the input MAF, assembles the final MAF and records the run
in the manifest. Every failure is fatal; the manifest only ever lets a fully
completed run be skipped.
"""

import contextlib
import glob
import logging
import re
import shutil
import tempfile
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Iterable, Iterator, List, Optional

from mafreanno import MANIFEST_NAME
from mafreanno.columns import DEFAULT_RETAIN_COLUMNS, ColumnRegistry
from mafreanno.pipeline.assembler import OutputAssembler, open_output
from mafreanno.pipeline.collaborators import Collaborator
from mafreanno.pipeline.merge import ColumnMergeEngine, read_annotated_header
from mafreanno.pipeline.staleness import StalenessCache
from mafreanno.utils.validation import is_nonempty_file

INTERCHANGE_SUFFIX = ".vcf"
ANNOTATED_VCF_SUFFIX = ".vep.vcf"
ANNOTATED_MAF_SUFFIX = ".vep.maf"


@dataclass(frozen=True)
class SamplePair:
    tumor_id: str
    normal_id: str
    vcf_path: Path

    @property
    def name(self) -> str:
        return f"{self.tumor_id}_vs_{self.normal_id}"

    @property
    def maf_path(self) -> Path:
        return self.vcf_path.with_name(
            self.vcf_path.name[: -len(INTERCHANGE_SUFFIX)] + ANNOTATED_MAF_SUFFIX
        )


def interchange_prefix(input_maf: Path) -> str:
    """Filename prefix maf2vcf derives from the directory of the input MAF."""
    directory = str(Path(input_maf).expanduser().resolve().parent)
    if not directory.endswith("/"):
        directory += "/"
    return directory.replace("/", "_")


def discover_pairs(working_dir: Path, input_maf: Path) -> List[SamplePair]:
    """List the per-pair VCFs maf2vcf wrote for ``input_maf``, in sorted filename order.

    VCFs carrying the annotated marker suffix are left out.
    """
    prefix = interchange_prefix(input_maf)
    pattern = re.compile(rf"^{re.escape(prefix)}(.*)_vs_(.*){re.escape(INTERCHANGE_SUFFIX)}$")

    pairs = []
    for vcf_path in sorted(Path(working_dir).glob(f"{glob.escape(prefix)}*{INTERCHANGE_SUFFIX}")):
        if vcf_path.name.endswith(ANNOTATED_VCF_SUFFIX):
            continue
        match = pattern.match(vcf_path.name)
        if match is None:
            continue
        pairs.append(SamplePair(match.group(1), match.group(2), vcf_path))
    return pairs


@contextlib.contextmanager
def working_directory(
    tmp_dir: Optional[Path | str] = None, force: bool = False
) -> Iterator[Path]:
    """Provide the working directory of a run.

    A given ``tmp_dir`` is kept after the run (and wiped first when ``force`` is
    set); without one, a temporary directory is created and removed at exit.

    Raises:
        NotADirectoryError: If ``tmp_dir`` is given, ``force`` is not set and it is not a directory
    """
    if tmp_dir is None:
        with tempfile.TemporaryDirectory(prefix="mafreanno_") as tmp:
            yield Path(tmp)
        return

    tmp_dir = Path(tmp_dir).expanduser().resolve()
    if force:
        if tmp_dir.exists():
            shutil.rmtree(tmp_dir)
        tmp_dir.mkdir(parents=True)
    elif not tmp_dir.is_dir():
        raise NotADirectoryError(f"{tmp_dir} is not a directory.")
    yield tmp_dir


class PipelineOrchestrator:
    """Runs one reannotation of an input MAF.

    Attributes:
        input_maf (Path): Absolute path of the MAF to reannotate.
        output_maf (Optional[Path]): Absolute path of the output MAF, None for stdout.
        working_dir (Path): Directory for interchange files and the manifest.
        collaborator (Collaborator): The maf2vcf/vcf2maf implementation.
        registry (ColumnRegistry): Classification of retained and force-new columns.
        cache (StalenessCache): Manifest of earlier runs in ``working_dir``.

    Args:
        input_maf: MAF to reannotate
        working_dir: Existing working directory
        collaborator: Splitter/annotator implementation
        output_maf: Optional output MAF (default: stdout)
        retain_columns: Columns to carry over from the input MAF
        force: Reannotate even if the manifest says the output is current
        logger: Optional logger, defaults to the package logger

    Raises:
        FileNotFoundError: If the input MAF or the working directory does not exist
    """

    def __init__(
        self,
        input_maf: Path | str,
        working_dir: Path | str,
        collaborator: Collaborator,
        output_maf: Optional[Path | str] = None,
        retain_columns: Iterable[str] = DEFAULT_RETAIN_COLUMNS,
        force: bool = False,
        logger: Optional[logging.Logger] = None,
    ):
        self.logger = logger or logging.getLogger("mafreanno")
        self.input_maf = Path(input_maf).expanduser().resolve()
        if not self.input_maf.is_file():
            raise FileNotFoundError(f"Input MAF file not found: {self.input_maf}")

        self.working_dir = Path(working_dir).expanduser().resolve()
        if not self.working_dir.is_dir():
            raise FileNotFoundError(f"Working directory not found: {self.working_dir}")

        self.output_maf = Path(output_maf).expanduser().resolve() if output_maf else None
        self.collaborator = collaborator
        self.registry = ColumnRegistry(retain_columns)
        self.force = force
        self.cache = StalenessCache(self.working_dir / MANIFEST_NAME, logger=self.logger)

        self.logger.debug(f"Input MAF: {self.input_maf}")
        self.logger.debug(f"Output MAF: {self.output_maf or 'stdout'}")
        self.logger.debug(f"Working directory: {self.working_dir}")

    def is_current(self) -> bool:
        """True if the manifest shows the output MAF was already built from this input."""
        if self.output_maf is None or self.force:
            return False
        return self.cache.should_skip(self.input_maf, self.output_maf)

    def run(self) -> bool:
        """Run the full reannotation.

        Returns:
            False if the run was skipped because the output is current, True otherwise
        """
        if self.is_current():
            self.logger.warning(
                f"Annotated MAF already exists ({self.output_maf}). Skipping re-annotation."
            )
            return False

        start_time = datetime.now()
        self.logger.info(f"Reannotating {self.input_maf.name}")

        self.collaborator.split(self.input_maf, self.working_dir)
        pairs = discover_pairs(self.working_dir, self.input_maf)
        self.logger.info(f"Found {len(pairs)} tumor-normal pairs")

        per_pair_mafs = self._annotate_pairs(pairs)
        header = self._merge(per_pair_mafs)

        with open_output(self.output_maf) as sink:
            OutputAssembler(logger=self.logger).assemble(per_pair_mafs, header, sink)

        if self.output_maf is not None and is_nonempty_file(self.output_maf):
            self.cache.record(self.input_maf, self.output_maf)

        duration = datetime.now() - start_time
        self.logger.info(f"Reannotation completed in {duration.total_seconds():.2f} seconds")
        return True

    def _annotate_pairs(self, pairs: List[SamplePair]) -> List[Path]:
        per_pair_mafs = []
        for pair in pairs:
            self.logger.info(f"Annotating pair {pair.name}")
            self.collaborator.annotate(pair.vcf_path, pair.maf_path, pair.tumor_id, pair.normal_id)
            pair.vcf_path.unlink()
            per_pair_mafs.append(pair.maf_path)
        return per_pair_mafs

    def _merge(self, per_pair_mafs: List[Path]) -> List[str]:
        if not per_pair_mafs:
            self.logger.warning(f"maf2vcf produced no tumor-normal pairs for {self.input_maf}")
            return []

        if not self.registry.requested:
            return read_annotated_header(per_pair_mafs)

        engine = ColumnMergeEngine(registry=self.registry, logger=self.logger)
        retention_table = engine.build_retention_table(self.input_maf)
        return engine.apply_retention(per_pair_mafs, retention_table)
