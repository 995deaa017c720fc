"""External collaborators of the reannotation pipeline.

The splitter (maf2vcf) turns a MAF into one VCF per tumor/normal pair and the
annotator (vcf2maf) turns each of those VCFs back into an annotated MAF. Both
are external scripts; this module only builds their command lines and runs them.
"""

import logging
import subprocess
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence

from mafreanno.utils.validation import check_collaborator_scripts


class CollaboratorError(RuntimeError):
    """An external collaborator exited with a non-zero status or could not be started."""

    def __init__(self, stage: str, command: Sequence[str], returncode: Optional[int] = None):
        self.stage = stage
        self.command = [str(c) for c in command]
        self.returncode = returncode
        super().__init__(
            f"Failed to run {stage}!\nCommand: {' '.join(self.command)}"
        )


@dataclass(frozen=True)
class DepthColumns:
    """Names of the read-depth columns in the input MAF, passed to the splitter."""

    tum_depth_col: str = "t_depth"
    tum_rad_col: str = "t_ref_count"
    tum_vad_col: str = "t_alt_count"
    nrm_depth_col: str = "n_depth"
    nrm_rad_col: str = "n_ref_count"
    nrm_vad_col: str = "n_alt_count"

    def as_args(self) -> List[str]:
        return [
            "--tum-depth-col", self.tum_depth_col,
            "--tum-rad-col", self.tum_rad_col,
            "--tum-vad-col", self.tum_vad_col,
            "--nrm-depth-col", self.nrm_depth_col,
            "--nrm-rad-col", self.nrm_rad_col,
            "--nrm-vad-col", self.nrm_vad_col,
        ]


class Collaborator(ABC):
    """Interface of the two external transformation stages."""

    @abstractmethod
    def split(self, input_maf: Path, output_dir: Path) -> None:
        """Write one interchange VCF per tumor/normal pair of ``input_maf`` into ``output_dir``."""

    @abstractmethod
    def annotate(self, input_vcf: Path, output_maf: Path, tumor_id: str, normal_id: str) -> None:
        """Annotate one interchange VCF into ``output_maf``."""


class ProcessCollaborator(Collaborator):
    """Runs maf2vcf and vcf2maf as child processes.

    Args:
        maf2vcf_path: Path to the maf2vcf script
        vcf2maf_path: Path to the vcf2maf script
        ref_fasta: Reference FASTA handed to both scripts
        vep_path: Folder containing the VEP executable
        vep_data: VEP cache/plugin directory
        vep_forks: Number of forked VEP processes
        depth_columns: Names of the read-depth columns in the input MAF
        interpreter: Interpreter used to launch the scripts (default: perl)
        logger: Optional logger, defaults to the package logger
    """

    def __init__(
        self,
        maf2vcf_path: Path,
        vcf2maf_path: Path,
        ref_fasta: Path,
        vep_path: Path,
        vep_data: Path,
        vep_forks: int = 4,
        depth_columns: Optional[DepthColumns] = None,
        interpreter: str = "perl",
        logger: Optional[logging.Logger] = None,
    ):
        self.maf2vcf_path = Path(maf2vcf_path)
        self.vcf2maf_path = Path(vcf2maf_path)
        self.ref_fasta = Path(ref_fasta)
        self.vep_path = Path(vep_path)
        self.vep_data = Path(vep_data)
        self.vep_forks = max(int(vep_forks), 1)
        self.depth_columns = depth_columns or DepthColumns()
        self.interpreter = interpreter
        self.logger = logger or logging.getLogger("mafreanno")

    def check(self) -> None:
        """Raise FileNotFoundError if either script is missing."""
        check_collaborator_scripts(self.maf2vcf_path, self.vcf2maf_path)

    def split_command(self, input_maf: Path, output_dir: Path) -> List[str]:
        return [
            self.interpreter, str(self.maf2vcf_path),
            "--input-maf", str(input_maf),
            "--output-dir", str(output_dir),
            "--ref-fasta", str(self.ref_fasta),
            *self.depth_columns.as_args(),
        ]

    def annotate_command(
        self, input_vcf: Path, output_maf: Path, tumor_id: str, normal_id: str
    ) -> List[str]:
        return [
            self.interpreter, str(self.vcf2maf_path),
            "--input-vcf", str(input_vcf),
            "--output-maf", str(output_maf),
            "--tumor-id", tumor_id,
            "--normal-id", normal_id,
            "--vep-path", str(self.vep_path),
            "--vep-data", str(self.vep_data),
            "--vep-forks", str(self.vep_forks),
            "--ref-fasta", str(self.ref_fasta),
        ]

    def split(self, input_maf: Path, output_dir: Path) -> None:
        self._run("maf2vcf", self.split_command(input_maf, output_dir))

    def annotate(self, input_vcf: Path, output_maf: Path, tumor_id: str, normal_id: str) -> None:
        self._run("vcf2maf", self.annotate_command(input_vcf, output_maf, tumor_id, normal_id))

    def _run(self, stage: str, cmd: List[str]) -> subprocess.CompletedProcess:
        self.logger.info(f"Running {stage}")
        self.logger.debug(f"Command: {' '.join(cmd)}")

        try:
            result = subprocess.run(cmd, check=True, capture_output=True, text=True)
        except subprocess.CalledProcessError as e:
            self.logger.error(f"{stage} failed (exit code: {e.returncode})")
            self.logger.error(f"STDOUT: {e.stdout}")
            self.logger.error(f"STDERR: {e.stderr}")
            raise CollaboratorError(stage, cmd, e.returncode) from e
        except OSError as e:
            self.logger.error(f"Could not start {stage}: {e}")
            raise CollaboratorError(stage, cmd) from e

        self.logger.info(f"{stage} completed successfully")
        if result.stdout:
            self.logger.debug(result.stdout)
        return result
