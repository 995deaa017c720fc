"""Configuration of a reannotation run.

Settings are layered: built-in defaults, then an optional params YAML, then
command-line flags. ``${MAFREANNO_ROOT}`` in path values is expanded.
"""

import dataclasses
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from mafreanno.columns import DEFAULT_RETAIN_COLUMNS, parse_column_list
from mafreanno.pipeline.collaborators import DepthColumns, ProcessCollaborator
from mafreanno.utils.paths import expand_root

logger = logging.getLogger("mafreanno")


@dataclasses.dataclass
class ReannotationConfig:
    perl_cmd: str = "perl"
    maf2vcf_path: str = "${MAFREANNO_ROOT}/maf2vcf.pl"
    vcf2maf_path: str = "${MAFREANNO_ROOT}/vcf2maf.pl"
    vep_path: str = "~/vep"
    vep_data: str = "~/.vep"
    vep_forks: int = 4
    ref_fasta: str = "~/.vep/homo_sapiens/86_GRCh37/Homo_sapiens.GRCh37.75.dna.primary_assembly.fa"
    retain_cols: List[str] = dataclasses.field(default_factory=lambda: list(DEFAULT_RETAIN_COLUMNS))
    tum_depth_col: str = "t_depth"
    tum_rad_col: str = "t_ref_count"
    tum_vad_col: str = "t_alt_count"
    nrm_depth_col: str = "n_depth"
    nrm_rad_col: str = "n_ref_count"
    nrm_vad_col: str = "n_alt_count"

    @classmethod
    def field_names(cls) -> List[str]:
        return [f.name for f in dataclasses.fields(cls)]

    def update(self, values: Dict[str, Any]) -> "ReannotationConfig":
        """Return a copy with every non-None value in ``values`` applied.

        Raises:
            ValueError: On unknown keys or a non-integer vep_forks
        """
        unknown = set(values) - set(self.field_names())
        if unknown:
            raise ValueError(f"Unknown configuration keys: {', '.join(sorted(unknown))}")

        changes = {k: v for k, v in values.items() if v is not None}
        if "retain_cols" in changes:
            changes["retain_cols"] = parse_column_list(changes["retain_cols"])
        if "vep_forks" in changes:
            try:
                changes["vep_forks"] = int(changes["vep_forks"])
            except (TypeError, ValueError):
                raise ValueError(f"vep_forks must be an integer, got: {changes['vep_forks']}")
        return dataclasses.replace(self, **changes)

    def resolve_path(self, value: str) -> Path:
        return Path(expand_root(str(value))).expanduser()

    @property
    def depth_columns(self) -> DepthColumns:
        return DepthColumns(
            tum_depth_col=self.tum_depth_col,
            tum_rad_col=self.tum_rad_col,
            tum_vad_col=self.tum_vad_col,
            nrm_depth_col=self.nrm_depth_col,
            nrm_rad_col=self.nrm_rad_col,
            nrm_vad_col=self.nrm_vad_col,
        )

    def build_collaborator(self) -> ProcessCollaborator:
        return ProcessCollaborator(
            maf2vcf_path=self.resolve_path(self.maf2vcf_path),
            vcf2maf_path=self.resolve_path(self.vcf2maf_path),
            ref_fasta=self.resolve_path(self.ref_fasta),
            vep_path=self.resolve_path(self.vep_path),
            vep_data=self.resolve_path(self.vep_data),
            vep_forks=self.vep_forks,
            depth_columns=self.depth_columns,
            interpreter=expand_root(self.perl_cmd),
        )


def load_params(params_file: Path | str) -> Dict[str, Any]:
    """Load a params YAML into a dict.

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the file is not valid YAML or not a mapping
    """
    params_path = Path(params_file).expanduser().resolve()
    if not params_path.exists():
        logger.error(f"Params file not found: {params_path}")
        raise FileNotFoundError(f"Params file not found: {params_path}")

    logger.debug(f"Loading params from: {params_path}")
    try:
        with open(params_path, "r") as f:
            params = yaml.safe_load(f)
    except yaml.YAMLError as e:
        logger.error(f"Error parsing params file: {e}")
        raise ValueError(f"Error parsing params file {params_path}: {e}") from e

    if params is None:
        return {}
    if not isinstance(params, dict):
        raise ValueError(f"Params file must contain a mapping: {params_path}")
    return params


def build_config(
    params_file: Optional[Path | str] = None, overrides: Optional[Dict[str, Any]] = None
) -> ReannotationConfig:
    """Defaults, then the params YAML, then explicit overrides (usually CLI flags)."""
    config = ReannotationConfig()
    if params_file:
        config = config.update(load_params(params_file))
    if overrides:
        config = config.update(overrides)
    return config
