"""Column classification and row addressing for MAF tables.

Every MAF column is classified as force-new (produced by reannotation and never
overridden), retainable (configured to be carried over from the input MAF) or
unclassified. Column names are compared case-insensitively throughout.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, NamedTuple, Optional, Sequence, Tuple

COMMENT_PREFIX = "#"
HEADER_FIELDS = ("hugo_symbol", "chromosome")

# Columns that can be safely borrowed from the input MAF
DEFAULT_RETAIN_COLUMNS = (
    "Center",
    "Verification_Status",
    "Validation_Status",
    "Mutation_Status",
    "Sequencing_Phase",
    "Sequence_Source",
    "Validation_Method",
    "Score",
    "BAM_file",
    "Sequencer",
    "Tumor_Sample_UUID",
    "Matched_Norm_Sample_UUID",
)

# Columns that are results of reannotation
FORCE_NEW_COLUMNS = (
    "Hugo_Symbol", "Entrez_Gene_Id", "NCBI_Build", "Chromosome", "Start_Position",
    "End_Position", "Strand", "Variant_Classification", "Variant_Type",
    "Reference_Allele", "Tumor_Seq_Allele1", "Tumor_Seq_Allele2",
    "Tumor_Sample_Barcode", "Matched_Norm_Sample_Barcode", "Match_Norm_Seq_Allele1",
    "Match_Norm_Seq_Allele2", "Tumor_Validation_Allele1", "Tumor_Validation_Allele2",
    "Match_Norm_Validation_Allele1", "Match_Norm_Validation_Allele2", "HGVSc", "HGVSp",
    "HGVSp_Short", "Transcript_ID", "Exon_Number", "t_depth", "t_ref_count",
    "t_alt_count", "n_depth", "n_ref_count", "n_alt_count", "all_effects", "Allele",
    "Gene", "Feature", "Feature_type", "Consequence", "cDNA_position", "CDS_position",
    "Protein_position", "Amino_acids", "Codons", "Existing_variation", "ALLELE_NUM",
    "DISTANCE", "STRAND", "SYMBOL", "SYMBOL_SOURCE", "HGNC_ID", "BIOTYPE", "CANONICAL",
    "CCDS", "ENSP", "SWISSPROT", "TREMBL", "UNIPARC", "RefSeq", "SIFT", "PolyPhen",
    "EXON", "INTRON", "DOMAINS", "GMAF", "AFR_MAF", "AMR_MAF", "ASN_MAF", "EUR_MAF",
    "AA_MAF", "EA_MAF", "CLIN_SIG", "SOMATIC", "PUBMED", "MOTIF_NAME", "MOTIF_POS",
    "HIGH_INF_POS", "MOTIF_SCORE_CHANGE",
)


class ColumnClass(Enum):
    FORCE_NEW = "force-new"
    RETAINABLE = "retainable"
    UNCLASSIFIED = "unclassified"


def parse_column_list(value: Optional[str | Iterable[str]]) -> List[str]:
    """Turn a comma-separated string (or an iterable of names) into a clean list."""
    if value is None:
        return []
    items = value.split(",") if isinstance(value, str) else list(value)
    return [str(c).strip() for c in items if str(c).strip()]


class ColumnRegistry:
    """Ordered registry of recognized column names and their classification.

    The force-new set is fixed. Requested retain columns that are also force-new
    are kept in ``requested`` (for reporting) but are never retainable.
    """

    def __init__(
        self,
        retain_columns: Iterable[str] = DEFAULT_RETAIN_COLUMNS,
        force_new_columns: Iterable[str] = FORCE_NEW_COLUMNS,
    ):
        self.force_new: Tuple[str, ...] = tuple(force_new_columns)
        self._force_new_lc = frozenset(c.lower() for c in self.force_new)

        self.requested: List[str] = []
        seen = set()
        for c in retain_columns:
            if c.lower() not in seen:
                seen.add(c.lower())
                self.requested.append(c)
        self.retainable: List[str] = [
            c for c in self.requested if c.lower() not in self._force_new_lc
        ]
        self._retainable_lc = frozenset(c.lower() for c in self.retainable)

    def classify(self, name: str) -> ColumnClass:
        lc = name.lower()
        if lc in self._force_new_lc:
            return ColumnClass.FORCE_NEW
        if lc in self._retainable_lc:
            return ColumnClass.RETAINABLE
        return ColumnClass.UNCLASSIFIED

    def is_force_new(self, name: str) -> bool:
        return name.lower() in self._force_new_lc

    def conflicting(self) -> List[str]:
        """Requested retain columns that cannot override force-new columns."""
        return [c for c in self.requested if self.is_force_new(c)]


@dataclass(frozen=True)
class HeaderIndex:
    """Column-name to position map for one table, built from its header line."""

    columns: Tuple[str, ...]
    positions: Dict[str, int] = field(default_factory=dict, compare=False)

    @classmethod
    def from_fields(cls, fields: Sequence[str]) -> "HeaderIndex":
        positions: Dict[str, int] = {}
        for idx, name in enumerate(fields):
            positions[name.lower()] = idx
        return cls(columns=tuple(fields), positions=positions)

    def __contains__(self, name: str) -> bool:
        return name.lower() in self.positions

    def index(self, name: str) -> Optional[int]:
        return self.positions.get(name.lower())

    def get(self, row: Sequence[str], name: str, default: str = "") -> str:
        """Value of ``name`` in ``row``, or ``default`` if the column or value is absent."""
        idx = self.index(name)
        if idx is None or idx >= len(row):
            return default
        return row[idx]


class VariantKey(NamedTuple):
    chromosome: str
    start_position: str
    tumor_sample_barcode: str
    reference_allele: str
    variant_allele: str

    def __str__(self) -> str:
        return ":".join(self)


def variant_key(header: HeaderIndex, row: Sequence[str]) -> VariantKey:
    """Derive the variant key of a row.

    The variant allele is Tumor_Seq_Allele1 if it differs from the reference,
    otherwise Tumor_Seq_Allele2.
    """
    ref = header.get(row, "Reference_Allele")
    allele1 = header.get(row, "Tumor_Seq_Allele1", default=None)
    allele2 = header.get(row, "Tumor_Seq_Allele2")
    var_allele = allele1 if allele1 is not None and allele1 != ref else allele2
    return VariantKey(
        header.get(row, "Chromosome"),
        header.get(row, "Start_Position"),
        header.get(row, "Tumor_Sample_Barcode"),
        ref,
        var_allele,
    )


def split_fields(line: str) -> List[str]:
    """Split a MAF line on tabs, stripping whitespace and line endings from each field."""
    return [f.strip() for f in line.rstrip("\r\n").split("\t")]


def is_comment(line: str) -> bool:
    return line.startswith(COMMENT_PREFIX)


def is_header(line: str) -> bool:
    return line.split("\t", 1)[0].strip().lower() in HEADER_FIELDS
