"""Shared pytest fixtures for mafreanno tests."""

import logging
import os
import shutil
import tempfile
from collections import defaultdict
from pathlib import Path

import pytest

from mafreanno.columns import HeaderIndex, is_comment, is_header, split_fields
from mafreanno.pipeline.collaborators import Collaborator, CollaboratorError
from mafreanno.pipeline.orchestrator import interchange_prefix
from mafreanno.utils.paths import get_mafreanno_root

# Ensure MAFREANNO_ROOT is set for CLI subprocesses
os.environ.setdefault("MAFREANNO_ROOT", str(get_mafreanno_root()))

INPUT_COLUMNS = [
    "Hugo_Symbol", "Center", "Chromosome", "Start_Position", "Reference_Allele",
    "Tumor_Seq_Allele1", "Tumor_Seq_Allele2", "Tumor_Sample_Barcode",
    "Matched_Norm_Sample_Barcode", "Verification_Status",
]

# Header vcf2maf writes for the annotated per-pair MAFs
ANNOTATED_COLUMNS = [
    "Hugo_Symbol", "Chromosome", "Start_Position", "End_Position", "Reference_Allele",
    "Tumor_Seq_Allele1", "Tumor_Seq_Allele2", "Tumor_Sample_Barcode",
    "Matched_Norm_Sample_Barcode", "Center", "Consequence",
]

# Rows of INPUT_COLUMNS: two tumor/normal pairs
INPUT_ROWS = [
    ["TP53", "MSK", "1", "100", "A", "G", "G", "T1", "N1", "Verified"],
    ["KRAS", "BI", "2", "200", "C", "C", "T", "T1", "N1", "Unknown"],
    ["EGFR", "WUGSC", "3", "300", "G", "A", "A", "T2", "N2", "Verified"],
]


def write_maf(path, rows, columns=INPUT_COLUMNS, comments=("#version 2.4",)):
    """Write a small MAF with the given comment lines, header and rows."""
    path = Path(path)
    with open(path, "w") as f:
        for comment in comments:
            f.write(f"{comment}\n")
        f.write("\t".join(columns) + "\n")
        for row in rows:
            f.write("\t".join(row) + "\n")
    return path


def read_maf(path):
    """Return (comment lines, header, rows) of a MAF written by the pipeline."""
    comments, header, rows = [], None, []
    with open(path, "r") as f:
        for line in f:
            if is_comment(line):
                comments.append(line.rstrip("\n"))
            elif header is None and is_header(line):
                header = split_fields(line)
            elif line.strip():
                rows.append(split_fields(line))
    return comments, header, rows


def annotated_row(chrom, pos, ref, allele1, allele2, tumor_id, normal_id, center=""):
    return ["ANNOTATED", chrom, pos, pos, ref, allele1, allele2, tumor_id, normal_id, center,
            "missense_variant"]


class FakeCollaborator(Collaborator):
    """In-process stand-in for maf2vcf and vcf2maf.

    ``split`` writes one interchange file per tumor/normal pair, named the way
    maf2vcf names them, holding the locus and alleles of each variant.
    ``annotate`` turns such a file into a MAF with ANNOTATED_COLUMNS.
    """

    def __init__(self, fail_stage=None):
        self.fail_stage = fail_stage
        self.split_calls = []
        self.annotate_calls = []

    def split(self, input_maf, output_dir):
        self.split_calls.append((Path(input_maf), Path(output_dir)))
        if self.fail_stage == "maf2vcf":
            raise CollaboratorError("maf2vcf", ["maf2vcf.pl", str(input_maf)], 1)

        header = None
        pairs = defaultdict(list)
        with open(input_maf, "r") as f:
            for line in f:
                if is_comment(line) or not line.strip():
                    continue
                if header is None:
                    header = HeaderIndex.from_fields(split_fields(line))
                    continue
                fields = split_fields(line)
                pair = (header.get(fields, "Tumor_Sample_Barcode"),
                        header.get(fields, "Matched_Norm_Sample_Barcode"))
                pairs[pair].append([header.get(fields, c) for c in (
                    "Chromosome", "Start_Position", "Reference_Allele",
                    "Tumor_Seq_Allele1", "Tumor_Seq_Allele2")])

        prefix = interchange_prefix(Path(input_maf))
        for (tumor_id, normal_id), variants in pairs.items():
            vcf_path = Path(output_dir) / f"{prefix}{tumor_id}_vs_{normal_id}.vcf"
            with open(vcf_path, "w") as out:
                out.write("##fileformat=VCFv4.2\n")
                for variant in variants:
                    out.write("\t".join(variant) + "\n")

    def annotate(self, input_vcf, output_maf, tumor_id, normal_id):
        self.annotate_calls.append((Path(input_vcf), Path(output_maf), tumor_id, normal_id))
        if self.fail_stage == "vcf2maf":
            raise CollaboratorError("vcf2maf", ["vcf2maf.pl", str(input_vcf)], 2)

        with open(input_vcf, "r") as vcf, open(output_maf, "w") as out:
            out.write("#version 2.4\n")
            out.write("\t".join(ANNOTATED_COLUMNS) + "\n")
            for line in vcf:
                if line.startswith("#"):
                    continue
                chrom, pos, ref, allele1, allele2 = line.rstrip("\n").split("\t")
                out.write("\t".join(
                    annotated_row(chrom, pos, ref, allele1, allele2, tumor_id, normal_id)
                ) + "\n")


# Standalone scripts behaving like FakeCollaborator, launched with sys.executable
MAF2VCF_SCRIPT = r'''
import os
import sys

args = dict(zip(sys.argv[1::2], sys.argv[2::2]))
input_maf = os.path.realpath(args["--input-maf"])
prefix = (os.path.dirname(input_maf).rstrip("/") + "/").replace("/", "_")

header = None
pairs = {}
with open(input_maf) as f:
    for line in f:
        if line.startswith("#") or not line.strip():
            continue
        fields = line.rstrip("\n").split("\t")
        if header is None:
            header = [c.lower() for c in fields]
            continue
        row = dict(zip(header, fields))
        pair = (row["tumor_sample_barcode"], row["matched_norm_sample_barcode"])
        pairs.setdefault(pair, []).append(row)

for (tumor_id, normal_id), rows in pairs.items():
    path = os.path.join(args["--output-dir"], prefix + tumor_id + "_vs_" + normal_id + ".vcf")
    with open(path, "w") as out:
        out.write("##fileformat=VCFv4.2\n")
        for row in rows:
            out.write("\t".join([row["chromosome"], row["start_position"], row["reference_allele"],
                                 row["tumor_seq_allele1"], row["tumor_seq_allele2"]]) + "\n")
'''

VCF2MAF_SCRIPT = r'''
import sys

COLUMNS = {columns!r}

args = dict(zip(sys.argv[1::2], sys.argv[2::2]))
with open(args["--input-vcf"]) as vcf, open(args["--output-maf"], "w") as out:
    out.write("#version 2.4\n")
    out.write("\t".join(COLUMNS) + "\n")
    for line in vcf:
        if line.startswith("#"):
            continue
        chrom, pos, ref, allele1, allele2 = line.rstrip("\n").split("\t")
        out.write("\t".join(["ANNOTATED", chrom, pos, pos, ref, allele1, allele2,
                             args["--tumor-id"], args["--normal-id"], "",
                             "missense_variant"]) + "\n")
'''.replace("{columns!r}", repr(ANNOTATED_COLUMNS))

FAILING_SCRIPT = r'''
import sys

print("partial output")
print("ERROR: something went wrong", file=sys.stderr)
sys.exit(3)
'''


@pytest.fixture(autouse=True)
def reset_logging():
    """Drop handlers the CLI attached so they do not outlive the captured streams."""
    yield
    logger = logging.getLogger("mafreanno")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def fake_collaborator():
    return FakeCollaborator()


@pytest.fixture
def fake_scripts(tmp_path):
    """Write maf2vcf/vcf2maf stand-in scripts and return their paths."""
    script_dir = tmp_path / "scripts"
    script_dir.mkdir()
    maf2vcf = script_dir / "maf2vcf.py"
    maf2vcf.write_text(MAF2VCF_SCRIPT)
    vcf2maf = script_dir / "vcf2maf.py"
    vcf2maf.write_text(VCF2MAF_SCRIPT)
    failing = script_dir / "failing.py"
    failing.write_text(FAILING_SCRIPT)
    return {"maf2vcf": maf2vcf, "vcf2maf": vcf2maf, "failing": failing}


@pytest.fixture
def ref_fasta(tmp_path):
    """A one-contig reference FASTA with its .fai index."""
    fasta = tmp_path / "ref" / "ref.fa"
    fasta.parent.mkdir()
    fasta.write_text(">1\nACGTACGT\n")
    Path(str(fasta) + ".fai").write_text("1\t8\t3\t8\t9\n")
    return fasta


@pytest.fixture
def input_maf(tmp_path):
    data_dir = tmp_path / "data"
    data_dir.mkdir()
    return write_maf(data_dir / "input.maf", INPUT_ROWS)


@pytest.fixture
def work_dir(tmp_path):
    path = tmp_path / "work"
    path.mkdir()
    return path


# This hook is needed to properly track test results
@pytest.hookimpl(tryfirst=True, hookwrapper=True)
def pytest_runtest_makereport(item, call):
    # Execute all other hooks to obtain the report object
    outcome = yield
    rep = outcome.get_result()

    # Set a report attribute for each phase of a call
    setattr(item, f"rep_{rep.when}", rep)


@pytest.fixture
def test_output_dir(request):
    """Provides a path for a directory that doesn't exist yet.
    If the test fails, the directory is NOT removed and a big warning is printed.
    """
    temp_dir = Path(tempfile.mkdtemp(prefix="mafreanno_test_"))

    # Remove the directory immediately - mafreanno will create it
    temp_dir.rmdir()

    yield str(temp_dir)

    # We only care about the 'call' phase result
    if hasattr(request.node, "rep_call") and request.node.rep_call.passed:
        if temp_dir.exists():
            shutil.rmtree(temp_dir, ignore_errors=True)
    else:
        if temp_dir.exists():
            banner = "\n" + "=" * 80
            print(
                f"{banner}\n"
                f"TEST FAILED! Temporary directory NOT removed for forensic analysis:\n"
                f"    {temp_dir}\n"
                f"Please clean up manually after investigation.\n"
                f"{banner}\n"
            )
