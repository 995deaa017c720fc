"""Validation utilities for the mafreanno package.

This module provides functions for checking the collaborator scripts and the
reference FASTA before any processing starts, and for computing the MD5
checksums and modification timestamps that fingerprint a finished run.
"""

import hashlib
import logging
from datetime import datetime
from pathlib import Path
from typing import List

import pysam

logger = logging.getLogger("mafreanno")

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


def compute_md5(file_path: Path, skip_comments: bool = True) -> str:
    """Compute the MD5 checksum of a file.

    Comment lines (starting with '#') are left out by default, so a changed
    version or provenance header does not invalidate an otherwise identical table.

    Args:
        file_path: Path to the file to compute MD5 for
        skip_comments: Whether to ignore lines starting with '#'

    Returns:
        MD5 checksum as a hex string
    """
    logger.debug(f"Computing MD5 for {file_path} ...")
    md5 = hashlib.md5()
    with open(file_path, "rb") as f:
        for line in f:
            if skip_comments and line.startswith(b"#"):
                continue
            md5.update(line)
    return md5.hexdigest()


def get_modified_at(file_path: Path) -> str:
    """Return the local modification time of a file, truncated to whole seconds."""
    mtime = Path(file_path).stat().st_mtime
    return datetime.fromtimestamp(mtime).strftime(TIMESTAMP_FORMAT)


def is_nonempty_file(file_path: Path) -> bool:
    path = Path(file_path)
    return path.is_file() and path.stat().st_size > 0


def check_collaborator_scripts(maf2vcf_path: Path, vcf2maf_path: Path) -> None:
    """Check that the maf2vcf and vcf2maf scripts exist and are not empty.

    Raises:
        FileNotFoundError: If either script is missing or empty
    """
    for name, script in (("maf2vcf", maf2vcf_path), ("vcf2maf", vcf2maf_path)):
        if not is_nonempty_file(script):
            logger.error(f"Couldn't locate {name} script: {script}")
            raise FileNotFoundError(f"Couldn't locate {name} script: {script}")
        logger.debug(f"Using {name} script: {script}")


def validate_reference_fasta(ref_fasta: Path) -> List[str]:
    """Validate that the reference FASTA exists, is indexed and can be opened.

    Args:
        ref_fasta: Path to the reference genome FASTA file

    Returns:
        List of contig names found in the reference

    Raises:
        FileNotFoundError: If the FASTA or its .fai index is missing
        ValueError: If the FASTA cannot be opened
    """
    ref_fasta = Path(ref_fasta)
    if not ref_fasta.exists():
        raise FileNotFoundError(f"Reference genome not found: {ref_fasta}")

    ref_index = Path(str(ref_fasta) + ".fai")
    if not ref_index.exists():
        raise FileNotFoundError(
            f"Reference index not found for {ref_fasta}. Use samtools faidx."
        )

    try:
        with pysam.FastaFile(str(ref_fasta)) as fasta:
            contigs = list(fasta.references)
    except (OSError, ValueError) as e:
        raise ValueError(f"Error reading reference genome {ref_fasta}: {e}") from e

    logger.debug(f"Found {len(contigs)} contigs in reference index")
    return contigs
