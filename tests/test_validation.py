import hashlib
import os
from datetime import datetime

import pytest

from mafreanno.utils.validation import (
    check_collaborator_scripts,
    compute_md5,
    get_modified_at,
    is_nonempty_file,
    validate_reference_fasta,
)


def test_compute_md5(tmp_path):
    """Test that compute_md5 correctly calculates MD5 hash of a file."""
    path = tmp_path / "content.txt"
    path.write_bytes(b"test content for MD5 calculation")

    assert compute_md5(path) == "b4e714277ba501ef9b2ed937048dc9a4"


def test_compute_md5_ignores_comment_lines(tmp_path):
    first = tmp_path / "first.maf"
    first.write_text("#version 2.4\nHugo_Symbol\tChromosome\nTP53\t17\n")
    second = tmp_path / "second.maf"
    second.write_text("#version 2.5\n#another comment\nHugo_Symbol\tChromosome\nTP53\t17\n")

    expected = hashlib.md5(b"Hugo_Symbol\tChromosome\nTP53\t17\n").hexdigest()
    assert compute_md5(first) == expected
    assert compute_md5(second) == expected
    assert compute_md5(first, skip_comments=False) != compute_md5(second, skip_comments=False)


def test_get_modified_at(tmp_path):
    path = tmp_path / "table.maf"
    path.write_text("data\n")
    stamp = datetime(2024, 1, 2, 3, 4, 5).timestamp()
    os.utime(path, (stamp, stamp))

    assert get_modified_at(path) == "2024-01-02 03:04:05"


def test_is_nonempty_file(tmp_path):
    empty = tmp_path / "empty.maf"
    empty.touch()
    full = tmp_path / "full.maf"
    full.write_text("x")

    assert not is_nonempty_file(empty)
    assert not is_nonempty_file(tmp_path / "missing.maf")
    assert not is_nonempty_file(tmp_path)
    assert is_nonempty_file(full)


def test_check_collaborator_scripts(fake_scripts, tmp_path):
    check_collaborator_scripts(fake_scripts["maf2vcf"], fake_scripts["vcf2maf"])

    with pytest.raises(FileNotFoundError, match="Couldn't locate vcf2maf script"):
        check_collaborator_scripts(fake_scripts["maf2vcf"], tmp_path / "missing.pl")

    empty = tmp_path / "empty.pl"
    empty.touch()
    with pytest.raises(FileNotFoundError, match="Couldn't locate maf2vcf script"):
        check_collaborator_scripts(empty, fake_scripts["vcf2maf"])


def test_validate_reference_fasta(ref_fasta):
    assert validate_reference_fasta(ref_fasta) == ["1"]


def test_validate_reference_fasta_missing(tmp_path, ref_fasta):
    with pytest.raises(FileNotFoundError, match="Reference genome not found"):
        validate_reference_fasta(tmp_path / "missing.fa")

    os.unlink(str(ref_fasta) + ".fai")
    with pytest.raises(FileNotFoundError, match="Reference index not found"):
        validate_reference_fasta(ref_fasta)
