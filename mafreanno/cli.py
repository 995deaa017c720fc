"""MAF Reannotation.

This script reannotates the effects of variants in a MAF by running maf2vcf
followed by vcf2maf on every tumor/normal pair, then recombines the results.

Key features:
- Re-derives all effect annotation columns with VEP through vcf2maf
- Carries selected columns (center, validation status, ...) over from the input MAF
- Never overrides columns that are results of the reannotation
- Skips reannotation when a kept working directory shows the output is current
  (MD5 checksums or modification dates of input and output)
- Includes detailed logging of all operations
"""

import argparse
import sys
from importlib.metadata import PackageNotFoundError, version as pkg_version
from pathlib import Path

from mafreanno.config import build_config
from mafreanno.pipeline.assembler import convert_to_parquet
from mafreanno.pipeline.orchestrator import PipelineOrchestrator, working_directory
from mafreanno.utils.logging import log_command, setup_logging
from mafreanno.utils.validation import validate_reference_fasta


def _get_version() -> str:
    try:
        return pkg_version("mafreanno")
    except PackageNotFoundError:
        from mafreanno import __version__
        return __version__


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Reannotate the effects of variants in a MAF by running maf2vcf followed by vcf2maf.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--version",
        action="version",
        version=_get_version(),
        help="Show version and exit",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (can be used multiple times, e.g. -vv)",
    )
    parser.add_argument(
        "-y",
        "--yaml",
        dest="params",
        required=False,
        help="Path to a params YAML with collaborator locations and column settings",
    )

    io_group = parser.add_argument_group("input/output")
    io_group.add_argument(
        "-i", "--input-maf", dest="input_maf", required=True, help="Path to input file in MAF format"
    )
    io_group.add_argument(
        "-o",
        "--output-maf",
        dest="output_maf",
        default=None,
        help="Path to output MAF file [Default: STDOUT]",
    )
    io_group.add_argument(
        "--tmp-dir",
        dest="tmp_dir",
        default=None,
        help="Folder to retain intermediate VCFs/MAFs and the run manifest [Default: a temporary folder]",
    )
    io_group.add_argument(
        "-f",
        "--force-re-annotation",
        dest="force",
        action="store_true",
        default=False,
        help="Reannotate even if the output is current. Wipes --tmp-dir if given",
    )
    io_group.add_argument(
        "-p",
        "--parquet",
        dest="parquet",
        action="store_true",
        default=False,
        help="Also convert the output MAF to parquet format optimized for duck.db access",
    )

    col_group = parser.add_argument_group("columns")
    col_group.add_argument("--tum-depth-col", dest="tum_depth_col", help="Name of MAF column for read depth in tumor BAM [t_depth]")
    col_group.add_argument("--tum-rad-col", dest="tum_rad_col", help="Name of MAF column for reference allele depth in tumor BAM [t_ref_count]")
    col_group.add_argument("--tum-vad-col", dest="tum_vad_col", help="Name of MAF column for variant allele depth in tumor BAM [t_alt_count]")
    col_group.add_argument("--nrm-depth-col", dest="nrm_depth_col", help="Name of MAF column for read depth in normal BAM [n_depth]")
    col_group.add_argument("--nrm-rad-col", dest="nrm_rad_col", help="Name of MAF column for reference allele depth in normal BAM [n_ref_count]")
    col_group.add_argument("--nrm-vad-col", dest="nrm_vad_col", help="Name of MAF column for variant allele depth in normal BAM [n_alt_count]")
    col_group.add_argument(
        "--retain-cols",
        dest="retain_cols",
        help="Comma-delimited list of columns to retain from the input MAF [Center,Verification_Status,...]",
    )

    tool_group = parser.add_argument_group("collaborators")
    tool_group.add_argument("--perl", dest="perl_cmd", help="Interpreter used to run maf2vcf/vcf2maf [perl]")
    tool_group.add_argument("--maf2vcf", dest="maf2vcf_path", help="Path to maf2vcf.pl [${MAFREANNO_ROOT}/maf2vcf.pl]")
    tool_group.add_argument("--vcf2maf", dest="vcf2maf_path", help="Path to vcf2maf.pl [${MAFREANNO_ROOT}/vcf2maf.pl]")
    tool_group.add_argument("--vep-path", dest="vep_path", help="Folder containing the VEP executable")
    tool_group.add_argument("--vep-data", dest="vep_data", help="VEP's base cache/plugin directory")
    tool_group.add_argument("--vep-forks", dest="vep_forks", type=int, help="Number of forked processes to use when running VEP [4]")
    tool_group.add_argument("--ref-fasta", dest="ref_fasta", help="Reference FASTA file")
    return parser


def main() -> None:
    """Main entry point for the mafreanno command-line interface."""
    parser = build_parser()
    args = parser.parse_args(args=None if sys.argv[1:] else ["--help"])

    if args.parquet and not args.output_maf:
        parser.error("--parquet requires -o/--output-maf")

    # Setup logging with verbosity
    logger = setup_logging(args.verbose)
    log_command(logger)

    try:
        config = build_config(
            params_file=args.params,
            overrides={
                name: getattr(args, name)
                for name in (
                    "perl_cmd", "maf2vcf_path", "vcf2maf_path", "vep_path", "vep_data",
                    "vep_forks", "ref_fasta", "retain_cols", "tum_depth_col", "tum_rad_col",
                    "tum_vad_col", "nrm_depth_col", "nrm_rad_col", "nrm_vad_col",
                )
            },
        )
        collaborator = config.build_collaborator()
        collaborator.check()
        validate_reference_fasta(collaborator.ref_fasta)

        with working_directory(args.tmp_dir, force=args.force) as work_dir:
            if args.tmp_dir:
                logger = setup_logging(args.verbose, log_file=work_dir / "mafreanno.log")

            orchestrator = PipelineOrchestrator(
                input_maf=Path(args.input_maf),
                working_dir=work_dir,
                collaborator=collaborator,
                output_maf=Path(args.output_maf) if args.output_maf else None,
                retain_columns=config.retain_cols,
                force=args.force,
                logger=logger,
            )
            orchestrator.run()

        if args.parquet:
            parquet_path = convert_to_parquet(Path(args.output_maf))
            logger.info(f"Wrote parquet file: {parquet_path}")

    except Exception as e:
        # Only log the top-level error without traceback - it will be shown by the raise
        logger.error(f"Error during execution: {e}")
        raise


if __name__ == "__main__":
    main()
