"""MAF Reannotation package.

mafreanno re-derives the effect annotations of a MAF by splitting it into
per tumor/normal pair VCFs (maf2vcf), annotating every pair (vcf2maf) and
merging the result back into a single MAF. Columns that do not come out of the
annotation, such as sequencing center or validation status, are carried over
from the input MAF. A small manifest in the working directory lets repeated
runs on unchanged input skip the whole reannotation.
"""

__version__ = "0.1.0"

# Package-wide constants
MAF_VERSION_LINE = "#version 2.4"
MANIFEST_NAME = "summary.txt"
