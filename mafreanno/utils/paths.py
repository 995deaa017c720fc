"""Utility module for handling project paths and environment variables.

This module provides functions to get the project root directory regardless
of how the package is installed. The collaborator scripts (maf2vcf.pl,
vcf2maf.pl) are looked up relative to this root unless configured otherwise.
"""

import os
from pathlib import Path


def get_project_root() -> Path:
    """Get the project root directory regardless of how the package is installed."""
    # Always use MAFREANNO_ROOT if set (for Docker and custom setups)
    if "MAFREANNO_ROOT" in os.environ:
        return Path(os.environ["MAFREANNO_ROOT"])

    # Otherwise, use development directory structure (project root)
    return Path(__file__).parent.parent.parent


def get_mafreanno_root() -> Path:
    """Get the MAFREANNO_ROOT directory."""
    if "MAFREANNO_ROOT" not in os.environ:
        os.environ["MAFREANNO_ROOT"] = str(get_project_root())
    return Path(os.environ["MAFREANNO_ROOT"])


def expand_root(value: str) -> str:
    """Replace ${MAFREANNO_ROOT} in a configured path with the project root."""
    if "${MAFREANNO_ROOT}" in value:
        return value.replace("${MAFREANNO_ROOT}", str(get_mafreanno_root()))
    return value
