"""somindel: somatic indel filtering, scoring and VCF output for tumor/normal pairs.

Most users should use the CLI:

    somindel write-vcf --calls calls.jsonl --windows windows.jsonl --chrom chr1 --outdir ...

"""

from __future__ import annotations

__all__ = ["__version__"]

__version__ = "0.1.0"
