from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterable, Iterator, Optional

import numpy as np
import pysam
from tqdm import tqdm

from .models import BaseCall, RawPileup
from .options import PileupCleanerOptions
from .pileup import CleanedPileup, PileupCleaner
from .utils import ensure_outdir, open_textmaybe_gzip, write_json

logger = logging.getLogger(__name__)


def check_bam_index(bam_path: str | Path) -> None:
    """Ensure a BAM has an index; raise ValueError with fix instructions."""
    bam = Path(bam_path)
    bai1 = bam.with_suffix(bam.suffix + ".bai")
    bai2 = bam.with_suffix(".bai")
    if bai1.exists() or bai2.exists():
        return
    raise ValueError("BAM is not indexed. Run: samtools index " + str(bam))


@contextmanager
def _open_fasta(ref_fa: Optional[str]) -> Iterator[Optional[pysam.FastaFile]]:
    if ref_fa is None:
        yield None
        return
    fasta = pysam.FastaFile(ref_fa)
    try:
        yield fasta
    finally:
        fasta.close()


def raw_pileup_from_column(
    column: pysam.PileupColumn,
    *,
    ref_base: str = "N",
    tier1_min_mapq: int = 20,
    tier2_min_mapq: int = 0,
) -> RawPileup:
    """Convert a pysam pileup column into a RawPileup.

    Deletions and reference skips carry no base and are not included. Duplicates
    are tier1-filtered only; QC-failed reads are filtered at both tiers.
    """
    calls = []
    for pr in column.pileups:
        if pr.is_del or pr.is_refskip or pr.query_position is None:
            continue
        read = pr.alignment
        seq = read.query_sequence
        if seq is None:
            continue
        qpos = pr.query_position
        quals = read.query_qualities
        mapq = int(read.mapping_quality)
        calls.append(
            BaseCall(
                base=seq[qpos].upper(),
                qscore=int(quals[qpos]) if quals is not None else 0,
                mapq=mapq,
                is_fwd_strand=not read.is_reverse,
                is_call_filter=mapq < tier1_min_mapq or read.is_duplicate or read.is_qcfail,
                is_tier2_call_filter=mapq < tier2_min_mapq or read.is_qcfail,
            )
        )
    return RawPileup(ref_base=ref_base.upper(), calls=tuple(calls))


def clean_bam_region(
    *,
    bam_path: str,
    contig: str,
    outdir: str | Path,
    opt: PileupCleanerOptions,
    start: Optional[int] = None,
    end: Optional[int] = None,
    ref_fa: Optional[str] = None,
    include_tier2: bool = False,
    tier1_min_mapq: int = 20,
    tier2_min_mapq: int = 0,
    progress: bool = True,
) -> Dict[str, object]:
    """Clean every pileup position in a BAM region and write per-position stats.

    Writes ``pileup_stats.tsv.gz`` (pos is 1-based) and ``pileup_summary.json``.
    """
    t0 = time.time()
    outdir_path = ensure_outdir(outdir)
    check_bam_index(bam_path)

    cleaner = PileupCleaner(opt)
    cpi = CleanedPileup()
    counts = {
        "positions": 0,
        "calls_total": 0,
        "calls_used": 0,
        "calls_unused": 0,
    }

    tsv_path = outdir_path / "pileup_stats.tsv.gz"
    with pysam.AlignmentFile(bam_path, "rb") as bam, _open_fasta(ref_fa) as fasta, open_textmaybe_gzip(
        tsv_path, "wt"
    ) as tsv_fh:
        tsv_fh.write("\t".join(["pos", "ref", "n_calls", "n_used", "n_unused", "mean_error_prob"]) + "\n")

        it: Iterable[pysam.PileupColumn] = bam.pileup(
            contig,
            start,
            end,
            truncate=start is not None,
            stepper="nofilter",
            min_base_quality=0,
            ignore_overlaps=False,
        )
        if progress:
            it = tqdm(it, unit="pos", desc="Cleaning pileup")

        for column in it:
            pos0 = int(column.reference_pos)
            ref_base = fasta.fetch(contig, pos0, pos0 + 1) if fasta is not None else "N"
            raw = raw_pileup_from_column(
                column,
                ref_base=ref_base or "N",
                tier1_min_mapq=tier1_min_mapq,
                tier2_min_mapq=tier2_min_mapq,
            )
            cleaner.clean_pileup(raw, include_tier2, cpi)

            eprob = cpi.dependent_error_prob
            mean_eprob = float(np.mean(eprob)) if eprob else 0.0
            tsv_fh.write(
                f"{pos0 + 1}\t{cpi.ref_base}\t{cpi.n_calls}\t{cpi.n_used_calls}\t"
                f"{cpi.n_unused_calls}\t{mean_eprob:.6f}\n"
            )

            counts["positions"] += 1
            counts["calls_total"] += cpi.n_calls
            counts["calls_used"] += cpi.n_used_calls
            counts["calls_unused"] += cpi.n_unused_calls

    summary = {
        "bam_path": bam_path,
        "contig": contig,
        "start": start,
        "end": end,
        "include_tier2": bool(include_tier2),
        "tier1_min_mapq": int(tier1_min_mapq),
        "tier2_min_mapq": int(tier2_min_mapq),
        "min_qscore": int(opt.min_qscore),
        "is_dependent_eprob": bool(opt.is_dependent_eprob),
        "pileup_stats_tsv_gz": str(tsv_path),
        "counts": counts,
        "runtime_seconds": float(time.time() - t0),
    }
    write_json(outdir_path / "pileup_summary.json", summary)
    return summary
