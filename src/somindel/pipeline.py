from __future__ import annotations

import datetime as _dt
import logging
import time
from pathlib import Path
from typing import Dict, Iterable, Optional

import numpy as np
from tqdm import tqdm

from .cache import IndelCallCache
from .filters import QualityFilterEngine
from .inputs import iter_window_sets, load_candidate_calls
from .models import RunCounts
from .options import SomaticIndelFilterOptions
from .scoring import ScoringModel, VariantKind
from .utils import ensure_outdir, open_textmaybe_gzip, write_json
from .vcf import write_vcf_header

logger = logging.getLogger(__name__)


def write_somatic_indel_vcf(
    *,
    calls_path: str | Path,
    windows_path: str | Path,
    opt: SomaticIndelFilterOptions,
    outdir: str | Path,
    model: Optional[ScoringModel] = None,
    vcf_name: str = "somatic.indels.vcf",
    reference: Optional[str] = None,
    contig_length: Optional[int] = None,
    progress: bool = True,
) -> Dict[str, object]:
    """Cache candidates, resolve them against window data, and write VCF + summary.json."""
    t0 = time.time()
    outdir_path = ensure_outdir(outdir)
    vcf_path = outdir_path / vcf_name

    candidates = load_candidate_calls(calls_path)
    counts = RunCounts()

    with open_textmaybe_gzip(vcf_path, "wt") as vcf_fh:
        write_vcf_header(
            vcf_fh,
            opt,
            file_date=_dt.date.today().strftime("%Y%m%d"),
            reference=reference,
            contigs=[(opt.chrom, contig_length)],
        )

        engine = QualityFilterEngine(opt, model)
        cache = IndelCallCache(engine, vcf_fh, counts=counts)
        for pos, info in candidates:
            cache.cache_indel(pos, info)

        it: Iterable = iter_window_sets(windows_path)
        if progress:
            it = tqdm(it, unit="pos", desc="Resolving indels")

        n_windows = 0
        for pos, was_normal, was_tumor in it:
            n_windows += 1
            if cache.test_pos(pos):
                cache.add_indel_window_data(pos, was_normal, was_tumor)

        unresolved = cache.positions()

    if unresolved:
        logger.warning(
            "%d cached position(s) never received window data and were not written (first: %d).",
            len(unresolved),
            unresolved[0] + 1,
        )

    af_bins = np.linspace(0.0, 1.0, 21)
    af_counts = np.histogram(np.asarray(counts.tumor_af, dtype=float), bins=af_bins)[0]

    summary: Dict[str, object] = {
        "calls_path": str(calls_path),
        "windows_path": str(windows_path),
        "vcf_path": str(vcf_path),
        "chrom": opt.chrom,
        "scoring_mode": opt.scoring_mode.value,
        "scoring_model": bool(model is not None and model.is_initialized(VariantKind.INDEL)),
        "max_depth": opt.max_depth,
        "indel_max_window_filtered_basecall_frac": opt.indel_max_window_filtered_basecall_frac,
        "sindel_quality_lower_bound": opt.sindel_quality_lower_bound,
        "indel_region_flank_size": opt.indel_region_flank_size,
        "counts": {
            "candidates": len(candidates),
            "window_positions": n_windows,
            "records_written": counts.records_written,
            "records_failed": counts.records_failed,
            "records_pass": counts.records_pass,
            "positions_unresolved": len(unresolved),
        },
        "filter_counts": dict(sorted(counts.filter_counts.items())),
        "tumor_af_hist": {
            "bin_edges": af_bins.tolist(),
            "counts": af_counts.tolist(),
        },
        "runtime_seconds": float(time.time() - t0),
    }

    write_json(outdir_path / "summary.json", summary)
    return summary
