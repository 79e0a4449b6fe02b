from __future__ import annotations

import logging
import math

from scipy import stats as sps

from .models import SampleIndelReportInfo, WindowAverageSet
from .utils import neg_log10, safe_frac

logger = logging.getLogger(__name__)


def calculate_indel_af(isri: SampleIndelReportInfo) -> float:
    """Fraction of q30 reads supporting the indel."""
    return safe_frac(isri.n_q30_indel_reads, isri.n_q30_total_reads)


def calculate_indel_of(isri: SampleIndelReportInfo) -> float:
    """Fraction of reads supporting some other allele."""
    return safe_frac(isri.n_other_reads, isri.n_q30_total_reads)


def _strand_table(isri: SampleIndelReportInfo) -> list[list[int]]:
    return [
        [isri.n_q30_ref_reads_fwd, isri.n_q30_ref_reads_rev],
        [isri.n_q30_indel_reads_fwd, isri.n_q30_indel_reads_rev],
    ]


def calculate_sor(isri: SampleIndelReportInfo) -> float:
    """Symmetric strand odds ratio of ref vs indel support.

    Uses +1 pseudocounts so empty strands stay finite:
    ``ln(R + 1/R) + ln(ref_ratio) - ln(indel_ratio)``.
    """
    (ref_fwd, ref_rev), (ind_fwd, ind_rev) = _strand_table(isri)
    ref_fwd += 1.0
    ref_rev += 1.0
    ind_fwd += 1.0
    ind_rev += 1.0

    ratio = (ref_fwd * ind_rev) / (ref_rev * ind_fwd)
    symmetrical_ratio = ratio + 1.0 / ratio
    ref_ratio = min(ref_fwd, ref_rev) / max(ref_fwd, ref_rev)
    ind_ratio = min(ind_fwd, ind_rev) / max(ind_fwd, ind_rev)
    return math.log(symmetrical_ratio) + math.log(ref_ratio) - math.log(ind_ratio)


def calculate_fs(isri: SampleIndelReportInfo) -> float:
    """Fisher strand bias: -log10 of the two-sided Fisher exact test p-value."""
    table = _strand_table(isri)
    if sum(table[0]) + sum(table[1]) == 0:
        return 0.0
    pval = sps.fisher_exact(table, alternative="two-sided")[1]
    return neg_log10(float(pval))


def calculate_bsa(isri: SampleIndelReportInfo) -> float:
    """Binomial strand asymmetry of the indel-supporting reads (-log10 p, p=0.5)."""
    n = isri.n_q30_indel_reads_fwd + isri.n_q30_indel_reads_rev
    if n <= 0:
        return 0.0
    pval = sps.binomtest(isri.n_q30_indel_reads_fwd, n, p=0.5).pvalue
    return neg_log10(float(pval))


def read_position_ranksum(isri: SampleIndelReportInfo) -> float:
    return float(isri.readpos_ranksum)


def calculate_bcnoise(was: WindowAverageSet) -> float:
    """Fraction of filtered basecalls in the flanking window."""
    return safe_frac(was.filtered_basecalls, was.total_basecalls)


def mean_mapq(normal: SampleIndelReportInfo, tumor: SampleIndelReportInfo) -> float:
    return (normal.mean_mapq + tumor.mean_mapq) / 2.0


def mean_mapq0(normal: SampleIndelReportInfo, tumor: SampleIndelReportInfo) -> float:
    """MAPQ0 fraction over both samples, weighted by mapping-quality observations."""
    return safe_frac(
        normal.mapq0_frac * normal.n_mapq + tumor.mapq0_frac * tumor.n_mapq,
        normal.n_mapq + tumor.n_mapq,
    )
