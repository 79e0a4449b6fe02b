from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class ScoringMode(Enum):
    """Which family of site filters is applied to a somatic indel."""

    LEGACY = "legacy"
    EMPIRICAL = "empirical"


@dataclass(frozen=True)
class PileupCleanerOptions:
    """Read-level policy for pileup cleaning.

    Attributes
    ----------
    min_qscore:
        Calls below this base quality are dropped.
    min_mapq:
        Calls from reads below this mapping quality are dropped (applied on top of
        the per-call tier flags).
    is_dependent_eprob:
        Model correlated errors among same-base, same-strand calls.
    dependency_factor:
        Error dependency between successive calls in a (base, strand) group, in [0,1).
        0 reduces to independent errors.
    max_dependent_rank:
        Ranks above this share the cached value of this rank.
    """

    min_qscore: int = 0
    min_mapq: int = 0
    is_dependent_eprob: bool = True
    dependency_factor: float = 0.35
    max_dependent_rank: int = 64


@dataclass(frozen=True)
class SomaticIndelFilterOptions:
    """Site filter and output settings for somatic indel records."""

    chrom: str
    max_depth: Optional[float] = None
    indel_max_window_filtered_basecall_frac: float = 0.3
    sindel_quality_lower_bound: int = 30
    scoring_mode: ScoringMode = ScoringMode.LEGACY
    indel_region_flank_size: int = 50

    @property
    def is_max_depth(self) -> bool:
        return self.max_depth is not None

    @property
    def is_use_empirical_scoring(self) -> bool:
        return self.scoring_mode is ScoringMode.EMPIRICAL
