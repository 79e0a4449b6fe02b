from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, Set

from .models import NType, SomaticIndelCallInfo, WindowAverageSet
from .options import ScoringMode, SomaticIndelFilterOptions
from .scoring import NullScoringModel, ScoringModel, VariantKind
from .stats import (
    calculate_bcnoise,
    calculate_bsa,
    calculate_fs,
    calculate_indel_af,
    calculate_indel_of,
    calculate_sor,
    mean_mapq,
    mean_mapq0,
    read_position_ranksum,
)

logger = logging.getLogger(__name__)


class VcfFilter(Enum):
    # definition order is the order filters are written in
    HighDepth = "Normal sample depth is greater than the configured maximum"
    IndelBCNoise = "Fraction of filtered basecalls in the flanking window is too high"
    QSI_ref = "Normal sample is not homozygous reference or QSI_NT is below the lower bound"
    Nonref = "Normal sample is not homozygous reference"
    LowQscore = "Empirical score is below the model threshold"

    @property
    def description(self) -> str:
        return self.value


LEGACY_FILTERS = frozenset({VcfFilter.IndelBCNoise, VcfFilter.QSI_ref})
EMPIRICAL_FILTERS = frozenset({VcfFilter.Nonref, VcfFilter.LowQscore})

INDEL_FEATURE_NAMES = (
    "QSI",
    "QSI_NT",
    "IHP",
    "RC",
    "IC",
    "MQ",
    "MQ0",
    "N_AF",
    "T_AF",
    "N_OF",
    "T_OF",
    "N_SOR",
    "T_SOR",
    "N_FS",
    "T_FS",
    "N_BSA",
    "T_BSA",
    "N_RR",
    "T_RR",
    "N_BCN",
    "T_BCN",
)


@dataclass
class FilterDecision:
    """Accumulated site filters and empirical score for one call."""

    filters: Set[VcfFilter] = field(default_factory=set)
    qscore: float = 0.0
    is_qscore: bool = False
    features: Dict[str, float] = field(default_factory=dict)

    def set_filter(self, f: VcfFilter) -> None:
        self.filters.add(f)

    @property
    def is_pass(self) -> bool:
        return not self.filters

    def filter_string(self) -> str:
        if not self.filters:
            return "PASS"
        return ";".join(f.name for f in VcfFilter if f in self.filters)


def calculate_indel_features(
    info: SomaticIndelCallInfo,
    was_normal: WindowAverageSet,
    was_tumor: WindowAverageSet,
) -> Dict[str, float]:
    """Build the empirical feature vector (ordered as INDEL_FEATURE_NAMES)."""
    n1, n2 = info.nisri
    t1, t2 = info.tisri
    values = {
        "QSI": float(info.rs.sindel_qphred),
        "QSI_NT": float(info.rs.sindel_from_ntype_qphred),
        "IHP": float(info.iri.ihpol),
        "RC": float(info.iri.ref_repeat_count),
        "IC": float(info.iri.indel_repeat_count),
        "MQ": mean_mapq(n2, t2),
        "MQ0": mean_mapq0(n2, t2),
        "N_AF": calculate_indel_af(n1),
        "T_AF": calculate_indel_af(t1),
        "N_OF": calculate_indel_of(n1),
        "T_OF": calculate_indel_of(t1),
        "N_SOR": calculate_sor(n1),
        "T_SOR": calculate_sor(t1),
        "N_FS": calculate_fs(n1),
        "T_FS": calculate_fs(t1),
        "N_BSA": calculate_bsa(n1),
        "T_BSA": calculate_bsa(t1),
        "N_RR": read_position_ranksum(n1),
        "T_RR": read_position_ranksum(t1),
        "N_BCN": calculate_bcnoise(was_normal),
        "T_BCN": calculate_bcnoise(was_tumor),
    }
    return {name: values[name] for name in INDEL_FEATURE_NAMES}


class QualityFilterEngine:
    """Computes site filters and the calibrated score for somatic indels."""

    def __init__(self, opt: SomaticIndelFilterOptions, model: ScoringModel | None = None) -> None:
        self._opt = opt
        self._model: ScoringModel = model if model is not None else NullScoringModel()
        self._mode_filters: Dict[ScoringMode, Callable[..., None]] = {
            ScoringMode.LEGACY: self._apply_legacy_filters,
            ScoringMode.EMPIRICAL: self._apply_empirical_filters,
        }
        if opt.is_use_empirical_scoring and not self._model.is_initialized(VariantKind.INDEL):
            logger.warning(
                "Empirical indel scoring requested but no scoring model is initialized; "
                "calls will not receive an EQSI score."
            )

    @property
    def options(self) -> SomaticIndelFilterOptions:
        return self._opt

    def _apply_legacy_filters(
        self,
        info: SomaticIndelCallInfo,
        was_normal: WindowAverageSet,
        was_tumor: WindowAverageSet,
        smod: FilterDecision,
    ) -> None:
        max_frac = self._opt.indel_max_window_filtered_basecall_frac
        if calculate_bcnoise(was_normal) >= max_frac or calculate_bcnoise(was_tumor) >= max_frac:
            smod.set_filter(VcfFilter.IndelBCNoise)

        rs = info.rs
        if rs.ntype is not NType.REF or rs.sindel_from_ntype_qphred < self._opt.sindel_quality_lower_bound:
            smod.set_filter(VcfFilter.QSI_ref)

    def _apply_empirical_filters(
        self,
        info: SomaticIndelCallInfo,
        was_normal: WindowAverageSet,
        was_tumor: WindowAverageSet,
        smod: FilterDecision,
    ) -> None:
        if info.rs.ntype is not NType.REF:
            smod.set_filter(VcfFilter.Nonref)

        if smod.qscore < self._model.threshold(VariantKind.INDEL):
            smod.set_filter(VcfFilter.LowQscore)

    def apply(
        self,
        info: SomaticIndelCallInfo,
        was_normal: WindowAverageSet,
        was_tumor: WindowAverageSet,
    ) -> FilterDecision:
        smod = FilterDecision()

        if self._opt.is_max_depth:
            assert self._opt.max_depth is not None
            if info.nisri[0].depth > self._opt.max_depth:
                smod.set_filter(VcfFilter.HighDepth)

        smod.features = calculate_indel_features(info, was_normal, was_tumor)

        if self._model.is_initialized(VariantKind.INDEL):
            # the model scores the error hypothesis, so invert to get confidence
            smod.qscore = 1.0 - self._model.score(smod.features, VariantKind.INDEL)
            smod.is_qscore = True

        self._mode_filters[self._opt.scoring_mode](info, was_normal, was_tumor, smod)
        return smod
