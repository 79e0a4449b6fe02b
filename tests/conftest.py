from typing import Callable, Mapping

import pytest

from somindel.models import (
    IndelReportInfo,
    NType,
    ResultSet,
    SampleIndelReportInfo,
    SomaticIndelCallInfo,
)
from somindel.scoring import VariantKind


class FixedScoreModel:
    """Scoring model returning a constant raw score."""

    def __init__(self, raw_score: float, threshold: float = 0.5) -> None:
        self.raw_score = raw_score
        self._threshold = threshold
        self.seen = []

    def is_initialized(self, kind=None) -> bool:
        return True

    def score(self, features: Mapping[str, float], kind: VariantKind) -> float:
        self.seen.append((dict(features), kind))
        return self.raw_score

    def threshold(self, kind: VariantKind) -> float:
        return self._threshold


def _call(
    *,
    normal_depth: int = 30,
    ntype: NType = NType.REF,
    qsi: int = 45,
    qsi_nt: int = 45,
    repeat_unit="CA",
    **iri_kwargs,
) -> SomaticIndelCallInfo:
    iri = IndelReportInfo(
        vcf_ref_seq=iri_kwargs.pop("ref", "ACA"),
        vcf_indel_seq=iri_kwargs.pop("alt", "A"),
        repeat_unit=repeat_unit,
        ref_repeat_count=iri_kwargs.pop("ref_repeat_count", 4),
        indel_repeat_count=iri_kwargs.pop("indel_repeat_count", 3),
        ihpol=iri_kwargs.pop("ihpol", 2),
        **iri_kwargs,
    )
    normal = (
        SampleIndelReportInfo(depth=normal_depth, n_q30_ref_reads=28, n_other_reads=2, mean_mapq=60.0, n_mapq=30),
        SampleIndelReportInfo(depth=32, n_q30_ref_reads=29, n_other_reads=3, mean_mapq=58.0, n_mapq=32),
    )
    tumor = (
        SampleIndelReportInfo(
            depth=40,
            n_q30_ref_reads=20,
            n_q30_indel_reads=16,
            n_other_reads=4,
            n_q30_ref_reads_fwd=10,
            n_q30_ref_reads_rev=10,
            n_q30_indel_reads_fwd=8,
            n_q30_indel_reads_rev=8,
            mean_mapq=59.0,
            n_mapq=40,
            readpos_ranksum=-0.5,
        ),
        SampleIndelReportInfo(
            depth=44,
            n_q30_ref_reads=22,
            n_q30_indel_reads=17,
            n_other_reads=5,
            mean_mapq=56.0,
            mapq0_frac=0.5,
            n_mapq=8,
        ),
    )
    rs = ResultSet(
        sindel_qphred=qsi,
        sindel_tier=0,
        ntype=ntype,
        sindel_from_ntype_qphred=qsi_nt,
        sindel_from_ntype_tier=1,
        max_gt=2,
    )
    return SomaticIndelCallInfo(iri=iri, nisri=normal, tisri=tumor, rs=rs)


@pytest.fixture
def make_call() -> Callable[..., SomaticIndelCallInfo]:
    return _call


@pytest.fixture
def fixed_score_model() -> Callable[..., FixedScoreModel]:
    return FixedScoreModel
