from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Mapping, Optional, Tuple


class NType(Enum):
    """Null-type (non-somatic) state of the normal sample."""

    REF = "ref"
    HET = "het"
    HOM = "hom"
    CONFLICT = "conflict"

    @property
    def label(self) -> str:
        return self.value


class BreakpointType(Enum):
    NONE = "none"
    BP_LEFT = "bp_left"
    BP_RIGHT = "bp_right"


@dataclass(frozen=True)
class BaseCall:
    """One read's base observation at a pileup position.

    Attributes
    ----------
    base:
        Called base (A/C/G/T/N), uppercase.
    qscore:
        Base quality (phred).
    mapq:
        Mapping quality of the read.
    is_fwd_strand:
        True if the read aligned to the forward strand.
    is_call_filter:
        Call fails the tier1 criteria.
    is_tier2_call_filter:
        Call fails the (more permissive) tier2 criteria as well.
    """

    base: str
    qscore: int
    mapq: int = 60
    is_fwd_strand: bool = True
    is_call_filter: bool = False
    is_tier2_call_filter: bool = False


@dataclass(frozen=True)
class RawPileup:
    """Uncleaned single-sample pileup at one reference position."""

    ref_base: str
    calls: Tuple[BaseCall, ...] = ()


@dataclass(frozen=True)
class IndelReportInfo:
    """Static description of one indel allele."""

    vcf_ref_seq: str
    vcf_indel_seq: str
    repeat_unit: Optional[str] = None
    ref_repeat_count: int = 0
    indel_repeat_count: int = 0
    ihpol: int = 0
    it: BreakpointType = BreakpointType.NONE

    def is_repeat_unit(self) -> bool:
        return bool(self.repeat_unit) and self.repeat_unit != "N/A"

    @property
    def is_breakpoint(self) -> bool:
        return self.it in (BreakpointType.BP_LEFT, BreakpointType.BP_RIGHT)

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "IndelReportInfo":
        return cls(
            vcf_ref_seq=str(d["ref"]),
            vcf_indel_seq=str(d["alt"]),
            repeat_unit=d.get("repeat_unit"),
            ref_repeat_count=int(d.get("ref_repeat_count", 0)),
            indel_repeat_count=int(d.get("indel_repeat_count", 0)),
            ihpol=int(d.get("ihpol", 0)),
            it=BreakpointType(d.get("breakpoint", "none")),
        )


@dataclass(frozen=True)
class SampleIndelReportInfo:
    """Per-sample, per-tier read support summary for one indel."""

    depth: int = 0
    n_q30_ref_reads: int = 0
    n_q30_alt_reads: int = 0
    n_q30_indel_reads: int = 0
    n_other_reads: int = 0
    # strand split of the q30 ref and indel support
    n_q30_ref_reads_fwd: int = 0
    n_q30_ref_reads_rev: int = 0
    n_q30_indel_reads_fwd: int = 0
    n_q30_indel_reads_rev: int = 0
    mean_mapq: float = 0.0
    mapq0_frac: float = 0.0
    n_mapq: int = 0
    readpos_ranksum: float = 0.0

    @property
    def n_q30_total_reads(self) -> int:
        return self.n_q30_ref_reads + self.n_q30_alt_reads + self.n_q30_indel_reads + self.n_other_reads

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "SampleIndelReportInfo":
        return cls(
            depth=int(d.get("depth", 0)),
            n_q30_ref_reads=int(d.get("n_q30_ref_reads", 0)),
            n_q30_alt_reads=int(d.get("n_q30_alt_reads", 0)),
            n_q30_indel_reads=int(d.get("n_q30_indel_reads", 0)),
            n_other_reads=int(d.get("n_other_reads", 0)),
            n_q30_ref_reads_fwd=int(d.get("n_q30_ref_reads_fwd", 0)),
            n_q30_ref_reads_rev=int(d.get("n_q30_ref_reads_rev", 0)),
            n_q30_indel_reads_fwd=int(d.get("n_q30_indel_reads_fwd", 0)),
            n_q30_indel_reads_rev=int(d.get("n_q30_indel_reads_rev", 0)),
            mean_mapq=float(d.get("mean_mapq", 0.0)),
            mapq0_frac=float(d.get("mapq0_frac", 0.0)),
            n_mapq=int(d.get("n_mapq", 0)),
            readpos_ranksum=float(d.get("readpos_ranksum", 0.0)),
        )


@dataclass(frozen=True)
class WindowAverageSet:
    """Flank-window averages of filtered and used basecalls for one sample."""

    filtered_basecalls: float = 0.0
    used_basecalls: float = 0.0

    @property
    def total_basecalls(self) -> float:
        return self.filtered_basecalls + self.used_basecalls

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "WindowAverageSet":
        return cls(
            filtered_basecalls=float(d.get("filtered", 0.0)),
            used_basecalls=float(d.get("used", 0.0)),
        )


@dataclass(frozen=True)
class ResultSet:
    """Genotype decision produced by the external somatic indel engine.

    Tiers are 0-based here and written 1-based.
    """

    sindel_qphred: int
    sindel_tier: int
    ntype: NType
    sindel_from_ntype_qphred: int
    sindel_from_ntype_tier: int
    max_gt: int
    is_overlap: bool = False

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "ResultSet":
        return cls(
            sindel_qphred=int(d["qsi"]),
            sindel_tier=int(d.get("tier", 0)),
            ntype=NType(str(d.get("ntype", "ref")).lower()),
            sindel_from_ntype_qphred=int(d["qsi_nt"]),
            sindel_from_ntype_tier=int(d.get("tier_nt", 0)),
            max_gt=int(d.get("sgt", 0)),
            is_overlap=bool(d.get("overlap", False)),
        )


def _tier_pair(items: Any, what: str) -> Tuple[SampleIndelReportInfo, SampleIndelReportInfo]:
    if not isinstance(items, (list, tuple)) or len(items) != 2:
        raise ValueError(f"{what} must be a [tier1, tier2] pair")
    return SampleIndelReportInfo.from_dict(items[0]), SampleIndelReportInfo.from_dict(items[1])


@dataclass(frozen=True)
class SomaticIndelCallInfo:
    """Everything needed to filter and write one candidate somatic indel.

    ``nisri`` / ``tisri`` hold (tier1, tier2) report info for normal / tumor.
    """

    iri: IndelReportInfo
    nisri: Tuple[SampleIndelReportInfo, SampleIndelReportInfo]
    tisri: Tuple[SampleIndelReportInfo, SampleIndelReportInfo]
    rs: ResultSet

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "SomaticIndelCallInfo":
        return cls(
            iri=IndelReportInfo.from_dict(d["indel"]),
            nisri=_tier_pair(d["normal"], "normal"),
            tisri=_tier_pair(d["tumor"], "tumor"),
            rs=ResultSet.from_dict(d["result"]),
        )


@dataclass
class RunCounts:
    """Counters collected while resolving cached candidates."""

    records_written: int = 0
    records_failed: int = 0
    records_pass: int = 0
    filter_counts: dict = field(default_factory=dict)
    tumor_af: List[float] = field(default_factory=list)
