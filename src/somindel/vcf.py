from __future__ import annotations

import logging
from typing import Optional, Sequence, TextIO, Tuple

from jinja2 import Template

from .filters import INDEL_FEATURE_NAMES, FilterDecision, VcfFilter
from .models import SampleIndelReportInfo, SomaticIndelCallInfo, WindowAverageSet
from .options import SomaticIndelFilterOptions
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

FORMAT_KEYS = "DP:DP2:TAR:TIR:TOR:AF:OF:SOR:FS:BSA:RR"

_VCF_HEADER_TEMPLATE = Template(
    """##fileformat=VCFv4.1
{% if file_date %}##fileDate={{ file_date }}
{% endif %}##source={{ source }}
{% if reference %}##reference={{ reference }}
{% endif %}{% for name, length in contigs %}##contig=<ID={{ name }}{% if length %},length={{ length }}{% endif %}>
{% endfor %}##INFO=<ID=SOMATIC,Number=0,Type=Flag,Description="Somatic mutation">
##INFO=<ID=EQSI,Number=1,Type=Float,Description="Empirically calibrated quality score for somatic variants">
##INFO=<ID=QSI,Number=1,Type=Integer,Description="Quality score for any somatic variant, ie. for the ALT haplotype to be present at a significantly different frequency in the tumor and normal">
##INFO=<ID=TQSI,Number=1,Type=Integer,Description="Data tier used to compute QSI">
##INFO=<ID=NT,Number=1,Type=String,Description="Genotype of the normal in all data tiers, as used to classify somatic variants. One of {ref,het,hom,conflict}.">
##INFO=<ID=QSI_NT,Number=1,Type=Integer,Description="Quality score reflecting the joint probability of a somatic variant and NT">
##INFO=<ID=TQSI_NT,Number=1,Type=Integer,Description="Data tier used to compute QSI_NT">
##INFO=<ID=SGT,Number=1,Type=String,Description="Most likely somatic genotype excluding normal noise states">
##INFO=<ID=MQ,Number=1,Type=Float,Description="Mean of the normal and tumor tier2 mean mapping qualities">
##INFO=<ID=MQ0,Number=1,Type=Float,Description="Fraction of normal and tumor tier2 reads with mapping quality zero">
##INFO=<ID=RU,Number=1,Type=String,Description="Smallest repeating sequence unit in inserted or deleted sequence">
##INFO=<ID=RC,Number=1,Type=Integer,Description="Number of times RU repeats in the reference allele">
##INFO=<ID=IC,Number=1,Type=Integer,Description="Number of times RU repeats in the indel allele">
##INFO=<ID=IHP,Number=1,Type=Integer,Description="Largest reference interrupted homopolymer length intersecting with the indel">
##INFO=<ID=ESF,Number=.,Type=Float,Description="Empirical scoring features ({{ feature_names }})">
##INFO=<ID=SVTYPE,Number=1,Type=String,Description="Type of structural variant">
##INFO=<ID=OVERLAP,Number=0,Type=Flag,Description="Somatic indel possibly overlaps a second indel.">
##FORMAT=<ID=DP,Number=1,Type=Integer,Description="Read depth for tier1">
##FORMAT=<ID=DP2,Number=1,Type=Integer,Description="Read depth for tier2">
##FORMAT=<ID=TAR,Number=2,Type=Integer,Description="Reads strongly supporting alternate allele for tiers 1,2">
##FORMAT=<ID=TIR,Number=2,Type=Integer,Description="Reads strongly supporting indel allele for tiers 1,2">
##FORMAT=<ID=TOR,Number=2,Type=Integer,Description="Other reads (weak support or insufficient indel breakpoint overlap) for tiers 1,2">
##FORMAT=<ID=AF,Number=1,Type=Float,Description="Estimated Indel AF">
##FORMAT=<ID=OF,Number=1,Type=Float,Description="Estimated fraction of reads supporting other alleles">
##FORMAT=<ID=SOR,Number=1,Type=Float,Description="Strand odds ratio of reference vs indel support">
##FORMAT=<ID=FS,Number=1,Type=Float,Description="Fisher strand bias (-log10 p) of reference vs indel support">
##FORMAT=<ID=BSA,Number=1,Type=Float,Description="Binomial strand asymmetry (-log10 p) of indel support">
##FORMAT=<ID=RR,Number=1,Type=Float,Description="Read position rank-sum statistic">
##FORMAT=<ID=BCN{{ flank_size }},Number=1,Type=Float,Description="Fraction of filtered reads within {{ flank_size }} bases of the indel.">
{% for f in filters %}##FILTER=<ID={{ f.name }},Description="{{ f.description }}">
{% endfor %}#CHROM	POS	ID	REF	ALT	QUAL	FILTER	INFO	FORMAT	{{ samples | join('\t') }}
""",
    keep_trailing_newline=True,
)


def write_vcf_header(
    out: TextIO,
    opt: SomaticIndelFilterOptions,
    *,
    source: str = "somindel",
    file_date: Optional[str] = None,
    reference: Optional[str] = None,
    contigs: Sequence[Tuple[str, Optional[int]]] = (),
    samples: Sequence[str] = ("NORMAL", "TUMOR"),
) -> None:
    out.write(
        _VCF_HEADER_TEMPLATE.render(
            source=source,
            file_date=file_date,
            reference=reference,
            contigs=list(contigs),
            feature_names=",".join(INDEL_FEATURE_NAMES),
            flank_size=opt.indel_region_flank_size,
            filters=list(VcfFilter),
            samples=list(samples),
        )
    )


def format_sample_tiers(
    isri1: SampleIndelReportInfo,
    isri2: SampleIndelReportInfo,
    was: WindowAverageSet,
) -> str:
    """FORMAT values for one sample: DP:DP2:TAR:TIR:TOR:AF:OF:SOR:FS:BSA:RR:BCN."""
    counts = [
        str(isri1.depth),
        str(isri2.depth),
        f"{isri1.n_q30_ref_reads + isri1.n_q30_alt_reads},{isri2.n_q30_ref_reads + isri2.n_q30_alt_reads}",
        f"{isri1.n_q30_indel_reads},{isri2.n_q30_indel_reads}",
        f"{isri1.n_other_reads},{isri2.n_other_reads}",
    ]
    derived = [
        calculate_indel_af(isri1),
        calculate_indel_of(isri1),
        calculate_sor(isri1),
        calculate_fs(isri1),
        calculate_bsa(isri1),
        read_position_ranksum(isri1),
        calculate_bcnoise(was),
    ]
    return ":".join(counts + [f"{v:.3f}" for v in derived])


def format_features(features: dict) -> str:
    return ",".join(f"{features[name]:g}" for name in INDEL_FEATURE_NAMES)


def format_somatic_indel_record(
    opt: SomaticIndelFilterOptions,
    pos: int,
    info: SomaticIndelCallInfo,
    was_normal: WindowAverageSet,
    was_tumor: WindowAverageSet,
    smod: FilterDecision,
) -> str:
    """Render one somatic indel as a VCF line (``pos`` is 0-based)."""
    rs = info.rs
    iri = info.iri

    info_fields = ["SOMATIC"]
    if smod.is_qscore:
        info_fields.append(f"EQSI={smod.qscore:.4f}")
    info_fields += [
        f"QSI={rs.sindel_qphred}",
        f"TQSI={rs.sindel_tier + 1}",
        f"NT={rs.ntype.label}",
        f"QSI_NT={rs.sindel_from_ntype_qphred}",
        f"TQSI_NT={rs.sindel_from_ntype_tier + 1}",
        f"SGT={rs.max_gt}",
        f"MQ={mean_mapq(info.nisri[1], info.tisri[1]):.2f}",
        f"MQ0={mean_mapq0(info.nisri[1], info.tisri[1]):.2f}",
    ]
    if iri.is_repeat_unit():
        info_fields += [
            f"RU={iri.repeat_unit}",
            f"RC={iri.ref_repeat_count}",
            f"IC={iri.indel_repeat_count}",
        ]
    info_fields.append(f"IHP={iri.ihpol}")
    if opt.is_use_empirical_scoring:
        info_fields.append("ESF=" + format_features(smod.features))
    if iri.is_breakpoint:
        info_fields.append("SVTYPE=BND")
    if rs.is_overlap:
        info_fields.append("OVERLAP")

    cols = [
        opt.chrom,
        str(pos + 1),
        ".",
        iri.vcf_ref_seq,
        iri.vcf_indel_seq,
        ".",
        smod.filter_string(),
        ";".join(info_fields),
        f"{FORMAT_KEYS}:BCN{opt.indel_region_flank_size}",
        format_sample_tiers(info.nisri[0], info.nisri[1], was_normal),
        format_sample_tiers(info.tisri[0], info.tisri[1], was_tumor),
    ]
    return "\t".join(cols) + "\n"
