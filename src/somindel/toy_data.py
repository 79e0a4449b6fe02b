from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List

import pysam

from .utils import ensure_outdir, write_json


def _write_fasta(path: Path, contig: str, seq: str) -> None:
    lines = [f">{contig}"]
    for i in range(0, len(seq), 60):
        lines.append(seq[i : i + 60])
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")


def _write_jsonl(path: Path, rows: List[Dict[str, Any]]) -> None:
    with open(path, "wt", encoding="utf-8") as f:
        for row in rows:
            f.write(json.dumps(row, sort_keys=True) + "\n")


def _sample(depth: int, ref: int, indel: int, other: int, *, mapq: float = 58.0, ranksum: float = 0.0) -> Dict[str, Any]:
    return {
        "depth": depth,
        "n_q30_ref_reads": ref,
        "n_q30_alt_reads": 0,
        "n_q30_indel_reads": indel,
        "n_other_reads": other,
        "n_q30_ref_reads_fwd": ref // 2,
        "n_q30_ref_reads_rev": ref - ref // 2,
        "n_q30_indel_reads_fwd": indel // 2,
        "n_q30_indel_reads_rev": indel - indel // 2,
        "mean_mapq": mapq,
        "mapq0_frac": 0.0,
        "n_mapq": depth,
        "readpos_ranksum": ranksum,
    }


def _make_read(name: str, start0: int, seq: str, *, mapq: int = 60, flag: int = 0) -> pysam.AlignedSegment:
    a = pysam.AlignedSegment()
    a.query_name = name
    a.query_sequence = seq
    a.flag = flag
    a.reference_id = 0
    a.reference_start = start0
    a.mapping_quality = mapq
    a.cigartuples = [(0, len(seq))]
    a.query_qualities = pysam.qualitystring_to_array("I" * len(seq))
    return a


def make_toy_data(*, outdir: str | Path) -> Dict[str, str]:
    """Create tiny inputs suitable for quick demos/tests.

    The outputs include:
    - calls.jsonl (candidate somatic indels, two overlapping at one position)
    - windows.jsonl (flank-window basecall averages)
    - scoring_model.json (logistic indel model)
    - toy_ref.fa (+ .fai) and tumor.bam (+ .bai) for pileup cleaning

    Returns
    -------
    dict
        Paths to the generated files.
    """
    outdir_p = ensure_outdir(outdir)
    contig = "chr1"

    calls = [
        {
            "pos": 99,
            "indel": {
                "ref": "ACA",
                "alt": "A",
                "repeat_unit": "CA",
                "ref_repeat_count": 4,
                "indel_repeat_count": 3,
                "ihpol": 2,
            },
            "normal": [_sample(30, 28, 0, 1), _sample(32, 29, 0, 2)],
            "tumor": [_sample(40, 22, 15, 2, ranksum=0.4), _sample(43, 23, 16, 3, ranksum=0.4)],
            "result": {"qsi": 45, "tier": 0, "ntype": "ref", "qsi_nt": 45, "tier_nt": 0, "sgt": 2},
        },
        {
            "pos": 99,
            "indel": {"ref": "A", "alt": "AT", "ihpol": 2},
            "normal": [_sample(30, 24, 4, 2), _sample(32, 25, 4, 3)],
            "tumor": [_sample(40, 30, 6, 4), _sample(43, 31, 7, 5)],
            "result": {
                "qsi": 12,
                "tier": 1,
                "ntype": "het",
                "qsi_nt": 3,
                "tier_nt": 1,
                "sgt": 5,
                "overlap": True,
            },
        },
        {
            "pos": 149,
            "indel": {"ref": "G", "alt": "GTT", "repeat_unit": "T", "ref_repeat_count": 0, "indel_repeat_count": 2},
            "normal": [_sample(400, 390, 0, 10, mapq=41.0), _sample(410, 398, 0, 12, mapq=40.0)],
            "tumor": [_sample(380, 340, 30, 10, mapq=42.0), _sample(395, 350, 32, 13, mapq=41.0)],
            "result": {"qsi": 33, "tier": 0, "ntype": "ref", "qsi_nt": 33, "tier_nt": 0, "sgt": 2},
        },
        {
            "pos": 179,
            "indel": {"ref": "T", "alt": "TGGGGCCCC", "ihpol": 4, "breakpoint": "bp_left"},
            "normal": [_sample(25, 25, 0, 0), _sample(25, 25, 0, 0)],
            "tumor": [_sample(28, 18, 8, 2), _sample(30, 19, 9, 2)],
            "result": {"qsi": 27, "tier": 0, "ntype": "ref", "qsi_nt": 27, "tier_nt": 0, "sgt": 2},
        },
    ]
    windows = [
        {"pos": 50, "normal": {"filtered": 0.1, "used": 30.0}, "tumor": {"filtered": 0.2, "used": 40.0}},
        {"pos": 99, "normal": {"filtered": 0.5, "used": 29.0}, "tumor": {"filtered": 1.0, "used": 39.0}},
        {"pos": 149, "normal": {"filtered": 150.0, "used": 250.0}, "tumor": {"filtered": 120.0, "used": 260.0}},
        {"pos": 179, "normal": {"filtered": 0.0, "used": 25.0}, "tumor": {"filtered": 0.3, "used": 28.0}},
    ]
    model = {
        "indel": {
            "intercept": 3.0,
            "coefficients": {"QSI_NT": -0.08, "T_AF": -4.0, "N_AF": 6.0, "T_BCN": 5.0},
            "threshold": 0.5,
        }
    }

    calls_path = outdir_p / "calls.jsonl"
    windows_path = outdir_p / "windows.jsonl"
    model_path = outdir_p / "scoring_model.json"
    _write_jsonl(calls_path, calls)
    _write_jsonl(windows_path, windows)
    write_json(model_path, model)

    ref_seq = ("ACGTTGCA" * 25)[:200]
    ref_fa = outdir_p / "toy_ref.fa"
    _write_fasta(ref_fa, contig, ref_seq)
    pysam.faidx(str(ref_fa))

    bam_path = outdir_p / "tumor.bam"
    header = {
        "HD": {"VN": "1.6"},
        "SQ": [{"SN": contig, "LN": len(ref_seq)}],
    }
    reads: List[pysam.AlignedSegment] = []
    for i in range(12):
        start0 = 80 + i
        seq = ref_seq[start0 : start0 + 40]
        flag = 16 if i % 2 else 0
        mapq = 5 if i % 4 == 3 else 60
        if i == 10:
            flag |= 1024  # duplicate
        reads.append(_make_read(f"r_{i}", start0, seq, mapq=mapq, flag=flag))
    reads.sort(key=lambda r: r.reference_start)

    with pysam.AlignmentFile(str(bam_path), "wb", header=header) as bam:
        for r in reads:
            bam.write(r)
    pysam.index(str(bam_path))

    summary = {
        "calls": str(calls_path),
        "windows": str(windows_path),
        "scoring_model": str(model_path),
        "ref_fa": str(ref_fa),
        "tumor_bam": str(bam_path),
        "contig": contig,
        "outdir": str(outdir_p),
    }
    write_json(outdir_p / "toy_summary.json", summary)
    return summary
