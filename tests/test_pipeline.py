import json
from pathlib import Path

import pysam
import pytest

from somindel.inputs import iter_window_sets, load_candidate_calls
from somindel.options import ScoringMode, SomaticIndelFilterOptions
from somindel.pipeline import write_somatic_indel_vcf
from somindel.scoring import LogisticScoringModel
from somindel.toy_data import make_toy_data


def _records(vcf_path: str):
    with pysam.VariantFile(vcf_path) as vcf:
        assert list(vcf.header.samples) == ["NORMAL", "TUMOR"]
        return [
            (rec.pos, rec.ref, rec.alts[0], sorted(rec.filter.keys()), dict(rec.info))
            for rec in vcf
        ]


def test_legacy_pipeline_on_toy_data(tmp_path: Path):
    toy = make_toy_data(outdir=tmp_path / "toy")
    opt = SomaticIndelFilterOptions(chrom="chr1", max_depth=100)
    run = write_somatic_indel_vcf(
        calls_path=toy["calls"],
        windows_path=toy["windows"],
        opt=opt,
        outdir=tmp_path / "out",
        progress=False,
    )

    assert run["counts"]["records_written"] == 4
    assert run["counts"]["records_pass"] == 1
    assert run["counts"]["positions_unresolved"] == 0
    assert run["filter_counts"] == {"HighDepth": 1, "IndelBCNoise": 1, "QSI_ref": 2}
    assert (tmp_path / "out" / "summary.json").exists()

    recs = _records(run["vcf_path"])
    assert [(pos, ref, alt) for pos, ref, alt, _, _ in recs] == [
        (100, "ACA", "A"),
        (100, "A", "AT"),
        (150, "G", "GTT"),
        (180, "T", "TGGGGCCCC"),
    ]
    assert recs[0][3] == ["PASS"]
    assert recs[0][4]["RU"] == "CA"
    assert recs[1][3] == ["QSI_ref"]
    assert recs[1][4]["OVERLAP"] is True
    assert recs[2][3] == ["HighDepth", "IndelBCNoise"]
    assert recs[3][4]["SVTYPE"] == "BND"
    assert "EQSI" not in recs[0][4]


def test_empirical_pipeline_on_toy_data(tmp_path: Path):
    toy = make_toy_data(outdir=tmp_path / "toy")
    opt = SomaticIndelFilterOptions(chrom="chr1", scoring_mode=ScoringMode.EMPIRICAL)
    run = write_somatic_indel_vcf(
        calls_path=toy["calls"],
        windows_path=toy["windows"],
        opt=opt,
        outdir=tmp_path / "out",
        model=LogisticScoringModel.load(toy["scoring_model"]),
        progress=False,
    )
    assert run["scoring_model"] is True

    recs = _records(run["vcf_path"])
    assert len(recs) == 4
    for _, _, _, filters, info in recs:
        assert "EQSI" in info
        assert len(info["ESF"]) == 21
        assert not {"IndelBCNoise", "QSI_ref"} & set(filters)
    assert recs[0][3] == ["PASS"]
    assert recs[1][3] == ["LowQscore", "Nonref"]


def test_unresolved_positions_are_reported(tmp_path: Path):
    toy = make_toy_data(outdir=tmp_path / "toy")
    calls = Path(toy["calls"])
    lines = calls.read_text(encoding="utf-8").splitlines()
    extra = json.loads(lines[0])
    extra["pos"] = 189
    calls.write_text("\n".join(lines + [json.dumps(extra)]) + "\n", encoding="utf-8")

    run = write_somatic_indel_vcf(
        calls_path=calls,
        windows_path=toy["windows"],
        opt=SomaticIndelFilterOptions(chrom="chr1"),
        outdir=tmp_path / "out",
        progress=False,
    )
    assert run["counts"]["candidates"] == 5
    assert run["counts"]["records_written"] == 4
    assert run["counts"]["positions_unresolved"] == 1


def test_output_is_reproducible(tmp_path: Path):
    toy = make_toy_data(outdir=tmp_path / "toy")
    bodies = []
    for name in ("a", "b"):
        run = write_somatic_indel_vcf(
            calls_path=toy["calls"],
            windows_path=toy["windows"],
            opt=SomaticIndelFilterOptions(chrom="chr1", scoring_mode=ScoringMode.EMPIRICAL),
            outdir=tmp_path / name,
            model=LogisticScoringModel.load(toy["scoring_model"]),
            progress=False,
        )
        text = Path(run["vcf_path"]).read_text(encoding="utf-8")
        bodies.append([line for line in text.splitlines() if not line.startswith("#")])
    assert bodies[0] == bodies[1]


def test_input_errors(tmp_path: Path):
    bad = tmp_path / "calls.jsonl"
    bad.write_text('{"pos": 1, "indel": {"ref": "A", "alt": "AT"}}\n', encoding="utf-8")
    with pytest.raises(ValueError, match="malformed candidate"):
        load_candidate_calls(bad)

    windows = tmp_path / "windows.jsonl"
    windows.write_text('# comment\n{"pos": 5}\n\n{"pos": 3}\n', encoding="utf-8")
    it = iter_window_sets(windows)
    pos, normal, tumor = next(it)
    assert pos == 5
    assert normal.total_basecalls == 0.0
    with pytest.raises(ValueError, match="sorted"):
        next(it)

    with pytest.raises(FileNotFoundError):
        load_candidate_calls(tmp_path / "missing.jsonl")
