from somindel.filters import (
    EMPIRICAL_FILTERS,
    INDEL_FEATURE_NAMES,
    LEGACY_FILTERS,
    QualityFilterEngine,
    VcfFilter,
)
from somindel.models import NType, WindowAverageSet
from somindel.options import ScoringMode, SomaticIndelFilterOptions
from somindel.scoring import LogisticScoringModel, NullScoringModel, VariantKind

QUIET = WindowAverageSet(filtered_basecalls=0.0, used_basecalls=30.0)


def test_clean_call_passes(make_call):
    engine = QualityFilterEngine(SomaticIndelFilterOptions(chrom="chr1"))
    smod = engine.apply(make_call(), QUIET, QUIET)
    assert smod.is_pass
    assert smod.filter_string() == "PASS"
    assert not smod.is_qscore
    assert smod.qscore == 0.0


def test_high_depth(make_call):
    opt = SomaticIndelFilterOptions(chrom="chr1", max_depth=30)
    smod = QualityFilterEngine(opt).apply(make_call(normal_depth=40), QUIET, QUIET)
    assert VcfFilter.HighDepth in smod.filters

    smod = QualityFilterEngine(opt).apply(make_call(normal_depth=30), QUIET, QUIET)
    assert VcfFilter.HighDepth not in smod.filters


def test_depth_filter_disabled(make_call):
    opt = SomaticIndelFilterOptions(chrom="chr1")
    smod = QualityFilterEngine(opt).apply(make_call(normal_depth=4000), QUIET, QUIET)
    assert VcfFilter.HighDepth not in smod.filters


def test_legacy_qsi_ref_below_lower_bound(make_call):
    opt = SomaticIndelFilterOptions(chrom="chr1", sindel_quality_lower_bound=30)
    smod = QualityFilterEngine(opt).apply(make_call(ntype=NType.REF, qsi_nt=25), QUIET, QUIET)
    assert smod.filters == {VcfFilter.QSI_ref}


def test_legacy_qsi_ref_for_nonref_normal(make_call):
    opt = SomaticIndelFilterOptions(chrom="chr1")
    smod = QualityFilterEngine(opt).apply(make_call(ntype=NType.HET, qsi_nt=60), QUIET, QUIET)
    assert smod.filters == {VcfFilter.QSI_ref}


def test_legacy_window_noise_threshold_is_inclusive(make_call):
    opt = SomaticIndelFilterOptions(chrom="chr1", indel_max_window_filtered_basecall_frac=0.3)
    noisy = WindowAverageSet(filtered_basecalls=3.0, used_basecalls=7.0)
    engine = QualityFilterEngine(opt)
    assert VcfFilter.IndelBCNoise in engine.apply(make_call(), noisy, QUIET).filters
    assert VcfFilter.IndelBCNoise in engine.apply(make_call(), QUIET, noisy).filters
    assert VcfFilter.IndelBCNoise not in engine.apply(make_call(), QUIET, QUIET).filters


def test_filters_accumulate_in_fixed_order(make_call):
    opt = SomaticIndelFilterOptions(chrom="chr1", max_depth=10)
    noisy = WindowAverageSet(filtered_basecalls=5.0, used_basecalls=5.0)
    smod = QualityFilterEngine(opt).apply(make_call(ntype=NType.HOM), noisy, QUIET)
    assert smod.filter_string() == "HighDepth;IndelBCNoise;QSI_ref"


def test_empirical_low_qscore(make_call, fixed_score_model):
    opt = SomaticIndelFilterOptions(chrom="chr1", scoring_mode=ScoringMode.EMPIRICAL)
    model = fixed_score_model(0.8, threshold=0.5)
    smod = QualityFilterEngine(opt, model).apply(make_call(), QUIET, QUIET)
    assert smod.is_qscore
    assert smod.qscore == 1.0 - 0.8
    assert smod.filters == {VcfFilter.LowQscore}
    features, kind = model.seen[0]
    assert kind is VariantKind.INDEL
    assert tuple(features) == INDEL_FEATURE_NAMES


def test_empirical_nonref(make_call, fixed_score_model):
    opt = SomaticIndelFilterOptions(chrom="chr1", scoring_mode=ScoringMode.EMPIRICAL)
    smod = QualityFilterEngine(opt, fixed_score_model(0.1)).apply(make_call(ntype=NType.CONFLICT), QUIET, QUIET)
    assert smod.filters == {VcfFilter.Nonref}
    assert smod.qscore == 1.0 - 0.1


def test_empirical_without_model_disables_scoring(make_call):
    opt = SomaticIndelFilterOptions(chrom="chr1", scoring_mode=ScoringMode.EMPIRICAL)
    smod = QualityFilterEngine(opt, NullScoringModel()).apply(make_call(qsi_nt=1), QUIET, QUIET)
    assert not smod.is_qscore
    assert smod.qscore == 0.0
    assert smod.is_pass


def test_model_without_indel_entry_disables_scoring(make_call):
    model = LogisticScoringModel.from_dict({"snv": {"intercept": 5.0, "threshold": 0.9}})
    opt = SomaticIndelFilterOptions(chrom="chr1", scoring_mode=ScoringMode.EMPIRICAL)
    smod = QualityFilterEngine(opt, model).apply(make_call(), QUIET, QUIET)
    assert not smod.is_qscore
    assert smod.qscore == 0.0
    assert VcfFilter.LowQscore not in smod.filters


def test_score_is_computed_in_legacy_mode(make_call, fixed_score_model):
    opt = SomaticIndelFilterOptions(chrom="chr1")
    smod = QualityFilterEngine(opt, fixed_score_model(0.9)).apply(make_call(), QUIET, QUIET)
    assert smod.is_qscore
    assert VcfFilter.LowQscore not in smod.filters


def test_modes_never_mix(make_call, fixed_score_model):
    noisy = WindowAverageSet(filtered_basecalls=9.0, used_basecalls=1.0)
    for mode in ScoringMode:
        opt = SomaticIndelFilterOptions(chrom="chr1", scoring_mode=mode, max_depth=1)
        engine = QualityFilterEngine(opt, fixed_score_model(0.99))
        for ntype in NType:
            smod = engine.apply(make_call(ntype=ntype, qsi_nt=0), noisy, noisy)
            assert not (smod.filters & LEGACY_FILTERS and smod.filters & EMPIRICAL_FILTERS)
            if mode is ScoringMode.LEGACY:
                assert not smod.filters & EMPIRICAL_FILTERS
            else:
                assert not smod.filters & LEGACY_FILTERS
