import pytest

from somindel.models import BaseCall, RawPileup
from somindel.options import PileupCleanerOptions
from somindel.pileup import CleanedPileup, PileupCleaner


def make_pileup() -> RawPileup:
    return RawPileup(
        ref_base="A",
        calls=(
            BaseCall("A", 30, is_fwd_strand=True),
            BaseCall("A", 20, is_fwd_strand=True),
            BaseCall("A", 30, is_fwd_strand=False),
            BaseCall("C", 35, mapq=10, is_call_filter=True),
            BaseCall("G", 35, is_call_filter=True, is_tier2_call_filter=True),
            BaseCall("N", 40),
        ),
    )


def test_tier1_filter_counts():
    cleaner = PileupCleaner(PileupCleanerOptions())
    cpi = cleaner.clean_pileup(make_pileup(), False)
    assert cpi.n_calls == 6
    assert [bc.base for bc in cpi.cleaned_calls] == ["A", "A", "A"]
    assert cpi.n_used_calls + cpi.n_unused_calls == cpi.n_calls
    assert len(cpi.dependent_error_prob) == cpi.n_used_calls
    assert cpi.ref_base == "A"


def test_tier2_keeps_tier1_only_filtered_calls():
    cleaner = PileupCleaner(PileupCleanerOptions())
    cpi = cleaner.clean_pileup(make_pileup(), True)
    assert [bc.base for bc in cpi.cleaned_calls] == ["A", "A", "A", "C"]
    assert cpi.n_unused_calls == 2


def test_read_policy_thresholds():
    cleaner = PileupCleaner(PileupCleanerOptions(min_qscore=25, min_mapq=20))
    cpi = cleaner.clean_pileup(make_pileup(), True)
    assert [bc.qscore for bc in cpi.cleaned_calls] == [30, 30]
    assert cpi.n_used_calls + cpi.n_unused_calls == cpi.n_calls


def test_independent_error_prob():
    cleaner = PileupCleaner(PileupCleanerOptions(is_dependent_eprob=False))
    cpi = cleaner.clean_pileup(make_pileup(), False)
    assert cpi.dependent_error_prob == pytest.approx([1e-3, 1e-2, 1e-3])


def test_dependent_error_prob_ranks_within_base_and_strand():
    cleaner = PileupCleaner(PileupCleanerOptions(dependency_factor=0.35))
    cpi = cleaner.clean_pileup(make_pileup(), False)
    # forward A calls: q30 is rank 0, q20 is rank 1; the reverse A call is alone
    assert cpi.dependent_error_prob[0] == pytest.approx(1e-3)
    assert cpi.dependent_error_prob[1] == pytest.approx(1e-2 ** 0.65)
    assert cpi.dependent_error_prob[2] == pytest.approx(1e-3)


def test_later_ranks_are_less_informative():
    calls = tuple(BaseCall("T", 30) for _ in range(5))
    cleaner = PileupCleaner(PileupCleanerOptions())
    cpi = cleaner.clean_pileup(RawPileup("T", calls), False)
    eprob = cpi.dependent_error_prob
    assert all(a < b for a, b in zip(eprob, eprob[1:]))
    assert all(0.0 < e <= 1.0 for e in eprob)


def test_cleaned_pileup_is_reused():
    cleaner = PileupCleaner(PileupCleanerOptions())
    cpi = CleanedPileup()
    cleaner.clean_pileup(make_pileup(), True, cpi)
    assert cpi.n_used_calls == 4

    small = RawPileup("C", (BaseCall("C", 30),))
    out = cleaner.clean_pileup(small, False, cpi)
    assert out is cpi
    assert cpi.n_calls == 1
    assert cpi.n_used_calls == 1
    assert len(cpi.dependent_error_prob) == 1
    assert cpi.raw_pileup is small


def test_empty_pileup():
    cleaner = PileupCleaner(PileupCleanerOptions())
    cpi = cleaner.clean_pileup(RawPileup("G"), False)
    assert cpi.n_calls == 0
    assert cpi.n_unused_calls == 0
    assert cpi.dependent_error_prob == []


def test_raw_pileup_requires_cleaning():
    cpi = CleanedPileup()
    with pytest.raises(AssertionError):
        cpi.raw_pileup
