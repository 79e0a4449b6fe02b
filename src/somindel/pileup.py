"""Pileup cleaning and dependent error probabilities.

A :class:`PileupCleaner` turns a :class:`~somindel.models.RawPileup` into a
:class:`CleanedPileup`: calls failing the tier rule or the configured read policy
are removed, and every kept call receives an error probability.

When dependent error modelling is on, calls sharing a base and strand are ranked
by descending quality; the call at rank ``k`` gets ``e ** ((1 - theta) ** k)``
where ``e`` is its phred error probability. Repeated observations of the same
base on the same strand therefore add progressively less independent evidence.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Tuple

from .models import BaseCall, RawPileup
from .options import PileupCleanerOptions
from .utils import phred_to_error_prob

logger = logging.getLogger(__name__)

_VALID_BASES = frozenset("ACGT")


class CleanedPileup:
    """Filtered pileup with per-call error probabilities.

    Instances are meant to be reused: :meth:`PileupCleaner.clean_pileup` clears the
    previous content before filling it again.
    """

    def __init__(self) -> None:
        self._raw_pileup: Optional[RawPileup] = None
        self._n_raw_calls = 0
        self._ref_base = "N"
        self._calls: List[BaseCall] = []
        self._dependent_error_prob: List[float] = []

    @property
    def n_calls(self) -> int:
        return self._n_raw_calls

    @property
    def n_used_calls(self) -> int:
        return len(self._calls)

    @property
    def n_unused_calls(self) -> int:
        return self.n_calls - self.n_used_calls

    @property
    def raw_pileup(self) -> RawPileup:
        assert self._raw_pileup is not None, "pileup has not been cleaned"
        return self._raw_pileup

    @property
    def ref_base(self) -> str:
        return self._ref_base

    @property
    def cleaned_calls(self) -> List[BaseCall]:
        return self._calls

    @property
    def dependent_error_prob(self) -> List[float]:
        return self._dependent_error_prob

    def clear(self) -> None:
        self._raw_pileup = None
        self._n_raw_calls = 0
        self._ref_base = "N"
        self._calls.clear()
        self._dependent_error_prob.clear()


class PileupCleaner:
    """Takes a raw single-sample pileup and prepares it for genotyping.

    The (qscore, rank) -> error probability cache is private to the instance; use
    one cleaner per thread/region.
    """

    def __init__(self, opt: PileupCleanerOptions) -> None:
        self._opt = opt
        self._dpcache: Dict[Tuple[int, int], float] = {}

    def _is_call_kept(self, bc: BaseCall, is_include_tier2: bool) -> bool:
        if is_include_tier2:
            if bc.is_tier2_call_filter:
                return False
        elif bc.is_call_filter:
            return False
        if bc.base not in _VALID_BASES:
            return False
        if bc.qscore < self._opt.min_qscore:
            return False
        return bc.mapq >= self._opt.min_mapq

    def clean_pileup_filter(self, pi: RawPileup, is_include_tier2: bool, cpi: CleanedPileup) -> None:
        assert pi is not None
        cpi.clear()
        cpi._raw_pileup = pi
        cpi._n_raw_calls = len(pi.calls)
        cpi._ref_base = pi.ref_base
        for bc in pi.calls:
            if self._is_call_kept(bc, is_include_tier2):
                cpi._calls.append(bc)

    def _dependent_eprob(self, qscore: int, rank: int) -> float:
        key = (qscore, min(rank, self._opt.max_dependent_rank))
        val = self._dpcache.get(key)
        if val is None:
            eprob = phred_to_error_prob(qscore)
            val = eprob ** ((1.0 - self._opt.dependency_factor) ** key[1])
            self._dpcache[key] = val
        return val

    def clean_pileup_error_prob(self, cpi: CleanedPileup) -> None:
        calls = cpi._calls
        eprob = cpi._dependent_error_prob
        eprob.clear()

        if not self._opt.is_dependent_eprob:
            eprob.extend(phred_to_error_prob(bc.qscore) for bc in calls)
            return

        eprob.extend([0.0] * len(calls))
        groups: Dict[Tuple[str, bool], List[int]] = {}
        for i, bc in enumerate(calls):
            groups.setdefault((bc.base, bc.is_fwd_strand), []).append(i)

        for idxs in groups.values():
            idxs.sort(key=lambda i: (-calls[i].qscore, i))
            for rank, i in enumerate(idxs):
                eprob[i] = self._dependent_eprob(calls[i].qscore, rank)

    def clean_pileup(
        self,
        pi: RawPileup,
        is_include_tier2: bool,
        cpi: Optional[CleanedPileup] = None,
    ) -> CleanedPileup:
        """Filter then compute error probabilities; returns the (reused) cleaned pileup."""
        if cpi is None:
            cpi = CleanedPileup()
        self.clean_pileup_filter(pi, is_include_tier2, cpi)
        self.clean_pileup_error_prob(cpi)
        return cpi
