from __future__ import annotations

import logging
from typing import Dict, List, Optional, TextIO

from .filters import QualityFilterEngine
from .models import RunCounts, SomaticIndelCallInfo, WindowAverageSet
from .vcf import format_somatic_indel_record

logger = logging.getLogger(__name__)


class IndelCallCache:
    """Holds somatic indel candidates until their window statistics are available.

    Several overlapping candidates may be cached at one position; they are written
    together, in insertion order, by :meth:`add_indel_window_data`, which then drops
    the position. Positions that never receive window data stay cached; callers
    are expected to resolve every position they cache.
    """

    def __init__(
        self,
        engine: QualityFilterEngine,
        out: TextIO,
        counts: Optional[RunCounts] = None,
    ) -> None:
        self._engine = engine
        self._out = out
        self._data: Dict[int, List[SomaticIndelCallInfo]] = {}
        self.counts = counts if counts is not None else RunCounts()

    def __len__(self) -> int:
        return len(self._data)

    def test_pos(self, pos: int) -> bool:
        return pos in self._data

    def positions(self) -> List[int]:
        return sorted(self._data)

    def cache_indel(self, pos: int, info: SomaticIndelCallInfo) -> None:
        assert info is not None
        self._data.setdefault(pos, []).append(info)

    def _write_one(
        self,
        pos: int,
        info: SomaticIndelCallInfo,
        was_normal: WindowAverageSet,
        was_tumor: WindowAverageSet,
    ) -> None:
        try:
            smod = self._engine.apply(info, was_normal, was_tumor)
            line = format_somatic_indel_record(self._engine.options, pos, info, was_normal, was_tumor, smod)
        except Exception:
            self.counts.records_failed += 1
            logger.exception(
                "Failed to write somatic indel %s:%d %s>%s",
                self._engine.options.chrom,
                pos + 1,
                info.iri.vcf_ref_seq,
                info.iri.vcf_indel_seq,
            )
            return

        self._out.write(line)

        counts = self.counts
        counts.records_written += 1
        if smod.is_pass:
            counts.records_pass += 1
        for f in smod.filters:
            counts.filter_counts[f.name] = counts.filter_counts.get(f.name, 0) + 1
        counts.tumor_af.append(smod.features["T_AF"])

    def add_indel_window_data(
        self,
        pos: int,
        was_normal: WindowAverageSet,
        was_tumor: WindowAverageSet,
    ) -> None:
        assert self.test_pos(pos), f"no somatic indel cached at position {pos}"
        try:
            for info in self._data[pos]:
                self._write_one(pos, info, was_normal, was_tumor)
        finally:
            del self._data[pos]
