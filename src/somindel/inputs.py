"""Readers for the somatic indel engine's JSON-lines output.

Candidate calls (one object per line)::

    {"pos": 99, "indel": {"ref": "AT", "alt": "A", ...},
     "normal": [{tier1}, {tier2}], "tumor": [{tier1}, {tier2}],
     "result": {"qsi": 40, "tier": 0, "ntype": "ref", "qsi_nt": 40, "tier_nt": 0, "sgt": 2}}

Window sets (one object per line, increasing ``pos``)::

    {"pos": 99, "normal": {"filtered": 0.5, "used": 30.0}, "tumor": {...}}

Positions are 0-based. Blank lines and lines starting with ``#`` are skipped.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterator, List, Tuple

from .models import SomaticIndelCallInfo, WindowAverageSet
from .utils import open_textmaybe_gzip

logger = logging.getLogger(__name__)


def _iter_json_lines(path: str | Path) -> Iterator[Tuple[int, Dict[str, Any]]]:
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Input not found: {p}")
    with open_textmaybe_gzip(p, "rt") as fh:
        for lineno, line in enumerate(fh, start=1):
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            try:
                obj = json.loads(line)
            except json.JSONDecodeError as e:
                raise ValueError(f"{p}:{lineno}: invalid JSON ({e.msg})") from e
            if not isinstance(obj, dict) or "pos" not in obj:
                raise ValueError(f"{p}:{lineno}: expected an object with a 'pos' field")
            yield lineno, obj


def load_candidate_calls(path: str | Path) -> List[Tuple[int, SomaticIndelCallInfo]]:
    """Load (pos, call) pairs in file order."""
    out: List[Tuple[int, SomaticIndelCallInfo]] = []
    for lineno, obj in _iter_json_lines(path):
        try:
            out.append((int(obj["pos"]), SomaticIndelCallInfo.from_dict(obj)))
        except (KeyError, TypeError, ValueError) as e:
            raise ValueError(f"{path}:{lineno}: malformed candidate call ({e})") from e
    logger.info("Loaded %d candidate indels from %s", len(out), path)
    return out


def iter_window_sets(path: str | Path) -> Iterator[Tuple[int, WindowAverageSet, WindowAverageSet]]:
    """Yield (pos, normal, tumor) window sets; positions must not decrease."""
    last_pos = None
    for lineno, obj in _iter_json_lines(path):
        pos = int(obj["pos"])
        if last_pos is not None and pos < last_pos:
            raise ValueError(f"{path}:{lineno}: window positions must be sorted ({pos} after {last_pos})")
        last_pos = pos
        yield (
            pos,
            WindowAverageSet.from_dict(obj.get("normal", {})),
            WindowAverageSet.from_dict(obj.get("tumor", {})),
        )
