from __future__ import annotations

import gzip
import json
import logging
import math
from pathlib import Path
from typing import Any, TextIO

logger = logging.getLogger(__name__)


def clamp(x: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, x))


def sigmoid(x: float) -> float:
    # numerically stable sigmoid
    if x >= 0:
        z = math.exp(-x)
        return 1.0 / (1.0 + z)
    z = math.exp(x)
    return z / (1.0 + z)


def phred_to_error_prob(q: int) -> float:
    # Guard against negative values (can occur if qualities are missing).
    if q <= 0:
        return 1.0
    return 10 ** (-q / 10)


def safe_frac(num: float, denom: float) -> float:
    """Return num/denom, or 0 when the denominator is not positive."""
    if denom <= 0:
        return 0.0
    return num / denom


def neg_log10(p: float) -> float:
    """-log10(p) clamped to be non-negative (p==1 gives 0.0, not -0.0)."""
    p = clamp(p, 1e-300, 1.0)
    return max(0.0, -math.log10(p))


def ensure_outdir(path: str | Path) -> Path:
    p = Path(path)
    p.mkdir(parents=True, exist_ok=True)
    return p


def open_textmaybe_gzip(path: str | Path, mode: str = "rt") -> TextIO:
    p = str(path)
    if p.endswith(".gz"):
        return gzip.open(p, mode)  # type: ignore[return-value]
    return open(p, mode)


def write_json(path: str | Path, obj: Any) -> None:
    with open(path, "wt", encoding="utf-8") as f:
        json.dump(obj, f, indent=2, sort_keys=True)
