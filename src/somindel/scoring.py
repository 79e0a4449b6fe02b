"""Calibration models used for empirical variant scoring.

The filter engine only relies on the small :class:`ScoringModel` interface, so any
calibrated classifier can be plugged in. Two implementations ship here:

- :class:`NullScoringModel`: never initialized; scoring stays disabled.
- :class:`LogisticScoringModel`: per variant kind logistic regression over named
  features, loaded from JSON::

    {
      "indel": {
        "intercept": -2.0,
        "coefficients": {"QSI_NT": -0.05, "T_AF": -4.0},
        "threshold": 0.5
      }
    }

Features missing from the input vector contribute 0.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Dict, Mapping, Optional, Protocol

from .utils import sigmoid

logger = logging.getLogger(__name__)


class VariantKind(Enum):
    SNV = "snv"
    INDEL = "indel"


class ScoringModel(Protocol):
    def is_initialized(self, kind: Optional[VariantKind] = None) -> bool: ...

    def score(self, features: Mapping[str, float], kind: VariantKind) -> float: ...

    def threshold(self, kind: VariantKind) -> float: ...


class NullScoringModel:
    """Placeholder used when no calibration model was configured."""

    def is_initialized(self, kind: Optional[VariantKind] = None) -> bool:
        return False

    def score(self, features: Mapping[str, float], kind: VariantKind) -> float:
        return 0.0

    def threshold(self, kind: VariantKind) -> float:
        return 0.0


@dataclass(frozen=True)
class LogisticModelParams:
    intercept: float
    coefficients: Dict[str, float]
    threshold: float


class LogisticScoringModel:
    def __init__(self, params: Mapping[VariantKind, LogisticModelParams]) -> None:
        self._params = dict(params)

    @classmethod
    def from_dict(cls, d: Mapping[str, object]) -> "LogisticScoringModel":
        params: Dict[VariantKind, LogisticModelParams] = {}
        for key, val in d.items():
            try:
                kind = VariantKind(str(key).lower())
            except ValueError:
                raise ValueError(f"Unknown variant kind in scoring model: {key!r}") from None
            if not isinstance(val, Mapping):
                raise ValueError(f"Scoring model entry for {key!r} must be an object")
            threshold = float(val.get("threshold", 0.5))
            if not 0.0 <= threshold <= 1.0:
                raise ValueError(f"Scoring model threshold for {key!r} must be in [0,1]")
            params[kind] = LogisticModelParams(
                intercept=float(val.get("intercept", 0.0)),
                coefficients={str(k): float(v) for k, v in dict(val.get("coefficients", {})).items()},
                threshold=threshold,
            )
        return cls(params)

    @classmethod
    def load(cls, path: str | Path) -> "LogisticScoringModel":
        p = Path(path)
        if not p.exists():
            raise FileNotFoundError(f"Scoring model not found: {p}")
        with open(p, "rt", encoding="utf-8") as f:
            model = cls.from_dict(json.load(f))
        logger.info("Loaded scoring model from %s (%s)", p, ", ".join(k.value for k in model._params))
        return model

    def is_initialized(self, kind: Optional[VariantKind] = None) -> bool:
        if kind is None:
            return bool(self._params)
        return kind in self._params

    def score(self, features: Mapping[str, float], kind: VariantKind) -> float:
        params = self._params.get(kind)
        if params is None:
            return 0.0
        x = params.intercept
        for name, coef in params.coefficients.items():
            x += coef * float(features.get(name, 0.0))
        return sigmoid(x)

    def threshold(self, kind: VariantKind) -> float:
        params = self._params.get(kind)
        return params.threshold if params is not None else 0.0
