import json
from pathlib import Path

import pytest

from somindel.scoring import LogisticScoringModel, NullScoringModel, VariantKind
from somindel.utils import sigmoid


def test_null_model_is_disabled():
    m = NullScoringModel()
    assert not m.is_initialized()
    assert m.score({}, VariantKind.INDEL) == 0.0


def test_logistic_model_scores_named_features():
    m = LogisticScoringModel.from_dict(
        {"indel": {"intercept": -1.0, "coefficients": {"T_AF": 2.0, "QSI_NT": 0.1}, "threshold": 0.4}}
    )
    assert m.is_initialized()
    assert m.threshold(VariantKind.INDEL) == 0.4
    score = m.score({"T_AF": 0.5, "QSI_NT": 10.0, "IHP": 3.0}, VariantKind.INDEL)
    assert score == pytest.approx(sigmoid(-1.0 + 1.0 + 1.0))
    # missing features contribute nothing
    assert m.score({}, VariantKind.INDEL) == pytest.approx(sigmoid(-1.0))
    # no parameters for SNVs
    assert m.score({"T_AF": 1.0}, VariantKind.SNV) == 0.0
    assert m.threshold(VariantKind.SNV) == 0.0


def test_logistic_model_validation():
    with pytest.raises(ValueError, match="Unknown variant kind"):
        LogisticScoringModel.from_dict({"sv": {}})
    with pytest.raises(ValueError, match="threshold"):
        LogisticScoringModel.from_dict({"indel": {"threshold": 2.0}})


def test_logistic_model_load(tmp_path: Path):
    path = tmp_path / "model.json"
    path.write_text(json.dumps({"INDEL": {"intercept": 0.0}}), encoding="utf-8")
    m = LogisticScoringModel.load(path)
    assert m.score({}, VariantKind.INDEL) == pytest.approx(0.5)
    assert m.threshold(VariantKind.INDEL) == 0.5

    with pytest.raises(FileNotFoundError):
        LogisticScoringModel.load(tmp_path / "missing.json")


def test_initialization_is_per_variant_kind():
    m = LogisticScoringModel.from_dict({"snv": {"intercept": 5.0, "threshold": 0.9}})
    assert m.is_initialized()
    assert m.is_initialized(VariantKind.SNV)
    assert not m.is_initialized(VariantKind.INDEL)
    assert not NullScoringModel().is_initialized(VariantKind.INDEL)
