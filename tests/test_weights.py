"""Tests for weight calculation."""
import pytest
from hypothesis import given, strategies as st

from llm_merge.performance import PerformanceRecord
from llm_merge.weights import WeightCalculator, WeightDistribution


def record(model_id, quality, success):
    return PerformanceRecord(
        model_id=model_id,
        quality_score_ema=quality,
        success_rate_ema=success,
        sample_count=1,
    )


@pytest.fixture
def calculator():
    return WeightCalculator()


unit = st.floats(min_value=0.0, max_value=1.0, allow_nan=False)


@given(st.lists(st.tuples(unit, unit), min_size=1, max_size=8))
def test_weights_sum_to_one(pairs):
    ids = [f"m{i}" for i in range(len(pairs))]
    records = {m: record(m, q, s) for m, (q, s) in zip(ids, pairs)}
    weights = WeightCalculator().calculate(ids, ids, records)
    assert abs(weights.total - 1.0) <= 1e-9
    assert all(0.0 <= w <= 1.0 for _, w in weights.items())


def test_failed_models_get_zero_and_are_excluded(calculator):
    records = {
        "a": record("a", 0.5, 0.5),
        "b": record("b", 0.9, 0.9),
        "c": record("c", 0.1, 0.2),
    }
    weights = calculator.calculate(["a", "b", "c"], ["a", "c"], records)
    assert weights["b"] == 0.0
    assert weights["a"] + weights["c"] == pytest.approx(1.0)
    assert weights["a"] == pytest.approx(0.25 / (0.25 + 0.02))


def test_all_zero_weights_fall_back_to_uniform(calculator):
    records = {m: record(m, 0.0, 0.0) for m in ("a", "b")}
    weights = calculator.calculate(["a", "b", "c"], ["a", "b"], records)
    assert weights.to_dict() == {"a": 0.5, "b": 0.5, "c": 0.0}


def test_no_successful_models_gives_empty_distribution(calculator):
    weights = calculator.calculate(["a", "b"], [], {})
    assert not weights
    assert len(weights) == 0


def test_successful_model_without_history_counts_as_zero(calculator):
    weights = calculator.calculate(["a", "b"], ["a", "b"], {"b": record("b", 0.5, 1.0)})
    assert weights["a"] == 0.0
    assert weights["b"] == 1.0


positive = st.floats(min_value=0.01, max_value=1.0, allow_nan=False)


@given(positive, positive, st.lists(st.tuples(unit, unit), min_size=1, max_size=5))
def test_dominant_model_gets_strictly_largest_weight(top_q, top_s, others):
    others = [(q * top_q * 0.99, s * top_s * 0.99) for q, s in others]
    ids = ["top"] + [f"o{i}" for i in range(len(others))]
    records = {"top": record("top", top_q, top_s)}
    records.update({m: record(m, q, s) for m, (q, s) in zip(ids[1:], others)})

    weights = WeightCalculator().calculate(ids, ids, records)
    assert all(weights["top"] > weights[m] for m in ids[1:])
    assert weights.top() == "top"


def test_exponents_sharpen_the_distribution():
    records = {"a": record("a", 0.8, 1.0), "b": record("b", 0.4, 1.0)}
    flat = WeightCalculator().calculate(["a", "b"], ["a", "b"], records)
    sharp = WeightCalculator(quality_exponent=2.0).calculate(["a", "b"], ["a", "b"], records)
    assert sharp["a"] > flat["a"]


def test_negative_exponent_rejected():
    with pytest.raises(ValueError):
        WeightCalculator(quality_exponent=-1.0)


def test_ties_keep_registry_order():
    weights = WeightDistribution([("b", 0.25), ("a", 0.25), ("c", 0.5)])
    assert weights.ranked() == ["c", "b", "a"]

    tied = WeightDistribution([("b", 0.5), ("a", 0.5)])
    assert tied.top() == "b"
