"""
Weight calculation for LLM Merge.
"""
from typing import Dict, List, Iterable, Iterator, Optional, Tuple, Any

from loguru import logger

from .performance import PerformanceRecord


class WeightDistribution:
    """
    Ordered mapping of model id to weight.

    Insertion order is registry order, which is also the tie-break order
    for ``ranked`` and ``top``.
    """

    def __init__(self, weights: Optional[Iterable[Tuple[str, float]]] = None):
        self._weights: Dict[str, float] = dict(weights or [])

    def __getitem__(self, model_id: str) -> float:
        return self._weights[model_id]

    def __contains__(self, model_id: str) -> bool:
        return model_id in self._weights

    def __iter__(self) -> Iterator[str]:
        return iter(self._weights)

    def __len__(self) -> int:
        return len(self._weights)

    def __bool__(self) -> bool:
        return bool(self._weights)

    def __eq__(self, other: Any) -> bool:
        if isinstance(other, WeightDistribution):
            return self._weights == other._weights
        if isinstance(other, dict):
            return self._weights == other
        return NotImplemented

    def __repr__(self) -> str:
        return f"WeightDistribution({self._weights!r})"

    def get(self, model_id: str, default: float = 0.0) -> float:
        return self._weights.get(model_id, default)

    def items(self):
        return self._weights.items()

    @property
    def total(self) -> float:
        return sum(self._weights.values())

    def ranked(self) -> List[str]:
        """Model ids by descending weight; equal weights keep registry order."""
        # sorted() is stable, so ties stay in insertion order
        return sorted(self._weights, key=lambda m: -self._weights[m])

    def top(self) -> Optional[str]:
        ranked = self.ranked()
        return ranked[0] if ranked else None

    def to_dict(self) -> Dict[str, float]:
        return dict(self._weights)


class WeightCalculator:
    """
    Turns performance records into a normalized weight distribution.

    ``w_i = quality_ema_i ** a * success_ema_i ** b`` for models that
    succeeded in the current batch, normalized to sum to 1. Models that
    did not succeed get weight 0. If every raw weight is 0 the successful
    models share the weight uniformly.
    """

    def __init__(self, quality_exponent: float = 1.0, success_exponent: float = 1.0):
        if quality_exponent < 0 or success_exponent < 0:
            raise ValueError("Weight exponents must be non-negative")
        self.quality_exponent = quality_exponent
        self.success_exponent = success_exponent

    def raw_weight(self, record: Optional[PerformanceRecord]) -> float:
        if record is None:
            return 0.0
        return (
            record.quality_score_ema ** self.quality_exponent
            * record.success_rate_ema ** self.success_exponent
        )

    def calculate(
        self,
        model_ids: List[str],
        successful: Iterable[str],
        records: Dict[str, PerformanceRecord]
    ) -> WeightDistribution:
        """
        Compute weights for ``model_ids`` (given in registry order).

        Returns an empty distribution when no model in ``successful``.
        """
        successful = set(successful)
        participants = [m for m in model_ids if m in successful]
        if not participants:
            return WeightDistribution()

        raw = {m: self.raw_weight(records.get(m)) for m in participants}
        total = sum(raw.values())

        if total > 0:
            normalized = {m: w / total for m, w in raw.items()}
        else:
            logger.debug(
                f"All weights zero for {participants}; using uniform distribution"
            )
            share = 1.0 / len(participants)
            normalized = {m: share for m in participants}

        return WeightDistribution(
            (m, normalized.get(m, 0.0)) for m in model_ids
        )
