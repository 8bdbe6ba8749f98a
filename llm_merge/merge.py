"""
Final answer selection for LLM Merge.
"""
import re
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import List, Dict, Any, Optional

from .consensus import Similarity, jaccard_similarity
from .dispatcher import ResponseCandidate
from .utils import truncate
from .weights import WeightDistribution

SENTENCE_BOUNDARY = re.compile(r"(?<=[.!?])\s+")


class MergeStrategy(Enum):
    """Available merge policies."""
    WEIGHTED_SELECTION = "weighted_selection"
    TOP_K_BLEND = "top_k_blend"


@dataclass
class MergeResult:
    """Merged answer plus diagnostics for one request."""
    final_content: str
    consensus_score: float
    weights: WeightDistribution
    diagnostics: List[ResponseCandidate] = field(default_factory=list)
    primary_model: Optional[str] = None
    strategy: MergeStrategy = MergeStrategy.WEIGHTED_SELECTION
    request_id: str = ""
    total_time_ms: float = 0.0
    from_cache: bool = False

    @property
    def success_rate(self) -> float:
        if not self.diagnostics:
            return 0.0
        return sum(1 for c in self.diagnostics if c.succeeded) / len(self.diagnostics)

    def copy(self, **changes) -> "MergeResult":
        """Independent copy; diagnostics and weights are not shared."""
        return replace(
            self,
            weights=WeightDistribution(self.weights.items()),
            diagnostics=[replace(c) for c in self.diagnostics],
            **changes
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "request_id": self.request_id,
            "final_content": self.final_content,
            "primary_model": self.primary_model,
            "consensus_score": round(self.consensus_score, 4),
            "weights": {k: round(v, 6) for k, v in self.weights.items()},
            "strategy": self.strategy.value,
            "success_rate": round(self.success_rate, 3),
            "total_time_ms": round(self.total_time_ms, 1),
            "from_cache": self.from_cache,
            "diagnostics": [c.to_dict() for c in self.diagnostics],
        }

    def summary(self) -> str:
        return (
            f"{self.primary_model} selected "
            f"(consensus {self.consensus_score:.2f}): {truncate(self.final_content, 80)}"
        )


class MergeSelector:
    """
    Combines weights, consensus and candidates into a MergeResult.

    ``WEIGHTED_SELECTION`` returns the content of the highest-weighted
    successful candidate, ties going to the earlier registry entry.
    ``TOP_K_BLEND`` stitches together the sentences of the ``top_k``
    best candidates, dropping sentences that near-duplicate one already
    taken.
    """

    def __init__(
        self,
        strategy: MergeStrategy = MergeStrategy.WEIGHTED_SELECTION,
        top_k: int = 2,
        duplicate_threshold: float = 0.8,
        similarity: Similarity = jaccard_similarity
    ):
        self.strategy = strategy
        self.top_k = top_k
        self.duplicate_threshold = duplicate_threshold
        self.similarity = similarity

    def select(
        self,
        candidates: List[ResponseCandidate],
        weights: WeightDistribution,
        consensus_score: float
    ) -> MergeResult:
        by_model = {c.model_id: c for c in candidates if c.succeeded and c.content}
        ranked = [m for m in weights.ranked() if m in by_model]
        if not ranked:
            raise ValueError("No successful candidates to merge")

        primary = ranked[0]
        if self.strategy == MergeStrategy.TOP_K_BLEND and len(ranked) > 1:
            content = self.blend([by_model[m].content for m in ranked[:self.top_k]])
        else:
            content = by_model[primary].content

        return MergeResult(
            final_content=content,
            consensus_score=consensus_score,
            weights=weights,
            diagnostics=list(candidates),
            primary_model=primary,
            strategy=self.strategy
        )

    def blend(self, contents: List[str]) -> str:
        """Merge texts in priority order, skipping near-duplicate sentences."""
        kept: List[str] = []
        for content in contents:
            for sentence in SENTENCE_BOUNDARY.split(content.strip()):
                sentence = sentence.strip()
                if not sentence:
                    continue
                if any(self.similarity(sentence, k) >= self.duplicate_threshold for k in kept):
                    continue
                kept.append(sentence)
        return " ".join(kept)
