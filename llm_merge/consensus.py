"""
Consensus measurement for LLM Merge.
"""
import re
from itertools import combinations
from typing import Callable, FrozenSet, List, Sequence

Similarity = Callable[[str, str], float]

TOKEN_PATTERN = re.compile(r"[^\W_]+", re.UNICODE)


def normalize_tokens(text: str) -> FrozenSet[str]:
    """Case-folded word tokens with punctuation stripped."""
    return frozenset(TOKEN_PATTERN.findall(text.casefold()))


def jaccard_similarity(a: str, b: str) -> float:
    """|A ∩ B| / |A ∪ B| over normalized token sets."""
    tokens_a = normalize_tokens(a)
    tokens_b = normalize_tokens(b)
    union = tokens_a | tokens_b
    if not union:
        # neither side has any word tokens
        return 1.0
    return len(tokens_a & tokens_b) / len(union)


class ConsensusCalculator:
    """
    Measures agreement among successful responses as a score in [0, 1].

    Zero or one response counts as full agreement. Otherwise the score is
    the mean pairwise similarity of the non-empty contents.
    """

    def __init__(self, similarity: Similarity = jaccard_similarity):
        self.similarity = similarity

    def calculate(self, contents: Sequence[str]) -> float:
        texts: List[str] = [c for c in contents if c and c.strip()]
        if len(texts) < 2:
            return 1.0

        scores = [
            max(0.0, min(1.0, self.similarity(a, b)))
            for a, b in combinations(texts, 2)
        ]
        return sum(scores) / len(scores)

    __call__ = calculate
