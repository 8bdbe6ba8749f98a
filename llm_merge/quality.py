"""
Response quality assessment for LLM Merge.

Scores are deterministic heuristics over the text alone, so they can be
computed without network access and compared across models.

Formula
-------
score = sum(weight_i * signal_i) / sum(weight_i), clamped to [0, 1], where

- ``length``: 1.0 inside ``[min_chars, max_chars]``, ``len/min_chars`` below
  the band and ``max_chars/len`` above it.
- ``structure``: 1.0 for 2..20 sentences, 0.5 for a single sentence and
  0.75 past the upper bound.
- ``punctuation``: distinct punctuation marks used, saturating at 3.
- ``repetition``: unique-word ratio mapped so 0.3 -> 0 and 0.7 -> 1,
  multiplied by the share of non-repeated bigrams.

Empty or whitespace-only text always scores 0.
"""
import re
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from loguru import logger

from .errors import QualityAssessmentError

QualityFunction = Callable[[str], float]

SENTENCE_SPLIT = re.compile(r"[.!?]+")
WORD_PATTERN = re.compile(r"\w+", re.UNICODE)
PUNCTUATION_MARKS = frozenset(".,;:!?-()\"'")


@dataclass
class QualityCriterion:
    """A single weighted sub-signal of the quality score."""
    name: str
    description: str
    weight: float = 1.0


class QualityAssessor:
    """
    Scores a single response's textual quality in [0, 1].
    """

    DEFAULT_CRITERIA = [
        QualityCriterion("length", "Length within a reasonable band", 0.3),
        QualityCriterion("structure", "Multiple well-formed sentences", 0.25),
        QualityCriterion("punctuation", "Punctuation variety", 0.15),
        QualityCriterion("repetition", "Absence of degenerate repetition", 0.3),
    ]

    def __init__(
        self,
        criteria: Optional[List[QualityCriterion]] = None,
        min_chars: int = 50,
        max_chars: int = 2000,
        min_sentences: int = 2,
        max_sentences: int = 20
    ):
        self.criteria = criteria or self.DEFAULT_CRITERIA
        self.min_chars = min_chars
        self.max_chars = max_chars
        self.min_sentences = min_sentences
        self.max_sentences = max_sentences

    def __call__(self, text: str) -> float:
        return self.assess(text)

    def assess(self, text: str) -> float:
        """Return the weighted quality score of ``text``."""
        if not text or not text.strip():
            return 0.0

        signals = self.signals(text)
        total_weight = sum(c.weight for c in self.criteria)
        if total_weight <= 0:
            return 0.0

        score = sum(signals.get(c.name, 0.0) * c.weight for c in self.criteria) / total_weight
        return max(0.0, min(1.0, score))

    def signals(self, text: str) -> Dict[str, float]:
        """Compute each sub-signal; useful for diagnostics."""
        text = text.strip()
        words = [w.lower() for w in WORD_PATTERN.findall(text)]
        return {
            "length": self._length_signal(len(text)),
            "structure": self._structure_signal(text),
            "punctuation": self._punctuation_signal(text),
            "repetition": self._repetition_signal(words),
        }

    def _length_signal(self, length: int) -> float:
        if length < self.min_chars:
            return length / self.min_chars
        if length > self.max_chars:
            return self.max_chars / length
        return 1.0

    def _structure_signal(self, text: str) -> float:
        sentences = [s for s in SENTENCE_SPLIT.split(text) if s.strip()]
        count = len(sentences)
        if count == 0:
            return 0.0
        if count < self.min_sentences:
            return 0.5
        if count > self.max_sentences:
            return 0.75
        return 1.0

    @staticmethod
    def _punctuation_signal(text: str) -> float:
        used = {ch for ch in text if ch in PUNCTUATION_MARKS}
        return min(len(used) / 3, 1.0)

    @staticmethod
    def _repetition_signal(words: List[str]) -> float:
        if not words:
            return 0.0

        unique_ratio = len(set(words)) / len(words)
        diversity = max(0.0, min(1.0, (unique_ratio - 0.3) / 0.4))

        bigrams = list(zip(words, words[1:]))
        if bigrams:
            bigram_ratio = len(set(bigrams)) / len(bigrams)
        else:
            bigram_ratio = 1.0

        return diversity * bigram_ratio


def assess_safely(assessor: QualityFunction, text: str, model_id: str = "") -> float:
    """
    Run an assessor, degrading any failure to a score of 0.

    Out-of-range results are treated as failures too.
    """
    try:
        try:
            score = float(assessor(text))
        except Exception as e:
            raise QualityAssessmentError(f"Assessor raised {type(e).__name__}: {e}") from e
        if not 0.0 <= score <= 1.0:
            raise QualityAssessmentError(f"Score {score} outside [0, 1]")
        return score
    except QualityAssessmentError as e:
        logger.warning(f"Quality assessment failed for {model_id or 'response'}: {e}")
        return 0.0
