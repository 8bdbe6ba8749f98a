"""
Error taxonomy for LLM Merge.
"""
from enum import Enum
from typing import List, Optional, Any


class ErrorKind(Enum):
    """Classified reasons a single model call can fail."""
    TIMEOUT = "timeout"
    AUTH_FAILURE = "auth_failure"
    TRANSPORT_FAILURE = "transport_failure"
    RATE_LIMITED = "rate_limited"


class MergeError(Exception):
    """Base class for all errors raised by llm_merge."""


class ConfigError(MergeError):
    """Invalid or incomplete configuration."""


class UnknownModelError(MergeError):
    """A requested model id is not in the registry."""

    def __init__(self, model_ids: List[str]):
        self.model_ids = list(model_ids)
        super().__init__(f"Unknown model ids: {', '.join(self.model_ids)}")


class ModelCallError(MergeError):
    """
    A single provider call failed.

    Raised by provider adapters and absorbed by the dispatcher, which turns
    it into a failed ResponseCandidate.
    """

    def __init__(
        self,
        kind: ErrorKind,
        message: str = "",
        retryable: bool = False,
        status_code: Optional[int] = None,
        retry_after: Optional[float] = None
    ):
        self.kind = kind
        self.message = message
        self.retryable = retryable
        self.status_code = status_code
        self.retry_after = retry_after
        super().__init__(f"{kind.value}: {message}" if message else kind.value)


class QualityAssessmentError(MergeError):
    """Scoring a response failed. Never escapes the dispatcher."""


class AllModelsFailedError(MergeError):
    """Every model in the batch failed; no partial merge is produced."""

    def __init__(self, candidates: List[Any]):
        self.candidates = list(candidates)
        kinds = sorted({
            c.error.value for c in self.candidates if c.error is not None
        })
        super().__init__(
            f"All {len(self.candidates)} model calls failed"
            + (f" ({', '.join(kinds)})" if kinds else "")
        )
