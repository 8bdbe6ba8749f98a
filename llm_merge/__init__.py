"""
LLM Merge - Multi-Model Weighted Consensus

Queries several LLM backends with the same prompt, scores each answer,
tracks each model's reliability over time and returns one merged answer
selected by performance-weighted plurality.
"""

__version__ = "1.0.0"
__license__ = "MIT"

from .orchestrator import MergeOrchestrator
from .registry import ModelConfig, ModelRegistry
from .dispatcher import ResponseDispatcher, ResponseCandidate
from .quality import QualityAssessor, QualityCriterion, assess_safely
from .performance import PerformanceTracker, PerformanceRecord
from .persistence import PerformanceStore, InMemoryPerformanceStore, SQLitePerformanceStore
from .weights import WeightCalculator, WeightDistribution
from .consensus import ConsensusCalculator, jaccard_similarity
from .merge import MergeSelector, MergeStrategy, MergeResult
from .config import AppConfig, MergeSettings, load_config
from .errors import (
    ErrorKind,
    MergeError,
    ConfigError,
    UnknownModelError,
    ModelCallError,
    QualityAssessmentError,
    AllModelsFailedError,
)

# Backend imports
from .backends import (
    LLMBackend,
    GenerationResult,
    BackendManager,
)

__all__ = [
    # Core
    "MergeOrchestrator",
    "MergeResult",

    # Registry
    "ModelConfig",
    "ModelRegistry",

    # Dispatch
    "ResponseDispatcher",
    "ResponseCandidate",

    # Scoring
    "QualityAssessor",
    "QualityCriterion",
    "assess_safely",
    "ConsensusCalculator",
    "jaccard_similarity",

    # Performance
    "PerformanceTracker",
    "PerformanceRecord",
    "PerformanceStore",
    "InMemoryPerformanceStore",
    "SQLitePerformanceStore",

    # Weights and selection
    "WeightCalculator",
    "WeightDistribution",
    "MergeSelector",
    "MergeStrategy",

    # Config
    "AppConfig",
    "MergeSettings",
    "load_config",

    # Errors
    "ErrorKind",
    "MergeError",
    "ConfigError",
    "UnknownModelError",
    "ModelCallError",
    "QualityAssessmentError",
    "AllModelsFailedError",

    # Backends
    "LLMBackend",
    "GenerationResult",
    "BackendManager",
]
