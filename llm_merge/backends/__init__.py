"""
Provider adapters for the upstream LLM APIs.
"""

from .base import LLMBackend, BackendType, GenerationResult
from .openai_backend import OpenAICompatibleBackend, OpenRouterBackend
from .anthropic_backend import AnthropicBackend
from .google_backend import GoogleBackend
from .ollama_backend import OllamaBackend
from .manager import BackendManager

__all__ = [
    "LLMBackend",
    "BackendType",
    "GenerationResult",
    "OpenAICompatibleBackend",
    "OpenRouterBackend",
    "AnthropicBackend",
    "GoogleBackend",
    "OllamaBackend",
    "BackendManager",
]
