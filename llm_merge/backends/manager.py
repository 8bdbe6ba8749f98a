"""
Backend manager mapping provider names to adapter instances.
"""
from typing import Dict, Optional, Type

from loguru import logger

from .base import LLMBackend, BackendType
from .openai_backend import OpenAICompatibleBackend, OpenRouterBackend
from .anthropic_backend import AnthropicBackend
from .google_backend import GoogleBackend
from .ollama_backend import OllamaBackend
from ..errors import ConfigError


class BackendManager:
    """
    Holds one adapter per provider, created on first use.
    """

    BACKEND_CLASSES: Dict[BackendType, Type[LLMBackend]] = {
        BackendType.OPENAI: OpenAICompatibleBackend,
        BackendType.OPENROUTER: OpenRouterBackend,
        BackendType.ANTHROPIC: AnthropicBackend,
        BackendType.GOOGLE: GoogleBackend,
        BackendType.OLLAMA: OllamaBackend,
    }

    def __init__(self, backends: Optional[Dict[str, LLMBackend]] = None):
        self.backends: Dict[str, LLMBackend] = dict(backends or {})

    def register(self, provider: str, backend: LLMBackend) -> None:
        """Install an adapter for a provider name, replacing any existing one."""
        self.backends[provider] = backend
        logger.debug(f"Registered backend for provider {provider}: {backend!r}")

    def get_backend(self, provider: str) -> LLMBackend:
        """Return the adapter for a provider, creating it if needed."""
        backend = self.backends.get(provider)
        if backend is not None:
            return backend

        try:
            backend_type = BackendType(provider)
        except ValueError:
            raise ConfigError(f"Unknown provider: {provider}") from None

        backend = self.BACKEND_CLASSES[backend_type]()
        self.backends[provider] = backend
        logger.info(f"Added backend: {provider}")
        return backend

    async def disconnect_all(self) -> None:
        """Close all adapters."""
        for backend in self.backends.values():
            await backend.aclose()
        self.backends.clear()
