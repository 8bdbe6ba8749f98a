"""
Abstract base class for LLM provider adapters.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional, List, Dict, Any, Tuple
from enum import Enum
import time

import httpx
from loguru import logger

from ..errors import ErrorKind, ModelCallError
from ..registry import ModelConfig


class BackendType(Enum):
    """Supported provider types."""
    OPENAI = "openai"
    OPENROUTER = "openrouter"
    ANTHROPIC = "anthropic"
    GOOGLE = "google"
    OLLAMA = "ollama"


@dataclass
class GenerationResult:
    """Normalized result of a successful provider call."""
    content: str
    model: str
    latency_ms: float = 0.0
    tokens_generated: int = 0
    tokens_prompt: int = 0
    finish_reason: str = ""
    raw_response: Optional[Dict[str, Any]] = field(default=None, repr=False)

    @property
    def total_tokens(self) -> int:
        return self.tokens_generated + self.tokens_prompt


class LLMBackend(ABC):
    """
    Base class for provider adapters.

    Implementations translate a prompt into the provider's wire format and
    normalize the reply into a GenerationResult. Every failure is raised as
    a ModelCallError with a classified ErrorKind; provider-specific fields
    never leave the adapter.
    """

    backend_type: BackendType = BackendType.OPENAI

    def __init__(self, client: Optional[httpx.AsyncClient] = None):
        self._client = client
        self._owns_client = client is None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient()
        return self._client

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this adapter created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
        self._client = None

    @abstractmethod
    def build_request(
        self,
        config: ModelConfig,
        credential: Optional[str],
        prompt: str
    ) -> Dict[str, Any]:
        """Return ``url``, ``headers``, ``json`` and optional ``params`` for the call."""
        pass

    @abstractmethod
    def parse_response(self, data: Dict[str, Any]) -> str:
        """Extract the answer text from the provider's JSON body."""
        pass

    def requires_credential(self) -> bool:
        return True

    async def call(
        self,
        config: ModelConfig,
        credential: Optional[str],
        prompt: str,
        timeout: float
    ) -> GenerationResult:
        """Issue one request to the provider."""
        if self.requires_credential() and not credential:
            raise ModelCallError(
                ErrorKind.AUTH_FAILURE,
                f"No credential available for {config.id} ({config.credential_ref})"
            )

        request = self.build_request(config, credential, prompt)
        start_time = time.monotonic()

        try:
            response = await self._get_client().post(
                request["url"],
                json=request["json"],
                headers=request.get("headers", {}),
                params=request.get("params"),
                timeout=httpx.Timeout(timeout)
            )
        except httpx.TimeoutException as e:
            raise ModelCallError(ErrorKind.TIMEOUT, f"Timeout: {e}", retryable=True) from e
        except httpx.HTTPError as e:
            raise ModelCallError(ErrorKind.TRANSPORT_FAILURE, str(e), retryable=True) from e

        latency_ms = (time.monotonic() - start_time) * 1000
        self.raise_for_status(response)

        try:
            data = response.json()
            content = self.parse_response(data)
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise ModelCallError(
                ErrorKind.TRANSPORT_FAILURE,
                f"Invalid response format from {self.backend_type.value}: {e}"
            ) from e

        if not content or not content.strip():
            raise ModelCallError(
                ErrorKind.TRANSPORT_FAILURE,
                f"Empty response from {self.backend_type.value}"
            )

        tokens_generated, tokens_prompt = self.parse_usage(data)
        return GenerationResult(
            content=content,
            model=config.model,
            latency_ms=latency_ms,
            tokens_generated=tokens_generated,
            tokens_prompt=tokens_prompt,
            raw_response=data
        )

    def parse_usage(self, data: Dict[str, Any]) -> Tuple[int, int]:
        """Return ``(generated, prompt)`` token counts if the provider reports them."""
        usage = data.get("usage") or {}
        generated = usage.get("completion_tokens", usage.get("output_tokens", 0)) or 0
        prompt = usage.get("prompt_tokens", usage.get("input_tokens", 0)) or 0
        return generated, prompt

    @staticmethod
    def raise_for_status(response: httpx.Response) -> None:
        """Classify a non-2xx reply into a ModelCallError."""
        status = response.status_code
        if 200 <= status < 300:
            return

        message = f"HTTP {status}: {response.text[:200]}"
        if status in (401, 403):
            raise ModelCallError(ErrorKind.AUTH_FAILURE, message, status_code=status)
        if status == 429:
            retry_after = None
            header = response.headers.get("retry-after")
            if header:
                try:
                    retry_after = float(header)
                except ValueError:
                    logger.debug(f"Ignoring non-numeric retry-after header: {header}")
            raise ModelCallError(
                ErrorKind.RATE_LIMITED,
                message,
                status_code=status,
                retry_after=retry_after
            )
        raise ModelCallError(
            ErrorKind.TRANSPORT_FAILURE,
            message,
            retryable=status >= 500,
            status_code=status
        )

    @staticmethod
    def format_messages(prompt: str) -> List[Dict[str, str]]:
        """Format prompt into chat message format."""
        return [{"role": "user", "content": prompt}]

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(type={self.backend_type.value})"
