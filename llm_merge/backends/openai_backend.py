"""
OpenAI-compatible chat completions backend.

Covers OpenAI itself, OpenRouter and self-hosted servers such as vLLM that
expose ``/chat/completions``.
"""
from typing import Optional, Dict, Any

import httpx

from .base import LLMBackend, BackendType
from ..registry import ModelConfig


class OpenAICompatibleBackend(LLMBackend):
    """Backend for any server speaking the OpenAI chat completions API."""

    backend_type = BackendType.OPENAI

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        extra_headers: Optional[Dict[str, str]] = None
    ):
        super().__init__(client)
        self.extra_headers = extra_headers or {}

    def requires_credential(self) -> bool:
        # local vLLM servers usually run without a key
        return False

    def build_request(
        self,
        config: ModelConfig,
        credential: Optional[str],
        prompt: str
    ) -> Dict[str, Any]:
        headers = {"Content-Type": "application/json", **self.extra_headers}
        if credential:
            headers["Authorization"] = f"Bearer {credential}"

        return {
            "url": f"{config.endpoint.rstrip('/')}/chat/completions",
            "headers": headers,
            "json": {
                "model": config.model,
                "messages": self.format_messages(prompt),
                "max_tokens": config.max_tokens,
                "temperature": config.temperature,
                "stream": False,
            },
        }

    def parse_response(self, data: Dict[str, Any]) -> str:
        return data["choices"][0]["message"]["content"] or ""


class OpenRouterBackend(OpenAICompatibleBackend):
    """OpenRouter requires a key and accepts attribution headers."""

    backend_type = BackendType.OPENROUTER

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        referer: str = "https://github.com/llm-merge/llm-merge",
        title: str = "LLM Merge"
    ):
        super().__init__(
            client,
            extra_headers={"HTTP-Referer": referer, "X-Title": title}
        )

    def requires_credential(self) -> bool:
        return True
