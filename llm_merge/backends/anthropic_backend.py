"""
Anthropic Messages API backend.
"""
from typing import Optional, Dict, Any

from .base import LLMBackend, BackendType
from ..registry import ModelConfig

ANTHROPIC_VERSION = "2023-06-01"


class AnthropicBackend(LLMBackend):
    """Backend for ``POST /v1/messages``."""

    backend_type = BackendType.ANTHROPIC

    def build_request(
        self,
        config: ModelConfig,
        credential: Optional[str],
        prompt: str
    ) -> Dict[str, Any]:
        return {
            "url": f"{config.endpoint.rstrip('/')}/messages",
            "headers": {
                "x-api-key": credential or "",
                "anthropic-version": ANTHROPIC_VERSION,
                "Content-Type": "application/json",
            },
            "json": {
                "model": config.model,
                "max_tokens": config.max_tokens,
                "messages": self.format_messages(prompt),
            },
        }

    def parse_response(self, data: Dict[str, Any]) -> str:
        parts = data.get("content") or []
        return "\n".join(p["text"] for p in parts if p.get("text"))
