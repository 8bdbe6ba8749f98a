"""
Google Generative Language (Gemini) backend.
"""
from typing import Optional, Dict, Any, Tuple
from urllib.parse import quote

from .base import LLMBackend, BackendType
from ..registry import ModelConfig


class GoogleBackend(LLMBackend):
    """Backend for ``models/{model}:generateContent``."""

    backend_type = BackendType.GOOGLE

    def build_request(
        self,
        config: ModelConfig,
        credential: Optional[str],
        prompt: str
    ) -> Dict[str, Any]:
        model = quote(config.model, safe="")
        return {
            "url": f"{config.endpoint.rstrip('/')}/models/{model}:generateContent",
            "headers": {"Content-Type": "application/json"},
            "params": {"key": credential or ""},
            "json": {
                "contents": [
                    {"role": "user", "parts": [{"text": prompt}]}
                ],
                "generationConfig": {
                    "maxOutputTokens": config.max_tokens,
                    "temperature": config.temperature,
                },
            },
        }

    def parse_response(self, data: Dict[str, Any]) -> str:
        candidates = data.get("candidates") or []
        if not candidates:
            return ""
        parts = candidates[0].get("content", {}).get("parts") or []
        return "\n".join(p["text"] for p in parts if p.get("text"))

    def parse_usage(self, data: Dict[str, Any]) -> Tuple[int, int]:
        usage = data.get("usageMetadata") or {}
        return usage.get("candidatesTokenCount", 0), usage.get("promptTokenCount", 0)
