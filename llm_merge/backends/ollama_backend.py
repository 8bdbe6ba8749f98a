"""
Ollama backend implementation.
"""
from typing import Optional, Dict, Any, Tuple

from .base import LLMBackend, BackendType
from ..registry import ModelConfig


class OllamaBackend(LLMBackend):
    """
    Backend for a local or remote Ollama server.

    Uses the non-streaming ``/api/chat`` endpoint; no credential is needed.
    """

    backend_type = BackendType.OLLAMA

    def __init__(self, client=None, num_ctx: int = 4096):
        super().__init__(client)
        self.num_ctx = num_ctx

    def requires_credential(self) -> bool:
        return False

    def build_request(
        self,
        config: ModelConfig,
        credential: Optional[str],
        prompt: str
    ) -> Dict[str, Any]:
        headers = {}
        if credential:
            headers["Authorization"] = f"Bearer {credential}"

        return {
            "url": f"{config.endpoint.rstrip('/')}/api/chat",
            "headers": headers,
            "json": {
                "model": config.model,
                "messages": self.format_messages(prompt),
                "stream": False,
                "options": {
                    "temperature": config.temperature,
                    "num_predict": config.max_tokens,
                    "num_ctx": self.num_ctx,
                },
            },
        }

    def parse_response(self, data: Dict[str, Any]) -> str:
        return data["message"]["content"] or ""

    def parse_usage(self, data: Dict[str, Any]) -> Tuple[int, int]:
        return data.get("eval_count", 0), data.get("prompt_eval_count", 0)
