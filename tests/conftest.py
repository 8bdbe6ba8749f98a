"""Shared fixtures for LLM Merge tests."""
import asyncio
from typing import Any, Dict, List, Optional

import pytest

from llm_merge.backends import BackendManager, GenerationResult, LLMBackend
from llm_merge.config import MergeSettings
from llm_merge.errors import ErrorKind, ModelCallError
from llm_merge.registry import ModelConfig, ModelRegistry

LONG_TEXT = (
    "The water cycle describes how water moves through the environment. "
    "Heat from the sun evaporates water from oceans, lakes, and rivers into "
    "the atmosphere. As the vapor rises, it cools and condenses into clouds. "
    "Eventually the droplets grow heavy and fall as rain or snow, returning "
    "water to the surface again."
)

NEAR_IDENTICAL_TEXT = LONG_TEXT.replace("rain or snow", "rain or hail")


class ScriptedBackend(LLMBackend):
    """
    Adapter whose replies are scripted per model id.

    A script entry is a string (returned as content), an exception (raised),
    or a list of either, consumed one per call; the last item repeats.
    """

    def __init__(self, script: Optional[Dict[str, Any]] = None, delays: Optional[Dict[str, float]] = None):
        super().__init__(client=None)
        self.script = dict(script or {})
        self.delays = dict(delays or {})
        self.calls: List[str] = []

    def build_request(self, config, credential, prompt):
        return {"url": config.endpoint, "json": {"prompt": prompt}}

    def parse_response(self, data):
        return data.get("content", "")

    async def call(self, config, credential, prompt, timeout):
        self.calls.append(config.id)
        delay = self.delays.get(config.id, 0.0)
        if delay:
            await asyncio.sleep(delay)

        outcome = self.script.get(config.id)
        if isinstance(outcome, list):
            outcome = outcome.pop(0) if len(outcome) > 1 else outcome[0]
        if outcome is None:
            raise ModelCallError(ErrorKind.TRANSPORT_FAILURE, "unscripted model")
        if isinstance(outcome, BaseException):
            raise outcome
        return GenerationResult(content=outcome, model=config.model, latency_ms=1.0)


def timeout_error() -> ModelCallError:
    return ModelCallError(ErrorKind.TIMEOUT, "simulated timeout", retryable=True)


def make_registry(*model_ids: str) -> ModelRegistry:
    return ModelRegistry([
        ModelConfig(
            id=model_id,
            endpoint=f"http://{model_id}.test",
            credential_ref=f"{model_id.upper()}_KEY",
            provider="scripted",
        )
        for model_id in model_ids
    ])


@pytest.fixture
def registry() -> ModelRegistry:
    return make_registry("model-a", "model-b", "model-c")


@pytest.fixture
def backend() -> ScriptedBackend:
    return ScriptedBackend()


@pytest.fixture
def backend_manager(backend) -> BackendManager:
    manager = BackendManager()
    manager.register("scripted", backend)
    return manager


@pytest.fixture
def settings() -> MergeSettings:
    return MergeSettings(
        call_timeout=1.0,
        max_retries=1,
        retry_delay=0.0,
        max_retry_delay=0.0,
    )


@pytest.fixture
def fake_credentials():
    return lambda ref: "test-key" if ref else None
