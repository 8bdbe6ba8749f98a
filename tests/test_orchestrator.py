"""End-to-end tests for the merge orchestrator."""
import dataclasses
from datetime import datetime, timedelta, timezone

import pytest

from llm_merge import MergeOrchestrator
from llm_merge.config import AppConfig, MergeSettings
from llm_merge.errors import AllModelsFailedError, ConfigError, ErrorKind, UnknownModelError
from llm_merge.merge import MergeStrategy
from llm_merge.performance import PerformanceRecord
from llm_merge.persistence import InMemoryPerformanceStore, SQLitePerformanceStore

from .conftest import LONG_TEXT, NEAR_IDENTICAL_TEXT, make_registry, timeout_error


def seed(store, model_id, quality, success, samples=5):
    record = PerformanceRecord(
        model_id=model_id,
        quality_score_ema=quality,
        success_rate_ema=success,
        sample_count=samples,
        successful_calls=samples,
    )
    return store.put(model_id, record.to_dict())


@pytest.fixture
def store():
    return InMemoryPerformanceStore()


@pytest.fixture
def orchestrator(registry, store, settings, backend_manager, fake_credentials):
    return MergeOrchestrator(
        registry,
        store=store,
        settings=settings,
        backend_manager=backend_manager,
        credential_resolver=fake_credentials,
    )


@pytest.mark.asyncio
async def test_only_reliable_model_carries_weight(orchestrator, backend):
    backend.script = {"model-a": LONG_TEXT, "model-b": timeout_error(), "model-c": timeout_error()}

    for _ in range(10):
        result = await orchestrator.merge("Explain the water cycle.", skip_cache=True)

    assert result.weights["model-a"] == pytest.approx(1.0)
    assert result.weights["model-b"] == 0.0
    assert result.weights["model-c"] == 0.0
    assert result.final_content == LONG_TEXT
    assert result.primary_model == "model-a"

    stats = orchestrator.get_performance_stats()
    assert stats["model-a"]["sample_count"] == 10
    assert stats["model-b"]["success_rate_ema"] == 0.0


@pytest.mark.asyncio
async def test_all_models_failing_raises_and_still_updates_history(orchestrator, backend, store):
    await seed(store, "model-a", quality=0.8, success=1.0)
    backend.script = {
        "model-a": timeout_error(),
        "model-b": timeout_error(),
        "model-c": timeout_error(),
    }

    with pytest.raises(AllModelsFailedError) as excinfo:
        await orchestrator.merge("Explain the water cycle.")

    assert len(excinfo.value.candidates) == 3
    assert all(c.error == ErrorKind.TIMEOUT for c in excinfo.value.candidates)
    record = orchestrator.tracker.get("model-a")
    assert record.success_rate_ema == pytest.approx(0.8)
    assert record.quality_score_ema == pytest.approx(0.64)
    assert await orchestrator.get_recent_sessions() == []


@pytest.mark.asyncio
async def test_historically_stronger_model_wins_near_tie(orchestrator, backend, store):
    await seed(store, "model-a", quality=0.2, success=0.5)
    await seed(store, "model-b", quality=0.9, success=1.0)
    backend.script = {"model-a": LONG_TEXT, "model-b": NEAR_IDENTICAL_TEXT}

    result = await orchestrator.merge("Explain the water cycle.", model_subset=["model-a", "model-b"])

    assert result.consensus_score >= 0.8
    assert result.primary_model == "model-b"
    assert result.final_content == NEAR_IDENTICAL_TEXT
    assert result.weights["model-b"] > result.weights["model-a"]


@pytest.mark.asyncio
async def test_repeated_prompt_is_served_from_cache(orchestrator, backend):
    backend.script = {"model-a": LONG_TEXT, "model-b": LONG_TEXT, "model-c": LONG_TEXT}

    first = await orchestrator.merge("Explain the water cycle.")
    calls = len(backend.calls)
    second = await orchestrator.merge("Explain the water cycle.")

    assert second.from_cache
    assert second.final_content == first.final_content
    assert second.request_id != first.request_id
    assert len(backend.calls) == calls

    third = await orchestrator.merge("Explain the water cycle.", skip_cache=True)
    assert not third.from_cache
    assert len(backend.calls) == calls + 3


@pytest.mark.asyncio
async def test_model_subset_limits_calls(orchestrator, backend):
    backend.script = {"model-b": LONG_TEXT}

    result = await orchestrator.merge("prompt", model_subset=["model-b"])

    assert backend.calls == ["model-b"]
    assert result.weights.to_dict() == {"model-b": 1.0}


@pytest.mark.asyncio
async def test_unknown_model_in_subset_is_rejected(orchestrator, backend):
    with pytest.raises(UnknownModelError) as excinfo:
        await orchestrator.merge("prompt", model_subset=["model-a", "nope"])
    assert excinfo.value.model_ids == ["nope"]
    assert backend.calls == []


@pytest.mark.asyncio
@pytest.mark.parametrize("prompt", ["", "   "])
async def test_empty_prompt_is_rejected(orchestrator, prompt):
    with pytest.raises(ValueError):
        await orchestrator.merge(prompt)


@pytest.mark.asyncio
async def test_sessions_are_recorded(orchestrator, backend):
    backend.script = {"model-a": LONG_TEXT}

    result = await orchestrator.merge("Explain the water cycle.")
    sessions = await orchestrator.get_recent_sessions()

    assert len(sessions) == 1
    assert sessions[0]["request_id"] == result.request_id
    assert sessions[0]["prompt"] == "Explain the water cycle."
    assert sessions[0]["primary_model"] == "model-a"


@pytest.mark.asyncio
async def test_session_recording_can_be_disabled(registry, backend_manager, backend, fake_credentials):
    backend.script = {"model-a": LONG_TEXT}
    orchestrator = MergeOrchestrator(
        registry,
        settings=MergeSettings(max_retries=1, retry_delay=0.0, record_sessions=False),
        backend_manager=backend_manager,
        credential_resolver=fake_credentials,
    )

    await orchestrator.merge("prompt")

    assert await orchestrator.get_recent_sessions() == []


@pytest.mark.asyncio
async def test_top_k_blend_combines_best_answers(registry, store, settings, backend_manager, backend, fake_credentials):
    await seed(store, "model-a", quality=0.9, success=1.0, samples=10)
    await seed(store, "model-b", quality=0.3, success=1.0, samples=10)
    backend.script = {
        "model-a": "Paris is the capital of France. It sits on the Seine.",
        "model-b": "Paris is the capital of France. The city has many museums.",
    }
    orchestrator = MergeOrchestrator(
        registry,
        store=store,
        settings=dataclasses.replace(settings, strategy="top_k_blend"),
        backend_manager=backend_manager,
        credential_resolver=fake_credentials,
    )

    result = await orchestrator.merge("What is the capital of France?", model_subset=["model-a", "model-b"])

    assert result.strategy == MergeStrategy.TOP_K_BLEND
    assert result.primary_model == "model-a"
    assert result.final_content == (
        "Paris is the capital of France. It sits on the Seine. The city has many museums."
    )


def test_unknown_strategy_is_a_config_error(registry, settings):
    with pytest.raises(ConfigError):
        MergeOrchestrator(registry, settings=dataclasses.replace(settings, strategy="vote"))


@pytest.mark.asyncio
async def test_reset_performance_clears_history_and_cache(orchestrator, backend):
    backend.script = {"model-a": LONG_TEXT}
    await orchestrator.merge("prompt")
    assert orchestrator.get_performance_stats()
    assert len(orchestrator.cache) == 1

    await orchestrator.reset_performance()

    assert orchestrator.get_performance_stats() == {}
    assert len(orchestrator.cache) == 0


@pytest.mark.asyncio
async def test_unknown_provider_fails_initialization(store, settings):
    orchestrator = MergeOrchestrator(make_registry("a"), store=store, settings=settings)
    with pytest.raises(ConfigError):
        await orchestrator.initialize()


@pytest.mark.asyncio
async def test_from_config_resolves_key_files(tmp_path, monkeypatch, backend_manager, backend):
    monkeypatch.delenv("MODEL_A_KEY", raising=False)
    (tmp_path / "MODEL_A_KEY").write_text("secret-from-file\n")
    config = AppConfig.from_dict({
        "merge": {"max_retries": 1, "retry_delay": 0},
        "models": [
            {"id": "model-a", "endpoint": "http://a.test", "provider": "scripted",
             "credential_ref": "MODEL_A_KEY"},
            {"id": "model-b", "endpoint": "http://b.test", "provider": "scripted",
             "enabled": False},
        ],
    }, base_dir=tmp_path)

    orchestrator = MergeOrchestrator.from_config(config, backend_manager=backend_manager)
    backend.script = {"model-a": LONG_TEXT}

    assert orchestrator.registry.ids == ["model-a"]
    assert isinstance(orchestrator.store, InMemoryPerformanceStore)
    assert orchestrator.dispatcher.credential_resolver("MODEL_A_KEY") == "secret-from-file"

    result = await orchestrator.merge("prompt")
    assert result.primary_model == "model-a"
    await orchestrator.shutdown()


@pytest.mark.asyncio
async def test_sqlite_history_survives_restart(tmp_path, backend_manager, backend, fake_credentials):
    config = AppConfig.from_dict({
        "merge": {"max_retries": 1, "retry_delay": 0},
        "storage": {"backend": "sqlite", "path": str(tmp_path / "merge.db")},
        "models": [{"id": "model-a", "endpoint": "http://a.test", "provider": "scripted"}],
    }, base_dir=tmp_path)
    backend.script = {"model-a": LONG_TEXT}

    first = MergeOrchestrator.from_config(
        config, backend_manager=backend_manager, credential_resolver=fake_credentials
    )
    assert isinstance(first.store, SQLitePerformanceStore)
    await first.merge("prompt")

    second = MergeOrchestrator.from_config(config, credential_resolver=fake_credentials)
    second.backend_manager.register("scripted", backend)
    await second.initialize()
    assert second.tracker.get("model-a").sample_count == 1
    assert len(await second.get_recent_sessions()) == 1


@pytest.mark.asyncio
async def test_cached_result_is_isolated_from_callers(orchestrator, backend):
    backend.script = {"model-a": LONG_TEXT, "model-b": timeout_error(), "model-c": timeout_error()}

    first = await orchestrator.merge("Explain the water cycle.")
    first.diagnostics[0].content = "tampered"
    first.diagnostics.clear()

    second = await orchestrator.merge("Explain the water cycle.")
    assert second.from_cache
    assert [c.model_id for c in second.diagnostics] == ["model-a", "model-b", "model-c"]
    assert second.diagnostics[0].content == LONG_TEXT
    assert second.weights is not first.weights
    second.diagnostics.pop()

    third = await orchestrator.merge("Explain the water cycle.")
    assert len(third.diagnostics) == 3
    assert third.weights == {"model-a": 1.0, "model-b": 0.0, "model-c": 0.0}


@pytest.mark.asyncio
async def test_stats_and_history_cleanup(orchestrator, backend, store):
    backend.script = {"model-a": LONG_TEXT}
    await orchestrator.merge("prompt")
    await orchestrator.merge("prompt")
    old = (datetime.now(timezone.utc) - timedelta(days=120)).isoformat()
    await store.save_session({"request_id": "stale", "timestamp": old})

    stats = await orchestrator.get_stats()
    assert stats["models"] == ["model-a", "model-b", "model-c"]
    assert stats["storage"]["total_sessions"] == 2
    assert stats["cache"] == {"entries": 1, "hits": 1, "misses": 1}
    assert stats["performance"]["model-a"]["sample_count"] == 1

    assert await orchestrator.cleanup_history(days=90) == 1
    remaining = [s["request_id"] for s in await orchestrator.get_recent_sessions()]
    assert len(remaining) == 1
    assert "stale" not in remaining
    assert (await orchestrator.get_stats())["storage"]["total_sessions"] == 1
