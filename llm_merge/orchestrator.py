"""
LLM Merge - the main orchestrator
"""
import time
import uuid
from datetime import datetime, timezone
from functools import partial
from typing import Any, Dict, Iterable, List, Optional

from loguru import logger

from .backends import BackendManager
from .cache import ResultCache
from .config import AppConfig, MergeSettings, resolve_credential
from .consensus import ConsensusCalculator
from .dispatcher import ResponseDispatcher
from .errors import AllModelsFailedError, ConfigError
from .merge import MergeResult, MergeSelector, MergeStrategy
from .performance import PerformanceTracker
from .persistence import InMemoryPerformanceStore, PerformanceStore, SQLitePerformanceStore
from .quality import QualityFunction
from .registry import ModelRegistry
from .utils import create_cache_key
from .weights import WeightCalculator


class MergeOrchestrator:
    """
    Queries the configured models and merges their answers.

    The performance store is passed in explicitly, so independent
    orchestrators (and tests) never share tracker state.
    """

    def __init__(
        self,
        registry: ModelRegistry,
        store: Optional[PerformanceStore] = None,
        settings: Optional[MergeSettings] = None,
        backend_manager: Optional[BackendManager] = None,
        assessor: Optional[QualityFunction] = None,
        consensus: Optional[ConsensusCalculator] = None,
        credential_resolver=resolve_credential
    ):
        self.registry = registry
        self.settings = settings or MergeSettings()
        self.store = store or InMemoryPerformanceStore()
        self.backend_manager = backend_manager or BackendManager()
        self.tracker = PerformanceTracker(self.store, alpha=self.settings.alpha)
        self.dispatcher = ResponseDispatcher(
            self.backend_manager,
            self.tracker,
            assessor=assessor,
            call_timeout=self.settings.call_timeout,
            max_retries=self.settings.max_retries,
            retry_delay=self.settings.retry_delay,
            max_retry_delay=self.settings.max_retry_delay,
            credential_resolver=credential_resolver
        )
        self.weight_calculator = WeightCalculator(
            quality_exponent=self.settings.quality_exponent,
            success_exponent=self.settings.success_exponent
        )
        self.consensus = consensus or ConsensusCalculator()

        try:
            strategy = MergeStrategy(self.settings.strategy)
        except ValueError:
            raise ConfigError(f"Unknown merge strategy: {self.settings.strategy}") from None
        self.selector = MergeSelector(strategy=strategy, top_k=self.settings.top_k)
        self.cache = ResultCache(
            ttl=self.settings.cache_ttl,
            max_size=self.settings.cache_max_size
        )
        self._initialized = False

    @classmethod
    def from_config(cls, config: AppConfig, **kwargs) -> "MergeOrchestrator":
        """Build an orchestrator from a parsed config.yaml."""
        registry = ModelRegistry.from_config(config.models)
        if config.storage.backend == "sqlite":
            store = SQLitePerformanceStore(config.storage.path)
        else:
            store = InMemoryPerformanceStore()
        kwargs.setdefault(
            "credential_resolver",
            partial(resolve_credential, search_dir=config.base_dir)
        )
        return cls(registry, store=store, settings=config.merge, **kwargs)

    async def initialize(self):
        """Open storage, load performance history and check providers."""
        if self._initialized:
            return
        await self.store.initialize()
        await self.tracker.load()
        for model in self.registry:
            self.backend_manager.get_backend(model.provider)
        self._initialized = True
        logger.info(f"LLM Merge initialized with {len(self.registry)} models")

    async def merge(
        self,
        prompt: str,
        model_subset: Optional[Iterable[str]] = None,
        deadline: Optional[float] = None,
        skip_cache: bool = False
    ) -> MergeResult:
        """
        Main entry point: ask every selected model and merge the answers.

        Raises AllModelsFailedError when no model produced a response.
        """
        if not prompt or not prompt.strip():
            raise ValueError("Prompt must not be empty")
        await self.initialize()

        models = self.registry.select(model_subset)
        if not models:
            raise ValueError("No models configured")
        model_ids = [m.id for m in models]

        request_id = str(uuid.uuid4())
        cache_key = create_cache_key(prompt, model_ids)
        if not skip_cache:
            cached = self.cache.get(cache_key)
            if cached is not None:
                logger.info(f"Returning cached result for request {request_id}")
                return cached.copy(request_id=request_id, from_cache=True)

        if deadline is None:
            deadline = self.settings.deadline

        start_time = time.monotonic()
        logger.info(f"Merge request {request_id}: {len(models)} models responding")
        candidates = await self.dispatcher.dispatch(prompt, models, deadline=deadline)

        successful = [c for c in candidates if c.succeeded]
        if not successful:
            logger.error(f"Merge request {request_id}: all {len(candidates)} models failed")
            raise AllModelsFailedError(candidates)

        weights = self.weight_calculator.calculate(
            model_ids,
            [c.model_id for c in successful],
            self.tracker.snapshot(model_ids)
        )
        consensus_score = self.consensus.calculate([c.content for c in successful])

        result = self.selector.select(candidates, weights, consensus_score)
        result.request_id = request_id
        result.total_time_ms = (time.monotonic() - start_time) * 1000
        logger.info(f"Merge request {request_id}: {result.summary()}")

        self.cache.set(cache_key, result.copy())
        if self.settings.record_sessions:
            await self.store.save_session({
                "request_id": request_id,
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "prompt": prompt,
                **result.to_dict(),
            })

        return result

    def get_performance_stats(self) -> Dict[str, Dict[str, Any]]:
        """Current performance record of every observed model."""
        return self.tracker.get_stats()

    async def reset_performance(self, model_id: Optional[str] = None) -> None:
        """Forget performance history and drop cached results."""
        await self.tracker.reset(model_id)
        self.cache.clear()

    async def get_recent_sessions(self, limit: int = 10) -> List[Dict[str, Any]]:
        return await self.store.get_recent_sessions(limit)

    async def get_stats(self) -> Dict[str, Any]:
        """Storage, cache and per-model statistics."""
        return {
            "models": self.registry.ids,
            "storage": await self.store.get_statistics(),
            "cache": {
                "entries": len(self.cache),
                "hits": self.cache.stats.hits,
                "misses": self.cache.stats.misses,
            },
            "performance": self.get_performance_stats(),
        }

    async def cleanup_history(self, days: int = 90) -> int:
        """Delete recorded merge sessions older than ``days``."""
        return await self.store.cleanup_old_records(days)

    async def shutdown(self):
        """Shutdown the orchestrator."""
        await self.backend_manager.disconnect_all()
        await self.store.close()
        logger.info("LLM Merge shut down")
