"""
Per-model performance tracking for LLM Merge.
"""
import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Any, Optional, List

from loguru import logger

from .persistence import PerformanceStore, InMemoryPerformanceStore


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class PerformanceRecord:
    """Smoothed historical reliability of one model."""
    model_id: str
    quality_score_ema: float = 0.0
    success_rate_ema: float = 0.0
    sample_count: int = 0
    last_updated: datetime = field(default_factory=_utcnow)
    latency_ema_ms: float = 0.0
    successful_calls: int = 0

    @property
    def failed_calls(self) -> int:
        return self.sample_count - self.successful_calls

    def to_dict(self) -> Dict[str, Any]:
        return {
            "model_id": self.model_id,
            "quality_score_ema": self.quality_score_ema,
            "success_rate_ema": self.success_rate_ema,
            "sample_count": self.sample_count,
            "last_updated": self.last_updated.isoformat(),
            "latency_ema_ms": self.latency_ema_ms,
            "successful_calls": self.successful_calls,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PerformanceRecord":
        last_updated = data.get("last_updated")
        if isinstance(last_updated, str):
            last_updated = datetime.fromisoformat(last_updated)
        elif last_updated is None:
            last_updated = _utcnow()
        return cls(
            model_id=data["model_id"],
            quality_score_ema=_clamp(float(data.get("quality_score_ema", 0.0))),
            success_rate_ema=_clamp(float(data.get("success_rate_ema", 0.0))),
            sample_count=int(data.get("sample_count", 0)),
            last_updated=last_updated,
            latency_ema_ms=float(data.get("latency_ema_ms", 0.0)),
            successful_calls=int(data.get("successful_calls", 0)),
        )


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


class PerformanceTracker:
    """
    Maintains one PerformanceRecord per model using exponential moving averages.

    Updates to the same model are serialized with a per-model lock; updates
    to different models never wait on each other. State is long-lived and
    survives across orchestration requests.
    """

    def __init__(
        self,
        store: Optional[PerformanceStore] = None,
        alpha: float = 0.2
    ):
        if not 0.0 < alpha <= 1.0:
            raise ValueError(f"alpha must be in (0, 1], got {alpha}")
        self.store = store or InMemoryPerformanceStore()
        self.alpha = alpha
        self.records: Dict[str, PerformanceRecord] = {}
        self._locks: Dict[str, asyncio.Lock] = {}

    def _lock_for(self, model_id: str) -> asyncio.Lock:
        lock = self._locks.get(model_id)
        if lock is None:
            lock = self._locks[model_id] = asyncio.Lock()
        return lock

    async def load(self) -> int:
        """Read the persisted record set; returns the number of records loaded."""
        stored = await self.store.load_all()
        for model_id, data in stored.items():
            self.records[model_id] = PerformanceRecord.from_dict(data)
        logger.info(f"Loaded {len(stored)} performance records")
        return len(stored)

    async def record(
        self,
        model_id: str,
        succeeded: bool,
        quality: float,
        latency_ms: float = 0.0
    ) -> PerformanceRecord:
        """
        Fold one call outcome into the model's record.

        A failed call counts as quality 0 regardless of ``quality``.
        """
        observed_quality = _clamp(quality) if succeeded else 0.0
        observed_success = 1.0 if succeeded else 0.0

        async with self._lock_for(model_id):
            record = self.records.get(model_id)
            if record is None or record.sample_count == 0:
                record = PerformanceRecord(
                    model_id=model_id,
                    quality_score_ema=observed_quality,
                    success_rate_ema=observed_success,
                    latency_ema_ms=latency_ms,
                )
            else:
                a = self.alpha
                record.quality_score_ema = _clamp(
                    a * observed_quality + (1 - a) * record.quality_score_ema
                )
                record.success_rate_ema = _clamp(
                    a * observed_success + (1 - a) * record.success_rate_ema
                )
                record.latency_ema_ms = a * latency_ms + (1 - a) * record.latency_ema_ms
                record.last_updated = _utcnow()

            record.sample_count += 1
            if succeeded:
                record.successful_calls += 1
            self.records[model_id] = record

            try:
                await self.store.put(model_id, record.to_dict())
            except Exception as e:
                logger.error(f"Failed to persist performance record for {model_id}: {e}")

        return record

    def get(self, model_id: str) -> Optional[PerformanceRecord]:
        return self.records.get(model_id)

    def snapshot(self, model_ids: Optional[List[str]] = None) -> Dict[str, PerformanceRecord]:
        """Copy of the current records, optionally restricted to ``model_ids``."""
        if model_ids is None:
            return {k: PerformanceRecord(**vars(v)) for k, v in self.records.items()}
        return {
            k: PerformanceRecord(**vars(self.records[k]))
            for k in model_ids if k in self.records
        }

    def get_stats(self) -> Dict[str, Dict[str, Any]]:
        return {
            model_id: {
                **record.to_dict(),
                "quality_score_ema": round(record.quality_score_ema, 4),
                "success_rate_ema": round(record.success_rate_ema, 4),
                "latency_ema_ms": round(record.latency_ema_ms, 1),
            }
            for model_id, record in self.records.items()
        }

    async def reset(self, model_id: Optional[str] = None) -> None:
        """Forget one model's history, or every model's."""
        targets = [model_id] if model_id else list(self.records)
        for target in targets:
            async with self._lock_for(target):
                self.records.pop(target, None)
                await self.store.delete(target)
        logger.info(f"Performance data reset for {model_id or 'all models'}")
