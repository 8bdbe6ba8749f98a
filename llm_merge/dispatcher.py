"""
Concurrent fan-out of a prompt to every selected model.
"""
import asyncio
import time
from dataclasses import dataclass
from typing import Optional, List, Dict, Any, Callable

from loguru import logger
from tenacity import (
    AsyncRetrying,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception
)

from .backends import BackendManager, GenerationResult
from .config import resolve_credential
from .errors import ErrorKind, ModelCallError
from .performance import PerformanceTracker
from .quality import QualityAssessor, QualityFunction, assess_safely
from .registry import ModelConfig
from .utils import clean_response, truncate


@dataclass
class ResponseCandidate:
    """One model's response (or failure) to a single request."""
    model_id: str
    content: str = ""
    latency_ms: float = 0.0
    succeeded: bool = False
    error: Optional[ErrorKind] = None
    error_message: str = ""
    attempts: int = 0
    quality: float = 0.0

    @classmethod
    def failure(
        cls,
        model_id: str,
        error: ModelCallError,
        latency_ms: float,
        attempts: int = 0
    ) -> "ResponseCandidate":
        return cls(
            model_id=model_id,
            latency_ms=latency_ms,
            succeeded=False,
            error=error.kind,
            error_message=error.message,
            attempts=attempts
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "model_id": self.model_id,
            "succeeded": self.succeeded,
            "content": truncate(self.content, 500),
            "latency_ms": round(self.latency_ms, 1),
            "error": self.error.value if self.error else None,
            "error_message": self.error_message,
            "attempts": self.attempts,
            "quality": round(self.quality, 4),
        }


def _is_retryable(error: BaseException) -> bool:
    return isinstance(error, ModelCallError) and error.retryable


class ResponseDispatcher:
    """
    Issues one call per model concurrently and collects every outcome.

    Individual failures never abort the batch: each becomes a failed
    ResponseCandidate. After all tasks join (or the deadline cancels the
    stragglers), every candidate is scored and reported to the tracker
    exactly once.
    """

    def __init__(
        self,
        backend_manager: BackendManager,
        tracker: PerformanceTracker,
        assessor: Optional[QualityFunction] = None,
        call_timeout: float = 30.0,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        max_retry_delay: float = 10.0,
        credential_resolver: Callable[[Optional[str]], Optional[str]] = resolve_credential
    ):
        self.backend_manager = backend_manager
        self.tracker = tracker
        self.assessor = assessor or QualityAssessor()
        self.call_timeout = call_timeout
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.max_retry_delay = max_retry_delay
        self.credential_resolver = credential_resolver

    async def dispatch(
        self,
        prompt: str,
        models: List[ModelConfig],
        deadline: Optional[float] = None
    ) -> List[ResponseCandidate]:
        """
        Query ``models`` with ``prompt``; returns one candidate per model in input order.

        ``deadline`` (seconds) bounds the whole batch; calls still running
        when it elapses are cancelled and recorded as timeouts. Cancelling
        the dispatch itself cancels every outstanding call.
        """
        if not models:
            return []

        start_time = time.monotonic()
        tasks = {
            model.id: asyncio.create_task(self._call_model(model, prompt))
            for model in models
        }
        try:
            _, pending = await asyncio.wait(tasks.values(), timeout=deadline)
        except asyncio.CancelledError:
            logger.warning(f"Dispatch cancelled; cancelling {len(tasks)} model calls")
            for task in tasks.values():
                task.cancel()
            await asyncio.gather(*tasks.values(), return_exceptions=True)
            raise

        if pending:
            logger.warning(f"Deadline of {deadline}s elapsed with {len(pending)} calls outstanding")
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)

        candidates = []
        for model in models:
            task = tasks[model.id]
            if task in pending:
                candidate = ResponseCandidate(
                    model_id=model.id,
                    latency_ms=(time.monotonic() - start_time) * 1000,
                    error=ErrorKind.TIMEOUT,
                    error_message=f"Deadline of {deadline}s exceeded"
                )
            else:
                candidate = task.result()
            candidates.append(candidate)

        for candidate in candidates:
            if candidate.succeeded:
                candidate.quality = assess_safely(
                    self.assessor, candidate.content, candidate.model_id
                )

        await asyncio.gather(*(
            self.tracker.record(
                c.model_id,
                succeeded=c.succeeded,
                quality=c.quality,
                latency_ms=c.latency_ms
            )
            for c in candidates
        ))

        succeeded = sum(1 for c in candidates if c.succeeded)
        logger.info(
            f"Dispatch completed: {succeeded}/{len(candidates)} succeeded "
            f"in {(time.monotonic() - start_time) * 1000:.0f}ms"
        )
        return candidates

    async def _attempt(self, model: ModelConfig, credential: Optional[str], prompt: str) -> GenerationResult:
        backend = self.backend_manager.get_backend(model.provider)
        try:
            result = await asyncio.wait_for(
                backend.call(model, credential, prompt, self.call_timeout),
                timeout=self.call_timeout
            )
        except asyncio.TimeoutError as e:
            raise ModelCallError(
                ErrorKind.TIMEOUT,
                f"No response within {self.call_timeout}s",
                retryable=True
            ) from e

        result.content = clean_response(result.content)
        if not result.content:
            raise ModelCallError(ErrorKind.TRANSPORT_FAILURE, "Empty response")
        return result

    async def _call_model(self, model: ModelConfig, prompt: str) -> ResponseCandidate:
        """Call one model with retries; never raises except on cancellation."""
        start_time = time.monotonic()
        attempts = 0
        logger.debug(f"Calling model {model.id} (prompt length {len(prompt)})")

        try:
            credential = self.credential_resolver(model.credential_ref)
            retrying = AsyncRetrying(
                stop=stop_after_attempt(self.max_retries),
                wait=wait_exponential(
                    multiplier=self.retry_delay,
                    min=self.retry_delay,
                    max=self.max_retry_delay
                ),
                retry=retry_if_exception(_is_retryable),
                reraise=True
            )
            async for attempt in retrying:
                with attempt:
                    attempts += 1
                    if attempts > 1:
                        logger.info(f"Retrying {model.id} (attempt {attempts}/{self.max_retries})")
                    result = await self._attempt(model, credential, prompt)
        except ModelCallError as e:
            latency_ms = (time.monotonic() - start_time) * 1000
            logger.warning(f"Model {model.id} failed after {attempts} attempt(s): {e}")
            return ResponseCandidate.failure(model.id, e, latency_ms, attempts)
        except Exception as e:
            latency_ms = (time.monotonic() - start_time) * 1000
            logger.exception(f"Unexpected error calling {model.id}: {e}")
            return ResponseCandidate.failure(
                model.id,
                ModelCallError(ErrorKind.TRANSPORT_FAILURE, f"{type(e).__name__}: {e}"),
                latency_ms,
                attempts
            )

        latency_ms = (time.monotonic() - start_time) * 1000
        logger.info(f"Model {model.id} responded in {latency_ms:.0f}ms")
        return ResponseCandidate(
            model_id=model.id,
            content=result.content,
            latency_ms=latency_ms,
            succeeded=True,
            attempts=attempts
        )
