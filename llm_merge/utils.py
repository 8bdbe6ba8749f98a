"""
Utility functions for LLM Merge.
"""

import hashlib
import re
import sys
from typing import Iterable, Optional

from loguru import logger

LOG_FORMAT = (
    "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>"
)


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    rotation: str = "20 MB",
    retention: str = "14 days"
) -> None:
    """Configure loguru sinks: stderr plus an optional rotating file."""
    logger.remove()
    logger.add(sys.stderr, format=LOG_FORMAT, level=level)
    if log_file:
        logger.add(
            log_file,
            level=level,
            rotation=rotation,
            retention=retention,
            serialize=True
        )


def create_cache_key(prompt: str, model_ids: Iterable[str]) -> str:
    """Deterministic key for a prompt and the set of models asked."""
    selection = "|".join(sorted(model_ids))
    digest = hashlib.sha256(f"{prompt}\x00{selection}".encode()).hexdigest()
    return digest[:32]


def truncate(text: str, max_chars: int = 500) -> str:
    """Truncate with ellipsis."""
    return text[:max_chars] + "..." if len(text) > max_chars else text


def format_duration(ms: float) -> str:
    """Format milliseconds into human readable."""
    seconds = ms / 1000
    if seconds < 1:
        return f"{ms:.0f}ms"
    elif seconds < 60:
        return f"{seconds:.1f}s"
    else:
        return f"{seconds/60:.1f}m"


def clean_response(text: str) -> str:
    """Clean common LLM artifacts."""
    text = text.strip()
    text = re.sub(r"^Assistant:\s*", "", text, flags=re.IGNORECASE)
    text = re.sub(r"^Response:\s*", "", text, flags=re.IGNORECASE)
    return text.strip()
