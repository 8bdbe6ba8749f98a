"""
Configuration loading for LLM Merge.
"""
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from loguru import logger

from .errors import ConfigError


@dataclass
class MergeSettings:
    """Tunables of the merge pipeline (the ``merge`` section of config.yaml)."""
    alpha: float = 0.2
    quality_exponent: float = 1.0
    success_exponent: float = 1.0
    call_timeout: float = 30.0
    deadline: Optional[float] = None
    max_retries: int = 3
    retry_delay: float = 1.0
    max_retry_delay: float = 10.0
    strategy: str = "weighted_selection"
    top_k: int = 2
    cache_ttl: float = 3600.0
    cache_max_size: int = 1000
    record_sessions: bool = True

    def __post_init__(self):
        if not 0.0 < self.alpha <= 1.0:
            raise ConfigError(f"alpha must be in (0, 1], got {self.alpha}")
        if self.quality_exponent < 0 or self.success_exponent < 0:
            raise ConfigError("Weight exponents must be non-negative")
        if self.call_timeout <= 0:
            raise ConfigError(f"call_timeout must be positive, got {self.call_timeout}")
        if self.deadline is not None and self.deadline <= 0:
            raise ConfigError(f"deadline must be positive, got {self.deadline}")
        if self.max_retries < 1:
            raise ConfigError(f"max_retries must be at least 1, got {self.max_retries}")
        if self.retry_delay < 0 or self.max_retry_delay < 0:
            raise ConfigError("Retry delays must be non-negative")
        if self.top_k < 1:
            raise ConfigError(f"top_k must be at least 1, got {self.top_k}")
        if self.cache_max_size < 0:
            raise ConfigError("cache_max_size must be non-negative")

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "MergeSettings":
        data = data or {}
        names = {f.name for f in fields(cls)}
        unknown = set(data) - names
        if unknown:
            logger.warning(f"Ignoring unknown merge settings: {sorted(unknown)}")
        return cls(**{k: v for k, v in data.items() if k in names})


@dataclass
class LoggingSettings:
    level: str = "INFO"
    file: Optional[str] = None
    rotation: str = "20 MB"
    retention: str = "14 days"

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "LoggingSettings":
        data = data or {}
        return cls(**{k: v for k, v in data.items() if k in cls.__dataclass_fields__})


@dataclass
class StorageSettings:
    backend: str = "memory"
    path: str = "data/llm_merge.db"

    def __post_init__(self):
        if self.backend not in ("memory", "sqlite"):
            raise ConfigError(f"Unknown storage backend: {self.backend}")

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "StorageSettings":
        data = data or {}
        return cls(**{k: v for k, v in data.items() if k in cls.__dataclass_fields__})


@dataclass
class AppConfig:
    """Parsed config.yaml."""
    merge: MergeSettings = field(default_factory=MergeSettings)
    storage: StorageSettings = field(default_factory=StorageSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)
    models: list = field(default_factory=list)
    base_dir: Optional[Path] = None

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]], base_dir: Optional[Path] = None) -> "AppConfig":
        data = data or {}
        models = data.get("models") or []
        if not isinstance(models, list):
            raise ConfigError("'models' must be a list")
        return cls(
            merge=MergeSettings.from_dict(data.get("merge")),
            storage=StorageSettings.from_dict(data.get("storage")),
            logging=LoggingSettings.from_dict(data.get("logging")),
            models=models,
            base_dir=base_dir,
        )


def load_config(path: Union[str, Path] = "config.yaml") -> AppConfig:
    """Read and validate a YAML config file."""
    config_path = Path(path)
    if not config_path.exists():
        raise ConfigError(f"{config_path} not found")

    with open(config_path, encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {config_path}: {e}") from e

    if data is not None and not isinstance(data, dict):
        raise ConfigError(f"{config_path} must contain a mapping")

    return AppConfig.from_dict(data, base_dir=config_path.resolve().parent)


def resolve_credential(ref: Optional[str], search_dir: Optional[Path] = None) -> Optional[str]:
    """
    Resolve a credential reference to the secret itself.

    The reference names an environment variable; if it is unset, a file of
    the same name in ``search_dir`` is read instead.
    """
    if not ref:
        return None

    value = os.environ.get(ref)
    if value:
        return value.strip()

    if search_dir is not None:
        key_file = Path(search_dir) / ref
        if key_file.is_file():
            return key_file.read_text(encoding="utf-8").strip() or None

    logger.debug(f"Credential {ref} not found in environment or key files")
    return None
