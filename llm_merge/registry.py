"""
Model registry for LLM Merge.
"""
from dataclasses import dataclass, field
from typing import Optional, List, Dict, Any, Iterable

from loguru import logger

from .errors import ConfigError, UnknownModelError


@dataclass(frozen=True)
class ModelConfig:
    """
    Connection parameters for a single upstream model.

    ``credential_ref`` is an opaque reference (an environment variable name
    by default) resolved to the actual key only at call time.
    """
    id: str
    endpoint: str
    credential_ref: Optional[str] = None
    provider: str = "openai"
    model: str = ""
    max_tokens: int = 2048
    temperature: float = 0.7

    def __post_init__(self):
        if not self.id:
            raise ConfigError("Model id must not be empty")
        if not self.endpoint:
            raise ConfigError(f"Model {self.id} has no endpoint")
        if not self.model:
            # frozen dataclass
            object.__setattr__(self, "model", self.id)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ModelConfig":
        known = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
        if "id" not in known and "name" in data:
            known["id"] = data["name"]
        try:
            return cls(**known)
        except TypeError as e:
            raise ConfigError(f"Invalid model entry {data!r}: {e}") from e


@dataclass
class ModelRegistry:
    """
    Static, ordered list of configured models.

    Registry order is the deterministic tie-break order used by the weight
    calculator and merge selector.
    """
    models: List[ModelConfig] = field(default_factory=list)

    def __post_init__(self):
        seen = set()
        for model in self.models:
            if model.id in seen:
                raise ConfigError(f"Duplicate model id: {model.id}")
            seen.add(model.id)

    @classmethod
    def from_config(cls, entries: Iterable[Dict[str, Any]]) -> "ModelRegistry":
        """Build a registry from the ``models`` section of the config."""
        models = []
        for entry in entries:
            if not entry.get("enabled", True):
                logger.debug(f"Skipping disabled model: {entry.get('id') or entry.get('name')}")
                continue
            models.append(ModelConfig.from_dict(entry))
        logger.info(f"Model registry loaded with {len(models)} models")
        return cls(models)

    def __len__(self) -> int:
        return len(self.models)

    def __iter__(self):
        return iter(self.models)

    def __contains__(self, model_id: str) -> bool:
        return any(m.id == model_id for m in self.models)

    @property
    def ids(self) -> List[str]:
        return [m.id for m in self.models]

    def get(self, model_id: str) -> Optional[ModelConfig]:
        for model in self.models:
            if model.id == model_id:
                return model
        return None

    def select(self, model_subset: Optional[Iterable[str]] = None) -> List[ModelConfig]:
        """Return the models to query, in registry order."""
        if model_subset is None:
            return list(self.models)
        wanted = {str(m).strip() for m in model_subset if m}
        if not wanted:
            return list(self.models)
        unknown = sorted(wanted - set(self.ids))
        if unknown:
            raise UnknownModelError(unknown)
        return [m for m in self.models if m.id in wanted]
