"""Application configuration handling."""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Literal, Mapping

import yaml
from pydantic import BaseModel, Field, field_validator

ENV_PREFIX = "RDR_"
DEFAULT_CONFIG_PATH = Path("~/.config/reader-retrieval/config.yaml")

_YAML_KEY_MAP: Mapping[tuple[str, ...], str] = {
    ("storage", "db_path"): "db_path",
    ("embeddings", "provider"): "embedding_provider",
    ("embeddings", "model"): "embedding_model",
    ("embeddings", "dim"): "embedding_dim",
    ("embeddings", "base_url"): "embedding_base_url",
    ("embeddings", "api_key"): "embedding_api_key",
    ("embeddings", "timeout_seconds"): "embedding_timeout_seconds",
    ("cache", "ttl_seconds"): "cache_ttl_seconds",
    ("cache", "max_size"): "cache_max_size",
    ("retrieval", "top_k"): "top_k",
    ("retrieval", "excerpt_length"): "excerpt_length",
    ("retrieval", "substring_sample_size"): "substring_sample_size",
    ("retrieval", "tier_timeout_seconds"): "tier_timeout_seconds",
    ("search", "vector_threshold"): "vector_threshold",
    ("search", "vector_limit"): "vector_limit",
}


class Settings(BaseModel):
    """Runtime configuration loaded from YAML file and environment variables."""

    db_path: Path = Field(default=Path.home() / ".reader-retrieval" / "corpus.db")
    embedding_provider: Literal["hashed", "http"] = "hashed"
    embedding_model: str = "text-embedding-v3"
    embedding_dim: int = Field(default=384, ge=1)
    embedding_base_url: str = "https://api.openai.com/v1"
    embedding_api_key: str | None = None
    embedding_timeout_seconds: float = Field(default=30.0, gt=0)
    cache_ttl_seconds: float = Field(default=3600.0, gt=0)
    cache_max_size: int = Field(default=1000, ge=1)
    top_k: int = Field(default=5, ge=1)
    excerpt_length: int = Field(default=300, ge=1)
    substring_sample_size: int = Field(default=20, ge=1)
    tier_timeout_seconds: float | None = Field(default=10.0, gt=0)
    vector_threshold: float = 0.7
    vector_limit: int = Field(default=20, ge=1)

    model_config = {
        "validate_assignment": True,
        "extra": "ignore",
    }

    @field_validator("db_path", mode="before")
    @classmethod
    def _expand_db_path(cls, value: Any) -> Path:
        if isinstance(value, Path):
            return value.expanduser()
        if isinstance(value, str):
            return Path(value).expanduser()
        raise TypeError("db_path must be a path or string")

    @classmethod
    def from_yaml(cls, path: Path | None = None) -> "Settings":
        """Load YAML config and overlay env vars; fall back to defaults."""
        config_path = cls._resolve_config_path(path)
        data: dict[str, Any] = {}
        if config_path and config_path.exists():
            with config_path.open("r", encoding="utf-8") as fh:
                raw = yaml.safe_load(fh) or {}
            data.update(_flatten_yaml(raw))
        data.update(_load_env_overrides())
        return cls(**data)

    @staticmethod
    def _resolve_config_path(path: Path | None) -> Path | None:
        if path is not None:
            return path.expanduser()
        env_path = os.environ.get(f"{ENV_PREFIX}CONFIG")
        if env_path:
            return Path(env_path).expanduser()
        resolved_default = DEFAULT_CONFIG_PATH.expanduser()
        return resolved_default if resolved_default.exists() else None


def _flatten_yaml(raw: Mapping[str, Any], prefix: tuple[str, ...] = ()) -> dict[str, Any]:
    """Flatten nested YAML configuration to Settings field names."""
    flat: dict[str, Any] = {}
    for key, value in raw.items():
        next_prefix = prefix + (key,)
        if isinstance(value, Mapping):
            flat.update(_flatten_yaml(value, prefix=next_prefix))
        else:
            mapped_key = _YAML_KEY_MAP.get(next_prefix)
            if mapped_key:
                flat[mapped_key] = value
            elif key in Settings.model_fields:
                flat[key] = value
    return flat


def _load_env_overrides() -> dict[str, Any]:
    """Map environment variables with RDR_ prefix into Settings fields."""
    overrides: dict[str, Any] = {}
    for key, value in os.environ.items():
        if not key.startswith(ENV_PREFIX):
            continue
        field_name = key[len(ENV_PREFIX) :].lower()
        if field_name in Settings.model_fields:
            overrides[field_name] = value
    return overrides


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Cached settings accessor for dependency injection."""
    return Settings.from_yaml()


__all__ = ["Settings", "get_settings"]
