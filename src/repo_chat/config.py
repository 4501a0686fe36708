"""Configuration models for the repository Q&A system."""

from __future__ import annotations

import tempfile
from pathlib import Path

from pydantic import BaseModel, Field, model_validator


def _default_repos_root() -> Path:
    return Path(tempfile.gettempdir()) / "repos"


class AcquisitionConfig(BaseModel):
    """Configures where repositories land on disk and which host may be cloned."""

    repos_root: Path = Field(default_factory=_default_repos_root)
    allowed_host: str = Field(default="github.com", min_length=1)
    clone_depth: int = Field(default=1, ge=1)


class WalkerConfig(BaseModel):
    """Configures file enumeration and content filtering."""

    max_file_bytes: int = Field(default=500 * 1024, ge=1)
    binary_sniff_bytes: int = Field(default=8192, ge=1)


class ChunkingConfig(BaseModel):
    """Configures boundary-aware line chunking (sizes are in characters)."""

    target_chars: int = Field(default=1200, ge=1)
    max_chars: int = Field(default=1500, ge=1)

    @model_validator(mode="after")
    def _check_bounds(self) -> "ChunkingConfig":
        if self.target_chars > self.max_chars:
            raise ValueError("target_chars must not exceed max_chars")
        return self


class RetrievalConfig(BaseModel):
    """Configures keyword scoring and context selection limits."""

    max_chunks: int = Field(default=30, ge=1)
    max_chars: int = Field(default=60_000, ge=1)
    min_chunks: int = Field(default=5, ge=0)
    content_match_cap: int = Field(default=5, ge=1)
    path_weight: int = Field(default=3, ge=0)
    exact_match_bonus: int = Field(default=10, ge=0)


class StoreConfig(BaseModel):
    """Configures in-memory repository retention."""

    ttl_seconds: float = Field(default=3600.0, gt=0.0)
    max_entries: int = Field(default=50, ge=1)


class CascadeConfig(BaseModel):
    """Configures the ordered model cascade and its retry policy."""

    models: list[str] = Field(
        default_factory=lambda: ["gpt-4o-mini", "gpt-4.1-mini", "gpt-3.5-turbo"],
        min_length=1,
    )
    attempts_per_model: int = Field(default=2, ge=1)
    base_delay_seconds: float = Field(default=1.0, ge=0.0)
    deadline_seconds: float | None = Field(default=None, gt=0.0)


class SummaryConfig(BaseModel):
    """Configures batched per-file summarisation."""

    batch_max_files: int = Field(default=15, ge=1)
    batch_max_chars: int = Field(default=60_000, ge=1)
    overview_summary_limit: int = Field(default=80, ge=1)
    max_workers: int = Field(default=2, ge=1)
    temperature: float = Field(default=0.3, ge=0.0, le=2.0)
    max_output_tokens: int = Field(default=2048, ge=1)
