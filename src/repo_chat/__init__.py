"""Repository question-answering package."""

from .config import ChunkingConfig, RetrievalConfig, StoreConfig

__all__ = ["ChunkingConfig", "RetrievalConfig", "StoreConfig"]
