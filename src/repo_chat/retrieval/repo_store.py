"""Repository store interfaces and the bounded in-memory implementation."""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from typing import Protocol

from repo_chat.config import StoreConfig
from repo_chat.types import FileChunk, RepoSummary, StoredRepoEntry

logger = logging.getLogger(__name__)


class RepoStore(Protocol):
    """Minimal store contract shared by ingestion and question answering."""

    def save(
        self,
        repo_id: str,
        name: str,
        chunks: list[FileChunk],
        summary: RepoSummary | None,
    ) -> None:
        """Insert or overwrite one repository's chunk pool and summary."""

    def get_chunks(self, repo_id: str) -> list[FileChunk] | None:
        """Return the chunk pool, or None when absent or expired."""

    def get_summary(self, repo_id: str) -> RepoSummary | None:
        """Return the summary, or None when absent or expired."""


class InMemoryRepoStore:
    """Process-wide cache of ingested repositories with TTL and capacity eviction.

    Eviction piggybacks on `save`: expired entries are dropped first, then the
    oldest entries until the new one fits under `max_entries`. Reads delete an
    expired entry lazily. One lock serialises access to the map; entries are
    never mutated, only replaced or removed.
    """

    def __init__(
        self,
        config: StoreConfig | None = None,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.config = config or StoreConfig()
        self._clock = clock
        self._entries: dict[str, StoredRepoEntry] = {}
        self._lock = threading.Lock()

    def save(
        self,
        repo_id: str,
        name: str,
        chunks: list[FileChunk],
        summary: RepoSummary | None,
    ) -> None:
        with self._lock:
            self._evict_locked(incoming=repo_id)
            self._entries[repo_id] = StoredRepoEntry(
                repo_id=repo_id,
                name=name,
                chunks=list(chunks),
                summary=summary,
                stored_at=self._clock(),
            )

    def get_entry(self, repo_id: str) -> StoredRepoEntry | None:
        with self._lock:
            entry = self._entries.get(repo_id)
            if entry is None:
                return None
            if self._is_expired(entry, self._clock()):
                del self._entries[repo_id]
                logger.debug("Expired repository %s on read", repo_id)
                return None
            return entry

    def get_chunks(self, repo_id: str) -> list[FileChunk] | None:
        entry = self.get_entry(repo_id)
        return entry.chunks if entry is not None else None

    def get_summary(self, repo_id: str) -> RepoSummary | None:
        entry = self.get_entry(repo_id)
        return entry.summary if entry is not None else None

    def has_repo(self, repo_id: str) -> bool:
        return self.get_entry(repo_id) is not None

    def evict(self) -> list[str]:
        """Run an eviction pass now and return the removed ids."""
        with self._lock:
            return self._evict_locked()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def _evict_locked(self, incoming: str | None = None) -> list[str]:
        now = self._clock()
        removed = [
            repo_id
            for repo_id, entry in self._entries.items()
            if self._is_expired(entry, now)
        ]
        for repo_id in removed:
            del self._entries[repo_id]

        limit = self.config.max_entries
        if incoming is not None and incoming not in self._entries:
            limit -= 1
        overflow = len(self._entries) - limit
        if overflow > 0:
            oldest = sorted(self._entries.values(), key=lambda entry: entry.stored_at)
            for entry in oldest[:overflow]:
                del self._entries[entry.repo_id]
                removed.append(entry.repo_id)

        if removed:
            logger.info("Evicted %d repositories from store", len(removed))
        return removed

    def _is_expired(self, entry: StoredRepoEntry, now: float) -> bool:
        return now - entry.stored_at > self.config.ttl_seconds
