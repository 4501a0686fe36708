"""End-to-end ingest pipeline: acquire -> walk -> chunk -> summarise -> store."""

from __future__ import annotations

import logging

from repo_chat.errors import RepoChatError
from repo_chat.ingest.acquire import RepoLoader
from repo_chat.ingest.chunker import BoundaryChunker
from repo_chat.ingest.summarizer import RepoSummarizer
from repo_chat.ingest.walker import FileWalker
from repo_chat.retrieval.repo_store import RepoStore
from repo_chat.types import IngestResult, RepositoryHandle, SourceKind

logger = logging.getLogger(__name__)


class IngestPipeline:
    """Coordinates acquisition, parsing, chunking, summarisation and storage.

    The local checkout only lives for the duration of one `ingest` call; it
    is removed on every exit path once acquisition has succeeded, while the
    derived chunks stay in the store.
    """

    def __init__(
        self,
        loader: RepoLoader,
        walker: FileWalker,
        chunker: BoundaryChunker,
        summarizer: RepoSummarizer,
        store: RepoStore,
    ) -> None:
        self._loader = loader
        self._walker = walker
        self._chunker = chunker
        self._summarizer = summarizer
        self._store = store

    def ingest(
        self,
        source_kind: SourceKind | str,
        payload: str | bytes,
        *,
        name: str | None = None,
    ) -> IngestResult:
        handle = self._loader.acquire(source_kind, payload, name)
        try:
            return self._process(handle)
        finally:
            self._release(handle)

    def _process(self, handle: RepositoryHandle) -> IngestResult:
        files = self._walker.list_files(handle.local_path)
        parsed = self._walker.parse_files(handle.local_path)
        chunks = self._chunker.chunk_files(parsed)
        logger.info(
            "Ingested %s (%s): %d files listed, %d parsed, %d chunks",
            handle.name,
            handle.repo_id,
            len(files),
            len(parsed),
            len(chunks),
        )

        summary = self._summarizer.summarize(handle.repo_id, handle.name, chunks)
        self._store.save(handle.repo_id, handle.name, chunks, summary)

        return IngestResult(
            repo_id=handle.repo_id,
            repo_name=handle.name,
            source=handle.source,
            file_count=len(files),
            chunk_count=len(chunks),
            files=files,
            overview=summary.overview,
            architecture=summary.architecture,
        )

    def _release(self, handle: RepositoryHandle) -> None:
        try:
            self._loader.cleanup(handle.local_path)
        except (RepoChatError, OSError) as exc:
            logger.error("Failed to clean up %s: %s", handle.local_path, exc)
