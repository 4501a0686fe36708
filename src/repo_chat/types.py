"""Shared domain models."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class SourceKind(str, Enum):
    """Where repository content comes from."""

    REMOTE_URL = "remote-url"
    ARCHIVE = "archive"
    TEXT = "text"


RULE_BASED = "rule-based"
FALLBACK = "fallback"


@dataclass(slots=True, frozen=True)
class ParsedFile:
    """One text file read from a repository checkout."""

    path: str
    extension: str
    language: str
    content: str
    size_bytes: int


@dataclass(slots=True, frozen=True)
class FileChunk:
    """A contiguous, bounded slice of one file's text."""

    file_path: str
    chunk_index: int
    language: str
    content: str


@dataclass(slots=True, frozen=True)
class RepositoryHandle:
    """Identifies one acquired repository on local disk."""

    repo_id: str
    name: str
    local_path: str
    source: SourceKind


@dataclass(slots=True, frozen=True)
class FileSummary:
    """Generated description of one file."""

    file_path: str
    language: str
    summary: str


@dataclass(slots=True, frozen=True)
class RepoSummary:
    """Generated overview of a repository."""

    repo_id: str
    overview: str
    architecture: str
    file_summaries: list[FileSummary]
    generated_at: str


@dataclass(slots=True, frozen=True)
class StoredRepoEntry:
    """Everything kept in memory for one ingested repository."""

    repo_id: str
    name: str
    chunks: list[FileChunk]
    summary: RepoSummary | None
    stored_at: float


@dataclass(slots=True)
class ScoredChunk:
    """A chunk paired with its keyword relevance for one question."""

    chunk: FileChunk
    score: int


@dataclass(slots=True, frozen=True)
class CascadeResult:
    """Text produced by the model cascade and the model that produced it."""

    text: str
    model: str
    attempts: int = 0


@dataclass(slots=True)
class AssistantAnswer:
    """Answer from the general assistant, not tied to a repository."""

    question: str
    answer: str
    provenance: str
    trace_id: str | None = None


@dataclass(slots=True)
class RepoAnswer:
    """Answer to a question about one stored repository."""

    repo_id: str
    question: str
    answer: str
    chunks_used: int
    provenance: str
    cited_paths: list[str] = field(default_factory=list)
    trace_id: str | None = None


@dataclass(slots=True)
class IngestResult:
    """Outcome of one ingestion run, shaped for the upload endpoints."""

    repo_id: str
    repo_name: str
    source: SourceKind
    file_count: int
    chunk_count: int
    files: list[str]
    overview: str
    architecture: str
