"""FastAPI entrypoint for ingest/chat/assistant/trace endpoints."""

from __future__ import annotations

import logging
import os
from dataclasses import asdict
from pathlib import Path
from typing import Any

from fastapi import FastAPI, File, HTTPException, UploadFile
from pydantic import BaseModel, ConfigDict, Field

from repo_chat.agent.answering import AnsweringEngine
from repo_chat.agent.cascade import LangChainChatBackend, ModelCascade
from repo_chat.config import (
    AcquisitionConfig,
    CascadeConfig,
    ChunkingConfig,
    RetrievalConfig,
    StoreConfig,
    SummaryConfig,
    WalkerConfig,
)
from repo_chat.errors import (
    AcquisitionFailed,
    InvalidSource,
    PathTraversal,
    RepoChatError,
    RepositoryNotFound,
)
from repo_chat.ingest.acquire import RepoLoader
from repo_chat.ingest.chunker import BoundaryChunker
from repo_chat.ingest.pipeline import IngestPipeline
from repo_chat.ingest.summarizer import RepoSummarizer
from repo_chat.ingest.walker import FileWalker
from repo_chat.obs.tracing import TraceStore
from repo_chat.retrieval.repo_store import InMemoryRepoStore
from repo_chat.retrieval.selector import KeywordRelevanceSelector
from repo_chat.types import IngestResult, SourceKind

logger = logging.getLogger(__name__)

MAX_QUESTION_CHARS = 2000


def _create_backend() -> LangChainChatBackend | None:
    api_key = os.getenv("OPENAI_API_KEY")
    if not api_key:
        return None
    return LangChainChatBackend(api_key=api_key)


def _cascade_config() -> CascadeConfig:
    raw = os.getenv("REPO_CHAT_MODELS", "")
    models = [name.strip() for name in raw.split(",") if name.strip()]
    return CascadeConfig(models=models) if models else CascadeConfig()


def _acquisition_config() -> AcquisitionConfig:
    overrides: dict[str, Any] = {}
    if root := os.getenv("REPO_CHAT_REPOS_ROOT"):
        overrides["repos_root"] = Path(root)
    if host := os.getenv("REPO_CHAT_ALLOWED_HOST"):
        overrides["allowed_host"] = host
    return AcquisitionConfig(**overrides)


class GithubUploadRequest(BaseModel):
    github_url: str = Field(min_length=1)


class TextUploadRequest(BaseModel):
    text: str = Field(min_length=1)
    name: str | None = None


class ChatRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    repo_id: str = Field(min_length=1)
    question: str = Field(min_length=1, max_length=MAX_QUESTION_CHARS)


class AssistantRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    question: str = Field(default="", max_length=MAX_QUESTION_CHARS)


app = FastAPI(title="Repository Chat", version="0.1.0")

_backend = _create_backend()
_cascade = ModelCascade(_backend, _cascade_config())
_store = InMemoryRepoStore(StoreConfig())
_loader = RepoLoader(_acquisition_config())
_ingest_pipeline = IngestPipeline(
    _loader,
    FileWalker(WalkerConfig()),
    BoundaryChunker(ChunkingConfig()),
    RepoSummarizer(_cascade, SummaryConfig()),
    _store,
)
_trace_store = TraceStore()
_engine = AnsweringEngine(
    store=_store,
    selector=KeywordRelevanceSelector(RetrievalConfig()),
    cascade=_cascade,
    trace_store=_trace_store,
)


def _run_ingest(source: SourceKind, payload: str | bytes, name: str | None = None) -> dict[str, Any]:
    try:
        result: IngestResult = _ingest_pipeline.ingest(source, payload, name=name)
    except (InvalidSource, PathTraversal) as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except AcquisitionFailed as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    except RepoChatError as exc:
        logger.exception("Ingestion failed")
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    return asdict(result)


@app.get("/health")
def health() -> dict[str, Any]:
    return {
        "status": "ok",
        "llm_configured": _backend is not None,
        "models": _cascade.models,
        "stored_repos": len(_store),
    }


@app.post("/upload")
def upload_github(request: GithubUploadRequest) -> dict[str, Any]:
    return _run_ingest(SourceKind.REMOTE_URL, request.github_url.strip())


@app.post("/upload/archive")
def upload_archive(file: UploadFile = File(...)) -> dict[str, Any]:
    file_name = file.filename or "upload.zip"
    if not file_name.lower().endswith(".zip"):
        raise HTTPException(status_code=400, detail="Only .zip files are accepted")
    data = file.file.read()
    return _run_ingest(SourceKind.ARCHIVE, data, name=file_name)


@app.post("/upload/text")
def upload_text(request: TextUploadRequest) -> dict[str, Any]:
    return _run_ingest(SourceKind.TEXT, request.text, name=request.name)


@app.post("/chat")
def chat(request: ChatRequest) -> dict[str, Any]:
    try:
        answer = _engine.answer_for_repo(request.repo_id, request.question)
    except RepositoryNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return asdict(answer)


@app.post("/assistant-chat")
def assistant_chat(request: AssistantRequest) -> dict[str, Any]:
    return asdict(_engine.answer_general(request.question))


@app.get("/repos/{repo_id}/summary")
def repo_summary(repo_id: str) -> dict[str, Any]:
    summary = _store.get_summary(repo_id)
    if summary is None:
        raise HTTPException(status_code=404, detail=str(RepositoryNotFound(repo_id)))
    return asdict(summary)


@app.get("/traces")
def traces(limit: int = 20) -> dict[str, Any]:
    records = [asdict(record) for record in _trace_store.list_recent(limit=limit)]
    return {"items": records}


@app.get("/traces/{trace_id}")
def trace_detail(trace_id: str) -> dict[str, Any]:
    try:
        record = _trace_store.get(trace_id)
    except KeyError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return asdict(record)


@app.get("/metrics")
def metrics() -> dict[str, Any]:
    return _trace_store.summary()
