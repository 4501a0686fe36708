import pytest

from repo_chat.agent.answering import (
    ASSISTANT_FALLBACK_ANSWER,
    REPO_FALLBACK_ANSWER,
    AnsweringEngine,
)
from repo_chat.agent.cascade import ModelCascade
from repo_chat.config import CascadeConfig
from repo_chat.errors import RepositoryNotFound
from repo_chat.obs.tracing import TraceStore
from repo_chat.retrieval.repo_store import InMemoryRepoStore
from repo_chat.retrieval.selector import KeywordRelevanceSelector
from repo_chat.types import FALLBACK, RULE_BASED, FileChunk


class RecordingBackend:
    def __init__(self, reply: str = "It parses the input.", error: Exception | None = None) -> None:
        self.reply = reply
        self.error = error
        self.prompts: list[str] = []

    def generate(self, model: str, prompt: str, *, temperature: float, max_output_tokens: int) -> str:
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return self.reply


def _engine(backend: RecordingBackend) -> tuple[AnsweringEngine, TraceStore]:
    store = InMemoryRepoStore()
    store.save(
        "repo-1",
        "demo",
        [
            FileChunk("utils/parse.go", 0, "go", "func Parse(input string) Result {\n}\n"),
            FileChunk("main.go", 0, "go", "func main() {\n\tParse(os.Args[1])\n}\n"),
        ],
        None,
    )
    traces = TraceStore()
    cascade = ModelCascade(backend, CascadeConfig(models=["m1", "m2"]), sleep=lambda _: None)
    engine = AnsweringEngine(
        store=store,
        selector=KeywordRelevanceSelector(),
        cascade=cascade,
        trace_store=traces,
    )
    return engine, traces


def test_canned_question_skips_backend() -> None:
    backend = RecordingBackend()
    engine, traces = _engine(backend)

    answer = engine.answer_for_repo("repo-1", "hello")

    assert answer.provenance == RULE_BASED
    assert answer.chunks_used == 0
    assert backend.prompts == []
    assert traces.get(answer.trace_id).estimated_cost_usd == 0.0


def test_unknown_repository_raises_before_rules() -> None:
    engine, _ = _engine(RecordingBackend())

    with pytest.raises(RepositoryNotFound) as excinfo:
        engine.answer_for_repo("missing", "hello")
    assert "missing" in str(excinfo.value)
    assert "re-upload" in str(excinfo.value)


def test_grounded_answer_cites_selected_files() -> None:
    backend = RecordingBackend()
    engine, traces = _engine(backend)

    answer = engine.answer_for_repo("repo-1", "How does utils/parse.go work?")

    assert answer.answer == "It parses the input."
    assert answer.provenance == "m1"
    assert answer.chunks_used == 2
    assert answer.cited_paths[0] == "utils/parse.go"
    assert "### utils/parse.go (chunk 0, go)" in backend.prompts[0]
    assert "How does utils/parse.go work?" in backend.prompts[0]
    assert traces.get(answer.trace_id).cited_paths == answer.cited_paths


def test_backend_outage_yields_fallback_answer() -> None:
    backend = RecordingBackend(error=RuntimeError("service unavailable"))
    engine, traces = _engine(backend)

    answer = engine.answer_for_repo("repo-1", "What does main do?")

    assert answer.answer == REPO_FALLBACK_ANSWER
    assert answer.provenance == FALLBACK
    assert len(backend.prompts) == 4
    assert traces.get(answer.trace_id).model_attempts == 4


def test_general_assistant_tiers() -> None:
    backend = RecordingBackend(reply="Use a context manager.")
    engine, _ = _engine(backend)

    canned = engine.answer_general("who are you?")
    assert canned.provenance == RULE_BASED
    assert backend.prompts == []

    empty = engine.answer_general("")
    assert empty.provenance == RULE_BASED

    generated = engine.answer_general("How should I close files in Python?")
    assert generated.answer == "Use a context manager."
    assert generated.provenance == "m1"
    assert "CASSIAN" in backend.prompts[0]


def test_general_assistant_fallback() -> None:
    engine, _ = _engine(RecordingBackend(error=RuntimeError("down")))
    answer = engine.answer_general("Explain Python generators")

    assert answer.answer == ASSISTANT_FALLBACK_ANSWER
    assert answer.provenance == FALLBACK
