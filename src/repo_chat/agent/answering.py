"""Two-tier question answering: canned rules first, then a grounded model cascade."""

from __future__ import annotations

import logging

from repo_chat.agent.cascade import ModelCascade
from repo_chat.agent.rules import ASSISTANT_NAME, RULES, Rule, match_rule
from repo_chat.errors import RepositoryNotFound
from repo_chat.obs.tracing import Timer, TraceStore, estimate_token_count
from repo_chat.retrieval.repo_store import RepoStore
from repo_chat.retrieval.selector import KeywordRelevanceSelector
from repo_chat.types import RULE_BASED, AssistantAnswer, FileChunk, RepoAnswer

logger = logging.getLogger(__name__)

REPO_FALLBACK_ANSWER = (
    "I'm unable to reach the AI service right now. Please try again in a moment."
)
ASSISTANT_FALLBACK_ANSWER = (
    "I'm having trouble reaching the AI service right now. Try again in a moment, "
    f"or ask me something about how to use {ASSISTANT_NAME}!"
)

_REPO_PREAMBLE = """
You are an expert software engineer helping a developer understand a codebase.

You have access to the following source code excerpts from the repository:
""".strip()

_REPO_INSTRUCTIONS = """
Provide a clear, technically accurate answer based ONLY on the code shown above.
- Reference specific file paths and function/class names when relevant.
- If the code above does not contain enough information to fully answer, say so honestly.
- Use markdown formatting for readability.
- Be concise but thorough.
""".strip()

_ASSISTANT_PREAMBLE = f"""
You are {ASSISTANT_NAME}, the Code Analysis System for Software Intelligence and Navigation.
You always speak in first person ("I", "me", "my").

You help developers:
- Ingest GitHub repositories, zip archives or pasted code
- Get generated summaries and architecture overviews for each file
- Chat with code: ask questions and get answers referencing specific files

Rules:
1) Always speak in first person. Say "I help you..." not "{ASSISTANT_NAME} helps you...".
2) Never mention the underlying model or AI provider.
3) If asked who you are, introduce yourself as {ASSISTANT_NAME}.
""".strip()


def build_repo_prompt(question: str, context: list[FileChunk]) -> str:
    """Embed the selected chunks as fenced blocks ahead of the question."""

    blocks = "\n\n".join(
        f"### {chunk.file_path} (chunk {chunk.chunk_index}, {chunk.language})\n"
        f"```{chunk.language}\n{chunk.content}\n```"
        for chunk in context
    )
    return (
        f"{_REPO_PREAMBLE}\n\n{blocks}\n\n---\n\n"
        f'The developer asks:\n"{question}"\n\n{_REPO_INSTRUCTIONS}'
    )


def build_assistant_prompt(question: str) -> str:
    return (
        f'{_ASSISTANT_PREAMBLE}\n\nThe user asks:\n"{question}"\n\n'
        "Provide a helpful, concise answer. Use markdown formatting. "
        "If the question is unrelated to code, answer as a general-purpose assistant."
    )


class AnsweringEngine:
    """Answers general and repository-scoped questions.

    The rule tier is always consulted before any network call. Only when no
    rule matches does the engine select context and run the model cascade,
    which never raises; a total backend failure becomes a fallback answer.
    The only error surfaced to callers is `RepositoryNotFound`.
    """

    def __init__(
        self,
        *,
        store: RepoStore,
        selector: KeywordRelevanceSelector,
        cascade: ModelCascade,
        trace_store: TraceStore | None = None,
        rules: tuple[Rule, ...] = RULES,
    ) -> None:
        self.store = store
        self.selector = selector
        self.cascade = cascade
        self.trace_store = trace_store or TraceStore()
        self.rules = rules

    def answer_general(self, question: str) -> AssistantAnswer:
        with Timer() as timer:
            matched = match_rule(question, self.rules)
            if matched is not None:
                answer, provenance, attempts, prompt = matched.answer, RULE_BASED, 0, ""
            else:
                prompt = build_assistant_prompt(question.strip())
                result = self.cascade.generate(
                    prompt,
                    ASSISTANT_FALLBACK_ANSWER,
                    temperature=0.5,
                    max_output_tokens=2048,
                )
                answer, provenance, attempts = result.text, result.model, result.attempts

        logger.info("Assistant answer via %s", provenance)
        record = self.trace_store.create_record(
            question=question,
            answer=answer,
            provenance=provenance,
            input_tokens=estimate_token_count(prompt),
            output_tokens=estimate_token_count(answer),
            latency_ms=timer.elapsed_ms,
            model_attempts=attempts,
        )
        return AssistantAnswer(
            question=question,
            answer=answer,
            provenance=provenance,
            trace_id=record.trace_id,
        )

    def answer_for_repo(self, repo_id: str, question: str) -> RepoAnswer:
        """Answer a question about a stored repository.

        Raises:
            RepositoryNotFound: the repository was never ingested or has expired.
        """

        chunks = self.store.get_chunks(repo_id)
        if chunks is None:
            raise RepositoryNotFound(repo_id)

        context: list[FileChunk] = []
        with Timer() as timer:
            matched = match_rule(question, self.rules)
            if matched is not None:
                answer, provenance, attempts, prompt = matched.answer, RULE_BASED, 0, ""
            else:
                context = self.selector.select(chunks, question)
                prompt = build_repo_prompt(question.strip(), context)
                result = self.cascade.generate(
                    prompt,
                    REPO_FALLBACK_ANSWER,
                    temperature=0.4,
                    max_output_tokens=4096,
                )
                answer, provenance, attempts = result.text, result.model, result.attempts

        cited_paths = list(dict.fromkeys(chunk.file_path for chunk in context))
        logger.info(
            "Repo %s answer via %s using %d chunks", repo_id, provenance, len(context)
        )
        record = self.trace_store.create_record(
            question=question,
            answer=answer,
            provenance=provenance,
            repo_id=repo_id,
            chunks_used=len(context),
            cited_paths=cited_paths,
            input_tokens=estimate_token_count(prompt),
            output_tokens=estimate_token_count(answer),
            latency_ms=timer.elapsed_ms,
            model_attempts=attempts,
        )
        return RepoAnswer(
            repo_id=repo_id,
            question=question,
            answer=answer,
            chunks_used=len(context),
            provenance=provenance,
            cited_paths=cited_paths,
            trace_id=record.trace_id,
        )
