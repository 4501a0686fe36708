"""Keyword relevance scoring and bounded context selection."""

from __future__ import annotations

import re

from repo_chat.config import RetrievalConfig
from repo_chat.types import FileChunk, ScoredChunk

_TOKEN_SPLIT = re.compile(r"[^a-z0-9_]+")


def tokenize(text: str) -> list[str]:
    """Lowercase alphanumeric words of at least two characters."""
    return [token for token in _TOKEN_SPLIT.split(text.lower()) if len(token) >= 2]


class KeywordRelevanceSelector:
    """Ranks a repository's chunk pool against a question and picks the context.

    Scoring per chunk:
    - each question token adds its content occurrence count, capped so one
      keyword cannot dominate;
    - each token found in the chunk's file path adds `path_weight`, so a
      question naming a file pulls that file forward;
    - the whole trimmed question appearing verbatim in the content adds
      `exact_match_bonus`.

    Ranking is by score descending, then file path ascending. Equal paths
    keep their pool order, which makes selection deterministic.
    """

    def __init__(self, config: RetrievalConfig | None = None) -> None:
        self.config = config or RetrievalConfig()

    def score_chunk(self, chunk: FileChunk, tokens: list[str], question: str) -> int:
        content = chunk.content.lower()
        path = chunk.file_path.lower()

        score = 0
        for token in tokens:
            score += min(content.count(token), self.config.content_match_cap)
            if token in path:
                score += self.config.path_weight

        phrase = question.strip().lower()
        if len(phrase) > 3 and phrase in content:
            score += self.config.exact_match_bonus
        return score

    def score_all(self, chunks: list[FileChunk], question: str) -> list[ScoredChunk]:
        tokens = tokenize(question)
        scored = [
            ScoredChunk(chunk=chunk, score=self.score_chunk(chunk, tokens, question))
            for chunk in chunks
        ]
        return sorted(scored, key=lambda item: (-item.score, item.chunk.file_path))

    def select(self, chunks: list[FileChunk], question: str) -> list[FileChunk]:
        """Return the ranked context, bounded by chunk count and total characters.

        Zero-score chunks are only taken while fewer than `min_chunks` have
        been accepted, so vague questions still get some context.
        """

        selected: list[FileChunk] = []
        total_chars = 0
        for item in self.score_all(chunks, question):
            if len(selected) >= self.config.max_chunks:
                break
            if total_chars + len(item.chunk.content) > self.config.max_chars:
                break
            if item.score == 0 and len(selected) >= self.config.min_chunks:
                break
            selected.append(item.chunk)
            total_chars += len(item.chunk.content)
        return selected
