"""Boundary-aware line chunking for source files."""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from repo_chat.config import ChunkingConfig
from repo_chat.types import FileChunk, ParsedFile

# Ordered strongest to weakest; the first match decides the score.
BOUNDARY_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"^(?:export\s+)?(?:abstract\s+)?class\s+"),
    re.compile(r"^(?:export\s+)?(?:default\s+)?(?:async\s+)?function[\s*(]"),
    re.compile(r"^(?:async\s+)?def\s+"),
    re.compile(r"^func\s+"),
    re.compile(r"^(?:pub(?:\([\w:]+\))?\s+)?(?:async\s+)?fn\s+"),
    re.compile(r"^(?:export\s+)?(?:const|let|var)\s+\w+\s*="),
    re.compile(r"^(?:export\s+)?(?:interface|type|enum)\s+"),
    re.compile(r"^#{1,3}\s+"),
    re.compile(r"^\s*$"),
)


def boundary_score(line: str) -> int:
    """Score a line as a split point. Higher is better, 0 means no boundary."""

    stripped = line.lstrip()
    for index, pattern in enumerate(BOUNDARY_PATTERNS):
        if pattern.match(stripped):
            return len(BOUNDARY_PATTERNS) - index
    return 0


@dataclass(slots=True)
class _Buffer:
    lines: list[str] = field(default_factory=list)
    length: int = 0

    def append(self, line: str) -> None:
        self.lines.append(line)
        self.length += len(line)

    def drain(self) -> str:
        text = "".join(self.lines)
        self.lines = []
        self.length = 0
        return text


class BoundaryChunker:
    """Greedy single-pass chunker preferring declaration, heading and blank-line splits.

    Lines keep their terminators, so joining the chunks of a file in index
    order reproduces it exactly. Every chunk is at most `max_chars` long:
    the buffer is flushed before a line that would overflow it, and once the
    buffer reaches `target_chars` it is flushed ahead of any line that scores
    as a boundary. A single line longer than `max_chars` is the only thing
    cut mid-line.
    """

    def __init__(self, config: ChunkingConfig | None = None) -> None:
        self.config = config or ChunkingConfig()

    def chunk_content(self, text: str) -> list[str]:
        max_chars = self.config.max_chars
        if len(text) <= max_chars:
            return [text]

        lines = text.splitlines(keepends=True)
        chunks: list[str] = []
        buffer = _Buffer()

        for i, line in enumerate(lines):
            if buffer.length + len(line) > max_chars and buffer.lines:
                chunks.append(buffer.drain())

            if len(line) > max_chars:
                pieces = [line[j : j + max_chars] for j in range(0, len(line), max_chars)]
                chunks.extend(pieces[:-1])
                line = pieces[-1]

            buffer.append(line)

            if buffer.length >= self.config.target_chars and i + 1 < len(lines):
                if boundary_score(lines[i + 1]) > 0 or buffer.length >= max_chars:
                    chunks.append(buffer.drain())

        if buffer.lines:
            chunks.append(buffer.drain())
        return chunks

    def chunk_file(self, parsed: ParsedFile) -> list[FileChunk]:
        return [
            FileChunk(
                file_path=parsed.path,
                chunk_index=index,
                language=parsed.language,
                content=piece,
            )
            for index, piece in enumerate(self.chunk_content(parsed.content))
        ]

    def chunk_files(self, files: list[ParsedFile]) -> list[FileChunk]:
        """Chunk every file and return one flat pool."""

        pool: list[FileChunk] = []
        for parsed in files:
            pool.extend(self.chunk_file(parsed))
        return pool
