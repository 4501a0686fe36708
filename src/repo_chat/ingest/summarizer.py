"""Batched per-file summaries plus repository overview and architecture."""

from __future__ import annotations

import logging
import re
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timezone

from repo_chat.agent.cascade import ModelCascade
from repo_chat.config import SummaryConfig
from repo_chat.types import FileChunk, FileSummary, RepoSummary

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class FileGroup:
    """A file's chunks regrouped for summarisation."""

    file_path: str
    language: str
    chunks: list[str] = field(default_factory=list)

    @property
    def char_count(self) -> int:
        return sum(len(chunk) for chunk in self.chunks)


def group_chunks_by_file(chunks: list[FileChunk]) -> list[FileGroup]:
    groups: dict[str, FileGroup] = {}
    for chunk in chunks:
        group = groups.get(chunk.file_path)
        if group is None:
            group = FileGroup(file_path=chunk.file_path, language=chunk.language)
            groups[chunk.file_path] = group
        group.chunks.append(chunk.content)
    return list(groups.values())


def build_batches(
    groups: list[FileGroup], max_files: int, max_chars: int
) -> list[list[FileGroup]]:
    """Pack file groups into batches bounded by file count and total characters.

    A single file larger than `max_chars` still gets a batch of its own.
    """

    batches: list[list[FileGroup]] = []
    current: list[FileGroup] = []
    current_chars = 0
    for group in groups:
        size = group.char_count
        if len(current) >= max_files or (current and current_chars + size > max_chars):
            batches.append(current)
            current = []
            current_chars = 0
        current.append(group)
        current_chars += size
    if current:
        batches.append(current)
    return batches


def build_file_batch_prompt(batch: list[FileGroup]) -> str:
    blocks = "\n\n".join(
        f"### File: {group.file_path} ({group.language})\n"
        f"```{group.language}\n{''.join(group.chunks)}\n```"
        for group in batch
    )
    return (
        "You are a senior software engineer analysing a codebase.\n\n"
        "For EACH file below, produce a concise technical summary (2-4 sentences).\n"
        "Focus on: purpose, key exports/functions, dependencies, and patterns used.\n\n"
        "Return your answer as a numbered list in this exact format "
        "(one entry per file, no extra text):\n"
        "1. **<file path>**: <summary>\n"
        "2. **<file path>**: <summary>\n"
        "...\n\n"
        f"{blocks}"
    )


def parse_batch_response(raw: str, batch: list[FileGroup]) -> list[FileSummary]:
    """Pull `**path**: summary` lines back out of the model reply."""

    summaries: list[FileSummary] = []
    for group in batch:
        pattern = re.compile(rf"\*\*{re.escape(group.file_path)}\*\*:\s*(.+)", re.IGNORECASE)
        match = pattern.search(raw)
        text = match.group(1).strip() if match else ""
        summaries.append(
            FileSummary(
                file_path=group.file_path,
                language=group.language,
                summary=text or f"Source file at {group.file_path}",
            )
        )
    return summaries


def build_overview_prompt(repo_name: str, summaries: list[FileSummary]) -> str:
    listing = "\n".join(
        f"- **{item.file_path}** ({item.language}): {item.summary}" for item in summaries
    )
    return (
        f'You are a senior software architect analysing a repository named "{repo_name}".\n\n'
        f"Below is a list of files and their summaries:\n\n{listing}\n\n"
        "Provide a concise project overview in 3-5 sentences. Cover:\n"
        "- What the project does\n"
        "- The primary language(s) and framework(s)\n"
        "- How the code is organised (major modules/layers)\n\n"
        "Be technical but clear. Do not list individual files."
    )


def build_architecture_prompt(repo_name: str, summaries: list[FileSummary]) -> str:
    listing = "\n".join(
        f"- {item.file_path} ({item.language}): {item.summary}" for item in summaries
    )
    return (
        f'You are a senior software architect analysing the architecture of "{repo_name}".\n\n'
        f"File summaries:\n{listing}\n\n"
        "Produce a concise architecture overview (4-8 sentences) covering:\n"
        "- System layers (frontend, backend, data, infrastructure)\n"
        "- Key design patterns\n"
        "- Data flow between major components\n"
        "- Entry points and external interfaces\n\n"
        "Be specific to this codebase. Do not list every file."
    )


class RepoSummarizer:
    """Produces a `RepoSummary` through the model cascade.

    Batches are summarised concurrently on a small thread pool so no single
    request is oversized. Every call carries its own fallback text, so a dead
    backend yields generic summaries instead of an error.
    """

    def __init__(self, cascade: ModelCascade, config: SummaryConfig | None = None) -> None:
        self.cascade = cascade
        self.config = config or SummaryConfig()

    def summarize(self, repo_id: str, repo_name: str, chunks: list[FileChunk]) -> RepoSummary:
        groups = group_chunks_by_file(chunks)
        batches = build_batches(
            groups, self.config.batch_max_files, self.config.batch_max_chars
        )
        logger.info(
            "Summarising %s: %d files in %d batches", repo_name, len(groups), len(batches)
        )

        with ThreadPoolExecutor(max_workers=self.config.max_workers) as pool:
            per_batch = list(pool.map(self._summarize_batch, batches))
            file_summaries = [item for batch in per_batch for item in batch]

            limited = file_summaries[: self.config.overview_summary_limit]
            overview_future = pool.submit(
                self._generate,
                build_overview_prompt(repo_name, limited),
                f"{repo_name} is a software project with {len(groups)} source files.",
            )
            architecture_future = pool.submit(
                self._generate,
                build_architecture_prompt(repo_name, limited),
                f"The architecture of {repo_name} could not be determined.",
            )
            overview = overview_future.result()
            architecture = architecture_future.result()

        return RepoSummary(
            repo_id=repo_id,
            overview=overview,
            architecture=architecture,
            file_summaries=file_summaries,
            generated_at=datetime.now(timezone.utc).isoformat(),
        )

    def _summarize_batch(self, batch: list[FileGroup]) -> list[FileSummary]:
        fallback = "\n".join(f"**{group.file_path}**: Source file" for group in batch)
        raw = self._generate(build_file_batch_prompt(batch), fallback)
        return parse_batch_response(raw, batch)

    def _generate(self, prompt: str, fallback: str) -> str:
        result = self.cascade.generate(
            prompt,
            fallback,
            temperature=self.config.temperature,
            max_output_tokens=self.config.max_output_tokens,
        )
        return result.text
