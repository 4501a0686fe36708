"""Recursive directory walking and text-file parsing."""

from __future__ import annotations

import logging
import os
from collections.abc import Iterator
from pathlib import Path

from repo_chat.config import WalkerConfig
from repo_chat.ingest.filters import (
    effective_extension,
    extension_to_language,
    is_binary_extension,
    is_ignored_dir,
    is_ignored_file,
    is_supported_extension,
    looks_like_binary,
)
from repo_chat.types import ParsedFile

logger = logging.getLogger(__name__)


class FileWalker:
    """Enumerates and reads the text files of a repository checkout.

    Any unreadable directory or file is skipped rather than failing the whole
    walk; a single bad file must not abort an ingestion.
    """

    def __init__(self, config: WalkerConfig | None = None) -> None:
        self.config = config or WalkerConfig()

    def list_files(self, root: str | Path) -> list[str]:
        """Return relative paths (POSIX separators) of every non-ignored file."""

        root_path = Path(root)
        return [
            path.relative_to(root_path).as_posix()
            for path in self._walk(root_path)
            if not is_ignored_file(path.name)
        ]

    def parse_files(self, root: str | Path) -> list[ParsedFile]:
        """Read every supported text file under `root`.

        Filters, in order: ignored basename, known-binary extension,
        unsupported extension, empty or oversized file, null byte in the
        sniff window. Surviving bytes are decoded as UTF-8 with replacement.
        """

        root_path = Path(root)
        parsed: list[ParsedFile] = []
        for path in self._walk(root_path):
            item = self._parse_one(root_path, path)
            if item is not None:
                parsed.append(item)
        return parsed

    def _parse_one(self, root: Path, path: Path) -> ParsedFile | None:
        name = path.name
        if is_ignored_file(name):
            return None

        extension = effective_extension(name)
        if is_binary_extension(extension):
            return None
        if not is_supported_extension(extension):
            return None

        try:
            size = path.stat().st_size
        except OSError as exc:
            logger.debug("Skipping unstat-able file %s: %s", path, exc)
            return None
        if size == 0 or size > self.config.max_file_bytes:
            return None

        try:
            raw = path.read_bytes()
        except OSError as exc:
            logger.debug("Skipping unreadable file %s: %s", path, exc)
            return None

        if looks_like_binary(raw, self.config.binary_sniff_bytes):
            return None

        return ParsedFile(
            path=path.relative_to(root).as_posix(),
            extension=extension,
            language=extension_to_language(extension),
            content=raw.decode("utf-8", errors="replace"),
            size_bytes=size,
        )

    @staticmethod
    def _walk(root: Path) -> Iterator[Path]:
        def _on_error(exc: OSError) -> None:
            logger.debug("Skipping unreadable directory %s: %s", exc.filename, exc)

        for current, dirnames, filenames in os.walk(root, onerror=_on_error):
            # Prune in place; sorted for stable output.
            dirnames[:] = sorted(name for name in dirnames if not is_ignored_dir(name))
            for filename in sorted(filenames):
                full_path = Path(current) / filename
                if full_path.is_file() and not full_path.is_symlink():
                    yield full_path
