"""Repository acquisition: shallow git clones, zip extraction and text snippets."""

from __future__ import annotations

import io
import logging
import shutil
import uuid
import zipfile
from collections.abc import Callable
from pathlib import Path
from urllib.parse import urlparse

from repo_chat.config import AcquisitionConfig
from repo_chat.errors import AcquisitionFailed, CleanupRefused, InvalidSource, PathTraversal
from repo_chat.types import RepositoryHandle, SourceKind

logger = logging.getLogger(__name__)


def is_valid_remote_url(url: str, allowed_host: str = "github.com") -> bool:
    """True for `https://<allowed_host>/<owner>/<repo>[...]` references."""

    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    segments = [part for part in parsed.path.split("/") if part]
    return (
        parsed.scheme == "https"
        and (parsed.hostname or "").lower() == allowed_host.lower()
        and len(segments) >= 2
    )


def repo_name_from_url(url: str) -> str:
    """https://github.com/user/my-repo.git -> "my-repo"."""

    cleaned = url.rstrip("/")
    if cleaned.endswith(".git"):
        cleaned = cleaned[: -len(".git")]
    return cleaned.rstrip("/").rsplit("/", 1)[-1] or "unknown-repo"


def repo_name_from_archive(file_name: str) -> str:
    stem = Path(file_name).name
    if stem.lower().endswith(".zip"):
        stem = stem[: -len(".zip")]
    return stem or "unknown-repo"


def git_clone(url: str, destination: Path, depth: int) -> None:
    """Shallow clone with GitPython."""

    try:
        from git import Repo
    except ImportError as exc:  # git executable missing on this host
        raise AcquisitionFailed(f"git is not available: {exc}") from exc

    Repo.clone_from(url, str(destination), depth=depth)


def guess_text_extension(text: str) -> str:
    """Pick a file extension for a pasted snippet from simple keyword hints."""

    if "function " in text or "const " in text or "import " in text:
        return ".js"
    if "def " in text:
        return ".py"
    if "package " in text or "func " in text:
        return ".go"
    if "class " in text and "public " in text:
        return ".java"
    return ".txt"


class RepoLoader:
    """Places repository content under a dedicated root, one directory per ingestion.

    Acquisition allocates disk space; releasing it via `cleanup` is the
    caller's responsibility once processing is finished.
    """

    def __init__(
        self,
        config: AcquisitionConfig | None = None,
        *,
        clone_fn: Callable[[str, Path, int], None] | None = None,
    ) -> None:
        self.config = config or AcquisitionConfig()
        self._clone_fn = clone_fn or git_clone

    @property
    def repos_root(self) -> Path:
        return self.config.repos_root

    def acquire(
        self,
        source_kind: SourceKind | str,
        payload: str | bytes,
        name: str | None = None,
    ) -> RepositoryHandle:
        try:
            kind = SourceKind(source_kind)
        except ValueError as exc:
            raise InvalidSource(f"Unsupported source kind: {source_kind!r}") from exc

        if kind is SourceKind.REMOTE_URL:
            if not isinstance(payload, str):
                raise InvalidSource("A remote-url source expects a URL string")
            return self.clone(payload, name=name)
        if kind is SourceKind.ARCHIVE:
            if not isinstance(payload, (bytes, bytearray)):
                raise InvalidSource("An archive source expects zip bytes")
            return self.extract_archive(bytes(payload), name or "upload.zip")
        if not isinstance(payload, str):
            raise InvalidSource("A text source expects a string")
        return self.create_text_project(payload, name or "text-upload")

    def clone(self, url: str, *, name: str | None = None) -> RepositoryHandle:
        """Shallow-clone a public repository."""

        if not is_valid_remote_url(url, self.config.allowed_host):
            raise InvalidSource(
                f"Invalid repository URL. Provide an HTTPS {self.config.allowed_host} "
                "URL with owner and repository segments."
            )

        repo_id, local_path = self._allocate(create=False)
        logger.info("Cloning %s into %s", url, local_path)
        try:
            self._clone_fn(url, local_path, self.config.clone_depth)
        except AcquisitionFailed:
            shutil.rmtree(local_path, ignore_errors=True)
            raise
        except Exception as exc:
            shutil.rmtree(local_path, ignore_errors=True)
            raise AcquisitionFailed(f"Failed to clone {url}: {exc}") from exc

        return RepositoryHandle(
            repo_id=repo_id,
            name=name or repo_name_from_url(url),
            local_path=str(local_path),
            source=SourceKind.REMOTE_URL,
        )

    def extract_archive(self, data: bytes, file_name: str) -> RepositoryHandle:
        """Extract zip bytes, rejecting the whole archive if any entry escapes the target.

        Every destination is checked before the first byte is written, so a
        crafted archive leaves nothing behind.
        """

        try:
            archive = zipfile.ZipFile(io.BytesIO(data))
        except zipfile.BadZipFile as exc:
            raise InvalidSource(f"Not a valid zip archive: {file_name}") from exc

        repo_id, local_path = self._allocate(create=True)
        root = local_path.resolve()
        try:
            with archive:
                plan = [(info, _safe_destination(root, info.filename)) for info in archive.infolist()]
                for info, destination in plan:
                    if info.is_dir():
                        destination.mkdir(parents=True, exist_ok=True)
                        continue
                    destination.parent.mkdir(parents=True, exist_ok=True)
                    with archive.open(info) as source, destination.open("wb") as target:
                        shutil.copyfileobj(source, target)
        except PathTraversal as exc:
            logger.warning("Rejected archive %s: %s", file_name, exc)
            shutil.rmtree(local_path, ignore_errors=True)
            raise
        except (OSError, zipfile.BadZipFile, RuntimeError) as exc:
            shutil.rmtree(local_path, ignore_errors=True)
            raise AcquisitionFailed(f"Failed to extract {file_name}: {exc}") from exc

        return RepositoryHandle(
            repo_id=repo_id,
            name=repo_name_from_archive(file_name),
            local_path=str(local_path),
            source=SourceKind.ARCHIVE,
        )

    def create_text_project(self, text: str, name: str) -> RepositoryHandle:
        """Write a pasted snippet as a single-file project."""

        if not text.strip():
            raise InvalidSource("Text source is empty")

        repo_id, local_path = self._allocate(create=True)
        target = local_path / f"main{guess_text_extension(text)}"
        try:
            target.write_text(text, encoding="utf-8")
        except OSError as exc:
            shutil.rmtree(local_path, ignore_errors=True)
            raise AcquisitionFailed(f"Failed to write text project: {exc}") from exc

        return RepositoryHandle(
            repo_id=repo_id,
            name=name or "text-upload",
            local_path=str(local_path),
            source=SourceKind.TEXT,
        )

    def cleanup(self, local_path: str | Path) -> None:
        """Recursively delete an acquired checkout. Safe to call twice."""

        root = self.repos_root.resolve()
        target = Path(local_path).resolve()
        if target == root or not target.is_relative_to(root):
            raise CleanupRefused(f"Refusing to delete path outside {root}: {local_path}")
        if target.exists():
            shutil.rmtree(target)
            logger.debug("Removed %s", target)

    def _allocate(self, *, create: bool) -> tuple[str, Path]:
        try:
            self.repos_root.mkdir(parents=True, exist_ok=True)
            repo_id = str(uuid.uuid4())
            local_path = self.repos_root / repo_id
            if create:
                local_path.mkdir()
        except OSError as exc:
            raise AcquisitionFailed(f"Cannot allocate storage under {self.repos_root}: {exc}") from exc
        return repo_id, local_path


def _safe_destination(root: Path, entry_name: str) -> Path:
    destination = (root / entry_name).resolve()
    if destination != root and not destination.is_relative_to(root):
        raise PathTraversal(entry_name)
    return destination
