"""Error taxonomy for ingestion and question answering."""

from __future__ import annotations


class RepoChatError(Exception):
    """Base class for all domain errors raised by this package."""


class InvalidSource(RepoChatError, ValueError):
    """The repository reference or archive payload is malformed."""


class AcquisitionFailed(RepoChatError):
    """Cloning or extracting a repository failed; the caller may retry."""


class PathTraversal(RepoChatError):
    """An archive entry resolves outside the extraction directory."""

    def __init__(self, entry_name: str) -> None:
        super().__init__(f"Archive entry escapes extraction root: {entry_name!r}")
        self.entry_name = entry_name


class CleanupRefused(RepoChatError):
    """Refusing to delete a path outside the dedicated repositories root."""


class RepositoryNotFound(RepoChatError, KeyError):
    """The repository was never ingested or has been evicted."""

    def __init__(self, repo_id: str) -> None:
        super().__init__(repo_id)
        self.repo_id = repo_id

    def __str__(self) -> str:
        return (
            f"Repository {self.repo_id} not found. "
            "It may have expired. Please re-upload."
        )


class BackendExhausted(RepoChatError):
    """Every model in the cascade failed. Never escapes the cascade."""

    def __init__(self, message: str, attempts: int = 0) -> None:
        super().__init__(message)
        self.attempts = attempts
