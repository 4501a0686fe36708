"""Pure predicates deciding which repository files are worth reading."""

from __future__ import annotations

import re
from pathlib import PurePosixPath

# Directories never descended into.
IGNORED_DIRS = frozenset(
    {
        "node_modules",
        ".git",
        "dist",
        "build",
        ".next",
        "__pycache__",
        ".venv",
    }
)

# Matched against the basename.
IGNORED_FILE_PATTERNS = (
    re.compile(r"\.log$", re.IGNORECASE),
    re.compile(r"\.env(\..*)?$", re.IGNORECASE),
)

SUPPORTED_EXTENSIONS = frozenset(
    {
        ".ts", ".tsx", ".js", ".jsx",
        ".py", ".java", ".go", ".rs",
        ".json", ".yaml", ".yml", ".toml",
        ".md", ".txt", ".html", ".css", ".scss",
        ".sh", ".bash",
        ".c", ".cpp", ".h",
        ".rb", ".php", ".swift", ".kt",
        ".sql", ".graphql",
        ".dockerfile",
        ".xml", ".svg",
    }
)

BINARY_EXTENSIONS = frozenset(
    {
        # Images
        ".png", ".jpg", ".jpeg", ".gif", ".bmp", ".ico", ".webp", ".avif",
        # Media
        ".mp3", ".mp4", ".wav", ".ogg", ".webm", ".mov", ".avi",
        # Archives
        ".zip", ".tar", ".gz", ".bz2", ".7z", ".rar",
        # Documents
        ".pdf", ".doc", ".docx", ".xls", ".xlsx", ".ppt", ".pptx",
        # Executables
        ".exe", ".dll", ".so", ".dylib", ".bin",
        # Fonts
        ".woff", ".woff2", ".ttf", ".eot", ".otf",
        # Compiled
        ".pyc", ".class", ".o", ".obj",
        # Lockfiles are text but never worth the context budget.
        ".lock",
    }
)

# Well-known extensionless files and the extension they are read as.
EXTENSIONLESS_NAMES = {
    "readme": ".md",
    "license": ".md",
    "changelog": ".md",
    "dockerfile": ".dockerfile",
}

LANGUAGE_BY_EXTENSION = {
    ".ts": "typescript", ".tsx": "typescript",
    ".js": "javascript", ".jsx": "javascript",
    ".py": "python",
    ".java": "java",
    ".go": "go",
    ".rs": "rust",
    ".json": "json",
    ".yaml": "yaml", ".yml": "yaml",
    ".toml": "toml",
    ".md": "markdown", ".txt": "plaintext",
    ".html": "html",
    ".css": "css", ".scss": "scss",
    ".sh": "shell", ".bash": "shell",
    ".c": "c", ".cpp": "cpp", ".h": "c",
    ".rb": "ruby",
    ".php": "php",
    ".swift": "swift",
    ".kt": "kotlin",
    ".sql": "sql",
    ".graphql": "graphql",
    ".xml": "xml", ".svg": "svg",
    ".dockerfile": "dockerfile",
}


def is_ignored_dir(name: str) -> bool:
    return name in IGNORED_DIRS


def is_ignored_file(name: str) -> bool:
    """Check a basename against the ignored file patterns."""
    return any(pattern.search(name) for pattern in IGNORED_FILE_PATTERNS)


def is_binary_extension(extension: str) -> bool:
    return extension.lower() in BINARY_EXTENSIONS


def is_supported_extension(extension: str) -> bool:
    return extension.lower() in SUPPORTED_EXTENSIONS


def looks_like_binary(raw: bytes, sample_size: int = 8192) -> bool:
    """Return True if a null byte appears in the first `sample_size` bytes.

    The check looks only at content, so a mislabeled binary with a text
    extension is still caught.
    """
    return b"\x00" in raw[:sample_size]


def effective_extension(name: str) -> str:
    """Lowercased extension of a basename, with well-known extensionless names mapped."""
    extension = PurePosixPath(name).suffix.lower()
    if extension:
        return extension
    return EXTENSIONLESS_NAMES.get(name.lower(), "")


def extension_to_language(extension: str) -> str:
    return LANGUAGE_BY_EXTENSION.get(extension.lower(), "plaintext")
