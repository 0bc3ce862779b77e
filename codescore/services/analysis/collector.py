"""File collector -- samples source files from a GitHub repository.

Walks the contents API depth-first, keeping files whose extension is a
recognised source extension and whose size is under the byte cap, and
stops once ``max_files`` have been accepted.  The sample therefore
depends on traversal order; pass ``sort_listings=True`` to sort every
listing by path and make it reproducible.
"""

from __future__ import annotations

import logging

from codescore.clients.github_client import get_file_content, get_repository_contents
from codescore.errors import CollectionError, GitHubError

from .models import CodeFile

logger = logging.getLogger(__name__)

MAX_FILES = 100
MAX_FILE_BYTES = 100_000

LANGUAGE_BY_EXTENSION: dict[str, str] = {
    ".js": "javascript",
    ".ts": "typescript",
    ".jsx": "javascript",
    ".tsx": "typescript",
    ".py": "python",
    ".java": "java",
    ".go": "go",
    ".rb": "ruby",
    ".php": "php",
    ".c": "c",
    ".cpp": "cpp",
    ".cs": "csharp",
    ".swift": "swift",
    ".kt": "kotlin",
    ".rs": "rust",
    ".vue": "vue",
    ".sql": "sql",
    ".yaml": "yaml",
    ".yml": "yaml",
}

SUPPORTED_EXTENSIONS = frozenset(LANGUAGE_BY_EXTENSION)

IGNORED_DIRS = frozenset({
    "node_modules", ".git", "dist", "build", "coverage", ".next",
    "vendor", "target", "__pycache__", ".venv", "venv",
})


def file_extension(name: str) -> str:
    """Return the text from the last ``.`` of *name* (``""`` when there is none)."""
    idx = name.rfind(".")
    return name[idx:] if idx >= 0 else ""


def detect_language(extension: str) -> str:
    return LANGUAGE_BY_EXTENSION.get(extension, "text")


def is_collectable(name: str, size: int, max_file_bytes: int = MAX_FILE_BYTES) -> bool:
    """True if a file entry passes the extension allow-set and size cap."""
    return file_extension(name) in SUPPORTED_EXTENSIONS and size < max_file_bytes


async def collect_code_files(
    access_token: str,
    full_name: str,
    branch: str,
    *,
    max_files: int = MAX_FILES,
    max_file_bytes: int = MAX_FILE_BYTES,
    sort_listings: bool = False,
) -> list[CodeFile]:
    """Collect up to *max_files* source files from *full_name* at *branch*.

    Raises :class:`CollectionError` if the repository root cannot be
    listed.  Failures below the root are logged and skipped.
    """
    try:
        root = await get_repository_contents(access_token, full_name, "", branch)
    except GitHubError as exc:
        raise CollectionError(f"Cannot list {full_name}@{branch}: {exc}") from exc

    files: list[CodeFile] = []
    await _traverse(
        access_token, full_name, branch, root, files,
        max_files=max_files,
        max_file_bytes=max_file_bytes,
        sort_listings=sort_listings,
    )
    logger.debug("Collected %d code files from %s@%s", len(files), full_name, branch)
    return files


async def _traverse(
    access_token: str,
    full_name: str,
    branch: str,
    entries: list[dict],
    files: list[CodeFile],
    *,
    max_files: int,
    max_file_bytes: int,
    sort_listings: bool,
) -> None:
    if sort_listings:
        entries = sorted(entries, key=lambda e: e.get("path", ""))

    for item in entries:
        if len(files) >= max_files:
            return

        kind = item.get("type")
        name = item.get("name", "")
        path = item.get("path", name)

        if kind == "dir":
            if name in IGNORED_DIRS:
                continue
            try:
                children = await get_repository_contents(access_token, full_name, path, branch)
            except GitHubError as exc:
                logger.warning("Skipping directory %s: %s", path, exc)
                continue
            await _traverse(
                access_token, full_name, branch, children, files,
                max_files=max_files,
                max_file_bytes=max_file_bytes,
                sort_listings=sort_listings,
            )

        elif kind == "file":
            size = item.get("size", 0)
            if not is_collectable(name, size, max_file_bytes):
                continue
            try:
                content = await get_file_content(access_token, full_name, path, branch)
            except (GitHubError, ValueError) as exc:
                logger.warning("Skipping file %s: %s", path, exc)
                continue
            files.append(CodeFile(
                path=path,
                content=content,
                language=detect_language(file_extension(name)),
                size=size,
            ))
