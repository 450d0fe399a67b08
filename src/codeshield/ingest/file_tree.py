from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Callable, List, Literal, Optional

from ..constants import UNKNOWN_LANGUAGE, Limits

logger = logging.getLogger(__name__)

NodeType = Literal["file", "directory"]

LANGUAGES = {
    ".js": "javascript",
    ".jsx": "javascript",
    ".mjs": "javascript",
    ".cjs": "javascript",
    ".ts": "typescript",
    ".tsx": "typescript",
    ".py": "python",
    ".java": "java",
    ".go": "go",
    ".rs": "rust",
    ".c": "c",
    ".h": "c",
    ".cpp": "cpp",
    ".hpp": "cpp",
    ".rb": "ruby",
    ".php": "php",
    ".html": "html",
    ".css": "css",
    ".json": "json",
    ".md": "markdown",
    ".sql": "sql",
    ".sh": "shell",
    ".bash": "shell",
    ".yaml": "yaml",
    ".yml": "yaml",
}

IGNORED_DIRS = {
    "node_modules",
    ".git",
    ".next",
    "dist",
    "build",
    "coverage",
    ".vscode",
    ".idea",
    "__pycache__",
    "venv",
    ".env",
}

IGNORED_EXTENSIONS = {
    ".png", ".jpg", ".jpeg", ".gif", ".svg", ".ico",
    ".mp4", ".mov", ".avi",
    ".pdf", ".doc", ".docx",
    ".zip", ".tar", ".gz",
    ".exe", ".dll", ".so", ".dylib",
    ".class", ".pyc",
}


def detect_language(path: str) -> str:
    suffix = PurePosixPath(path.replace("\\", "/")).suffix.lower()
    return LANGUAGES.get(suffix, UNKNOWN_LANGUAGE)


@dataclass
class FileNode:
    """A file or directory in a project's collection.

    File content is loaded on demand through ``read_text`` and is never kept
    on the node by the scan pipeline.
    """

    path: str
    name: str
    type: NodeType
    size: int = 0
    extension: Optional[str] = None
    language: Optional[str] = None
    lines: Optional[int] = None
    content: Optional[str] = None
    children: List["FileNode"] = field(default_factory=list)
    loader: Optional[Callable[[], str]] = field(default=None, repr=False, compare=False)

    @property
    def is_file(self) -> bool:
        return self.type == "file"

    def read_text(self) -> str:
        if self.content is not None:
            return self.content
        if self.loader is None:
            raise FileNotFoundError(f"No content source for {self.path}")
        return self.loader()

    @classmethod
    def from_content(cls, path: str, content: str, language: Optional[str] = None) -> "FileNode":
        """Build an in-memory file node (used by callers that already hold the text)."""
        norm = path.replace("\\", "/")
        suffix = PurePosixPath(norm).suffix
        return cls(
            path=norm,
            name=PurePosixPath(norm).name,
            type="file",
            size=len(content.encode("utf-8")),
            extension=suffix.lstrip(".") or None,
            language=language or detect_language(norm),
            lines=count_lines(content),
            content=content,
        )


def count_lines(text: str) -> int:
    if not text:
        return 0
    return text.count("\n") + (0 if text.endswith("\n") else 1)


def _disk_loader(full_path: Path, max_bytes: int) -> Callable[[], str]:
    def load() -> str:
        with full_path.open("rb") as handle:
            data = handle.read(max_bytes + 1)
        if len(data) > max_bytes:
            raise ValueError(f"File too large: {full_path} (> {max_bytes} bytes)")
        return data.decode("utf-8", errors="replace")

    return load


def build_file_tree(root: Path, max_file_size_bytes: int = Limits.MAX_FILE_SIZE) -> List[FileNode]:
    """Walk an extracted project directory into a tree of FileNodes."""
    root = Path(root).resolve()
    if not root.is_dir():
        raise NotADirectoryError(f"Root path must be a directory: {root}")
    return _traverse(root, root, max_file_size_bytes)


def _traverse(current: Path, root: Path, max_bytes: int) -> List[FileNode]:
    nodes: List[FileNode] = []
    try:
        entries = sorted(os.scandir(current), key=lambda e: e.name)
    except OSError as exc:
        logger.warning("Failed to list %s: %s", current, exc)
        return nodes

    for entry in entries:
        full_path = Path(entry.path)
        rel_path = full_path.relative_to(root).as_posix()
        try:
            if entry.is_dir(follow_symlinks=False):
                if entry.name in IGNORED_DIRS:
                    continue
                nodes.append(
                    FileNode(
                        path=rel_path,
                        name=entry.name,
                        type="directory",
                        children=_traverse(full_path, root, max_bytes),
                    )
                )
            elif entry.is_file(follow_symlinks=False):
                suffix = full_path.suffix.lower()
                if suffix in IGNORED_EXTENSIONS:
                    continue
                size = entry.stat().st_size
                if size > max_bytes:
                    logger.info("Skipping oversized file %s (%d bytes)", rel_path, size)
                    continue
                nodes.append(
                    FileNode(
                        path=rel_path,
                        name=entry.name,
                        type="file",
                        size=size,
                        extension=suffix.lstrip(".") or None,
                        language=detect_language(rel_path),
                        lines=_count_file_lines(full_path),
                        loader=_disk_loader(full_path, max_bytes),
                    )
                )
        except OSError as exc:
            logger.warning("Failed to stat %s: %s", full_path, exc)
    return nodes


def _count_file_lines(path: Path) -> Optional[int]:
    try:
        data = path.read_bytes()
    except OSError:
        return None
    if not data:
        return 0
    return data.count(b"\n") + (0 if data.endswith(b"\n") else 1)


def flatten_files(nodes: List[FileNode]) -> List[FileNode]:
    """File nodes of a tree, depth first in tree order."""
    files: List[FileNode] = []
    for node in nodes:
        if node.is_file:
            files.append(node)
        elif node.children:
            files.extend(flatten_files(node.children))
    return files
