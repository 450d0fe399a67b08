from __future__ import annotations

import fnmatch
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Iterable, List, Optional

from ..config import ScanConfig
from ..constants import UNKNOWN_LANGUAGE, Limits
from ..errors import InvalidPathError
from ..models import generate_id, utcnow
from .file_tree import FileNode, build_file_tree, flatten_files


@dataclass
class Project:
    """An extracted codebase registered for scanning."""

    id: str
    name: str
    path: Path
    tree: List[FileNode]
    file_count: int = 0
    total_lines: int = 0
    languages: List[str] = field(default_factory=list)
    size: int = 0
    uploaded_at: datetime = field(default_factory=utcnow)

    def files(self) -> List[FileNode]:
        return flatten_files(self.tree)


def create_project(
    root: Path,
    name: Optional[str] = None,
    max_file_size_bytes: int = Limits.MAX_FILE_SIZE,
) -> Project:
    root = Path(root).resolve()
    tree = build_file_tree(root, max_file_size_bytes=max_file_size_bytes)
    return project_from_tree(tree, path=root, name=name or root.name)


def project_from_tree(tree: List[FileNode], path: Path, name: str) -> Project:
    files = flatten_files(tree)
    languages = sorted(
        {f.language for f in files if f.language and f.language != UNKNOWN_LANGUAGE}
    )
    return Project(
        id=generate_id(),
        name=name,
        path=Path(path),
        tree=tree,
        file_count=len(files),
        total_lines=sum(f.lines or 0 for f in files),
        languages=languages,
        size=sum(f.size for f in files),
    )


def _matches_exclude(rel_path: str, patterns: Iterable[str]) -> bool:
    for pattern in patterns:
        prefix = pattern.rstrip("/")
        if fnmatch.fnmatch(rel_path, pattern):
            return True
        if prefix and (rel_path == prefix or rel_path.startswith(prefix + "/")):
            return True
    return False


def select_files(files: Iterable[FileNode], config: ScanConfig) -> List[FileNode]:
    """Apply the scan's path exclusions and language allow-list."""
    selected: List[FileNode] = []
    allowed = set(config.languages) if config.languages else None
    for node in files:
        if config.exclude_paths and _matches_exclude(node.path, config.exclude_paths):
            continue
        if allowed is not None and (node.language or "").lower() not in allowed:
            continue
        selected.append(node)
    return selected


def read_project_file(project: Project, rel_path: str) -> str:
    """Read a file inside the project root; paths escaping the root are refused."""
    root = project.path.resolve()
    full_path = (root / rel_path).resolve()
    if full_path != root and root not in full_path.parents:
        raise InvalidPathError(f"Invalid file path: {rel_path}")
    return full_path.read_text(encoding="utf-8", errors="replace")
