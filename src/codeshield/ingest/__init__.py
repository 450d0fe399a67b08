"""Project file collection."""

from .file_tree import FileNode, build_file_tree, detect_language, flatten_files
from .project import Project, create_project, project_from_tree, read_project_file, select_files

__all__ = [
    "FileNode",
    "Project",
    "build_file_tree",
    "create_project",
    "detect_language",
    "flatten_files",
    "project_from_tree",
    "read_project_file",
    "select_files",
]
