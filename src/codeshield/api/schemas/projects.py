from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ProjectCreate(BaseModel):
    path: str = Field(..., min_length=1, description="Directory of an already extracted project")
    name: Optional[str] = None


class FileNodeOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    path: str
    name: str
    type: str
    size: int = 0
    extension: Optional[str] = None
    language: Optional[str] = None
    lines: Optional[int] = None
    children: List["FileNodeOut"] = Field(default_factory=list)


class ProjectOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    file_count: int
    total_lines: int
    languages: List[str]
    size: int
    uploaded_at: datetime


class ProjectDetail(ProjectOut):
    tree: List[FileNodeOut]


class ProjectFile(BaseModel):
    path: str
    content: str


class ProjectDeleted(BaseModel):
    project_id: str
    deleted: bool
