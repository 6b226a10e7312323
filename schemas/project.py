# Project schemas (read-only input of the scan pipeline)
from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, List
from enum import Enum
import uuid

class ProjectStatus(str, Enum):
    PENDING = 'PENDING'
    UPLOADING = 'UPLOADING'
    ANALYZING = 'ANALYZING'
    COMPLETED = 'COMPLETED'
    FAILED = 'FAILED'
    ARCHIVED = 'ARCHIVED'

class Project(BaseModel):
    model_config = ConfigDict(extra='ignore')
    
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    user_id: str
    name: str
    language: List[str] = Field(default_factory=list)
    size: int = 0
    status: ProjectStatus = ProjectStatus.PENDING

class ProjectFile(BaseModel):
    model_config = ConfigDict(extra='ignore', frozen=True)
    
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    project_id: str
    path: str
    filename: str
    language: Optional[str] = None
    size: int = 0
    content: Optional[str] = None
