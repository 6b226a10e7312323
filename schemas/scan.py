# Scan schemas
from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, Dict, Any
from datetime import datetime, timezone
from enum import Enum
import uuid

from schemas.vulnerability import VulnerabilitySummary

class ScanType(str, Enum):
    SECURITY = 'SECURITY'
    QUALITY = 'QUALITY'
    PERFORMANCE = 'PERFORMANCE'
    DEPENDENCY = 'DEPENDENCY'
    COMPREHENSIVE = 'COMPREHENSIVE'
    CUSTOM = 'CUSTOM'

    @classmethod
    def normalize(cls, value: Any) -> 'ScanType':
        """Unknown or missing types fall back to COMPREHENSIVE"""
        try:
            return cls(str(value or '').upper())
        except ValueError:
            return cls.COMPREHENSIVE

class ScanStatus(str, Enum):
    PENDING = 'PENDING'
    RUNNING = 'RUNNING'
    COMPLETED = 'COMPLETED'
    FAILED = 'FAILED'
    CANCELLED = 'CANCELLED'

    @property
    def is_terminal(self) -> bool:
        return self in (ScanStatus.COMPLETED, ScanStatus.FAILED, ScanStatus.CANCELLED)

class ScanRequest(BaseModel):
    project_id: str = Field(..., min_length=1)
    type: Optional[str] = None
    config: Dict[str, Any] = Field(default_factory=dict)

class Scan(BaseModel):
    model_config = ConfigDict(extra='ignore')
    
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    project_id: str
    type: ScanType = ScanType.COMPREHENSIVE
    status: ScanStatus = ScanStatus.PENDING
    progress: int = Field(default=0, ge=0, le=100)
    message: Optional[str] = None
    error: Optional[str] = None
    config: Dict[str, Any] = Field(default_factory=dict)
    started_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    completed_at: Optional[datetime] = None

class ScanProgress(BaseModel):
    """Payload pushed to a live progress subscriber"""
    scan_id: str
    progress: int
    status: ScanStatus
    current_phase: str

class ScanProjectInfo(BaseModel):
    id: str
    name: str
    status: str

class ScanDetail(BaseModel):
    id: str
    type: ScanType
    status: ScanStatus
    progress: int = 0
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    error: Optional[str] = None
    estimated_completion: Optional[datetime] = None
    project: Optional[ScanProjectInfo] = None

class ScanSnapshot(BaseModel):
    scan: ScanDetail
    vulnerabilities: VulnerabilitySummary
    config: Dict[str, Any] = Field(default_factory=dict)

class ScanListItem(Scan):
    vulnerability_count: int = 0
