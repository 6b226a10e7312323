# Report schemas
from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, Dict, Any, List
from datetime import datetime, timezone
from enum import Enum
import uuid

class ReportType(str, Enum):
    SECURITY = 'SECURITY'
    QUALITY = 'QUALITY'
    PERFORMANCE = 'PERFORMANCE'
    COMPREHENSIVE = 'COMPREHENSIVE'
    EXECUTIVE_SUMMARY = 'EXECUTIVE_SUMMARY'

class ReportStatus(str, Enum):
    GENERATING = 'GENERATING'
    COMPLETED = 'COMPLETED'
    FAILED = 'FAILED'
    ARCHIVED = 'ARCHIVED'

class SeverityCounts(BaseModel):
    total_vulnerabilities: int = 0
    critical: int = 0
    high: int = 0
    medium: int = 0
    low: int = 0
    info: int = 0

class ScanDetails(BaseModel):
    scan_id: str
    project_id: str
    scan_type: str
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

class ReportContent(BaseModel):
    summary: SeverityCounts
    categories: Dict[str, int] = Field(default_factory=dict)
    recommendations: List[str] = Field(default_factory=list)
    scan_details: ScanDetails

class Report(BaseModel):
    model_config = ConfigDict(extra='ignore')
    
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    name: str
    type: ReportType
    status: ReportStatus = ReportStatus.COMPLETED
    template: str = 'default'
    content: ReportContent
    scan_id: str
    project_id: str
    user_id: Optional[str] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
