# Vulnerability (finding) schemas
from pydantic import BaseModel, Field, ConfigDict
from typing import Optional
from datetime import datetime, timezone
from enum import Enum
import uuid

class Severity(str, Enum):
    CRITICAL = 'CRITICAL'
    HIGH = 'HIGH'
    MEDIUM = 'MEDIUM'
    LOW = 'LOW'
    INFO = 'INFO'

class Category(str, Enum):
    INJECTION = 'INJECTION'
    AUTHENTICATION = 'AUTHENTICATION'
    AUTHORIZATION = 'AUTHORIZATION'
    CRYPTOGRAPHY = 'CRYPTOGRAPHY'
    CONFIGURATION = 'CONFIGURATION'
    DEPENDENCY = 'DEPENDENCY'
    CODE_QUALITY = 'CODE_QUALITY'
    BUSINESS_LOGIC = 'BUSINESS_LOGIC'
    DATA_VALIDATION = 'DATA_VALIDATION'
    SESSION_MANAGEMENT = 'SESSION_MANAGEMENT'

class VulnerabilityStatus(str, Enum):
    OPEN = 'OPEN'
    IN_PROGRESS = 'IN_PROGRESS'
    RESOLVED = 'RESOLVED'
    WONT_FIX = 'WONT_FIX'
    FALSE_POSITIVE = 'FALSE_POSITIVE'

class Finding(BaseModel):
    """A single issue reported by a detector, before it is tied to a scan"""
    model_config = ConfigDict(frozen=True)
    
    title: str
    description: str
    severity: Severity
    category: Category
    file_path: str
    line: Optional[int] = None
    column: Optional[int] = None
    code: Optional[str] = None
    recommendation: str
    cwe: Optional[str] = None
    cvss: Optional[float] = Field(default=None, ge=0.0, le=10.0)

class Vulnerability(Finding):
    model_config = ConfigDict(extra='ignore', frozen=True)
    
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    scan_id: str
    project_id: str
    user_id: Optional[str] = None
    status: VulnerabilityStatus = VulnerabilityStatus.OPEN
    discovered_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

class VulnerabilitySummary(BaseModel):
    total: int = 0
    critical: int = 0
    high: int = 0
    medium: int = 0
    low: int = 0
    info: int = 0
    open: int = 0
    resolved: int = 0
