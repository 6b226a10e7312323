from schemas.vulnerability import (
    Severity, Category, VulnerabilityStatus, Finding, Vulnerability, VulnerabilitySummary
)
from schemas.project import Project, ProjectFile, ProjectStatus
from schemas.scan import (
    ScanType, ScanStatus, ScanRequest, Scan, ScanProgress, ScanDetail, ScanSnapshot, ScanListItem
)
from schemas.report import Report, ReportType, ReportStatus, ReportContent

__all__ = [
    'Severity', 'Category', 'VulnerabilityStatus', 'Finding', 'Vulnerability', 'VulnerabilitySummary',
    'Project', 'ProjectFile', 'ProjectStatus',
    'ScanType', 'ScanStatus', 'ScanRequest', 'Scan', 'ScanProgress', 'ScanDetail', 'ScanSnapshot', 'ScanListItem',
    'Report', 'ReportType', 'ReportStatus', 'ReportContent'
]
