# Report aggregation - summarizes the persisted findings of a scan
import logging
from collections import Counter
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Mapping, Optional

from schemas.report import Report, ReportContent, ReportStatus, ReportType, ScanDetails, SeverityCounts
from schemas.scan import Scan, ScanType
from schemas.vulnerability import Severity, Vulnerability, VulnerabilityStatus, VulnerabilitySummary
from services.finding_store import FindingStore

logger = logging.getLogger(__name__)


def _value(field) -> str:
    return getattr(field, 'value', field)


def count_severities(vulnerabilities: Iterable[Vulnerability]) -> SeverityCounts:
    counts = Counter(_value(v.severity) for v in vulnerabilities)
    return SeverityCounts(
        total_vulnerabilities=sum(counts.values()),
        critical=counts[Severity.CRITICAL.value],
        high=counts[Severity.HIGH.value],
        medium=counts[Severity.MEDIUM.value],
        low=counts[Severity.LOW.value],
        info=counts[Severity.INFO.value]
    )


def group_by_category(vulnerabilities: Iterable[Vulnerability]) -> Dict[str, int]:
    return dict(Counter(_value(v.category) for v in vulnerabilities))


def collect_recommendations(vulnerabilities: Iterable[Vulnerability]) -> List[str]:
    return list(dict.fromkeys(v.recommendation for v in vulnerabilities if v.recommendation))


def summarize_vulnerabilities(docs: Iterable[Mapping]) -> VulnerabilitySummary:
    """Severity and status counts for the scan snapshot; accepts raw documents"""
    docs = list(docs)
    severities = Counter(doc.get('severity') for doc in docs)
    statuses = Counter(doc.get('status') for doc in docs)
    return VulnerabilitySummary(
        total=len(docs),
        critical=severities[Severity.CRITICAL.value],
        high=severities[Severity.HIGH.value],
        medium=severities[Severity.MEDIUM.value],
        low=severities[Severity.LOW.value],
        info=severities[Severity.INFO.value],
        open=statuses[VulnerabilityStatus.OPEN.value],
        resolved=statuses[VulnerabilityStatus.RESOLVED.value]
    )


def report_type_for(scan_type: ScanType) -> ReportType:
    """Scan types that are also report types keep their name; DEPENDENCY and CUSTOM scans get SECURITY reports"""
    try:
        return ReportType(_value(scan_type))
    except ValueError:
        return ReportType.SECURITY


class ReportAggregator:
    """Builds the single report of a scan from its persisted findings.

    Never re-runs detectors. If the scan already has a report it is returned
    as is, so calling generate() again is harmless.
    """

    def __init__(self, db, store: FindingStore):
        self.db = db
        self.store = store

    async def get_for_scan(self, scan_id: str) -> Optional[Report]:
        doc = await self.db.reports.find_one({'scan_id': scan_id}, {'_id': 0})
        return Report(**doc) if doc else None

    async def generate(self, scan: Scan, user_id: Optional[str] = None) -> Report:
        existing = await self.get_for_scan(scan.id)
        if existing:
            logger.info(f'Report for scan {scan.id} already exists, reusing {existing.id}')
            return existing

        vulnerabilities = await self.store.list_for_scan(scan.id)
        scan_type = _value(scan.type)
        content = ReportContent(
            summary=count_severities(vulnerabilities),
            categories=group_by_category(vulnerabilities),
            recommendations=collect_recommendations(vulnerabilities),
            scan_details=ScanDetails(
                scan_id=scan.id,
                project_id=scan.project_id,
                scan_type=scan_type,
                started_at=scan.started_at,
                completed_at=datetime.now(timezone.utc)
            )
        )
        report = Report(
            name=f'{scan_type} Analysis Report',
            type=report_type_for(scan.type),
            status=ReportStatus.COMPLETED,
            content=content,
            scan_id=scan.id,
            project_id=scan.project_id,
            user_id=user_id
        )
        await self.db.reports.insert_one(report.model_dump(mode='json'))
        logger.info(f'Report {report.id} generated for scan {scan.id} with {len(vulnerabilities)} findings')
        return report
