# Scan routes
from fastapi import APIRouter, Depends, HTTPException, status, BackgroundTasks, Request
from typing import List, Optional, Tuple
import logging
from datetime import datetime, timezone
from config.database import get_database
from middleware.auth import get_current_user
from utils.jwt import TokenData
from schemas.project import ProjectStatus
from schemas.report import Report
from schemas.scan import (
    Scan, ScanDetail, ScanListItem, ScanProjectInfo, ScanRequest, ScanSnapshot, ScanStatus, ScanType
)
from services.finding_store import FindingStore
from services.report_service import summarize_vulnerabilities
from services.scan_service import AnalysisEngine, estimate_completion

router = APIRouter(prefix='/scans', tags=['Scans'])
logger = logging.getLogger(__name__)

RECENT_SCANS_LIMIT = 20


def get_analysis_engine(request: Request) -> AnalysisEngine:
    return request.app.state.analysis_engine


def get_finding_store(db = Depends(get_database)) -> FindingStore:
    return FindingStore(db)


async def get_owned_scan(db, scan_id: str, user_id: str) -> Tuple[dict, dict]:
    """Scan and project documents, 404 unless the scan's project belongs to the user"""
    scan = await db.scans.find_one({'id': scan_id}, {'_id': 0})
    if scan:
        project = await db.projects.find_one({'id': scan['project_id'], 'user_id': user_id}, {'_id': 0})
        if project:
            return scan, project
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Scan not found')


@router.post('', response_model=Scan, status_code=status.HTTP_201_CREATED)
async def create_scan(
    scan_request: ScanRequest,
    background_tasks: BackgroundTasks,
    current_user: TokenData = Depends(get_current_user),
    db = Depends(get_database),
    engine: AnalysisEngine = Depends(get_analysis_engine)
):
    """Create a PENDING scan for a project and start the analysis in the background"""
    project = await db.projects.find_one({
        'id': scan_request.project_id,
        'user_id': current_user.user_id
    })
    if not project:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Project not found or access denied')

    scan = Scan(
        project_id=scan_request.project_id,
        type=ScanType.normalize(scan_request.type),
        status=ScanStatus.PENDING,
        config=scan_request.config
    )
    await db.scans.insert_one(scan.model_dump(mode='json'))
    logger.info(f'Created scan {scan.id} for project {scan.project_id}')

    await db.projects.update_one(
        {'id': scan.project_id},
        {'$set': {'status': ProjectStatus.ANALYZING.value}}
    )

    background_tasks.add_task(engine.start_analysis, scan.id)
    return scan


@router.get('', response_model=List[ScanListItem])
async def list_scans(
    project_id: Optional[str] = None,
    current_user: TokenData = Depends(get_current_user),
    db = Depends(get_database),
    store: FindingStore = Depends(get_finding_store)
):
    """Most recent scans of the current user, optionally for one project"""
    projects = await db.projects.find({'user_id': current_user.user_id}, {'_id': 0, 'id': 1}).to_list(None)
    project_ids = [p['id'] for p in projects]
    if project_id is not None:
        project_ids = [pid for pid in project_ids if pid == project_id]

    scans = await db.scans.find(
        {'project_id': {'$in': project_ids}},
        {'_id': 0}
    ).sort('started_at', -1).limit(RECENT_SCANS_LIMIT).to_list(RECENT_SCANS_LIMIT)

    items = []
    for scan in scans:
        count = await store.count_for_scan(scan['id'])
        items.append(ScanListItem(**scan, vulnerability_count=count))
    return items


@router.get('/{scan_id}', response_model=ScanSnapshot)
async def get_scan_status(
    scan_id: str,
    current_user: TokenData = Depends(get_current_user),
    db = Depends(get_database)
):
    """Progress snapshot of a scan for polling clients"""
    scan_doc, project = await get_owned_scan(db, scan_id, current_user.user_id)
    scan = Scan(**scan_doc)

    vulnerabilities = await db.vulnerabilities.find(
        {'scan_id': scan_id},
        {'_id': 0, 'severity': 1, 'status': 1}
    ).to_list(None)

    detail = ScanDetail(
        id=scan.id,
        type=scan.type,
        status=scan.status,
        progress=scan.progress,
        started_at=scan.started_at,
        completed_at=scan.completed_at,
        error=scan.error,
        estimated_completion=estimate_completion(scan.status, scan.started_at, scan.progress),
        project=ScanProjectInfo(id=project['id'], name=project['name'], status=project.get('status', ''))
    )
    return ScanSnapshot(
        scan=detail,
        vulnerabilities=summarize_vulnerabilities(vulnerabilities),
        config=scan.config
    )


@router.get('/{scan_id}/report', response_model=Report)
async def get_scan_report(
    scan_id: str,
    current_user: TokenData = Depends(get_current_user),
    db = Depends(get_database)
):
    """Report generated at the end of a completed scan"""
    await get_owned_scan(db, scan_id, current_user.user_id)
    report = await db.reports.find_one({'scan_id': scan_id}, {'_id': 0})
    if not report:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Report not found')
    return Report(**report)


@router.delete('/{scan_id}', status_code=status.HTTP_204_NO_CONTENT)
async def cancel_or_delete_scan(
    scan_id: str,
    current_user: TokenData = Depends(get_current_user),
    db = Depends(get_database),
    store: FindingStore = Depends(get_finding_store)
):
    """Cancel a pending/running scan, or delete a finished one with its findings"""
    scan, _ = await get_owned_scan(db, scan_id, current_user.user_id)

    if scan['status'] in (ScanStatus.RUNNING.value, ScanStatus.PENDING.value):
        await db.scans.update_one(
            {'id': scan_id},
            {'$set': {
                'status': ScanStatus.CANCELLED.value,
                'completed_at': datetime.now(timezone.utc).isoformat(),
                'error': 'Cancelled by user'
            }}
        )
        logger.info(f'Scan {scan_id} cancelled by user {current_user.user_id}')
    else:
        await store.delete_for_scan(scan_id)
        await db.reports.delete_many({'scan_id': scan_id})
        await db.scans.delete_one({'id': scan_id})
        logger.info(f'Scan {scan_id} deleted by user {current_user.user_id}')
