# Scan service - runs the analysis pipeline for one scan
import logging
import random
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional, Tuple

from config.settings import Settings, get_settings
from schemas.project import Project, ProjectFile, ProjectStatus
from schemas.scan import Scan, ScanStatus
from services.cancellation import CancellationToken
from services.detectors import (
    SECURITY_DETECTORS,
    DependencySampler,
    performance_checks,
    quality_detectors,
)
from services.finding_store import FindingOwner, FindingStore
from services.phase_runner import (
    COMPLETE_PROGRESS,
    DEPENDENCY_SPAN,
    INITIALIZING_PROGRESS,
    PERFORMANCE_SPAN,
    QUALITY_SPAN,
    REPORT_SPAN,
    SECURITY_SPAN,
    PhaseResult,
    PhaseRunner,
)
from services.progress_tracker import ProgressCallback, ProgressRegistry, ProgressTracker
from services.report_service import ReportAggregator

logger = logging.getLogger(__name__)


class ScanOutcome(str, Enum):
    COMPLETED = 'COMPLETED'
    FAILED = 'FAILED'
    CANCELLED = 'CANCELLED'


class AnalysisError(Exception):
    pass


class ScanNotFoundError(AnalysisError):
    def __init__(self, scan_id: str):
        self.scan_id = scan_id
        super().__init__(f'Scan not found: {scan_id}')


class AnalysisEngine:
    """Sequences the analysis phases of a scan and owns its progress subscribers.

    One engine serves the whole process; each start_analysis() call is an
    independent task scoped to a single scan_id.
    """

    def __init__(
        self,
        db,
        settings: Optional[Settings] = None,
        rng: Optional[random.Random] = None,
        registry: Optional[ProgressRegistry] = None
    ):
        settings = settings or get_settings()
        self.db = db
        self.registry = registry if registry is not None else ProgressRegistry()
        self.tracker = ProgressTracker(db, self.registry)
        self.store = FindingStore(db, batch_size=settings.scan_batch_size)
        self.runner = PhaseRunner(
            self.tracker,
            self.store,
            max_file_size=settings.scan_max_file_size,
            file_delay=settings.scan_file_delay,
            phase_delay=settings.scan_phase_delay
        )
        self.reports = ReportAggregator(db, self.store)

        self.security_detectors = list(SECURITY_DETECTORS)
        self.quality_detectors = quality_detectors(settings.scan_long_function_lines)
        self.performance_checks = performance_checks(settings.scan_large_project_bytes)
        if rng is None:
            rng = random.Random(settings.scan_dependency_seed)
        self.dependency_sampler = DependencySampler(rng)

    def on_progress(self, scan_id: str, callback: ProgressCallback):
        self.registry.register(scan_id, callback)

    def off_progress(self, scan_id: str) -> bool:
        return self.registry.unregister(scan_id)

    async def start_analysis(self, scan_id: str) -> ScanOutcome:
        """Entry point for a background task. Never raises."""
        logger.info(f'Starting analysis for scan {scan_id}')
        try:
            outcome = await self._run(scan_id)
            logger.info(f'Analysis for scan {scan_id} finished: {outcome.value}')
            return outcome
        except Exception as e:
            logger.error(f'Analysis failed for scan {scan_id}: {e}')
            await self._record_failure(scan_id, e)
            return ScanOutcome.FAILED
        finally:
            self.tracker.forget(scan_id)

    async def _run(self, scan_id: str) -> ScanOutcome:
        scan, project, files = await self._load(scan_id)
        logger.info(f'Found scan for project {scan.project_id} with {len(files)} files')

        token = CancellationToken(self.db, scan_id)
        if await token.check():
            return await self._cancelled(scan, project)

        if not files:
            logger.info(f'No files found in project {project.id}, marking scan {scan_id} as completed')
            await self.tracker.update(scan_id, COMPLETE_PROGRESS, ScanStatus.COMPLETED, 'No files to analyze')
            await self._set_project_status(project.id, ProjectStatus.COMPLETED)
            return ScanOutcome.COMPLETED

        await self.tracker.update(scan_id, INITIALIZING_PROGRESS, ScanStatus.RUNNING, 'Initializing analysis...')

        owner = FindingOwner(scan_id=scan.id, project_id=scan.project_id, user_id=project.user_id)
        dependency_checks = [] if scan.config.get('include_dependencies') == 'none' else [self.dependency_sampler]
        phases = [
            ('Security', lambda: self.runner.run_file_phase(
                owner, 'Security', SECURITY_SPAN, files, self.security_detectors, token)),
            ('Quality', lambda: self.runner.run_file_phase(
                owner, 'Quality', QUALITY_SPAN, files, self.quality_detectors, token)),
            ('Performance', lambda: self.runner.run_project_phase(
                owner, 'Performance', PERFORMANCE_SPAN, project, files, self.performance_checks)),
            ('Dependency', lambda: self.runner.run_project_phase(
                owner, 'Dependency', DEPENDENCY_SPAN, project, files, dependency_checks)),
        ]

        for name, run_phase in phases:
            if await token.check():
                return await self._cancelled(scan, project)
            try:
                result: PhaseResult = await run_phase()
            except Exception as e:
                logger.error(f'{name} analysis failed: {e}')
                raise
            if result.cancelled:
                return await self._cancelled(scan, project)
            logger.info(f'{name} analysis completed: {result.saved}/{result.found} findings stored')

        if await token.check():
            return await self._cancelled(scan, project)

        await self.tracker.update(scan_id, REPORT_SPAN.start, ScanStatus.RUNNING, 'Generating report...')
        try:
            await self.reports.generate(scan, project.user_id)
        except Exception as e:
            logger.error(f'Report generation failed: {e}')
            raise
        await self.tracker.update(scan_id, REPORT_SPAN.end, ScanStatus.RUNNING, 'Report generated')

        await self.tracker.update(
            scan_id, COMPLETE_PROGRESS, ScanStatus.COMPLETED, 'Analysis completed successfully'
        )
        await self._set_project_status(project.id, ProjectStatus.COMPLETED)
        return ScanOutcome.COMPLETED

    async def _load(self, scan_id: str) -> Tuple[Scan, Project, List[ProjectFile]]:
        scan_doc = await self.db.scans.find_one({'id': scan_id}, {'_id': 0})
        if not scan_doc:
            raise ScanNotFoundError(scan_id)
        scan = Scan(**scan_doc)

        project_doc = await self.db.projects.find_one({'id': scan.project_id}, {'_id': 0})
        if not project_doc:
            raise AnalysisError(f'Project not found: {scan.project_id}')
        project = Project(**project_doc)

        file_docs = await self.db.project_files.find(
            {'project_id': project.id}, {'_id': 0}
        ).sort('path', 1).to_list(None)
        return scan, project, [ProjectFile(**doc) for doc in file_docs]

    async def _cancelled(self, scan: Scan, project: Project) -> ScanOutcome:
        logger.info(f'Scan {scan.id} cancelled, stopping analysis')
        await self.tracker.notify(
            scan.id, self.tracker.last_progress(scan.id), ScanStatus.CANCELLED, 'Cancelled by user'
        )
        try:
            await self._set_project_status(project.id, ProjectStatus.PENDING)
        except Exception as e:
            logger.error(f'Failed to reset project {project.id} after cancellation: {e}')
        return ScanOutcome.CANCELLED

    async def _record_failure(self, scan_id: str, error: Exception):
        """Mark scan and project FAILED; the scan keeps the progress it had reached"""
        try:
            progress = self.tracker.last_progress(scan_id)
            await self.tracker.update(scan_id, progress, ScanStatus.FAILED, f'Analysis failed: {error}')
            scan_doc = await self.db.scans.find_one({'id': scan_id}, {'_id': 0, 'project_id': 1})
            if scan_doc:
                await self._set_project_status(scan_doc['project_id'], ProjectStatus.FAILED)
        except Exception as e:
            logger.error(f'Failed to update scan status: {e}')

    async def _set_project_status(self, project_id: str, status: ProjectStatus):
        await self.db.projects.update_one({'id': project_id}, {'$set': {'status': status.value}})


def estimate_completion(
    status: ScanStatus,
    started_at: Optional[datetime],
    progress: int,
    now: Optional[datetime] = None
) -> Optional[datetime]:
    """Linear extrapolation of the finish time from elapsed time and progress; RUNNING scans only"""
    if status != ScanStatus.RUNNING or started_at is None:
        return None
    now = now or datetime.now(timezone.utc)
    if started_at.tzinfo is None:
        started_at = started_at.replace(tzinfo=timezone.utc)
    elapsed = now - started_at
    total = elapsed / max(progress, 1) * 100
    return now + (total - elapsed)
