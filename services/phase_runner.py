# Phase runner - drives detectors over a project's files and reports progress
import asyncio
import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

from schemas.project import Project, ProjectFile
from schemas.scan import ScanStatus
from schemas.vulnerability import Finding
from services.cancellation import CancellationToken
from services.detectors import FileDetector, FileMeta, ProjectCheck
from services.finding_store import FindingOwner, FindingStore
from services.progress_tracker import ProgressTracker

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PhaseSpan:
    """Slice of the 0-100 scan progress scale owned by one phase"""
    start: int
    end: int

    def __post_init__(self):
        if not 0 <= self.start <= self.end <= 100:
            raise ValueError(f'Invalid phase span {self.start}-{self.end}')

    def at(self, index: int, total: int) -> int:
        if total <= 0:
            return self.start
        return self.start + (index * (self.end - self.start)) // total


INITIALIZING_PROGRESS = 5
SECURITY_SPAN = PhaseSpan(10, 40)
QUALITY_SPAN = PhaseSpan(45, 65)
PERFORMANCE_SPAN = PhaseSpan(65, 80)
DEPENDENCY_SPAN = PhaseSpan(80, 90)
REPORT_SPAN = PhaseSpan(90, 95)
COMPLETE_PROGRESS = 100


@dataclass
class PhaseResult:
    name: str
    found: int = 0
    saved: int = 0
    files_analyzed: int = 0
    cancelled: bool = False


class PhaseRunner:
    def __init__(
        self,
        tracker: ProgressTracker,
        store: FindingStore,
        max_file_size: int = 1_000_000,
        file_delay: float = 0.0,
        phase_delay: float = 0.0
    ):
        self.tracker = tracker
        self.store = store
        self.max_file_size = max_file_size
        self.file_delay = file_delay
        self.phase_delay = phase_delay

    def should_skip(self, file: ProjectFile) -> Optional[str]:
        if not file.content:
            return 'no content'
        size = max(file.size, len(file.content))
        if size > self.max_file_size:
            return f'{size} bytes exceeds limit of {self.max_file_size}'
        return None

    def analyze_file(self, file: ProjectFile, detectors: Sequence[FileDetector]) -> List[Finding]:
        reason = self.should_skip(file)
        if reason:
            logger.info(f'Skipping {file.path}: {reason}')
            return []
        meta = FileMeta.from_file(file)
        findings = []
        for detect in detectors:
            findings.extend(detect(file.content, meta))
        return findings

    async def run_file_phase(
        self,
        owner: FindingOwner,
        name: str,
        span: PhaseSpan,
        files: Sequence[ProjectFile],
        detectors: Sequence[FileDetector],
        token: Optional[CancellationToken] = None
    ) -> PhaseResult:
        """Run every detector over every file in order, then persist the findings in batches.

        A file whose detectors raise counts as zero findings; the loop moves on.
        On cancellation the findings gathered so far are still flushed.
        """
        scan_id = owner.scan_id
        result = PhaseResult(name=name)
        logger.info(f'Starting {name.lower()} analysis for {len(files)} files')
        await self.tracker.update(scan_id, span.start, ScanStatus.RUNNING, f'Running {name.lower()} analysis...')

        findings: List[Finding] = []
        total = len(files)
        for i, file in enumerate(files):
            if token is not None and await token.check():
                result.cancelled = True
                break
            try:
                file_findings = self.analyze_file(file, detectors)
                findings.extend(file_findings)
                logger.info(f'{name} {i + 1}/{total}: {file.filename} - {len(file_findings)} issues')
            except Exception as e:
                logger.error(f'Error in {name.lower()} analysis for {file.filename}: {e}')
            result.files_analyzed += 1

            await self.tracker.update(
                scan_id, span.at(i, total), ScanStatus.RUNNING, f'{name}: {file.filename} ({i + 1}/{total})'
            )
            await asyncio.sleep(self.file_delay)

        result.found = len(findings)
        result.saved = await self.store.save(owner, findings)

        if result.cancelled:
            logger.info(f'{name} analysis stopped by cancellation after {result.files_analyzed} files')
            return result

        await self.tracker.update(
            scan_id, span.end, ScanStatus.RUNNING, f'{name} analysis completed - {result.found} issues found'
        )
        return result

    async def run_project_phase(
        self,
        owner: FindingOwner,
        name: str,
        span: PhaseSpan,
        project: Project,
        files: Sequence[ProjectFile],
        checks: Sequence[ProjectCheck]
    ) -> PhaseResult:
        """Run project-level checks once; they see the whole file list rather than one file"""
        scan_id = owner.scan_id
        result = PhaseResult(name=name)
        await self.tracker.update(scan_id, span.start, ScanStatus.RUNNING, f'Running {name.lower()} analysis...')
        await asyncio.sleep(self.phase_delay)

        findings: List[Finding] = []
        for check in checks:
            findings.extend(check(project, list(files)))

        result.found = len(findings)
        result.saved = await self.store.save(owner, findings)
        await self.tracker.update(
            scan_id, span.end, ScanStatus.RUNNING, f'{name} analysis completed - {result.found} issues found'
        )
        return result
