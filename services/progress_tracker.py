# Progress tracking for running scans
from datetime import datetime, timezone
from typing import Awaitable, Callable, Dict, Optional, Union
import inspect
import logging

from schemas.scan import ScanProgress, ScanStatus

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[ScanProgress], Union[None, Awaitable[None]]]


class ProgressRegistry:
    """In-process map of scan_id -> progress callback (one subscriber per scan).

    Nothing here survives a restart; clients that lose their subscription
    fall back to polling the persisted scan row.
    """

    def __init__(self):
        self._callbacks: Dict[str, ProgressCallback] = {}

    def register(self, scan_id: str, callback: ProgressCallback):
        if scan_id in self._callbacks:
            logger.info(f'Replacing progress subscriber for scan {scan_id}')
        self._callbacks[scan_id] = callback
        logger.info(f'Progress subscriber registered for scan {scan_id}. Active subscribers: {len(self._callbacks)}')

    def unregister(self, scan_id: str) -> bool:
        if self._callbacks.pop(scan_id, None) is None:
            return False
        logger.info(f'Progress subscriber removed for scan {scan_id}. Active subscribers: {len(self._callbacks)}')
        return True

    def get(self, scan_id: str) -> Optional[ProgressCallback]:
        return self._callbacks.get(scan_id)

    def clear(self):
        self._callbacks.clear()

    def __contains__(self, scan_id: str) -> bool:
        return scan_id in self._callbacks

    def __len__(self) -> int:
        return len(self._callbacks)


class ProgressTracker:
    """Persists Scan.progress/status and pushes each update to the scan's subscriber.

    Best effort: persistence and callback failures are logged, never raised.
    While a scan is RUNNING its progress never moves backwards, and a scan
    that was CANCELLED externally is never overwritten.
    """

    def __init__(self, db, registry: ProgressRegistry):
        self.db = db
        self.registry = registry
        self._last_progress: Dict[str, int] = {}

    def last_progress(self, scan_id: str) -> int:
        return self._last_progress.get(scan_id, 0)

    async def update(self, scan_id: str, progress: int, status: ScanStatus, message: str) -> int:
        progress = min(100, max(0, int(progress)))
        first_running = status == ScanStatus.RUNNING and scan_id not in self._last_progress
        if status == ScanStatus.RUNNING:
            progress = max(progress, self.last_progress(scan_id))
        self._last_progress[scan_id] = progress

        logger.info(f'Scan {scan_id}: {progress}% - {message}')

        fields = {'progress': progress, 'status': status.value, 'message': message}
        now = datetime.now(timezone.utc).isoformat()
        if first_running:
            # started_at marks the first RUNNING write, not row creation
            fields['started_at'] = now
        if status == ScanStatus.COMPLETED:
            fields['completed_at'] = now
        elif status == ScanStatus.FAILED:
            fields['completed_at'] = now
            fields['error'] = message

        try:
            result = await self.db.scans.update_one(
                {'id': scan_id, 'status': {'$ne': ScanStatus.CANCELLED.value}},
                {'$set': fields}
            )
            if result.matched_count == 0:
                logger.info(f'Scan {scan_id} is cancelled or gone, progress not recorded')
                return progress
        except Exception as e:
            logger.error(f'Failed to update scan progress for {scan_id}: {e}')

        await self.notify(scan_id, progress, status, message)
        if status.is_terminal:
            self.forget(scan_id)
        return progress

    async def notify(self, scan_id: str, progress: int, status: ScanStatus, message: str) -> bool:
        callback = self.registry.get(scan_id)
        if callback is None:
            return False
        update = ScanProgress(scan_id=scan_id, progress=progress, status=status, current_phase=message)
        try:
            result = callback(update)
            if inspect.isawaitable(result):
                await result
            return True
        except Exception as e:
            logger.error(f'Progress subscriber for scan {scan_id} failed: {e}')
            return False

    def forget(self, scan_id: str):
        """Drop all in-memory state for a scan that reached a terminal state"""
        self._last_progress.pop(scan_id, None)
        self.registry.unregister(scan_id)
