# Cooperative cancellation for running scans
import logging

from schemas.scan import ScanStatus

logger = logging.getLogger(__name__)


class CancellationToken:
    """Checked at file and phase boundaries; trips once the scan row is CANCELLED or deleted"""

    def __init__(self, db, scan_id: str):
        self.db = db
        self.scan_id = scan_id
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    async def check(self) -> bool:
        if self._cancelled:
            return True
        try:
            scan = await self.db.scans.find_one({'id': self.scan_id}, {'_id': 0, 'status': 1})
        except Exception as e:
            # A failed read does not stop the scan
            logger.error(f'Could not read status of scan {self.scan_id}: {e}')
            return False
        if scan is None or scan.get('status') == ScanStatus.CANCELLED.value:
            logger.info(f'Scan {self.scan_id} was cancelled')
            self._cancelled = True
        return self._cancelled
