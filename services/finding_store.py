# Finding store - batched persistence of detector findings
import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

from schemas.vulnerability import Finding, Vulnerability

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 10


@dataclass(frozen=True)
class FindingOwner:
    """Scan/project pair every persisted finding is tied to"""
    scan_id: str
    project_id: str
    user_id: Optional[str] = None


class FindingStore:
    def __init__(self, db, batch_size: int = DEFAULT_BATCH_SIZE):
        if batch_size < 1:
            raise ValueError('batch_size must be at least 1')
        self.db = db
        self.batch_size = batch_size

    def to_vulnerability(self, owner: FindingOwner, finding: Finding) -> Vulnerability:
        return Vulnerability(
            **finding.model_dump(),
            scan_id=owner.scan_id,
            project_id=owner.project_id,
            user_id=owner.user_id
        )

    async def save(self, owner: FindingOwner, findings: Sequence[Finding]) -> int:
        """Insert findings in fixed-size batches, returns how many were stored.

        A failed batch is logged and dropped; later batches are still written.
        """
        saved = 0
        for offset in range(0, len(findings), self.batch_size):
            batch_number = offset // self.batch_size + 1
            docs = [
                self.to_vulnerability(owner, finding).model_dump(mode='json')
                for finding in findings[offset:offset + self.batch_size]
            ]
            try:
                await self.db.vulnerabilities.insert_many(docs)
                saved += len(docs)
                logger.debug(f'Saved vulnerability batch {batch_number} for scan {owner.scan_id}')
            except Exception as e:
                logger.error(f'Error saving vulnerability batch {batch_number} for scan {owner.scan_id}: {e}')
        return saved

    async def list_for_scan(self, scan_id: str) -> List[Vulnerability]:
        docs = await self.db.vulnerabilities.find({'scan_id': scan_id}, {'_id': 0}).to_list(None)
        return [Vulnerability(**doc) for doc in docs]

    async def count_for_scan(self, scan_id: str) -> int:
        return await self.db.vulnerabilities.count_documents({'scan_id': scan_id})

    async def delete_for_scan(self, scan_id: str) -> int:
        result = await self.db.vulnerabilities.delete_many({'scan_id': scan_id})
        return result.deleted_count
