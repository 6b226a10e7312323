"""Shared fixtures for the scan pipeline tests."""

import random

import pytest
from mongomock_motor import AsyncMongoMockClient

from config.settings import Settings
from schemas.project import Project, ProjectFile, ProjectStatus
from schemas.scan import Scan, ScanType


class FixedRandom(random.Random):
    """Random source that replays the given draws, repeating the last one."""

    def __init__(self, *draws):
        super().__init__(0)
        self.draws = list(draws) or [0.0]

    def random(self):
        if len(self.draws) > 1:
            return self.draws.pop(0)
        return self.draws[0]


@pytest.fixture
def db():
    return AsyncMongoMockClient()["codeaudit_test"]


@pytest.fixture
def settings():
    return Settings(scan_file_delay=0, scan_phase_delay=0, scan_batch_size=10)


@pytest.fixture
def fixed_random():
    return FixedRandom


@pytest.fixture
def seed(db):
    """Insert a project, its files and a PENDING scan; returns (project, scan)."""

    async def _seed(files=(), user_id="user-1", language=("javascript",), size=0,
                    scan_type=ScanType.COMPREHENSIVE, config=None):
        project = Project(
            user_id=user_id,
            name="demo-app",
            language=list(language),
            size=size,
            status=ProjectStatus.ANALYZING,
        )
        await db.projects.insert_one(project.model_dump(mode="json"))
        for path, content in files:
            project_file = ProjectFile(
                project_id=project.id,
                path=path,
                filename=path.rsplit("/", 1)[-1],
                language="javascript",
                size=len(content or ""),
                content=content,
            )
            await db.project_files.insert_one(project_file.model_dump(mode="json"))
        scan = Scan(project_id=project.id, type=scan_type, config=config or {})
        await db.scans.insert_one(scan.model_dump(mode="json"))
        return project, scan

    return _seed
