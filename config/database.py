# Database connection configuration
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from config.settings import get_settings
import logging

logger = logging.getLogger(__name__)
settings = get_settings()

class Database:
    client: AsyncIOMotorClient = None
    db: AsyncIOMotorDatabase = None

    @classmethod
    async def connect_db(cls):
        try:
            cls.client = AsyncIOMotorClient(settings.mongo_url)
            cls.db = cls.client[settings.db_name]
            await create_indexes(cls.db)
            logger.info(f'Connected to MongoDB: {settings.db_name}')
        except Exception as e:
            logger.error(f'Failed to connect to MongoDB: {e}')
            raise

    @classmethod
    async def close_db(cls):
        if cls.client:
            cls.client.close()
            logger.info('Closed MongoDB connection')

    @classmethod
    def get_db(cls) -> AsyncIOMotorDatabase:
        return cls.db

async def create_indexes(db: AsyncIOMotorDatabase):
    """Indexes backing the per-scan lookups of the analysis pipeline"""
    await db.projects.create_index('id', unique=True)
    await db.project_files.create_index([('project_id', 1), ('path', 1)])
    await db.scans.create_index('id', unique=True)
    await db.scans.create_index([('project_id', 1), ('started_at', -1)])
    await db.vulnerabilities.create_index('scan_id')
    await db.vulnerabilities.create_index('project_id')
    await db.reports.create_index('scan_id', unique=True)

async def get_database() -> AsyncIOMotorDatabase:
    return Database.get_db()
