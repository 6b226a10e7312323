from config.settings import get_settings
from config.database import Database, get_database

__all__ = ['get_settings', 'Database', 'get_database']
