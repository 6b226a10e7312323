# Backend configuration settings
from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import Optional
import os

class Settings(BaseSettings):
    # MongoDB
    mongo_url: str = os.environ.get('MONGO_URL', 'mongodb://localhost:27017')
    db_name: str = os.environ.get('DB_NAME', 'codeaudit')
    
    # JWT
    secret_key: str = os.environ.get('JWT_SECRET_KEY', 'change-me-in-production-use-at-least-32-chars')
    algorithm: str = os.environ.get('JWT_ALGORITHM', 'HS256')
    access_token_expire_minutes: int = int(os.environ.get('ACCESS_TOKEN_EXPIRE_MINUTES', 10080))  # 7 days
    
    # CORS
    cors_origins: str = os.environ.get('CORS_ORIGINS', '*')
    
    # Scan pipeline
    scan_batch_size: int = 10
    scan_max_file_size: int = 1_000_000  # bytes, larger files are skipped
    scan_long_function_lines: int = 50
    scan_file_delay: float = 0.2  # seconds between files, only so pollers see progress move
    scan_phase_delay: float = 0.5
    scan_large_project_bytes: int = 50_000_000
    scan_dependency_seed: Optional[int] = None
    
    class Config:
        env_file = '.env'
        case_sensitive = False
        extra = 'ignore'  # Allow extra fields from .env

@lru_cache()
def get_settings() -> Settings:
    return Settings()
