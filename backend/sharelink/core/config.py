import os
from typing import List, Optional
from pydantic_settings import BaseSettings
from dotenv import load_dotenv

# Explicitly load .env file before defining Settings
env_path = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), ".env")
load_dotenv(env_path)

class Settings(BaseSettings):
    PROJECT_NAME: str = "ShareLink"
    API_STR: str = "/api"
    HOST: str = "0.0.0.0"
    PORT: int = 5001
    LOG_LEVEL: str = "INFO"

    # Public URL used when building share links. Falls back to the request base URL.
    PUBLIC_BASE_URL: Optional[str] = None

    # Security
    PIN_SECRET: str = "sharelink_salt"

    # Slugs
    SLUG_LENGTH: int = 6
    SLUG_MAX_LENGTH: int = 64

    # Share limits
    MIN_TTL_MINUTES: int = 1
    MAX_TTL_MINUTES: int = 10080  # one week
    MIN_DOWNLOADS: int = 1
    MAX_DOWNLOADS: int = 1000

    # Background cleanup
    CLEANUP_INTERVAL_SECONDS: float = 60.0
    # Time a capped share stays on disk for its last download before the sweeper reclaims it
    DEFERRED_CLEANUP_GRACE_SECONDS: float = 60.0

    # Storage
    UPLOAD_DIR: str = os.path.join(os.getcwd(), "uploads")
    MAX_FILE_SIZE: int = 500 * 1024 * 1024
    MAX_FILES: int = 10
    # Comma separated string in env, parsed to list.
    BLOCKED_EXTENSIONS_STR: str = ".exe,.bat,.cmd,.scr,.pif,.vbs,.js"

    @property
    def BLOCKED_EXTENSIONS(self) -> List[str]:
        raw_str = self.BLOCKED_EXTENSIONS_STR.strip('"\'')
        return [ext.strip().lower() for ext in raw_str.split(",") if ext.strip()]

    # QR codes
    QR_DEFAULT_SIZE: int = 200
    QR_MAX_SIZE: int = 2000

    class Config:
        case_sensitive = True

settings = Settings()
