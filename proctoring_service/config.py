"""
Proctoring Service Configuration Settings

All timings used by the sensor loop, the event batching pipeline and the
finalize step can be overridden from the environment or a .env file.
"""
import os
from pydantic_settings import BaseSettings
from typing import Optional


def get_db_url() -> str:
    """Build a PostgreSQL URL from POSTGRES_* environment variables"""
    host = os.getenv("POSTGRES_HOST", "localhost")
    port = os.getenv("POSTGRES_PORT", "5432")
    db = os.getenv("POSTGRES_DB", "interview_proctoring")
    user = os.getenv("POSTGRES_USER", "postgres")
    password = os.getenv("POSTGRES_PASSWORD", "postgres")
    return f"postgresql://{user}:{password}@{host}:{port}/{db}"


class Settings(BaseSettings):
    """Configuration for the proctoring service."""

    # API Settings
    APP_NAME: str = "Interview Proctoring Service"
    DEBUG: bool = True
    PORT: int = 8002

    # Database (falls back to POSTGRES_* variables when unset)
    DATABASE_URL: Optional[str] = None

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_TO_FILE: bool = False
    LOG_DIR: str = "logs"

    # Sensor loop
    PROCTOR_DETECTION_INTERVAL_MS: int = 200
    PROCTOR_MAX_FACES: int = 3
    PROCTOR_NO_FACE_GRACE_SECONDS: float = 2.0
    PROCTOR_EVENT_COOLDOWN_SECONDS: float = 3.0
    PROCTOR_SNAPSHOT_INTERVAL_SECONDS: float = 10.0

    # Event batching
    PROCTOR_EVENT_BATCH_SIZE: int = 5
    PROCTOR_EVENT_BATCH_TIMEOUT_SECONDS: float = 10.0

    # Pattern analysis at finalize
    PROCTOR_PATTERN_WINDOW_SECONDS: float = 10.0
    PROCTOR_PATTERN_THRESHOLD: float = 0.3

    # Where remote monitors send their data
    PROCTOR_SERVICE_URL: str = "http://localhost:8002"

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"

    @property
    def database_url(self) -> str:
        return self.DATABASE_URL or get_db_url()


settings = Settings()
