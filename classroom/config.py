import os
from pydantic_settings import BaseSettings
from typing import Optional, List

class Settings(BaseSettings):
    # Database settings
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./classroom.db")
    DATABASE_SSL: bool = False

    # Authentication settings
    SECRET_KEY: str = os.getenv("SECRET_KEY", "CHANGEME_SUPER_SECRET_KEY_FOR_JWT_TOKENS")
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60

    # CORS settings
    CORS_ORIGINS: List[str] = ["http://localhost:5173", "http://localhost:8000"]

    # Logging settings
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    LOG_FILE: Optional[str] = None
    SLOW_REQUEST_SECONDS: float = 2.0

    # Attendance window and geofence (meters)
    ATTENDANCE_WINDOW_SECONDS: int = 60
    GEOFENCE_RADIUS_METERS: float = 50.0

    # Minimum attendance percentage when a classroom does not set one
    DEFAULT_ATTENDANCE_THRESHOLD: int = 75

    # Upper bound for a single long-poll wait
    LONG_POLL_TIMEOUT_SECONDS: float = 25.0

    # How early the upcoming-class reminder kicks in
    CLASS_REMINDER_MINUTES: int = 60

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True

# Create settings instance
settings = Settings()
