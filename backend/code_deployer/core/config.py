"""
Application configuration using Pydantic Settings.
"""
from typing import List
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    # Application
    APP_NAME: str = "Code Deployer"
    APP_VERSION: str = "1.0.0"
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "info"
    DEBUG: bool = False

    # Database Schema
    DB_SCHEMA: str = "code_deployer"

    # Database
    DATABASE_URL: str
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20
    DB_STATEMENT_TIMEOUT_SECONDS: int = 60

    # Security
    API_KEY_SALT: str
    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:5173,http://localhost"

    # Task queue
    REDIS_URL: str = "redis://redis:6379/0"
    TASK_EXPIRY_HOURS: int = 4  # Queued tasks older than this are discarded

    # Artifact storage
    ARTIFACT_STORAGE_PATH: str = "./storage/artifacts"
    ARTIFACT_PUBLIC_BASE_URL: str = "http://localhost:8000/artifacts"
    MAX_UPLOAD_SIZE: int = 104857600  # 100MB in bytes
    ALLOWED_ARCHIVE_EXTENSIONS: str = ".zip"

    # Platforms
    VERCEL_API_TOKEN: str = ""
    VERCEL_SIMULATED_LATENCY: float = 3.0  # seconds
    NETLIFY_API_TOKEN: str = ""
    NETLIFY_SIMULATED_LATENCY: float = 4.0  # seconds

    # Deployment lifecycle
    PUBLISH_TIMEOUT_SECONDS: float = 300.0
    STUCK_PENDING_MINUTES: int = 10
    STUCK_IN_PROGRESS_MINUTES: int = 15
    STUCK_SWEEP_INTERVAL_SECONDS: float = 60.0

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore"
    )

    def get_cors_origins(self) -> List[str]:
        """Parse CORS origins from comma-separated string."""
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",")]

    def get_allowed_archive_extensions(self) -> List[str]:
        """Parse allowed upload extensions from comma-separated string."""
        return [ext.strip().lower() for ext in self.ALLOWED_ARCHIVE_EXTENSIONS.split(",") if ext.strip()]


settings = Settings()
