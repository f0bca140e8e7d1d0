"""Core application configuration and settings.

Handles environment variables for MongoDB, Redis, JWT, SMTP and the
security token lifetimes used by the admin dashboard.
"""
from pathlib import Path
from typing import List, Optional
from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings


# Load environment variables
ROOT = Path(__file__).resolve().parents[2]
load_dotenv(dotenv_path=ROOT / ".env")
load_dotenv()

DEFAULT_JWT_SECRET = "development-secret-key-change-in-production"
DEFAULT_ADMIN_PASSWORD = "change-this-admin-password"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application Settings
    app_name: str = Field(default="Viticult Whisky API", alias="APP_NAME")
    environment: str = Field(default="development", alias="ENVIRONMENT")
    debug: bool = Field(default=False, alias="DEBUG")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # API Settings
    cors_origins: List[str] = Field(
        default_factory=lambda: [
            "http://localhost:3000",
            "http://127.0.0.1:3000",
        ],
        alias="ALLOWED_ORIGINS"
    )
    frontend_url: str = Field(default="http://localhost:3000", alias="FRONTEND_URL")

    # MongoDB
    mongodb_uri: str = Field(default="mongodb://localhost:27017", alias="MONGODB_URI")
    mongodb_db_name: str = Field(default="viticult-whisky", alias="MONGODB_DB_NAME")
    mongodb_max_pool_size: int = Field(default=10, alias="MONGODB_MAX_POOL_SIZE")
    mongodb_server_selection_timeout_ms: int = Field(
        default=5000,
        alias="MONGODB_SERVER_SELECTION_TIMEOUT_MS"
    )

    # Redis Configuration (security token store; memory fallback when disabled)
    redis_enabled: bool = Field(default=False, alias="REDIS_ENABLED")
    redis_host: str = Field(default="localhost", alias="REDIS_HOST")
    redis_port: int = Field(default=6379, alias="REDIS_PORT")
    redis_password: Optional[str] = Field(default=None, alias="REDIS_PASSWORD")
    redis_db: int = Field(default=0, alias="REDIS_DB")

    # JWT Authentication
    jwt_secret_key: str = Field(default=DEFAULT_JWT_SECRET, alias="JWT_SECRET")
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")
    access_token_expire_minutes: int = Field(default=1440, alias="ACCESS_TOKEN_EXPIRE_MINUTES")  # 24 hours
    auth_cookie_name: str = Field(default="admin_token", alias="AUTH_COOKIE_NAME")
    auth_cookie_secure: bool = Field(default=False, alias="AUTH_COOKIE_SECURE")

    # Admin bootstrap account
    admin_email: str = Field(default="admin@viticult.co.uk", alias="ADMIN_EMAIL")
    admin_password: str = Field(default=DEFAULT_ADMIN_PASSWORD, alias="ADMIN_PASSWORD")

    # Email (SMTP)
    smtp_host: Optional[str] = Field(default=None, alias="EMAIL_HOST")
    smtp_port: int = Field(default=587, alias="EMAIL_PORT")
    smtp_username: Optional[str] = Field(default=None, alias="EMAIL_USER")
    smtp_password: Optional[str] = Field(default=None, alias="EMAIL_PASS")
    smtp_use_tls: bool = Field(default=True, alias="EMAIL_USE_TLS")
    email_from: str = Field(default="noreply@viticultwhisky.co.uk", alias="EMAIL_FROM")
    notification_email: str = Field(default="admin@viticult.co.uk", alias="ADMIN_NOTIFICATION_EMAIL")

    # Security token lifetimes
    csrf_token_ttl_seconds: int = Field(default=3600, alias="CSRF_TOKEN_TTL_SECONDS")
    login_max_attempts: int = Field(default=5, alias="LOGIN_MAX_ATTEMPTS")
    login_attempt_window_minutes: int = Field(default=30, alias="LOGIN_ATTEMPT_WINDOW_MINUTES")
    login_max_lockout_minutes: int = Field(default=60, alias="LOGIN_MAX_LOCKOUT_MINUTES")
    recovery_token_ttl_seconds: int = Field(default=3600, alias="RECOVERY_TOKEN_TTL_SECONDS")

    class Config:
        case_sensitive = False
        env_file = ".env"
        populate_by_name = True
        extra = "ignore"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def smtp_configured(self) -> bool:
        return bool(self.smtp_host and self.smtp_username and self.smtp_password)

    def validate_required_settings(self):
        """Validate that required settings are present."""
        if not self.mongodb_uri:
            raise ValueError("MONGODB_URI not set. Define MONGODB_URI in .env.")
        if self.environment == "production":
            if self.jwt_secret_key == DEFAULT_JWT_SECRET:
                raise ValueError(
                    "JWT_SECRET must be set to a secure value in production."
                )
            if len(self.jwt_secret_key) < 32:
                raise ValueError(
                    "JWT_SECRET must be at least 32 characters in production."
                )
            if self.admin_password == DEFAULT_ADMIN_PASSWORD:
                raise ValueError(
                    "ADMIN_PASSWORD must be changed from the default in production."
                )


# Global settings instance
settings = Settings()


# Validate settings on module import (only in non-test environments)
if settings.environment != "test":
    try:
        settings.validate_required_settings()
    except ValueError as e:
        print(f"Configuration Error: {e}")
        # Don't raise in development to allow partial setup
        if settings.environment == "production":
            raise
