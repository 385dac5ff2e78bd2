"""Application Configuration"""

from pydantic_settings import BaseSettings
from pydantic import ConfigDict, field_validator
from typing import Optional


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    model_config = ConfigDict(env_file=".env", case_sensitive=True)

    # Application
    APP_NAME: str = "Billing Resources API"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    ENVIRONMENT: str = "production"  # development, staging, production

    # Database - MySQL
    MYSQL_HOST: str = "localhost"
    MYSQL_PORT: int = 3306
    MYSQL_USER: str = "root"
    MYSQL_PASSWORD: str = ""
    MYSQL_DATABASE: str = "featherpanel"

    # Full SQLAlchemy URL, overrides the MYSQL_* values when set
    DATABASE_URL: Optional[str] = None

    # Security
    SECRET_KEY: str = "your-secret-key-change-in-production"
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 15

    # CORS
    CORS_ORIGINS: list[str] = ["http://localhost:3000"]
    CORS_ALLOW_CREDENTIALS: bool = True
    CORS_ALLOW_METHODS: list[str] = ["*"]
    CORS_ALLOW_HEADERS: list[str] = ["*"]

    # Resource quotas
    SETTINGS_NAMESPACE: str = "billingresources"
    QUOTA_ADJUST_MAX_ATTEMPTS: int = 3

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_HEALTH_CHECKS: bool = False

    @field_validator('MYSQL_PORT')
    @classmethod
    def validate_port(cls, v: int, info) -> int:
        """Validate that port numbers are in the valid range (1-65535)"""
        if v < 1 or v > 65535:
            raise ValueError(f'{info.field_name} must be between 1 and 65535, got {v}')
        return v

    @field_validator('QUOTA_ADJUST_MAX_ATTEMPTS')
    @classmethod
    def validate_attempts(cls, v: int) -> int:
        """At least one attempt is always made"""
        if v < 1:
            raise ValueError(f'QUOTA_ADJUST_MAX_ATTEMPTS must be at least 1, got {v}')
        return v

    @field_validator('LOG_LEVEL')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate that log level is one of the standard Python logging levels"""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f'LOG_LEVEL must be one of {valid_levels}, got {v}')
        return v.upper()

    @field_validator('SECRET_KEY')
    @classmethod
    def validate_secret_key(cls, v: str) -> str:
        """Validate that secret key is sufficiently long for security"""
        if len(v) < 32:
            raise ValueError('SECRET_KEY must be at least 32 characters long for security')
        return v


settings = Settings()
