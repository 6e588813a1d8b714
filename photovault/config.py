"""
Application configuration using Pydantic Settings.
Manages all environment variables and settings.
"""
from enum import Enum
from functools import lru_cache
from pydantic_settings import BaseSettings
from pydantic import Field, field_validator, model_validator

DEFAULT_DATABASE_URL = "sqlite+aiosqlite:///./photo_vault.db"


class Environment(str, Enum):
    """Application environment modes."""
    DEV = "DEV"
    PRODUCTION = "PRODUCTION"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Environment
    environment: Environment = Field(
        default=Environment.DEV,
        description="Application environment: DEV or PRODUCTION"
    )

    # Application
    app_name: str = Field(default="Photo Vault API")
    app_version: str = Field(default="1.0.0")
    debug: bool = Field(default=False)

    @model_validator(mode='after')
    def set_debug_from_environment(self):
        """Set debug mode based on environment if not explicitly set via environment variable."""
        # DEBUG 환경 변수가 명시적으로 설정되지 않은 경우에만 환경 모드에 따라 설정
        import os
        if 'DEBUG' not in os.environ:
            self.debug = self.environment == Environment.DEV
        return self

    @property
    def is_dev(self) -> bool:
        """Check if running in development mode."""
        return self.environment == Environment.DEV

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.environment == Environment.PRODUCTION

    # Database (빈 문자열이면 로컬 SQLite 사용)
    database_url: str = Field(default=DEFAULT_DATABASE_URL)
    db_pool_size: int = Field(default=10)
    db_max_overflow: int = Field(default=20)
    db_pool_timeout: int = Field(default=30)
    db_pool_recycle: int = Field(default=1800)

    @field_validator("database_url", mode="before")
    @classmethod
    def coerce_empty_database_url(cls, v: str) -> str:
        if not v or not str(v).strip():
            return DEFAULT_DATABASE_URL
        return v

    # JWT (identity provider가 발급한 토큰 검증용)
    jwt_secret_key: str = Field(default="jwt-secret-change-in-production")
    jwt_algorithm: str = Field(default="HS256")
    access_token_expire_minutes: int = Field(default=30)

    # Public links
    public_token_bytes: int = Field(
        default=32,
        ge=16,
        description="Random bytes per public token (hex encoded, so the token is twice as long)",
    )
    public_token_max_attempts: int = Field(
        default=5,
        ge=1,
        description="Token generation attempts before a uniqueness collision is surfaced",
    )
    frontend_url: str = Field(
        default="http://localhost:3000",
        description="Base URL used to build public album links",
    )

    # Rate limiting (slowapi)
    rate_limit_enabled: bool = Field(default=True)
    rate_limit_public_per_minute: int = Field(
        default=30,
        description="Per-client limit for anonymous public album lookups",
    )

    # Prometheus labels / 인스턴스 식별 (비우면 자동 감지)
    node_name: str = Field(default="", description="Node/Pod identifier for Prometheus labels")
    instance_ip: str = Field(default="", description="서버 사설 IP (비우면 hostname 사용)")

    # 파일 로그 디렉터리 (쓰기 불가하면 stdout만 사용)
    log_dir: str = Field(default="/var/log/photo-vault")

    class Config:
        # 환경변수만 사용 (.env 파일 미사용)
        env_file = None
        case_sensitive = False


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.
    Using lru_cache to avoid reading the environment on every request.
    """
    return Settings()
