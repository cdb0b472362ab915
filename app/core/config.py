from pydantic import Field, field_validator, model_validator, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Literal, Optional
import logging

logger = logging.getLogger(__name__)

_DEV_JWT_SECRET = "dev-access-secret-change-me-0123456789"
_DEV_JWT_REFRESH_SECRET = "dev-refresh-secret-change-me-0123456789"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    ENVIRONMENT: Literal["dev", "prod"] = Field(default="dev", description="Application environment")
    LOG_LEVEL: str = Field(default="INFO", description="Root log level")

    CORS_ORIGINS: list[str] = Field(
        default=["http://localhost:5173"],
        description="Origins allowed to call the API with credentials"
    )

    JWT_SECRET: str = Field(default=_DEV_JWT_SECRET, description="Secret key for access token signing")
    JWT_REFRESH_SECRET: str = Field(default=_DEV_JWT_REFRESH_SECRET, description="Secret key for refresh token signing")
    ALGORITHM: str = Field(default="HS256", description="JWT algorithm")
    ACCESS_TOKEN_EXPIRE_MINUTES: int = Field(default=15, description="Access token expiration in minutes")
    REFRESH_TOKEN_EXPIRE_DAYS: int = Field(default=7, description="Refresh token expiration in days")

    MAX_FAILED_LOGIN_ATTEMPTS: int = Field(default=5, description="Failed login attempts before account lockout")
    LOCKOUT_MINUTES: int = Field(default=30, description="How long an account stays locked")
    BCRYPT_ROUNDS: int = Field(default=10, description="bcrypt cost factor")

    REFRESH_COOKIE_NAME: str = Field(default="refreshToken", description="Cookie carrying the refresh token")
    COOKIE_SECURE: bool = Field(default=True, description="Secure flag for cookies (HTTPS only)")
    COOKIE_SAME_SITE: Literal["lax", "strict", "none"] = Field(default="strict", description="SameSite policy for cookies")
    COOKIE_HTTP_ONLY: bool = Field(default=True, description="HttpOnly flag for cookies")

    # Credential store: "postgres" (production) or "memory" (development/testing)
    CREDENTIAL_STORE: Literal["postgres", "memory"] = Field(default="postgres", description="Credential store backend")

    # Database Configuration
    DB_HOST: str = Field(default="localhost", description="Database host")
    DB_PORT: int = Field(default=5432, description="Database port")
    DB_NAME: str = Field(default="user_management", description="Database name")
    DB_USER: str = Field(default="postgres", description="Database user")
    DB_PASSWORD: str = Field(default="", description="Database password")
    DATABASE_URL: Optional[str] = Field(default=None, description="Full database URL (overrides individual DB_* settings)")
    DB_POOL_SIZE: int = Field(default=10, description="Database connection pool size")
    DB_ECHO: bool = Field(default=False, description="Enable SQL query logging")

    RATE_LIMIT_ENABLED: bool = Field(default=True, description="Enable per-IP rate limiting on auth endpoints")
    LOGIN_RATE_LIMIT_PER_MINUTE: int = Field(default=10, description="Maximum login attempts per minute per IP")
    REGISTER_RATE_LIMIT_PER_HOUR: int = Field(default=20, description="Maximum registration attempts per hour per IP")

    REFRESH_TIMEOUT_SECONDS: float = Field(default=10.0, description="Client-side bound on a token renewal call")

    @computed_field
    @property
    def database_url_computed(self) -> str:
        """
        Compute the database URL from individual settings or use DATABASE_URL if provided.

        Returns:
            str: PostgreSQL connection URL for asyncpg
        """
        if self.DATABASE_URL:
            url = self.DATABASE_URL
            if url.startswith("postgresql://"):
                url = url.replace("postgresql://", "postgresql+asyncpg://", 1)
            return url

        return f"postgresql+asyncpg://{self.DB_USER}:{self.DB_PASSWORD}@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "prod"

    @field_validator("ACCESS_TOKEN_EXPIRE_MINUTES", "REFRESH_TOKEN_EXPIRE_DAYS", "LOCKOUT_MINUTES")
    @classmethod
    def validate_positive_duration(cls, v: int, info) -> int:
        if v < 1:
            raise ValueError(f"{info.field_name} must be at least 1")
        return v

    @field_validator("BCRYPT_ROUNDS")
    @classmethod
    def validate_bcrypt_rounds(cls, v: int) -> int:
        if v < 10 or v > 31:
            raise ValueError("BCRYPT_ROUNDS must be between 10 and 31")
        return v

    @model_validator(mode="after")
    def set_environment_defaults(self):
        """Set environment-specific defaults and validations."""
        if self.JWT_SECRET == self.JWT_REFRESH_SECRET:
            raise ValueError("JWT_SECRET and JWT_REFRESH_SECRET must be different")

        if self.ENVIRONMENT == "prod":
            for name in ("JWT_SECRET", "JWT_REFRESH_SECRET"):
                value = getattr(self, name)
                if value in (_DEV_JWT_SECRET, _DEV_JWT_REFRESH_SECRET) or len(value) < 32:
                    raise ValueError(
                        f"{name} must be at least 32 characters long in production. "
                        "Set a strong secret in your .env file."
                    )

        # Cookies travel over plain HTTP in local development
        if self.ENVIRONMENT == "dev" and self.COOKIE_SECURE is True:
            self.COOKIE_SECURE = False

        return self


def get_settings() -> Settings:
    """Load settings from the environment and .env file."""
    loaded = Settings()
    logger.info("Configuration loaded (environment=%s, store=%s)", loaded.ENVIRONMENT, loaded.CREDENTIAL_STORE)
    return loaded
