from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be configured via .env file or environment variables.
    """

    # Database
    DATABASE_URL: str
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20

    # JWT identity resolution (tokens issued by the external auth service)
    SECRET_KEY: str
    JWT_ALGORITHM: str = "HS256"

    # Application
    APP_NAME: str = "Trustee Portal API"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # CORS
    CORS_ORIGINS: str = ""
    CORS_ALLOW_CREDENTIALS: bool = True

    # Invitations
    FRONTEND_URL: str = "http://localhost:3000"
    INVITATION_EXPIRE_DAYS: int = 7
    INVITATION_TOKEN_BYTES: int = 32

    # Audit trail
    AUDIT_PAGE_SIZE: int = 20
    AUDIT_MAX_PAGE_SIZE: int = 100
    AUDIT_RETENTION_DAYS: int = 365

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    @field_validator("INVITATION_TOKEN_BYTES")
    @classmethod
    def _token_entropy_floor(cls, value: int) -> int:
        # 16 bytes == 128 bits
        if value < 16:
            raise ValueError("INVITATION_TOKEN_BYTES must be at least 16")
        return value

    @field_validator("JWT_ALGORITHM")
    @classmethod
    def _supported_algorithm(cls, value: str) -> str:
        if value not in {"HS256"}:
            raise ValueError(f"Unsupported JWT_ALGORITHM={value!r}. Allowed: HS256")
        return value

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS_ORIGINS from comma-separated string"""
        if not self.CORS_ORIGINS:
            return []
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    @property
    def invitation_accept_base_url(self) -> str:
        return f"{self.FRONTEND_URL.rstrip('/')}/accept-invitation"


# Global settings instance
settings = Settings()
