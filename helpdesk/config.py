from pydantic_settings import BaseSettings
from pydantic import field_validator, model_validator
from functools import lru_cache


DEFAULT_SECRET_KEY = "development-secret-key-change-in-production"

# Known weak values that must never reach a production deployment
WEAK_SECRET_KEYS = {
    DEFAULT_SECRET_KEY,
    "changeme",
    "secret",
    "password",
    "helpdesk",
    "dev",
}

ATTACHMENT_MIME_TYPES = [
    "image/jpeg",
    "image/png",
    "image/gif",
    "application/pdf",
    "text/plain",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "application/zip",
]


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./helpdesk.db"

    @field_validator('DATABASE_URL', mode='before')
    @classmethod
    def convert_database_url(cls, v: str) -> str:
        """Convert postgresql:// to postgresql+asyncpg:// for async support."""
        if v and v.startswith('postgresql://'):
            return v.replace('postgresql://', 'postgresql+asyncpg://', 1)
        return v

    # Auth (tokens are issued by the identity service, verified here)
    SECRET_KEY: str = DEFAULT_SECRET_KEY
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 120

    # CORS
    FRONTEND_URL: str = "http://localhost:5173"

    # Attachments
    UPLOAD_DIR: str = "./uploads"
    MAX_ATTACHMENT_SIZE: int = 5 * 1024 * 1024  # 5 MiB
    ALLOWED_ATTACHMENT_TYPES: list[str] = ATTACHMENT_MIME_TYPES

    # Tickets
    TICKET_NUMBER_MAX_ATTEMPTS: int = 10

    # Environment
    ENVIRONMENT: str = "development"
    DEBUG: bool = False

    @model_validator(mode="after")
    def enforce_production_safety(self) -> "Settings":
        """Reject weak secrets and force DEBUG off outside development."""
        if self.is_production:
            if self.SECRET_KEY in WEAK_SECRET_KEYS:
                raise ValueError("SECRET_KEY must be changed in production")
            if len(self.SECRET_KEY) < 32:
                raise ValueError("SECRET_KEY must be at least 32 characters in production")
            self.DEBUG = False
        return self

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() in ("production", "staging")

    @property
    def sqlalchemy_echo(self) -> bool:
        """SQL echo leaks parameters, so it is only allowed in development."""
        return self.DEBUG and not self.is_production

    @property
    def docs_enabled(self) -> bool:
        return not self.is_production

    class Config:
        env_file = ".env"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
