from pydantic_settings import BaseSettings
from pydantic import Field
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings."""

    # Service
    service_name: str = Field(default="user-management-service")
    port: int = Field(default=3003)
    log_level: str = Field(default="INFO")
    cors_origins: list[str] = Field(
        default=["http://localhost:3000", "http://localhost:3001"]
    )

    # Database
    database_url: str = Field(...)

    # Auth
    jwt_secret_key: str = Field(default="change-me")
    bcrypt_rounds: int = Field(default=10)

    # Sibling services
    org_service_url: str = Field(default="http://localhost:3004/api/v1")
    auth_service_url: str = Field(default="http://localhost:3001")
    # Empty disables audit logging (a warning is logged instead)
    audit_service_url: str = Field(default="")
    service_timeout_seconds: float = Field(default=5.0)
    notification_timeout_seconds: float = Field(default=10.0)

    # Bulk import
    default_import_password: str = Field(default="TempPass123!")
    verification_code_ttl_hours: int = Field(default=1)
    max_upload_bytes: int = Field(default=60 * 1024 * 1024)

    class Config:
        env_file = ".env"
        case_sensitive = False


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
