"""Configuration management for the courier partner platform."""

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    app_name: str = Field(default="courier-partner-platform", description="Service name")

    # Redis Configuration
    redis_url: str = Field(default="redis://localhost:6379/0", description="Redis URL")

    # API Configuration
    api_port: int = Field(default=8000, description="API server port")
    api_host: str = Field(default="0.0.0.0", description="API server host")
    api_workers: int = Field(default=1, description="Number of API workers")
    cors_origins: str = Field(default="*", description="Comma separated CORS origins")

    # Environment
    environment: Literal["development", "staging", "production"] = Field(
        default="development"
    )

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: Literal["json", "text"] = Field(default="json", description="Log format")

    # Security
    secret_key: str = Field(
        default="dev-secret-change-me", description="Secret key for JWT signing"
    )
    jwt_issuer: str = Field(default="courier", description="JWT issuer claim")
    jwt_audience: str = Field(default="courier-partners", description="JWT audience claim")
    access_token_expire_minutes: int = Field(
        default=60 * 24, description="Access token expiration in minutes"
    )

    # One-time passwords
    otp_ttl_seconds: int = Field(default=300, description="OTP lifetime in seconds")
    otp_length: int = Field(default=6, ge=4, le=10, description="OTP digit count")
    otp_dev_mode: bool = Field(
        default=False, description="Echo generated OTPs in API responses"
    )
    registration_requires_otp: bool = Field(
        default=True, description="Require a verified email OTP to register"
    )

    # Documents
    upload_dir: str = Field(default="uploads", description="Local document storage root")
    upload_url_prefix: str = Field(default="/uploads", description="Public URL prefix")
    max_document_bytes: int = Field(
        default=5 * 1024 * 1024, description="Max decoded size of one document"
    )
    require_complete_documents: bool = Field(
        default=False,
        description="Only enter review once all five document slots are filled",
    )

    # Notifications
    notification_webhook_url: str | None = Field(
        default=None, description="Mail relay endpoint; log-only delivery when unset"
    )
    notification_timeout_seconds: float = Field(
        default=10.0, description="Mail relay request timeout"
    )
    mail_from: str = Field(
        default="Courier Platform <no-reply@courier.local>", description="Sender address"
    )
    frontend_url: str = Field(default="http://localhost:5173", description="Dashboard URL")
    admin_email: str | None = Field(
        default=None, description="Reviewer inbox alerted when documents are uploaded"
    )

    # Verification
    verified_default_note: str = Field(
        default="Documents verified successfully",
        description="Note stored when an admin verifies without comment",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is valid."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Log level must be one of {valid_levels}")
        return v_upper

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def cors_origin_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()] or ["*"]


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
