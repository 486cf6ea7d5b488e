from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from twilio_mcp.utils import is_e164


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    Shared by the MCP tool server and the webhook receiver.
    """

    # env_file is only used as fallback, env vars take precedence
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        env_ignore_empty=True,
    )

    # Twilio Configuration - required
    TWILIO_ACCOUNT_SID: str
    TWILIO_AUTH_TOKEN: str = Field(..., min_length=32)
    TWILIO_PHONE_NUMBER: str

    # Webhook Server Configuration
    WEBHOOK_BASE_URL: str
    WEBHOOK_HOST: str = "0.0.0.0"
    WEBHOOK_PORT: int = Field(default=3000, ge=1, le=65535)

    # Database Configuration
    DATABASE_URL: str = "sqlite:///./data/twilio.db"

    # Logging Configuration
    LOG_LEVEL: str = "INFO"

    # Feature flags
    AUTO_CREATE_CONVERSATIONS: bool = True
    ENABLE_AI_CONTEXT: bool = True
    ENABLE_MMS: bool = True

    @field_validator("TWILIO_ACCOUNT_SID")
    @classmethod
    def validate_account_sid(cls, v: str) -> str:
        if not v.startswith("AC"):
            raise ValueError("Account SID must start with AC")
        return v

    @field_validator("TWILIO_PHONE_NUMBER")
    @classmethod
    def validate_phone_number(cls, v: str) -> str:
        if not is_e164(v):
            raise ValueError("Phone number must be in E.164 format (+1234567890)")
        return v

    @field_validator("WEBHOOK_BASE_URL")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError("Webhook base URL must be a valid http(s) URL")
        return v.rstrip("/")

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level == "WARN":
            level = "WARNING"
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unsupported log level: {v}")
        return level


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.
    Uses lru_cache to avoid reading .env file on every request.
    """
    return Settings()


# Global settings instance
settings = get_settings()
