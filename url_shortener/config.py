from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Server settings
    host: str = Field(default="0.0.0.0", description="Host to bind to")
    port: int = Field(default=3000, description="Port to listen on")

    # Shortener settings
    base_url: str = Field(
        default="http://localhost:3000",
        description="Origin prefixed to every generated short link",
    )
    default_validity_minutes: float = Field(
        default=30,
        gt=0,
        description="Validity applied when a request omits one",
    )
    shortcode_length: int = Field(
        default=6,
        ge=1,
        le=10,
        description="Length of generated shortcodes",
    )
    cors_origins: List[str] = Field(default_factory=lambda: ["*"])

    # Logging settings
    log_dir: str = Field(default="logs", description="Directory for the audit log")
    log_file: str = Field(default="app.log", description="Audit log file name")
    log_api_url: Optional[str] = Field(
        default=None,
        description="Remote log endpoint; remote delivery is off when unset",
    )
    log_api_token: Optional[str] = None
    log_client_id: Optional[str] = None
    log_client_secret: Optional[str] = None
    log_timeout_seconds: float = Field(default=5.0, gt=0)
    log_stack: str = "backend"


def load_settings() -> Settings:
    return Settings()
