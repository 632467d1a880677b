"""Environment-driven configuration with Pydantic v2."""

from typing import Literal, Optional
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings driven entirely by environment variables."""

    # Server Configuration
    host: str = Field(default="127.0.0.1")
    port: int = Field(default=3020, ge=1024, le=65535)
    debug: bool = Field(default=False)

    # Logging
    log_level: str = Field(default="INFO")
    log_format: Literal["json", "console"] = Field(default="json")
    log_file: Optional[str] = Field(default=None)

    # Managed n8n instance (used when a deployment brings no target of its own)
    n8n_instance_url: Optional[str] = Field(default=None)
    n8n_api_key: Optional[str] = Field(default=None)
    n8n_timeout: float = Field(default=30.0, ge=1.0, le=300.0)

    # Deployment retry policy
    deploy_max_retries: int = Field(default=3, ge=0, le=10)
    deploy_retry_delay: float = Field(default=1.0, ge=0.0, le=30.0)
    deploy_retry_max_delay: float = Field(default=30.0, ge=0.0, le=300.0)
    deploy_rate_limit_delay: float = Field(default=5.0, ge=0.0, le=120.0)

    # Health Check
    health_check_enabled: bool = Field(default=True)
    health_check_interval: int = Field(default=300, ge=10)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalize and validate the log level name."""
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {v}")
        return level

    @field_validator("n8n_instance_url")
    @classmethod
    def strip_trailing_slash(cls, v: Optional[str]) -> Optional[str]:
        return v.rstrip("/") if v else v

    @property
    def has_managed_instance(self) -> bool:
        """Check if a managed n8n instance is configured."""
        return bool(self.n8n_instance_url and self.n8n_api_key)

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "ignore",
        "env_parse_none_str": "none",
    }
