"""Configuration models."""

from typing import Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator


class LoggingConfig(BaseModel):
    """Logging configuration."""
    level: str = Field(default="INFO")

    @field_validator("level")
    @classmethod
    def validate_level(cls, v):
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level: {v}")
        return v.upper()


class HostConfig(BaseModel):
    """Proxmox host tooling and timing configuration."""
    pct_command: str = Field(default="pct")
    pveam_command: str = Field(default="pveam")
    template_section: str = Field(default="system")
    boot_timeout: int = Field(default=30, ge=1, description="Seconds to wait for the boot marker")
    poll_interval: float = Field(default=1.0, ge=0)
    service_settle: float = Field(default=3.0, ge=0, description="Seconds between service start and check")
    command_timeout: int = Field(default=1800, ge=1)
    download_timeout: int = Field(default=1800, ge=1)


class PveLxcConfig(BaseModel):
    """Main configuration model."""
    model_config = ConfigDict(extra="ignore")

    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    host: HostConfig = Field(default_factory=HostConfig)
    recipes_dir: Optional[str] = Field(None, description="Directory with additional recipes")
