"""Application recipe models."""

import re
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from pvelxc.models.template import TemplateSpec


# Environment names owned by the container descriptor
RESERVED_SETTINGS = {
    "CT_ID", "CT_HOSTNAME", "CT_CORES", "CT_MEMORY", "CT_SWAP", "CT_DISK_SIZE",
    "CT_IP", "CT_GATEWAY", "CT_BRIDGE", "CT_NAMESERVER", "CT_STORAGE",
    "TEMPLATE_STORAGE", "CT_ONBOOT", "CT_UNPRIVILEGED", "CT_FEATURES",
}

SETTING_NAME = re.compile(r"^[A-Z][A-Z0-9_]*$")


class StepSpec(BaseModel):
    """One command run inside the container."""
    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., description="Human readable step description")
    run: str = Field(..., description="Shell text, rendered as a Jinja2 template")
    required: bool = Field(default=True, description="Abort the run when the step fails")


class ReportLine(BaseModel):
    """A label/value line for the notes and terminal report."""
    model_config = ConfigDict(extra="forbid")

    label: str
    value: str


class ContainerDefaults(BaseModel):
    """Per-recipe defaults for the container descriptor."""
    model_config = ConfigDict(extra="forbid")

    hostname: str
    cores: int = 1
    memory: int = 512
    swap: int = 512
    disk_size: int = 4
    features: Optional[str] = None
    unprivileged: Optional[bool] = None


class RecipeSpec(BaseModel):
    """Declarative description of one application install."""
    model_config = ConfigDict(extra="ignore")

    name: str = Field(..., description="Recipe name used on the command line")
    title: str = Field(..., description="Application display name")
    description: str = Field(default="")
    container: ContainerDefaults
    os: List[TemplateSpec] = Field(default_factory=lambda: [TemplateSpec()], min_length=1)
    settings: Dict[str, Any] = Field(default_factory=dict)
    autologin: bool = Field(default=False)
    steps: List[StepSpec] = Field(default_factory=list)
    services: List[str] = Field(default_factory=list)
    access: List[ReportLine] = Field(default_factory=list)
    management: List[ReportLine] = Field(default_factory=list)
    notes: str = Field(default="")

    @field_validator("settings")
    @classmethod
    def validate_settings(cls, v):
        """Settings are addressed by environment variable name."""
        for key in v:
            if not SETTING_NAME.match(key):
                raise ValueError(f"Setting name must be an upper-case identifier: {key}")
            if key in RESERVED_SETTINGS:
                raise ValueError(f"Setting name is reserved for the container: {key}")
        return v

    @property
    def required_settings(self) -> List[str]:
        """Settings without a default; the operator must supply them."""
        return [key for key, value in self.settings.items() if value is None]
