"""OS template models."""

import re
from pydantic import BaseModel, ConfigDict, Field, field_validator


class TemplateSpec(BaseModel):
    """Requested OS template: distribution, major version and variant."""
    model_config = ConfigDict(extra="forbid")

    distribution: str = Field(default="debian")
    version: str = Field(default="12", description="Major version, e.g. 12 or 22.04")
    variant: str = Field(default="standard")
    storage: str = Field(default="local", description="Storage holding vztmpl files")

    @field_validator("version", mode="before")
    @classmethod
    def coerce_version(cls, v):
        """YAML reads ``12`` as an integer."""
        return str(v)

    @property
    def label(self) -> str:
        return f"{self.distribution.capitalize()} {self.version}"

    def matches(self, template_name: str) -> bool:
        """Check whether a catalog entry belongs to this distribution/version/variant."""
        prefix = re.escape(f"{self.distribution}-{self.version}-{self.variant}_")
        return re.match(prefix, template_name) is not None


class TemplateRef(BaseModel):
    """A concrete template file in a Proxmox storage."""
    storage: str
    name: str
    distribution: str

    @property
    def volid(self) -> str:
        return f"{self.storage}:vztmpl/{self.name}"

    @property
    def ostype(self) -> str:
        return self.distribution
