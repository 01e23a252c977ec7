"""Pydantic models for configuration and validation."""

from pvelxc.models.config import PveLxcConfig, LoggingConfig, HostConfig
from pvelxc.models.container import ContainerSpec, NetworkSpec
from pvelxc.models.recipe import RecipeSpec, ContainerDefaults, StepSpec, ReportLine
from pvelxc.models.notes import NotesSpec
from pvelxc.models.template import TemplateSpec, TemplateRef

__all__ = [
    "PveLxcConfig",
    "LoggingConfig",
    "HostConfig",
    "ContainerSpec",
    "NetworkSpec",
    "RecipeSpec",
    "ContainerDefaults",
    "StepSpec",
    "ReportLine",
    "TemplateSpec",
    "TemplateRef",
    "NotesSpec",
]
