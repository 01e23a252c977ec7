"""
pvelxc - Recipe-driven Proxmox VE LXC provisioning.

Creates an LXC container on a Proxmox VE host, installs a self-hosted
application into it from a declarative recipe, and records access details in
the container's notes field.
"""

__version__ = "1.0.0"
__author__ = "pvelxc Development Team"

# Re-export key components for easier access
from pvelxc.models.config import PveLxcConfig
from pvelxc.models.container import ContainerSpec, NetworkSpec
from pvelxc.models.recipe import RecipeSpec
from pvelxc.models.template import TemplateRef, TemplateSpec

__all__ = [
    "PveLxcConfig",
    "ContainerSpec",
    "NetworkSpec",
    "RecipeSpec",
    "TemplateRef",
    "TemplateSpec",
]
