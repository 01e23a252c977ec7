"""Notes field model."""

from pydantic import BaseModel, Field


class NotesSpec(BaseModel):
    """Text attached to a container's Proxmox notes field."""
    ctid: int = Field(..., ge=100)
    text: str = Field(default="")
