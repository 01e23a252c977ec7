"""Base provider interface."""

from abc import ABC, abstractmethod
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pvelxc.models.config import PveLxcConfig
    from pvelxc.providers.registry import ProviderRegistry


class ProviderStatus(Enum):
    """Whether a host resource is in place."""
    PRESENT = "present"
    ABSENT = "absent"
    ERROR = "error"


class BaseProvider(ABC):
    """A host-facing component configured from the host config.

    Providers are created and initialized by the registry; those that depend
    on another provider look it up from the registry during ``initialize``.
    """

    @abstractmethod
    async def initialize(self, config: "PveLxcConfig", registry: "ProviderRegistry") -> None:
        """Apply host configuration and resolve provider dependencies."""
        pass
