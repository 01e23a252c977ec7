"""Provider registry for the host-facing providers."""

import logging
from typing import Dict, Mapping, Optional, Type

from pvelxc.providers.base import BaseProvider
from pvelxc.providers.template import TemplateProvider
from pvelxc.providers.container import ContainerProvider
from pvelxc.providers.notes import NotesProvider


logger = logging.getLogger(__name__)

DEFAULT_PROVIDERS: Dict[str, Type[BaseProvider]] = {
    "template": TemplateProvider,
    "container": ContainerProvider,
    "notes": NotesProvider,
}


class ProviderRegistry:
    """Creates the providers and lets them find each other."""

    def __init__(self, provider_classes: Optional[Mapping[str, Type[BaseProvider]]] = None):
        """Initialize provider registry."""
        self._provider_classes = dict(provider_classes or DEFAULT_PROVIDERS)
        self._providers: Dict[str, BaseProvider] = {}

    async def initialize(self, config):
        """Instantiate every provider, then initialize each with the registry.

        All providers exist before any is initialized, so a provider can look
        up its peers regardless of declaration order.
        """
        self._providers = {name: cls() for name, cls in self._provider_classes.items()}

        for name, provider in self._providers.items():
            try:
                await provider.initialize(config, self)
            except Exception as e:
                logger.error(f"Failed to initialize {name} provider: {e}")
                raise
            logger.debug(f"Initialized {name} provider")

    def get_provider(self, name: str) -> Optional[BaseProvider]:
        """Get a provider by name."""
        return self._providers.get(name)
