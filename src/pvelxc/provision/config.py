"""Configuration loading and resolution."""

import asyncio
import logging
import os
from importlib import resources
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from pydantic import ValidationError
from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from pvelxc.errors import ConfigError
from pvelxc.models.config import PveLxcConfig
from pvelxc.models.container import ContainerSpec
from pvelxc.models.recipe import RecipeSpec
from pvelxc.models.template import TemplateSpec


logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("/etc/pvelxc/config.yaml")
CONFIG_ENV = "PVELXC_CONFIG"

# Environment variable -> ContainerSpec field
CONTAINER_ENV = {
    "CT_ID": "ctid",
    "CT_HOSTNAME": "hostname",
    "CT_CORES": "cores",
    "CT_MEMORY": "memory",
    "CT_SWAP": "swap",
    "CT_DISK_SIZE": "disk_size",
    "CT_STORAGE": "storage",
    "CT_ONBOOT": "onboot",
    "CT_UNPRIVILEGED": "unprivileged",
    "CT_FEATURES": "features",
}

# Environment variable -> NetworkSpec field
NETWORK_ENV = {
    "CT_IP": "ip",
    "CT_GATEWAY": "gateway",
    "CT_BRIDGE": "bridge",
    "CT_NAMESERVER": "nameserver",
}

TEMPLATE_STORAGE_ENV = "TEMPLATE_STORAGE"


class ConfigManager:
    """Loads host configuration and recipes and resolves run settings.

    Values are layered: recipe defaults first, then environment variables,
    then explicit overrides (command line options). Empty environment values
    count as unset.
    """

    def __init__(self, config_path: Optional[Path] = None, environ: Optional[Mapping[str, str]] = None):
        """Initialize configuration manager."""
        self.environ: Dict[str, str] = dict(os.environ if environ is None else environ)
        self.config_path = Path(config_path) if config_path else None
        self.yaml = YAML(typ="safe")
        self.config: Optional[PveLxcConfig] = None
        self.recipes: Dict[str, RecipeSpec] = {}

    async def load(self):
        """Load host configuration and all recipes."""
        await self._load_main_config()
        await self._load_recipes()
        logger.debug(f"Loaded {len(self.recipes)} recipes")

    async def _load_main_config(self):
        """Load the host configuration file, if any."""
        explicit = self.config_path or self.environ.get(CONFIG_ENV)
        config_file = Path(explicit) if explicit else DEFAULT_CONFIG_PATH

        if not config_file.exists():
            if explicit:
                raise ConfigError(f"Config file not found: {config_file}")
            logger.debug(f"No config at {config_file}, using defaults")
            self.config = PveLxcConfig()
            return

        try:
            data = await self._read_yaml(config_file)
            self.config = PveLxcConfig(**data)
            logger.debug(f"Loaded main config: {config_file}")
        except (ValidationError, YAMLError) as e:
            raise ConfigError(f"Invalid config {config_file}: {e}") from e

    async def _load_recipes(self):
        """Load built-in recipes, then user recipes which may replace them."""
        self.recipes.clear()

        builtin = resources.files("pvelxc") / "recipes"
        for entry in sorted(builtin.iterdir(), key=lambda item: item.name):
            if entry.name.endswith(".yaml"):
                await self._load_recipe(entry)

        if self.config and self.config.recipes_dir:
            recipes_dir = Path(self.config.recipes_dir)
            if not recipes_dir.is_dir():
                logger.warning(f"Recipes directory not found: {recipes_dir}")
                return
            for yaml_file in sorted(recipes_dir.glob("*.yaml")):
                await self._load_recipe(yaml_file)

    async def _load_recipe(self, source):
        """Load one recipe file; a broken file is logged and skipped."""
        try:
            data = await self._read_yaml(source)
            data.setdefault("name", source.name[: -len(".yaml")])
            recipe = RecipeSpec(**data)
        except Exception as e:
            logger.error(f"Error loading recipe {source.name}: {e}")
            return

        if recipe.name in self.recipes:
            logger.debug(f"Recipe {recipe.name} overridden by {source}")
        self.recipes[recipe.name] = recipe

    async def _read_yaml(self, source) -> Dict[str, Any]:
        """Read and parse a YAML file."""
        content = await asyncio.to_thread(source.read_text)
        return self.yaml.load(content) or {}

    def get_recipe(self, name: str) -> RecipeSpec:
        """Get recipe by name."""
        recipe = self.recipes.get(name)
        if recipe is None:
            available = ", ".join(sorted(self.recipes)) or "none"
            raise ConfigError(f"Unknown recipe: {name}", hints=[f"Available recipes: {available}"])
        return recipe

    def _lookup(self, key: str, overrides: Optional[Mapping[str, Any]]) -> Optional[str]:
        """Resolve one variable: overrides win over the environment."""
        if overrides and overrides.get(key) is not None:
            return str(overrides[key])
        value = self.environ.get(key)
        return value if value else None

    def resolve_container(self, recipe: RecipeSpec, overrides: Optional[Mapping[str, Any]] = None) -> ContainerSpec:
        """Build the container descriptor for a recipe."""
        defaults = recipe.container.model_dump(exclude_none=True)
        network: Dict[str, Any] = {}

        for env_name, field in CONTAINER_ENV.items():
            value = self._lookup(env_name, overrides)
            if value is not None:
                defaults[field] = value

        for env_name, field in NETWORK_ENV.items():
            value = self._lookup(env_name, overrides)
            if value is not None:
                network[field] = value

        try:
            return ContainerSpec(network=network, **defaults)
        except ValidationError as e:
            raise ConfigError(f"Invalid container configuration: {e}") from e

    def resolve_settings(self, recipe: RecipeSpec, overrides: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
        """Resolve recipe settings; settings without a default are mandatory."""
        unknown = sorted(set(overrides or {}) - set(recipe.settings))
        if unknown:
            raise ConfigError(
                f"Unknown setting(s) for {recipe.name}: {', '.join(unknown)}",
                hints=[f"Known settings: {', '.join(sorted(recipe.settings)) or 'none'}"],
            )

        values: Dict[str, Any] = {}
        missing: List[str] = []
        for key, default in recipe.settings.items():
            value = self._lookup(key, overrides)
            if value is None:
                value = default
            if value is None:
                missing.append(key)
            values[key] = value

        if missing:
            raise ConfigError(
                f"Missing required setting(s): {', '.join(missing)}",
                hints=[f"Set it in the environment, e.g. export {key}=..." for key in missing],
            )
        return values

    def resolve_templates(self, recipe: RecipeSpec, overrides: Optional[Mapping[str, Any]] = None) -> List[TemplateSpec]:
        """Template candidates for a recipe, with the template storage applied."""
        storage = self._lookup(TEMPLATE_STORAGE_ENV, overrides)
        if not storage:
            return list(recipe.os)
        return [spec.model_copy(update={"storage": storage}) for spec in recipe.os]
