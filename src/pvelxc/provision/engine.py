"""Provisioning engine: the linear create-install-report run."""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional

from jinja2 import TemplateError as JinjaTemplateError

from pvelxc.errors import ConfigError, ContainerError, ProvisionError
from pvelxc.models.container import ContainerSpec
from pvelxc.models.notes import NotesSpec
from pvelxc.models.recipe import RecipeSpec, StepSpec
from pvelxc.models.template import TemplateRef, TemplateSpec
from pvelxc.provision.config import ConfigManager
from pvelxc.providers import ProviderRegistry
from pvelxc.providers.container import DHCP_PENDING
from pvelxc.providers.preflight import PreflightValidator
from pvelxc.utils.templates import render_template


logger = logging.getLogger(__name__)

SUPPORTED_GUESTS = ("debian", "ubuntu")

# Called with the half-built container and the error; True destroys it
FailureHandler = Callable[[ContainerSpec, ProvisionError], bool]


@dataclass
class ProvisionPlan:
    """Everything a run would do, resolved without touching the host."""
    recipe: RecipeSpec
    spec: ContainerSpec
    settings: Dict[str, Any]
    templates: List[TemplateSpec]
    create_command: List[str]
    steps: List[StepSpec]
    notes: str


@dataclass
class ProvisionResult:
    """Outcome of a successful run."""
    recipe: RecipeSpec
    spec: ContainerSpec
    template: TemplateRef
    address: str
    notes: str
    notes_written: bool


@dataclass
class ApplyResult:
    """Outcome of applying a recipe to one existing container."""
    ctid: int
    hostname: str = ""
    error: Optional[str] = None
    hints: List[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.error is None


def _planned_address(spec: ContainerSpec) -> str:
    """Address for the report before the container has one."""
    return spec.network.address or DHCP_PENDING


class Provisioner:
    """Runs recipes against the Proxmox host."""

    def __init__(
        self,
        config_manager: ConfigManager,
        provider_registry: ProviderRegistry,
        preflight: Optional[PreflightValidator] = None,
    ):
        """Initialize provisioner."""
        self.config_manager = config_manager
        self.provider_registry = provider_registry
        self.preflight = preflight or PreflightValidator(
            config_manager.config.host,
            provider_registry.get_provider("container"),
        )

    @property
    def container_provider(self):
        return self._require("container")

    @property
    def template_provider(self):
        return self._require("template")

    @property
    def notes_provider(self):
        return self._require("notes")

    def _require(self, name: str):
        provider = self.provider_registry.get_provider(name)
        if provider is None:
            raise RuntimeError(f"{name.capitalize()} provider not available")
        return provider

    def list_recipes(self) -> List[RecipeSpec]:
        """Available recipes sorted by name."""
        return [self.config_manager.recipes[name] for name in sorted(self.config_manager.recipes)]

    def plan(
        self,
        recipe_name: str,
        overrides: Optional[Mapping[str, Any]] = None,
        settings: Optional[Mapping[str, Any]] = None,
    ) -> ProvisionPlan:
        """Resolve configuration and render steps without running anything."""
        recipe = self.config_manager.get_recipe(recipe_name)
        spec = self.config_manager.resolve_container(recipe, overrides)
        values = self.config_manager.resolve_settings(recipe, settings)
        templates = self.config_manager.resolve_templates(recipe, overrides)

        # Catalog lookups need the host; show what would be searched for
        first = templates[0]
        placeholder = TemplateRef(
            storage=first.storage,
            name=f"{first.distribution}-{first.version}-{first.variant}_<latest>",
            distribution=first.distribution,
        )
        return ProvisionPlan(
            recipe=recipe,
            spec=spec,
            settings=values,
            templates=templates,
            create_command=self.container_provider.build_create_command(spec, placeholder),
            steps=self._render_steps(recipe, spec, placeholder, values),
            notes=self._render_notes(recipe, spec, placeholder, values, _planned_address(spec)),
        )

    async def provision(
        self,
        recipe_name: str,
        overrides: Optional[Mapping[str, Any]] = None,
        settings: Optional[Mapping[str, Any]] = None,
        on_failure: Optional[FailureHandler] = None,
    ) -> ProvisionResult:
        """Create a container and install a recipe into it."""
        self.preflight.check_host()

        recipe = self.config_manager.get_recipe(recipe_name)
        logger.info(f"Starting {recipe.title} LXC container creation...")
        spec = self.config_manager.resolve_container(recipe, overrides)
        values = self.config_manager.resolve_settings(recipe, settings)
        await self.preflight.check_container_id(spec.ctid)

        template = await self.template_provider.ensure(
            self.config_manager.resolve_templates(recipe, overrides)
        )
        steps = self._render_steps(recipe, spec, template, values)
        # Catches broken report templates while nothing exists yet
        self._render_notes(recipe, spec, template, values, _planned_address(spec))

        created = False
        try:
            await self.container_provider.create(spec, template)
            created = True
            await self.container_provider.start(spec.ctid)
            await self._install(recipe, spec.ctid, steps)
        except ProvisionError as e:
            if created:
                await self._handle_failure(spec, e, on_failure)
            raise

        address = await self.container_provider.get_address(spec)
        notes = self._render_notes(recipe, spec, template, values, address)
        notes_written = await self.notes_provider.write(spec.ctid, notes)

        logger.info(f"{recipe.title} LXC container setup complete")
        return ProvisionResult(
            recipe=recipe,
            spec=spec,
            template=template,
            address=address,
            notes=notes,
            notes_written=notes_written,
        )

    async def apply(
        self,
        recipe_name: str,
        ctid: int,
        settings: Optional[Mapping[str, Any]] = None,
    ) -> ApplyResult:
        """Install a recipe into an existing container."""
        self.preflight.check_host()
        recipe = self.config_manager.get_recipe(recipe_name)
        values = self.config_manager.resolve_settings(recipe, settings)
        return await self._apply(recipe, ctid, values)

    async def apply_all(
        self,
        recipe_name: str,
        settings: Optional[Mapping[str, Any]] = None,
    ) -> List[ApplyResult]:
        """Install a recipe into every container on the host.

        A failing container is recorded and the run moves on to the next.
        """
        self.preflight.check_host()
        recipe = self.config_manager.get_recipe(recipe_name)
        values = self.config_manager.resolve_settings(recipe, settings)

        results = []
        for container in await self.container_provider.list_containers():
            ctid = container["ctid"]
            try:
                results.append(await self._apply(recipe, ctid, values))
            except ProvisionError as e:
                logger.error(f"Container {ctid}: {e}")
                results.append(ApplyResult(ctid=ctid, error=str(e), hints=e.hints))
        return results

    async def _apply(self, recipe: RecipeSpec, ctid: int, values: Dict[str, Any]) -> ApplyResult:
        provider = self.container_provider
        if not await provider.exists(ctid):
            raise ContainerError(f"Container {ctid} does not exist")

        if not await provider.is_running(ctid):
            logger.warning(f"Container {ctid} is not running. Starting...")
            await provider.start(ctid)

        hostname = await provider.get_hostname(ctid)
        os_id = await provider.get_os_id(ctid)
        if os_id not in SUPPORTED_GUESTS:
            raise ContainerError(f"Container {ctid} uses {os_id} (not Debian/Ubuntu)")

        logger.info(f"Installing {recipe.title} on container {ctid} ({hostname})...")
        try:
            spec = ContainerSpec(ctid=ctid, hostname=hostname)
        except ValueError:
            spec = ContainerSpec(ctid=ctid, hostname=f"CT-{ctid}")
        steps = self._render_steps(recipe, spec, None, values)
        await self._install(recipe, ctid, steps)

        logger.info(f"{recipe.title} installed on container {ctid}")
        return ApplyResult(ctid=ctid, hostname=hostname)

    async def destroy(self, ctid: int) -> None:
        """Stop and destroy a container."""
        self.preflight.check_host()
        if not await self.container_provider.exists(ctid):
            raise ContainerError(f"Container {ctid} does not exist")
        await self.container_provider.destroy(ctid)

    async def resolve_template(
        self,
        distribution: str,
        version: str,
        storage: Optional[str] = None,
        download: bool = True,
    ) -> TemplateRef:
        """Resolve the newest template for a distribution/version."""
        self.preflight.check_host()
        try:
            spec = TemplateSpec(
                distribution=distribution,
                version=version,
                storage=storage or self.config_manager.environ.get("TEMPLATE_STORAGE") or "local",
            )
        except ValueError as e:
            raise ConfigError(f"Invalid template request: {e}") from e

        if download:
            return await self.template_provider.ensure([spec])
        return await self.template_provider.resolve([spec])

    async def describe(self, ctid: int) -> NotesSpec:
        """Current notes of a container."""
        return await self.notes_provider.read(ctid)

    def _render_steps(
        self,
        recipe: RecipeSpec,
        spec: ContainerSpec,
        template: Optional[TemplateRef],
        values: Dict[str, Any],
    ) -> List[StepSpec]:
        """Render step text; errors surface before anything is created."""
        context = {
            "recipe": recipe,
            "ct": spec,
            "template": template,
            "settings": values,
        }
        rendered = []
        for step in recipe.steps:
            try:
                name = render_template(step.name, **context)
                script = render_template(step.run, **context)
            except JinjaTemplateError as e:
                raise ConfigError(f"Recipe {recipe.name}, step '{step.name}': {e}") from e
            rendered.append(step.model_copy(update={"name": name, "run": script}))
        return rendered

    def _render_notes(
        self,
        recipe: RecipeSpec,
        spec: ContainerSpec,
        template: Optional[TemplateRef],
        values: Dict[str, Any],
        address: str,
    ) -> str:
        try:
            return self.notes_provider.render(recipe, spec, template, values, address)
        except JinjaTemplateError as e:
            raise ConfigError(f"Recipe {recipe.name}, report: {e}") from e

    async def _install(self, recipe: RecipeSpec, ctid: int, steps: List[StepSpec]) -> None:
        """Run autologin, recipe steps and service setup in order."""
        provider = self.container_provider
        if recipe.autologin:
            await provider.configure_autologin(ctid)

        for step in steps:
            await provider.run_step(ctid, step.name, step.run, required=step.required)

        if recipe.services:
            await provider.configure_services(ctid, recipe.services)

    async def _handle_failure(
        self,
        spec: ContainerSpec,
        error: ProvisionError,
        on_failure: Optional[FailureHandler],
    ) -> None:
        """Offer to remove a half-built container."""
        logger.error(f"Installation failed: {error}")

        remove = on_failure(spec, error) if on_failure else False
        if not remove:
            error.hints.extend([
                f"Container {spec.ctid} was kept. Options:",
                f"  1. Keep for debugging: pct enter {spec.ctid}",
                f"  2. Remove and retry: pct stop {spec.ctid} && pct destroy {spec.ctid}",
            ])
            return

        try:
            await self.container_provider.destroy(spec.ctid)
            error.hints.append(f"Container {spec.ctid} removed")
        except ProvisionError as cleanup_error:
            logger.warning(f"Failed to remove container {spec.ctid}: {cleanup_error}")
