"""Notes provider for the container's Proxmox notes field."""

import logging
from typing import Any, Dict, List, Optional, TYPE_CHECKING

from pvelxc.models.container import ContainerSpec
from pvelxc.models.notes import NotesSpec
from pvelxc.models.recipe import RecipeSpec, ReportLine
from pvelxc.models.template import TemplateRef
from pvelxc.providers.base import BaseProvider
from pvelxc.utils.templates import render_template, truncate_text

if TYPE_CHECKING:
    from pvelxc.providers.container import ContainerProvider
    from pvelxc.providers.registry import ProviderRegistry


logger = logging.getLogger(__name__)

# Proxmox rejects longer descriptions
DESCRIPTION_LIMIT = 8192

RULE = "=" * 60

NOTES_TEMPLATE = """{{ recipe.title }}
{{ rule }}

CONTAINER DETAILS
{{ rule }}
{{ row("Container ID", ct.ctid) }}
{{ row("Hostname", ct.hostname) }}
{{ row("IP Address", address) }}
{{ row("CPU Cores", ct.cores) }}
{{ row("Memory", ct.memory ~ "MB") }}
{{ row("Disk Size", ct.disk_size ~ "GB") }}
{% if template %}{{ row("Template", template.name) }}
{% endif %}
{%- if access %}
APPLICATION ACCESS
{{ rule }}
{% for line in access %}{{ row(line.label, line.value) }}
{% endfor %}
{%- endif %}
{%- if services or management %}
SERVICE MANAGEMENT
{{ rule }}
{% for service in services %}{{ row("Status", "pct exec " ~ ct.ctid ~ " -- systemctl status " ~ service) }}
{{ row("Restart", "pct exec " ~ ct.ctid ~ " -- systemctl restart " ~ service) }}
{{ row("Logs", "pct exec " ~ ct.ctid ~ " -- journalctl -u " ~ service ~ " -f") }}
{% endfor %}{% for line in management %}{{ row(line.label, line.value) }}
{% endfor %}
{%- endif %}
CONTAINER MANAGEMENT
{{ rule }}
{{ row("Enter", "pct enter " ~ ct.ctid) }}
{{ row("Start", "pct start " ~ ct.ctid) }}
{{ row("Stop", "pct stop " ~ ct.ctid) }}
{{ row("Restart", "pct reboot " ~ ct.ctid) }}
{{ row("Delete", "pct destroy " ~ ct.ctid) }}
{% if notes %}
NOTES
{{ rule }}
{{ notes }}
{% endif %}"""


def _row(label: str, value: Any) -> str:
    return f"{label + ':':<17}{value}"


class NotesProvider(BaseProvider):
    """Provider that renders and attaches the notes field."""

    def __init__(self):
        """Initialize notes provider."""
        self.limit = DESCRIPTION_LIMIT
        self._container_provider: Optional["ContainerProvider"] = None

    async def initialize(self, config, registry: "ProviderRegistry") -> None:
        """Initialize provider with configuration and registry."""
        # Notes are written through pct, owned by the container provider
        self._container_provider = registry.get_provider("container")

    @property
    def container_provider(self) -> Optional["ContainerProvider"]:
        """Get container provider."""
        return self._container_provider

    def render(
        self,
        recipe: RecipeSpec,
        spec: ContainerSpec,
        template: Optional[TemplateRef],
        settings: Dict[str, Any],
        address: str,
    ) -> str:
        """Render the report block for a provisioned container."""
        context = {
            "recipe": recipe,
            "ct": spec,
            "template": template,
            "settings": settings,
            "address": address,
        }
        access = self._render_lines(recipe.access, context)
        management = self._render_lines(recipe.management, context)
        notes = render_template(recipe.notes, **context).strip() if recipe.notes else ""

        text = render_template(
            NOTES_TEMPLATE,
            row=_row,
            rule=RULE,
            access=access,
            management=management,
            services=recipe.services,
            notes=notes,
            **context,
        )
        return text.strip() + "\n"

    def _render_lines(self, lines: List[ReportLine], context: Dict[str, Any]) -> List[ReportLine]:
        return [
            ReportLine(label=line.label, value=render_template(line.value, **context))
            for line in lines
        ]

    async def write(self, ctid: int, text: str) -> bool:
        """Attach notes to the container; failure is only a warning."""
        logger.info("Adding container notes with access information...")
        if len(text) > self.limit:
            logger.warning(f"Notes exceed {self.limit} characters, truncating")
            text = truncate_text(text, self.limit)

        if await self.container_provider.set_description(ctid, text):
            logger.info("Container notes added successfully")
            return True

        logger.warning("Failed to add container notes (not critical)")
        return False

    async def read(self, ctid: int) -> NotesSpec:
        """Current notes of a container; empty when none are set."""
        text = await self.container_provider.get_description(ctid)
        return NotesSpec(ctid=ctid, text=text or "")
