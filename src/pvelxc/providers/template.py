"""Template provider for Proxmox OS templates."""

import logging
import subprocess
from typing import List, Optional

from pvelxc.errors import TemplateError
from pvelxc.models.template import TemplateRef, TemplateSpec
from pvelxc.providers.base import BaseProvider, ProviderStatus
from pvelxc.utils.command import run_command


logger = logging.getLogger(__name__)

CATALOG_HINTS = [
    "Troubleshooting steps:",
    "  1. Check DNS configuration: cat /etc/resolv.conf",
    "  2. Test connectivity: ping -c 3 download.proxmox.com",
    "  3. Manual check: pveam available --section system",
]

DOWNLOAD_HINTS = [
    "Common fixes:",
    "  1. Add DNS server: echo 'nameserver 8.8.8.8' >> /etc/resolv.conf",
    "  2. Check internet: curl -I https://download.proxmox.com",
    "  3. Check storage: df -h",
]


def parse_available(output: str) -> List[str]:
    """Extract template names from ``pveam available`` output.

    Each line is ``<section> <template-name>``.
    """
    names = []
    for line in output.splitlines():
        parts = line.split()
        if len(parts) >= 2:
            names.append(parts[1])
    return names


def parse_stored(output: str) -> List[str]:
    """Extract volume IDs from ``pveam list <storage>`` output."""
    volids = []
    for line in output.splitlines():
        parts = line.split()
        if parts and ":vztmpl/" in parts[0]:
            volids.append(parts[0])
    return volids


class TemplateProvider(BaseProvider):
    """Provider for resolving and downloading OS templates with pveam."""

    def __init__(self):
        """Initialize template provider."""
        self.pveam = "pveam"
        self.section = "system"
        self.command_timeout: Optional[int] = None
        self.download_timeout: Optional[int] = None

    async def initialize(self, config, registry=None):
        """Initialize provider with configuration."""
        self.pveam = config.host.pveam_command
        self.section = config.host.template_section
        self.command_timeout = config.host.command_timeout
        self.download_timeout = config.host.download_timeout

    async def update_catalog(self) -> bool:
        """Refresh the template catalog; failure is not fatal."""
        logger.info("Updating template database...")
        try:
            result = await run_command(
                [self.pveam, "update"],
                check=False,
                timeout=self.command_timeout,
            )
        except subprocess.TimeoutExpired as e:
            logger.warning(f"Template database update timed out after {e.timeout}s, continuing anyway...")
            return False

        if not result.ok:
            logger.warning("Template database update encountered issues, continuing anyway...")
            return False
        return True

    async def available(self, spec: TemplateSpec) -> List[str]:
        """List catalog templates matching the spec, sorted by name."""
        try:
            result = await run_command(
                [self.pveam, "available", "--section", self.section],
                check=False,
                timeout=self.command_timeout,
            )
        except subprocess.TimeoutExpired as e:
            raise TemplateError(
                f"Template catalog query timed out after {e.timeout}s",
                hints=CATALOG_HINTS,
            ) from e
        if not result.ok:
            raise TemplateError(
                f"Failed to query template catalog: {result.stderr.strip()}",
                hints=CATALOG_HINTS,
            )
        return sorted(name for name in parse_available(result.stdout) if spec.matches(name))

    async def select(self, spec: TemplateSpec) -> Optional[TemplateRef]:
        """Pick the newest matching template, approximated by the lexicographically last name."""
        matches = await self.available(spec)
        if not matches:
            return None
        return TemplateRef(
            storage=spec.storage,
            name=matches[-1],
            distribution=spec.distribution,
        )

    async def resolve(self, candidates: List[TemplateSpec]) -> TemplateRef:
        """Resolve the first candidate that has a catalog entry."""
        await self.update_catalog()

        for index, spec in enumerate(candidates):
            logger.info(f"Detecting available {spec.label} template...")
            ref = await self.select(spec)
            if ref:
                logger.info(f"Found template: {ref.name}")
                return ref
            if index + 1 < len(candidates):
                logger.warning(
                    f"{spec.label} template not found, trying {candidates[index + 1].label}..."
                )

        labels = " / ".join(spec.label for spec in candidates)
        raise TemplateError(
            f"No {labels} template found in available templates",
            hints=CATALOG_HINTS,
        )

    async def ensure(self, candidates: List[TemplateSpec]) -> TemplateRef:
        """Resolve a template and make sure it is in local storage."""
        ref = await self.resolve(candidates)
        await self.present(ref)
        return ref

    async def status(self, spec: TemplateRef) -> ProviderStatus:
        """Check whether the template is already in storage."""
        try:
            result = await run_command(
                [self.pveam, "list", spec.storage],
                check=False,
                timeout=self.command_timeout,
            )
        except Exception as e:
            logger.error(f"Error checking template {spec.name}: {e}")
            return ProviderStatus.ERROR

        if not result.ok:
            return ProviderStatus.ERROR
        if spec.volid in parse_stored(result.stdout):
            return ProviderStatus.PRESENT
        return ProviderStatus.ABSENT

    async def present(self, spec: TemplateRef) -> None:
        """Download the template unless it is already stored."""
        current_status = await self.status(spec)

        if current_status == ProviderStatus.PRESENT:
            logger.info("Template already downloaded")
            return

        logger.warning("Downloading template (this may take a few minutes)...")
        try:
            await run_command(
                [self.pveam, "download", spec.storage, spec.name],
                timeout=self.download_timeout,
            )
        except subprocess.CalledProcessError as e:
            logger.error(f"Failed to download template {spec.name}: {e}. Stderr: {e.stderr}")
            raise TemplateError("Failed to download template", hints=DOWNLOAD_HINTS) from e
        except subprocess.TimeoutExpired as e:
            raise TemplateError(
                f"Template download timed out after {e.timeout}s",
                hints=DOWNLOAD_HINTS,
            ) from e

        logger.info("Template downloaded successfully")
