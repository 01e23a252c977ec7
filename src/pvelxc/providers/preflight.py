"""Preflight checks run before any state-mutating action."""

import logging
import os
import shutil

from pvelxc.errors import PreflightError
from pvelxc.models.config import HostConfig
from pvelxc.providers.container import ContainerProvider


logger = logging.getLogger(__name__)


class PreflightValidator:
    """Checks root privileges, Proxmox tooling and container ID availability.

    Host checks come first: a non-root run never looks for tools, and a host
    without ``pct`` is rejected before configuration is resolved or any
    container is looked up.
    """

    def __init__(self, host: HostConfig, container_provider: ContainerProvider):
        self.host = host
        self.container_provider = container_provider

    def check_root(self) -> None:
        if os.geteuid() != 0:
            raise PreflightError("This command must be run as root")

    def check_proxmox(self) -> None:
        if shutil.which(self.host.pct_command) is None:
            raise PreflightError(
                "This command must be run on a Proxmox VE host",
                hints=[f"'{self.host.pct_command}' was not found on PATH"],
            )

    async def check_container_id(self, ctid: int) -> None:
        if await self.container_provider.exists(ctid):
            raise PreflightError(
                f"Container ID {ctid} already exists",
                hints=["Please choose a different CT_ID or remove the existing container"],
            )
        logger.debug(f"Container ID {ctid} is free")

    def check_host(self) -> None:
        """Root and tooling checks, for operations on existing containers."""
        self.check_root()
        self.check_proxmox()
