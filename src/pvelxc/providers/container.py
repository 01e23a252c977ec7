"""Container provider for managing Proxmox LXC containers with pct."""

import asyncio
import logging
import subprocess
from urllib.parse import unquote
from typing import Any, Dict, List, Optional

from pvelxc.errors import ContainerError, StepError
from pvelxc.models.container import ContainerSpec
from pvelxc.models.template import TemplateRef
from pvelxc.providers.base import BaseProvider
from pvelxc.utils.command import CommandResult, run_command


logger = logging.getLogger(__name__)

# Exists once the guest's package database is in place
BOOT_MARKER = "/var/lib/dpkg/status"

DHCP_PENDING = "[DHCP - check after boot]"

AUTOLOGIN_OVERRIDE = """mkdir -p /etc/systemd/system/container-getty@1.service.d
cat > /etc/systemd/system/container-getty@1.service.d/override.conf << 'EOF'
[Service]
ExecStart=
ExecStart=-/sbin/agetty --autologin root --noclear --keep-baud tty%I 115200,38400,9600 $TERM
EOF
systemctl daemon-reload"""


def _flag(value: bool) -> str:
    return "1" if value else "0"


class ContainerProvider(BaseProvider):
    """Provider for managing Proxmox LXC containers."""

    def __init__(self):
        """Initialize container provider."""
        self.pct = "pct"
        self.boot_timeout = 30
        self.poll_interval = 1.0
        self.service_settle = 3.0
        self.command_timeout: Optional[int] = None

    async def initialize(self, config, registry=None) -> None:
        """Initialize provider with configuration."""
        self.pct = config.host.pct_command
        self.boot_timeout = config.host.boot_timeout
        self.poll_interval = config.host.poll_interval
        self.service_settle = config.host.service_settle
        self.command_timeout = config.host.command_timeout

    async def exists(self, ctid: int) -> bool:
        """Check whether a container record exists for the ID."""
        result = await run_command([self.pct, "status", str(ctid)], check=False)
        return result.ok

    async def get_state(self, ctid: int) -> Optional[str]:
        """Return the pct status word (running, stopped) or None when absent."""
        result = await run_command([self.pct, "status", str(ctid)], check=False)
        if not result.ok:
            return None
        # Output looks like "status: running"
        _, _, state = result.stdout.strip().partition(":")
        return state.strip() or None

    async def is_running(self, ctid: int) -> bool:
        """Check if container is running."""
        return await self.get_state(ctid) == "running"

    def build_create_command(self, spec: ContainerSpec, template: TemplateRef) -> List[str]:
        """Build the full ``pct create`` invocation."""
        return [
            self.pct, "create", str(spec.ctid), template.volid,
            "--hostname", spec.hostname,
            "--cores", str(spec.cores),
            "--memory", str(spec.memory),
            "--swap", str(spec.swap),
            "--rootfs", spec.rootfs,
            "--net0", spec.network.net0(),
            "--nameserver", spec.network.nameserver,
            "--onboot", _flag(spec.onboot),
            "--unprivileged", _flag(spec.unprivileged),
            "--features", spec.features,
            "--ostype", template.ostype,
        ]

    async def create(self, spec: ContainerSpec, template: TemplateRef) -> None:
        """Create the container."""
        logger.info(f"Creating LXC container {spec.ctid} ({spec.hostname})...")
        try:
            # Extended timeout, rootfs allocation can be slow on busy storage
            await run_command(self.build_create_command(spec, template), timeout=600)
        except subprocess.CalledProcessError as e:
            logger.error(f"Failed to create container: {e}. Stderr: {e.stderr}")
            raise ContainerError("Failed to create container") from e
        except subprocess.TimeoutExpired as e:
            raise ContainerError(f"Container creation timed out after {e.timeout}s") from e

        logger.info(f"Container {spec.ctid} created successfully")

    async def start(self, ctid: int) -> None:
        """Start the container and wait for it to boot."""
        logger.info(f"Starting container {ctid}...")
        try:
            await run_command([self.pct, "start", str(ctid)], timeout=120)
        except subprocess.CalledProcessError as e:
            logger.error(f"Failed to start container: {e}. Stderr: {e.stderr}")
            raise ContainerError("Failed to start container") from e
        except subprocess.TimeoutExpired as e:
            raise ContainerError(f"Container start timed out after {e.timeout}s") from e

        logger.info("Waiting for container to boot...")
        await self.wait_for_ready(ctid)
        logger.info("Container started successfully")

    async def stop(self, ctid: int) -> bool:
        """Stop the container; returns False if pct reported an error."""
        try:
            result = await run_command([self.pct, "stop", str(ctid)], check=False, timeout=120)
        except subprocess.TimeoutExpired:
            logger.warning(f"pct stop {ctid} timed out")
            return False
        if not result.ok:
            logger.debug(f"pct stop {ctid} exited {result.returncode}: {result.stderr.strip()}")
        return result.ok

    async def destroy(self, ctid: int) -> None:
        """Stop and destroy the container."""
        if not await self.exists(ctid):
            logger.debug(f"Container {ctid} already absent")
            return

        logger.info(f"Removing container {ctid}...")
        if await self.is_running(ctid):
            await self.stop(ctid)

        try:
            await run_command([self.pct, "destroy", str(ctid)], timeout=300)
        except subprocess.CalledProcessError as e:
            logger.error(f"Failed to destroy container: {e}. Stderr: {e.stderr}")
            raise ContainerError(f"Failed to destroy container {ctid}") from e
        except subprocess.TimeoutExpired as e:
            raise ContainerError(f"Destroying container {ctid} timed out after {e.timeout}s") from e

        logger.info(f"Container {ctid} removed")

    async def wait_for_ready(self, ctid: int) -> None:
        """Poll for the boot marker until the boot timeout runs out."""
        if self.poll_interval > 0:
            attempts = max(1, int(self.boot_timeout / self.poll_interval))
        else:
            attempts = self.boot_timeout

        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.boot_timeout

        for _ in range(attempts):
            remaining = deadline - loop.time()
            if remaining <= 0:
                break
            try:
                # A hung exec must not stretch the wait past the boot timeout
                result = await run_command(
                    [self.pct, "exec", str(ctid), "--", "test", "-f", BOOT_MARKER],
                    check=False,
                    timeout=remaining,
                )
            except subprocess.TimeoutExpired:
                break
            if result.ok:
                logger.debug(f"Container {ctid} is ready")
                return

            await asyncio.sleep(self.poll_interval)

        raise ContainerError(f"Container failed to boot in {self.boot_timeout}s")

    async def execute(self, ctid: int, script: str, timeout: Optional[float] = None) -> CommandResult:
        """Run shell text inside the container with bash -c."""
        cmd = [self.pct, "exec", str(ctid), "--", "bash", "-c", script]
        return await run_command(
            cmd,
            check=False,
            timeout=timeout or self.command_timeout,
        )

    async def run_step(self, ctid: int, name: str, script: str, required: bool = True) -> CommandResult:
        """Run one provisioning step; a failed required step is fatal."""
        logger.info(f"{name}...")
        try:
            result = await self.execute(ctid, script)
        except subprocess.TimeoutExpired as e:
            raise StepError(name, -1, f"timed out after {e.timeout}s") from e

        if result.ok:
            return result

        if required:
            logger.error(f"{name} failed: {result.stderr.strip()}")
            raise StepError(name, result.returncode, result.stderr)

        logger.warning(f"{name} failed (exit {result.returncode}), continuing anyway")
        return result

    async def configure_autologin(self, ctid: int) -> None:
        """Log root in automatically on the Proxmox console."""
        await self.run_step(ctid, "Configuring automatic console login", AUTOLOGIN_OVERRIDE)
        await self.run_step(
            ctid,
            "Restarting console getty",
            "systemctl restart container-getty@1.service",
            required=False,
        )

    async def configure_services(self, ctid: int, services: List[str]) -> None:
        """Enable, start and verify systemd services."""
        await self.run_step(ctid, "Reloading systemd", "systemctl daemon-reload")
        for service in services:
            await self.run_step(ctid, f"Enabling {service}", f"systemctl enable {service}")
            await self.run_step(ctid, f"Starting {service}", f"systemctl start {service}")

        # Wait for services to settle before checking them
        await asyncio.sleep(self.service_settle)

        for service in services:
            result = await self.execute(ctid, f"systemctl is-active --quiet {service}")
            if result.ok:
                logger.info(f"Service {service} configured and started")
                continue

            status = await self.execute(ctid, f"systemctl status {service} --no-pager")
            logger.error(f"Service {service} failed to start:\n{status.stdout}")
            raise StepError(
                f"Verifying {service}",
                result.returncode,
                status.stdout,
                hints=[f"Check logs: pct exec {ctid} -- journalctl -u {service} -n 50"],
            )

    async def get_address(self, spec: ContainerSpec) -> str:
        """Return the address to advertise in reports."""
        if not spec.network.is_dhcp:
            return spec.network.address

        result = await self.execute(spec.ctid, "hostname -I", timeout=30)
        addresses = result.stdout.split() if result.ok else []
        return addresses[0] if addresses else DHCP_PENDING

    async def get_hostname(self, ctid: int) -> str:
        """Hostname reported by the guest, or a placeholder."""
        result = await self.execute(ctid, "hostname", timeout=30)
        hostname = result.stdout.strip() if result.ok else ""
        return hostname or f"CT-{ctid}"

    async def get_os_id(self, ctid: int) -> str:
        """Return the ID field of the guest's /etc/os-release."""
        result = await self.execute(ctid, "cat /etc/os-release", timeout=30)
        if not result.ok:
            return "unknown"
        for line in result.stdout.splitlines():
            if line.startswith("ID="):
                return line[3:].strip().strip('"')
        return "unknown"

    async def list_containers(self) -> List[Dict[str, Any]]:
        """List containers known to pct."""
        result = await run_command([self.pct, "list"], check=False)
        if not result.ok:
            raise ContainerError(f"pct list failed: {result.stderr.strip()}")

        containers = []
        # Columns are VMID, Status, Lock (often empty), Name
        for line in result.stdout.splitlines()[1:]:
            parts = line.split()
            if len(parts) < 2 or not parts[0].isdigit():
                continue
            containers.append({
                "ctid": int(parts[0]),
                "status": parts[1],
                "name": parts[-1] if len(parts) > 2 else "",
            })
        return containers

    async def get_description(self, ctid: int) -> Optional[str]:
        """Read the notes field from the container config.

        pct prints the description on one line, percent-encoded.
        """
        result = await run_command([self.pct, "config", str(ctid)], check=False)
        if not result.ok:
            return None
        for line in result.stdout.splitlines():
            if line.startswith("description:"):
                return unquote(line.partition(":")[2].strip())
        return None

    async def set_description(self, ctid: int, text: str) -> bool:
        """Write the notes field."""
        result = await run_command([self.pct, "set", str(ctid), "--description", text], check=False)
        if not result.ok:
            logger.debug(f"pct set {ctid} failed: {result.stderr.strip()}")
        return result.ok
