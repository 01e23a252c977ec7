"""Container specification models."""

import ipaddress
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class NetworkSpec(BaseModel):
    """Network configuration for the container's eth0."""
    model_config = ConfigDict(extra="ignore")

    ip: str = Field(default="dhcp", description="'dhcp' or a static address in CIDR notation")
    gateway: Optional[str] = Field(None, description="Gateway, used with a static address only")
    bridge: str = Field(default="vmbr0")
    nameserver: str = Field(default="8.8.8.8")

    @field_validator("ip")
    @classmethod
    def validate_ip(cls, v):
        """Accept 'dhcp' or an interface address with prefix length."""
        value = v.strip()
        if value.lower() == "dhcp":
            return "dhcp"
        if "/" not in value:
            raise ValueError(f"Static address must use CIDR notation (e.g. 192.168.1.100/24): {value}")
        ipaddress.ip_interface(value)
        return value

    @field_validator("gateway")
    @classmethod
    def validate_gateway(cls, v):
        """Treat an empty gateway as unset."""
        if v is None or not v.strip():
            return None
        ipaddress.ip_address(v.strip())
        return v.strip()

    @property
    def is_dhcp(self) -> bool:
        return self.ip == "dhcp"

    @property
    def address(self) -> Optional[str]:
        """Static address without the prefix length."""
        if self.is_dhcp:
            return None
        return self.ip.split("/", 1)[0]

    def net0(self) -> str:
        """Build the pct --net0 value."""
        config = f"name=eth0,bridge={self.bridge},ip={self.ip}"
        # Gateway only makes sense for a static address
        if not self.is_dhcp and self.gateway:
            config = f"{config},gw={self.gateway}"
        return config


class ContainerSpec(BaseModel):
    """Container specification."""
    model_config = ConfigDict(extra="ignore")

    ctid: int = Field(default=200, ge=100, le=999999999, description="Proxmox container ID")
    hostname: str = Field(..., pattern=r"^[A-Za-z0-9]([A-Za-z0-9-]{0,61}[A-Za-z0-9])?$")
    cores: int = Field(default=1, ge=1)
    memory: int = Field(default=512, ge=16, description="RAM in MB")
    swap: int = Field(default=512, ge=0, description="Swap in MB")
    disk_size: int = Field(default=4, ge=1, description="Root disk size in GB")
    storage: str = Field(default="local-lvm", description="Storage pool for the root disk")
    network: NetworkSpec = Field(default_factory=NetworkSpec)
    onboot: bool = Field(default=True)
    unprivileged: bool = Field(default=True)
    features: str = Field(default="keyctl=1,nesting=1")

    @property
    def rootfs(self) -> str:
        return f"{self.storage}:{self.disk_size}"
