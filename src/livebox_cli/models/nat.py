"""NAT (port forwarding) rule models.

The device lists rules in one shape (PascalCase keys, read-only status
fields) and accepts updates in another (camelCase keys, no status). The rule
id joins the two.
"""

import re
from enum import Enum
from ipaddress import IPv4Address
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_ORIGIN = "webui"
DEFAULT_SOURCE_INTERFACE = "data"

_PORT_PATTERN = re.compile(r"^(\d{1,5})(?:-(\d{1,5}))?$")
_MAC_PATTERN = re.compile(r"^([0-9A-Fa-f]{2}:){5}[0-9A-Fa-f]{2}$")


class Protocol(str, Enum):
    """Forwarded protocol, encoded as IP protocol numbers on the wire."""

    TCP = "6"
    UDP = "17"
    ALL = "6,17"


class RuleStatus(str, Enum):
    """Rule status reported by the device in listings."""

    ENABLED = "Enabled"
    DISABLED = "Disabled"


class NatRuleView(BaseModel):
    """A port forwarding rule as returned by ``getPortForwarding``.

    Status, lease duration and the capability flags are maintained by the
    device and never sent back.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(alias="Id")
    origin: str = Field(DEFAULT_ORIGIN, alias="Origin")
    description: str = Field("", alias="Description")
    status: RuleStatus | str | None = Field(None, alias="Status")
    source_interface: str = Field(DEFAULT_SOURCE_INTERFACE, alias="SourceInterface")
    protocol: Protocol = Field(alias="Protocol")
    external_port: str = Field(alias="ExternalPort")
    internal_port: str = Field(alias="InternalPort")
    source_prefix: str = Field("", alias="SourcePrefix")
    destination_ip_address: str = Field(alias="DestinationIPAddress")
    destination_mac_address: str = Field("", alias="DestinationMACAddress")
    lease_duration: int = Field(0, alias="LeaseDuration")
    hairpin_nat: bool = Field(False, alias="HairpinNAT")
    symmetric_snat: bool = Field(False, alias="SymmetricSNAT")
    upnp_v1_compat: bool = Field(False, alias="UPnPV1Compat")
    enable: bool = Field(alias="Enable")

    def to_json_value(self) -> dict[str, Any]:
        """Return the rule with the device's own key names."""
        return self.model_dump(mode="json", by_alias=True)


class SetPortForwardingParams(BaseModel):
    """Full parameter set of ``setPortForwarding``.

    The device replaces the whole rule on every call, so updates must send
    every field, not only the changed ones.
    """

    model_config = ConfigDict(populate_by_name=True, validate_assignment=True)

    id: str = Field(min_length=1, description="Rule identifier")
    origin: str = Field(DEFAULT_ORIGIN, description="Creator of the rule")
    description: str = Field("", description="Free text description")
    source_interface: str = Field(DEFAULT_SOURCE_INTERFACE, alias="sourceInterface")
    protocol: Protocol = Protocol.TCP
    external_port: str = Field(alias="externalPort")
    internal_port: str = Field(alias="internalPort")
    destination_ip_address: str = Field(alias="destinationIPAddress")
    destination_mac_address: str = Field("", alias="destinationMACAddress")
    enable: bool = True
    persistent: bool = True

    @field_validator("external_port", "internal_port", mode="before")
    @classmethod
    def validate_port(cls, v: Any) -> str:
        """Accept a port or a ``low-high`` range and return it as text.

        Raises:
            ValueError: If the value is not a valid port or range
        """
        text = str(v).strip()
        match = _PORT_PATTERN.match(text)
        if not match:
            raise ValueError(f"Invalid port: {v!r}")

        low = int(match.group(1))
        high = int(match.group(2)) if match.group(2) else low
        if not 1 <= low <= 65535 or not 1 <= high <= 65535:
            raise ValueError(f"Port out of range (1-65535): {v!r}")
        if high < low:
            raise ValueError(f"Invalid port range, end before start: {v!r}")
        return text

    @field_validator("destination_ip_address", mode="before")
    @classmethod
    def validate_destination_ip(cls, v: Any) -> str:
        """Require an IPv4 address and return it as text."""
        try:
            return str(IPv4Address(str(v).strip()))
        except ValueError as e:
            raise ValueError(f"Invalid IPv4 address: {v!r}") from e

    @field_validator("destination_mac_address")
    @classmethod
    def validate_mac(cls, v: str) -> str:
        """Validate the destination MAC address if one is given."""
        if v and not _MAC_PATTERN.match(v):
            raise ValueError(f"Invalid MAC address: {v!r}")
        return v

    @classmethod
    def from_view(cls, rule: NatRuleView) -> "SetPortForwardingParams":
        """Build the full update parameters of an existing rule.

        The listed values are copied as the device reported them, without
        the checks applied to new rules.

        Args:
            rule: Rule as listed by the device

        Returns:
            Parameters that recreate the rule unchanged
        """
        return cls.model_construct(
            id=rule.id,
            origin=rule.origin,
            description=rule.description,
            source_interface=rule.source_interface,
            protocol=rule.protocol,
            external_port=rule.external_port,
            internal_port=rule.internal_port,
            destination_ip_address=rule.destination_ip_address,
            destination_mac_address=rule.destination_mac_address,
            enable=rule.enable,
            persistent=True,
        )


class DeletePortForwardingParams(BaseModel):
    """Parameters of ``deletePortForwarding``."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    origin: str
    destination_ip_address: str = Field(alias="destinationIPAddress")

    @classmethod
    def from_view(cls, rule: NatRuleView) -> "DeletePortForwardingParams":
        return cls(
            id=rule.id,
            origin=rule.origin,
            destination_ip_address=rule.destination_ip_address,
        )
