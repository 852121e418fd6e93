"""Structured records exchanged with the FortiGate address configuration."""
from dataclasses import dataclass, field
from enum import Enum

# Objects managed by this service carry this prefix on the appliance.
TAG_PREFIX = "ELS-"

# The single address group in scope.
MANAGED_GROUP = "ELS-APP"


class AddressKind(str, Enum):
    """Kind of a firewall address object."""
    MAC = "mac"
    SUBNET = "subnet"
    FQDN = "fqdn"
    RANGE = "range"
    UNKNOWN = "unknown"  # Only produced by parsing, never accepted for writes


# Kinds that can be created through this service
WRITABLE_KINDS = (AddressKind.MAC, AddressKind.SUBNET, AddressKind.FQDN, AddressKind.RANGE)


@dataclass
class AddressObject:
    """A named firewall address object."""
    name: str
    kind: AddressKind = AddressKind.UNKNOWN
    value: str = ""

    @property
    def display_value(self) -> str:
        return self.value

    def to_dict(self) -> dict:
        return {
            "type": self.kind.value,
            "value": self.value,
            "displayValue": self.display_value,
        }


@dataclass
class AddressGroup:
    """An address group and its member object names."""
    name: str
    members: list[str] = field(default_factory=list)
