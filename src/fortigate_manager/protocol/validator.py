"""Validation of address object names, kinds and values before generation.

Everything written here ends up inside a quoted FortiOS command block, so a
stray quote or newline would let a value escape its `set` line. Values are
checked against the encoding their kind requires and returned normalized
(surrounding whitespace stripped), never otherwise rewritten.
"""
import ipaddress
import re
from typing import Union

from ..errors import MalformedValue, UnsupportedKind
from .schema import AddressKind, TAG_PREFIX, WRITABLE_KINDS

MAC_FULL_PATTERN = re.compile(r"^(?:[0-9a-fA-F]{2}[:-]){5}[0-9a-fA-F]{2}$")
FQDN_LABEL_PATTERN = re.compile(r"^(?!-)[A-Za-z0-9-]{1,63}(?<!-)$")
FORBIDDEN_CHARS = ('"', "\n", "\r")
MAX_NAME_LENGTH = 79  # FortiOS limit for firewall address names


def coerce_kind(kind: Union[str, AddressKind]) -> AddressKind:
    """Turn a kind string into a writable AddressKind.

    Raises:
        UnsupportedKind: For anything other than mac, subnet, fqdn, range
    """
    try:
        resolved = AddressKind(kind)
    except ValueError:
        raise UnsupportedKind(str(kind)) from None
    if resolved not in WRITABLE_KINDS:
        raise UnsupportedKind(resolved.value)
    return resolved


def _check_forbidden(label: str, text: str) -> None:
    for ch in FORBIDDEN_CHARS:
        if ch in text:
            raise MalformedValue(f"{label} must not contain quotes or line breaks: {text!r}")


def normalize_object_name(name: str, prefix: str = TAG_PREFIX) -> str:
    """Return the appliance name for an object, adding the tag prefix if absent."""
    name = (name or "").strip()
    if not name:
        raise MalformedValue("Object name is required")
    _check_forbidden("Object name", name)
    full_name = name if name.startswith(prefix) else f"{prefix}{name}"
    if len(full_name) > MAX_NAME_LENGTH:
        raise MalformedValue(f"Object name exceeds {MAX_NAME_LENGTH} characters: {full_name}")
    return full_name


def validate_member_names(members: list[str]) -> list[str]:
    """Check group member names are safe to quote into a `set member` line."""
    cleaned = []
    for member in members:
        member = (member or "").strip()
        if not member:
            raise MalformedValue("Group member names must not be empty")
        _check_forbidden("Group member", member)
        cleaned.append(member)
    return cleaned


def _validate_mac(value: str) -> None:
    if not MAC_FULL_PATTERN.match(value):
        raise MalformedValue(f"Invalid MAC address: {value}")


def _validate_subnet(value: str) -> None:
    # Accept "10.0.0.0/24" and "10.0.0.0 255.255.255.0"
    parts = value.split()
    if len(parts) == 1:
        network = parts[0]
    elif len(parts) == 2:
        network = f"{parts[0]}/{parts[1]}"
    else:
        raise MalformedValue(f"Invalid subnet: {value}")
    if "/" not in network:
        raise MalformedValue(f"Subnet needs a prefix length or mask: {value}")
    try:
        ipaddress.IPv4Network(network, strict=False)
    except ValueError as e:
        raise MalformedValue(f"Invalid subnet: {value} ({e})") from e


def _validate_fqdn(value: str) -> None:
    if any(ch.isspace() for ch in value):
        raise MalformedValue(f"Invalid FQDN: {value}")
    hostname = value[2:] if value.startswith("*.") else value
    hostname = hostname.rstrip(".")
    labels = hostname.split(".")
    if len(hostname) > 253 or not all(FQDN_LABEL_PATTERN.match(label) for label in labels):
        raise MalformedValue(f"Invalid FQDN: {value}")


def split_range(value: str) -> tuple[str, str]:
    """Split 'start-end' into its two trimmed addresses."""
    start, sep, end = value.partition("-")
    if not sep:
        raise MalformedValue(f"Range must be written as start-end: {value}")
    return start.strip(), end.strip()


def _validate_range(value: str) -> None:
    start, end = split_range(value)
    try:
        start_ip = ipaddress.IPv4Address(start)
        end_ip = ipaddress.IPv4Address(end)
    except ValueError as e:
        raise MalformedValue(f"Invalid range: {value} ({e})") from e
    if start_ip > end_ip:
        raise MalformedValue(f"Range start {start} is after end {end}")


_VALIDATORS = {
    AddressKind.MAC: _validate_mac,
    AddressKind.SUBNET: _validate_subnet,
    AddressKind.FQDN: _validate_fqdn,
    AddressKind.RANGE: _validate_range,
}


def validate_address_value(kind: Union[str, AddressKind], value: str) -> str:
    """Validate a value against its kind's encoding.

    Returns:
        The value with surrounding whitespace removed

    Raises:
        UnsupportedKind: Kind is not writable
        MalformedValue: Value does not match the kind's encoding
    """
    resolved = coerce_kind(kind)
    value = (value or "").strip()
    if not value:
        raise MalformedValue("Value is required")
    _check_forbidden("Value", value)
    _VALIDATORS[resolved](value)
    return value
