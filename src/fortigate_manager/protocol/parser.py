"""Parser for FortiOS `show firewall address` / `show firewall addrgrp` output.

FortiOS prints configuration as nested blocks:

    config firewall address
        edit "ELS-printer"
            set uuid 6a1c...
            set type mac
            set macaddr 00:11:22:33:44:55
        next
        edit "ELS-lab"
            set subnet 10.20.0.0 255.255.255.0
        next
    end

There is no schema, so every step below is a small pure function over the
text: segment into blocks, find the block name, classify the kind, extract
the value. None of them know about SSH or session state.
"""
import re
from typing import Optional

from .schema import AddressGroup, AddressKind, AddressObject, TAG_PREFIX

# Block terminator: "next" alone on a line
BLOCK_TERMINATOR = re.compile(r"^\s*next\s*$", re.MULTILINE)
EDIT_PATTERN = re.compile(r'edit "([^"]+)"')

# Kind markers, tested in this order. First match wins.
KIND_MARKERS = (
    (AddressKind.MAC, "set type mac"),
    (AddressKind.SUBNET, "set subnet"),
    (AddressKind.FQDN, "set fqdn"),
    (AddressKind.RANGE, "set start-ip"),
)

# Matches anywhere in the block, not keyed to the macaddr line
MAC_PATTERN = re.compile(r"(?:[0-9a-fA-F]{2}[:-]){5}[0-9a-fA-F]{2}")
SUBNET_PATTERN = re.compile(r"set subnet (\S+(?:[ \t]+\d{1,3}(?:\.\d{1,3}){3})?)")
FQDN_PATTERN = re.compile(r'set fqdn "([^"]+)"')
START_IP_PATTERN = re.compile(r"set start-ip ([\d.]+)")
END_IP_PATTERN = re.compile(r"set end-ip ([\d.]+)")

GROUP_BLOCK_PATTERN = re.compile(r'edit "([^"]+)"\s*(.*?)\s*^\s*next\s*$', re.DOTALL | re.MULTILINE)
MEMBER_PATTERN = re.compile(r"set member ([^\n]+)")


def split_blocks(output: str) -> list[str]:
    """Split raw output into edit...next blocks (the trailing remainder included)."""
    return BLOCK_TERMINATOR.split(output)


def block_name(block: str) -> Optional[str]:
    """Return the name from the block's `edit "<name>"` header, if any."""
    match = EDIT_PATTERN.search(block)
    return match.group(1) if match else None


def classify_block(block: str) -> AddressKind:
    """Determine the object kind from the markers present in a block."""
    for kind, marker in KIND_MARKERS:
        if marker in block:
            return kind
    return AddressKind.UNKNOWN


def extract_value(kind: AddressKind, block: str) -> str:
    """Extract the kind-specific value from a block. Empty string if absent."""
    if kind == AddressKind.MAC:
        match = MAC_PATTERN.search(block)
        return match.group(0) if match else ""

    if kind == AddressKind.SUBNET:
        match = SUBNET_PATTERN.search(block)
        return match.group(1) if match else ""

    if kind == AddressKind.FQDN:
        match = FQDN_PATTERN.search(block)
        return match.group(1) if match else ""

    if kind == AddressKind.RANGE:
        start = START_IP_PATTERN.search(block)
        end = END_IP_PATTERN.search(block)
        # A half-specified range is not a range
        if start and end:
            return f"{start.group(1)}-{end.group(1)}"
        return ""

    return ""


def parse_address_block(block: str) -> Optional[AddressObject]:
    """Parse a single block into an AddressObject, or None if it has no name."""
    name = block_name(block)
    if name is None:
        return None
    kind = classify_block(block)
    return AddressObject(name=name, kind=kind, value=extract_value(kind, block))


def parse_address_objects(
    output: str,
    kind: Optional[AddressKind] = None,
    prefix: str = TAG_PREFIX,
) -> dict[str, AddressObject]:
    """Parse `show firewall address` output into objects keyed by name.

    Args:
        output: Raw command output
        kind: Only return objects of this kind (applied after classification)
        prefix: Objects whose name lacks this prefix are discarded

    Returns:
        Dict mapping object name to AddressObject, in appliance order
    """
    objects: dict[str, AddressObject] = {}
    for block in split_blocks(output):
        obj = parse_address_block(block)
        if obj is None or not obj.name.startswith(prefix):
            continue
        if kind is not None and obj.kind != kind:
            continue
        objects[obj.name] = obj
    return objects


def parse_members(line: str) -> list[str]:
    """Split a `set member` argument string into member names.

    '"ELS-a" "ELS-b"' -> ["ELS-a", "ELS-b"]
    """
    line = line.strip()
    if not line:
        return []
    return [m.replace('"', "") for m in line.split('" "')]


def parse_address_groups(output: str, name: Optional[str] = None) -> dict[str, AddressGroup]:
    """Parse `show firewall addrgrp` output into groups keyed by name.

    A group block without a `set member` line has no members; that is not an
    error.

    Args:
        output: Raw command output
        name: Only return the group with this name
    """
    groups: dict[str, AddressGroup] = {}
    for match in GROUP_BLOCK_PATTERN.finditer(output):
        group_name, content = match.group(1), match.group(2)
        if name is not None and group_name != name:
            continue
        member_match = MEMBER_PATTERN.search(content)
        members = parse_members(member_match.group(1)) if member_match else []
        groups[group_name] = AddressGroup(name=group_name, members=members)
    return groups
