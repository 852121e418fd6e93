"""Protocol translator between address records and FortiOS command text.

Usage:
    from fortigate_manager.protocol import CommandGenerator, parse_address_objects

    block = CommandGenerator().address_object("ELS-printer", "mac", "00:11:22:33:44:55")
    objects = parse_address_objects(output, kind=AddressKind.MAC)
"""

from .schema import (
    AddressGroup,
    AddressKind,
    AddressObject,
    MANAGED_GROUP,
    TAG_PREFIX,
    WRITABLE_KINDS,
)
from .parser import (
    block_name,
    classify_block,
    extract_value,
    parse_address_block,
    parse_address_groups,
    parse_address_objects,
    parse_members,
    split_blocks,
)
from .generator import CommandGenerator
from .validator import (
    coerce_kind,
    normalize_object_name,
    validate_address_value,
    validate_member_names,
)

__all__ = [
    # Schema
    "AddressGroup",
    "AddressKind",
    "AddressObject",
    "MANAGED_GROUP",
    "TAG_PREFIX",
    "WRITABLE_KINDS",
    # Parser
    "block_name",
    "classify_block",
    "extract_value",
    "parse_address_block",
    "parse_address_groups",
    "parse_address_objects",
    "parse_members",
    "split_blocks",
    # Generator
    "CommandGenerator",
    # Validator
    "coerce_kind",
    "normalize_object_name",
    "validate_address_value",
    "validate_member_names",
]
