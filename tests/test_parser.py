"""Tests for parsing FortiOS address and group output."""
from fortigate_manager.protocol import (
    AddressKind,
    AddressObject,
    block_name,
    classify_block,
    extract_value,
    parse_address_groups,
    parse_address_objects,
    parse_members,
    split_blocks,
)

from conftest import ADDRESS_OUTPUT, GROUP_OUTPUT


class TestBlocks:
    """Tests for block segmentation and naming."""

    def test_split_on_next_lines(self):
        blocks = split_blocks(ADDRESS_OUTPUT)
        names = [block_name(b) for b in blocks]
        assert names == ["ELS-printer", "ELS-lab", "ELS-docs", "ELS-pool", "all", None]

    def test_next_inside_a_value_is_not_a_terminator(self):
        output = 'edit "ELS-next-door"\n    set fqdn "next.example.com"\nnext\n'
        blocks = split_blocks(output)
        assert block_name(blocks[0]) == "ELS-next-door"
        assert 'set fqdn "next.example.com"' in blocks[0]

    def test_block_without_edit_has_no_name(self):
        assert block_name("    set subnet 10.0.0.0 255.0.0.0\n") is None


class TestClassify:
    """Tests for kind classification."""

    def test_mac_marker(self):
        assert classify_block("set type mac\nset macaddr 00:11:22:33:44:55") == AddressKind.MAC

    def test_subnet_marker(self):
        assert classify_block("set subnet 10.0.0.0 255.0.0.0") == AddressKind.SUBNET

    def test_fqdn_marker(self):
        assert classify_block('set type fqdn\nset fqdn "a.example"') == AddressKind.FQDN

    def test_range_marker(self):
        assert classify_block("set type iprange\nset start-ip 1.1.1.1") == AddressKind.RANGE

    def test_mac_wins_over_later_markers(self):
        block = "set type mac\nset subnet 10.0.0.0 255.0.0.0"
        assert classify_block(block) == AddressKind.MAC

    def test_no_marker_is_unknown(self):
        assert classify_block("set type geography\nset country US") == AddressKind.UNKNOWN


class TestExtractValue:
    """Tests for value extraction per kind."""

    def test_mac_found_anywhere(self):
        block = "set type mac\nset comment 00-AA-BB-CC-DD-EE"
        assert extract_value(AddressKind.MAC, block) == "00-AA-BB-CC-DD-EE"

    def test_subnet_with_mask(self):
        block = "set subnet 192.168.1.0 255.255.255.0"
        assert extract_value(AddressKind.SUBNET, block) == "192.168.1.0 255.255.255.0"

    def test_subnet_cidr(self):
        assert extract_value(AddressKind.SUBNET, "set subnet 10.1.0.0/16") == "10.1.0.0/16"

    def test_fqdn(self):
        assert extract_value(AddressKind.FQDN, 'set fqdn "*.example.com"') == "*.example.com"

    def test_range(self):
        block = "set start-ip 10.0.0.1\nset end-ip 10.0.0.9"
        assert extract_value(AddressKind.RANGE, block) == "10.0.0.1-10.0.0.9"

    def test_half_range_is_empty(self):
        assert extract_value(AddressKind.RANGE, "set start-ip 10.0.0.1") == ""

    def test_missing_value_is_empty(self):
        assert extract_value(AddressKind.MAC, "set type mac") == ""
        assert extract_value(AddressKind.UNKNOWN, "anything") == ""


class TestParseAddressObjects:
    """Tests for the full address listing."""

    def test_only_tagged_objects(self):
        objects = parse_address_objects(ADDRESS_OUTPUT)
        assert list(objects) == ["ELS-printer", "ELS-lab", "ELS-docs", "ELS-pool"]
        assert "all" not in objects

    def test_records(self):
        objects = parse_address_objects(ADDRESS_OUTPUT)
        assert objects["ELS-printer"] == AddressObject("ELS-printer", AddressKind.MAC, "00:11:22:33:44:55")
        assert objects["ELS-lab"].value == "10.20.0.0 255.255.255.0"
        assert objects["ELS-docs"].value == "docs.example.edu"
        assert objects["ELS-pool"].value == "10.0.0.10-10.0.0.20"

    def test_kind_filter(self):
        objects = parse_address_objects(ADDRESS_OUTPUT, kind=AddressKind.FQDN)
        assert list(objects) == ["ELS-docs"]

    def test_display_value_matches_value(self):
        obj = parse_address_objects(ADDRESS_OUTPUT)["ELS-pool"]
        assert obj.to_dict() == {
            "type": "range",
            "value": "10.0.0.10-10.0.0.20",
            "displayValue": "10.0.0.10-10.0.0.20",
        }

    def test_unknown_kind_kept_with_empty_value(self):
        output = 'edit "ELS-geo"\n    set type geography\n    set country "US"\nnext\nend\n'
        obj = parse_address_objects(output)["ELS-geo"]
        assert obj.kind == AddressKind.UNKNOWN
        assert obj.value == ""

    def test_empty_output(self):
        assert parse_address_objects("") == {}


class TestParseGroups:
    """Tests for address group parsing."""

    def test_members(self):
        groups = parse_address_groups(GROUP_OUTPUT)
        assert groups["ELS-APP"].members == ["ELS-printer", "ELS-lab"]

    def test_group_without_members(self):
        output = 'config firewall addrgrp\n    edit "ELS-APP"\n        set uuid abc\n    next\nend\n'
        assert parse_address_groups(output)["ELS-APP"].members == []

    def test_name_filter(self):
        output = GROUP_OUTPUT.replace("end\n", '    edit "other"\n        set member "x"\n    next\nend\n')
        groups = parse_address_groups(output, name="ELS-APP")
        assert list(groups) == ["ELS-APP"]

    def test_parse_members(self):
        assert parse_members('"ELS-a" "ELS-b" "ELS-c"') == ["ELS-a", "ELS-b", "ELS-c"]
        assert parse_members('"ELS-only"') == ["ELS-only"]
        assert parse_members("  ") == []
