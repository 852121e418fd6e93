"""Command generator for FortiOS address configuration blocks.

Each method returns the block as a list of lines; `render` joins them into
the text sent over the shell in one exec.
"""
from typing import Union

from ..errors import UnsupportedKind
from .schema import AddressKind
from .validator import coerce_kind, split_range


class CommandGenerator:
    """Generate FortiOS configuration-mode command blocks."""

    def address_object(self, name: str, kind: Union[str, AddressKind], value: str) -> list[str]:
        """
        Generate the create/update block for an address object.

        Subnet objects get no explicit `set type` line since subnet is the
        appliance default.

        Raises:
            UnsupportedKind: Before any command text is produced
        """
        kind = coerce_kind(kind)
        commands = ["config firewall address", f'edit "{name}"']

        if kind == AddressKind.MAC:
            commands.extend(["set type mac", f"set macaddr {value}"])
        elif kind == AddressKind.SUBNET:
            commands.append(f"set subnet {value}")
        elif kind == AddressKind.FQDN:
            commands.extend(["set type fqdn", f'set fqdn "{value}"'])
        elif kind == AddressKind.RANGE:
            start_ip, end_ip = split_range(value)
            commands.extend([
                "set type iprange",
                f"set start-ip {start_ip}",
                f"set end-ip {end_ip}",
            ])
        else:
            raise UnsupportedKind(kind.value)

        commands.append("end")
        return commands

    def delete_object(self, name: str) -> list[str]:
        """Generate the delete block for an address object."""
        return ["config firewall address", f'delete "{name}"', "end"]

    def group_members(self, name: str, members: list[str]) -> list[str]:
        """
        Generate the block replacing a group's membership wholesale.

        An empty member list unsets the attribute instead of emitting an
        empty `set member` line.
        """
        if members:
            member_line = "set member " + " ".join(f'"{m}"' for m in members)
        else:
            member_line = "unset member"
        return ["config firewall addrgrp", f'edit "{name}"', member_line, "end"]

    def console_output_standard(self) -> list[str]:
        """Disable --More-- paging on the management console."""
        return ["config system console", "set output standard", "end"]

    @staticmethod
    def render(commands: list[str]) -> str:
        """Join a block into the text sent to the remote shell."""
        return "\n".join(commands) + "\n"
