"""Shared fixtures: a scripted in-memory shell instead of a real FortiGate."""
import asyncio
from typing import Optional

import pytest

from fortigate_manager.config.settings import ConnectionConfig
from fortigate_manager.devices.base import ShellTransport
from fortigate_manager.devices.fortigate import FortiGateSession
from fortigate_manager.errors import TransportFailure

ADDRESS_OUTPUT = """config firewall address
    edit "ELS-printer"
        set uuid 0f3e2a1c-1111-51ee-aaaa-000000000001
        set type mac
        set macaddr 00:11:22:33:44:55
    next
    edit "ELS-lab"
        set uuid 0f3e2a1c-1111-51ee-aaaa-000000000002
        set subnet 10.20.0.0 255.255.255.0
    next
    edit "ELS-docs"
        set type fqdn
        set fqdn "docs.example.edu"
    next
    edit "ELS-pool"
        set type iprange
        set start-ip 10.0.0.10
        set end-ip 10.0.0.20
    next
    edit "all"
        set subnet 0.0.0.0 0.0.0.0
    next
end
"""

GROUP_OUTPUT = """config firewall addrgrp
    edit "ELS-APP"
        set uuid 0f3e2a1c-2222-51ee-aaaa-000000000001
        set member "ELS-printer" "ELS-lab"
    next
end
"""

STATUS_OUTPUT = "Version: FortiGate-60F v7.2.5,build1517,230608 (GA.F)\nHostname: fw01\n"


class FakeTransport(ShellTransport):
    """Scripted shell: answers by command prefix and records what it ran."""

    def __init__(self, responses: Optional[dict] = None):
        self.responses = {
            "get system status": STATUS_OUTPUT,
            "show firewall address": ADDRESS_OUTPUT,
            "show firewall addrgrp": GROUP_OUTPUT,
        }
        self.responses.update(responses or {})
        self.commands: list[str] = []
        self.open_count = 0
        self.close_count = 0
        self.open_error: Optional[BaseException] = None
        self.run_error: Optional[BaseException] = None
        self.fail_on: Optional[str] = None
        self.delay = 0.0
        self.open_gate: Optional[asyncio.Event] = None
        self.hang = False
        self.in_flight = 0
        self.max_in_flight = 0
        self.closed_in_flight: list[int] = []
        self._active = False

    @property
    def is_active(self) -> bool:
        return self._active

    async def open(self, config: ConnectionConfig) -> None:
        self.open_count += 1
        if self.open_gate is not None:
            await self.open_gate.wait()
        if self.open_error is not None:
            raise self.open_error
        self._active = True

    async def run_line(self, command: str) -> str:
        self.commands.append(command)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.hang:
                await asyncio.Event().wait()
            if self.delay:
                await asyncio.sleep(self.delay)
            if self.run_error is not None:
                raise self.run_error
            if self.fail_on is not None and command.startswith(self.fail_on):
                raise TransportFailure(f"channel closed during {self.fail_on}")
            for prefix, output in self.responses.items():
                if command.startswith(prefix):
                    return output
            return ""
        finally:
            self.in_flight -= 1

    def close(self) -> None:
        self.close_count += 1
        self.closed_in_flight.append(self.in_flight)
        self._active = False

    def writes(self) -> list[str]:
        """Commands sent after the connect handshake."""
        return [c for c in self.commands if c.startswith("config firewall")]


@pytest.fixture
def config():
    return ConnectionConfig(
        host="fw01.example.edu",
        username="admin",
        password="s3cret",
        command_timeout=0.5,
        settle_delay=0,
    )


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def session(config, transport):
    return FortiGateSession(config, transport_factory=lambda: transport)
