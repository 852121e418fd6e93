"""FortiGate management session: lifecycle, command serialization, address ops.

One FortiGateSession owns the single SSH transport to the appliance and is
shared by every request handler. It is passed to handlers explicitly; there
is no module-level instance.

State machine:

    DISCONNECTED --connect()--> CONNECTING --validated--> CONNECTED
         ^                           |                        |
         +-------- any failure ------+---- transport loss ----+

Command reference (FortiOS):
- get system status                      : validation probe after connect
- config system console / set output standard / end : disable --More-- paging
- show firewall address                  : all address objects
- show firewall addrgrp ELS-APP          : the managed group
"""
import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Awaitable, Callable, Optional, Union

from ..config.settings import ConnectionConfig
from ..errors import (
    ConnectError,
    CommandTimeout,
    ExecError,
    FortiGateError,
    MalformedValue,
    NotConnected,
)
from ..protocol import (
    AddressKind,
    AddressObject,
    CommandGenerator,
    MANAGED_GROUP,
    TAG_PREFIX,
    coerce_kind,
    normalize_object_name,
    parse_address_groups,
    parse_address_objects,
    validate_address_value,
    validate_member_names,
)
from ..utils.connection import OperationResult
from ..utils.logging_config import timed, timed_section
from .base import SessionState, ShellTransport
from .transport import SSHTransport, classify_connect_error

logger = logging.getLogger(__name__)

VALIDATION_COMMAND = "get system status"
SHOW_ADDRESSES_COMMAND = "show firewall address"
SHOW_GROUP_COMMAND = "show firewall addrgrp {name}"
MIN_VALIDATION_OUTPUT = 5

ALREADY_CONNECTING = "A connection attempt is already in progress"
NO_CONFIGURATION = "No FortiGate configuration available"

STATUS_MESSAGES = {
    SessionState.DISCONNECTED: "Not connected to the FortiGate",
    SessionState.CONNECTING: "Connecting to the FortiGate...",
    SessionState.CONNECTED: "Connected to the FortiGate",
}

StateListener = Callable[[SessionState, SessionState], None]


class CommandSerializer:
    """At most one command on the wire, and no overlapping settle windows.

    The lock is held for the command itself and, for mutating commands, for
    the settle step after it. A read queued behind a write therefore sees
    the appliance after the write has committed.
    """

    def __init__(self, settle_delay: float = 1.0):
        self.settle_delay = settle_delay
        self._lock = asyncio.Lock()

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    async def run(self, call: Callable[[], Awaitable[str]], mutating: bool = False) -> str:
        """Run `call` under the lock; settle afterwards if it mutated state.

        If `call` raises, no settle happens and the error propagates.
        """
        async with self._lock:
            output = await call()
            if mutating:
                await self.settle()
            return output

    async def settle(self) -> None:
        """Wait for the appliance to commit a configuration change."""
        if self.settle_delay > 0:
            await asyncio.sleep(self.settle_delay)

    @asynccontextmanager
    async def exclusive(self):
        """Hold the lock with no command running, e.g. to swap the transport."""
        async with self._lock:
            yield


class FortiGateSession:
    """Owner of the single management connection to a FortiGate."""

    def __init__(
        self,
        config: ConnectionConfig,
        transport_factory: Callable[[], ShellTransport] = SSHTransport,
    ):
        self.config = config
        self._transport_factory = transport_factory
        self._transport: Optional[ShellTransport] = None
        self._state = SessionState.DISCONNECTED
        self._serializer = CommandSerializer(config.settle_delay)
        self._generator = CommandGenerator()
        self._listeners: list[StateListener] = []

    @property
    def host(self) -> str:
        return self.config.host

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state == SessionState.CONNECTED and self._transport is not None

    @property
    def serializer(self) -> CommandSerializer:
        return self._serializer

    def status_message(self) -> str:
        return STATUS_MESSAGES[self._state]

    def connection_info(self) -> Optional[dict]:
        """Host, username and port of the target. Never the password."""
        if not self.config.host:
            return None
        return self.config.safe_info()

    def add_state_listener(self, listener: StateListener) -> None:
        """Register a callback invoked as listener(old_state, new_state)."""
        self._listeners.append(listener)

    def _set_state(self, new_state: SessionState) -> None:
        old_state, self._state = self._state, new_state
        if old_state == new_state:
            return
        logger.info(f"Connection state: {new_state.value}")
        for listener in self._listeners:
            try:
                listener(old_state, new_state)
            except Exception:
                logger.exception("State listener failed")

    # === Lifecycle ===

    @timed("connect")
    async def connect(self) -> OperationResult:
        """Open, validate and normalize a fresh connection.

        Single-flight: a call made while another attempt is CONNECTING
        returns immediately without side effects.
        """
        # No await between this check and the transition below
        if self._state == SessionState.CONNECTING:
            logger.info("Connect requested while an attempt is in progress")
            return OperationResult(False, ALREADY_CONNECTING)
        self._set_state(SessionState.CONNECTING)

        host, port = self.config.host, self.config.port
        logger.info(f"Connecting to {host}:{port} as {self.config.username}")
        try:
            # Wait for any in-flight command before the old handle goes away
            async with self._serializer.exclusive():
                self._close_transport()
                self._transport = self._transport_factory()
                await self._transport.open(self.config)
            logger.info("SSH session established, running validation command")

            status = await self.execute_command(VALIDATION_COMMAND, bypass_guard=True)
            if len(status.strip()) < MIN_VALIDATION_OUTPUT:
                logger.warning("Validation output empty or very short, but the shell responds")

            await self.execute_command(
                self._generator.render(self._generator.console_output_standard()),
                bypass_guard=True,
            )
        except asyncio.CancelledError:
            self.disconnect()
            raise
        except FortiGateError as e:
            logger.error(f"Connection to {host}:{port} failed: {e}")
            self.disconnect()
            return OperationResult(False, str(e))
        except Exception as e:
            error = ConnectError(classify_connect_error(e), str(e))
            logger.exception(f"Unexpected error connecting to {host}:{port}")
            self.disconnect()
            return OperationResult(False, error.message)

        self._set_state(SessionState.CONNECTED)
        return OperationResult(True, f"Connected to {host}:{port}")

    async def auto_connect(self) -> OperationResult:
        """Connect using the loaded configuration, if there is one."""
        if not self.config.is_complete:
            logger.warning("Auto-connect skipped: FortiGate configuration incomplete")
            return OperationResult(False, NO_CONFIGURATION)
        logger.info("Auto-connecting with environment configuration")
        return await self.connect()

    def disconnect(self) -> None:
        """Release the transport and go to DISCONNECTED. Idempotent."""
        self._close_transport()
        self._set_state(SessionState.DISCONNECTED)

    def _close_transport(self) -> None:
        transport, self._transport = self._transport, None
        if transport is not None:
            transport.close()

    # === Command execution ===

    async def execute_command(
        self,
        command: str,
        bypass_guard: bool = False,
        mutating: bool = False,
    ) -> str:
        """Run a command through the serializer and return its output.

        Args:
            command: Line or block of FortiOS CLI text
            bypass_guard: Skip the CONNECTED check (only during connect())
            mutating: Hold the serializer through the settle step

        Raises:
            NotConnected: Not CONNECTED and the guard was not bypassed
            CommandTimeout: No result within config.command_timeout
            TransportFailure: The channel failed
        """
        if not bypass_guard and not self.is_connected:
            raise NotConnected()

        async def _call() -> str:
            # Another request may have lost the connection while we queued
            if not bypass_guard and not self.is_connected:
                raise NotConnected()
            transport = self._transport
            if transport is None:
                raise NotConnected("SSH transport not available")
            try:
                return await asyncio.wait_for(
                    transport.run_line(command), timeout=self.config.command_timeout
                )
            except asyncio.TimeoutError:
                raise CommandTimeout(command, self.config.command_timeout) from None

        try:
            return await self._serializer.run(_call, mutating=mutating)
        except NotConnected:
            raise
        except ExecError as e:
            # connect() handles its own failures; here only a live session is torn down
            if self._state == SessionState.CONNECTED:
                logger.error(f"Connection lost: {e}")
                self.disconnect()
            raise

    # === Address objects ===

    @timed("list_objects")
    async def list_address_objects(
        self,
        kind: Optional[Union[str, AddressKind]] = None,
    ) -> dict[str, AddressObject]:
        """List tagged address objects, optionally of one kind only.

        The filter applies after classification, so a kind no object has
        (including an unrecognized one) yields an empty mapping.
        """
        output = await self.execute_command(SHOW_ADDRESSES_COMMAND)
        kind_filter = None
        if kind is not None:
            try:
                kind_filter = AddressKind(kind)
            except ValueError:
                logger.info(f"No address objects of unrecognized kind {kind!r}")
                return {}

        objects = parse_address_objects(output, kind=kind_filter)
        logger.debug(f"Parsed {len(objects)} address objects (filter: {kind_filter or 'none'})")
        return objects

    async def save_address_object(
        self,
        name: str,
        kind: Union[str, AddressKind],
        value: str,
    ) -> OperationResult:
        """Create or update an address object.

        Translation errors are raised before anything is sent, so they never
        affect connection state.
        """
        full_name = normalize_object_name(name)
        resolved = coerce_kind(kind)
        value = validate_address_value(resolved, value)
        block = self._generator.render(self._generator.address_object(full_name, resolved, value))

        async with timed_section("save_object", self.host, name=full_name, kind=resolved.value):
            await self.execute_command(block, mutating=True)
        logger.info(f"Saved address object {full_name} ({resolved.value} {value})")
        return OperationResult(True, f"Object '{full_name}' saved")

    async def delete_address_object(self, name: str) -> OperationResult:
        """Delete a tagged address object."""
        name = (name or "").strip()
        if not name.startswith(TAG_PREFIX):
            raise MalformedValue(f"Only {TAG_PREFIX} objects are managed here: {name!r}")
        name = normalize_object_name(name)
        block = self._generator.render(self._generator.delete_object(name))

        async with timed_section("delete_object", self.host, name=name):
            await self.execute_command(block, mutating=True)
        logger.info(f"Deleted address object {name}")
        return OperationResult(True, f"Object '{name}' deleted")

    # === Address group ===

    @timed("list_groups")
    async def get_address_groups(self, name: str = MANAGED_GROUP) -> dict[str, list[str]]:
        """Members of the managed group, keyed by group name."""
        output = await self.execute_command(SHOW_GROUP_COMMAND.format(name=name))
        groups = parse_address_groups(output, name=name)
        return {group.name: group.members for group in groups.values()}

    async def replace_group_members(
        self,
        members: list[str],
        name: str = MANAGED_GROUP,
    ) -> OperationResult:
        """Replace the group's membership wholesale."""
        members = validate_member_names(members)
        block = self._generator.render(self._generator.group_members(name, members))

        async with timed_section("replace_group", self.host, name=name, members=len(members)):
            await self.execute_command(block, mutating=True)
        logger.info(f"Group {name} now has {len(members)} members")
        return OperationResult(True, f"Group '{name}' updated")
