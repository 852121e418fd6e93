"""Error taxonomy for the FortiGate session and protocol layers.

Three families:
- ConnectError: establishing the SSH session failed (classified by kind)
- ExecError: running a command on an established (or expected) session failed
- TranslationError: a request could not be turned into appliance commands

Connection and execution errors always drive the session to DISCONNECTED.
Translation errors are local to one request and never touch session state.
"""
from enum import Enum
from typing import Optional


class FortiGateError(Exception):
    """Base class for all errors raised by this package."""


class ConnectErrorKind(str, Enum):
    """Classified reason a connection attempt failed."""
    DNS_FAILURE = "dns_failure"
    REFUSED_OR_FILTERED = "refused_or_filtered"
    TIMEOUT = "timeout"
    AUTH_FAILURE = "auth_failure"
    OTHER = "other"


# One operator-facing message per kind. OTHER carries the raw message instead.
CONNECT_ERROR_MESSAGES = {
    ConnectErrorKind.DNS_FAILURE: "Could not resolve the FortiGate hostname",
    ConnectErrorKind.REFUSED_OR_FILTERED: "Connection refused - check the IP address and port",
    ConnectErrorKind.TIMEOUT: "Connection timed out - the device is not responding",
    ConnectErrorKind.AUTH_FAILURE: "Authentication failed - wrong username or password",
}


class ConnectError(FortiGateError):
    """Opening the SSH session to the appliance failed."""

    def __init__(self, kind: ConnectErrorKind, raw: str = ""):
        self.kind = kind
        self.raw = raw
        super().__init__(self.message)

    @property
    def message(self) -> str:
        if self.kind == ConnectErrorKind.OTHER:
            return self.raw or "Unknown connection error"
        return CONNECT_ERROR_MESSAGES[self.kind]


class ExecError(FortiGateError):
    """Running a command against the appliance failed."""


class NotConnected(ExecError):
    """The session is not in the CONNECTED state."""

    def __init__(self, message: str = "No active SSH connection to the FortiGate"):
        super().__init__(message)


class TransportFailure(ExecError):
    """The SSH channel failed while a command was in flight."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause


class CommandTimeout(ExecError):
    """A command did not complete within the per-command timeout."""

    def __init__(self, command: str, timeout: float):
        first_line = command.strip().splitlines()[0] if command.strip() else command
        super().__init__(f"Command '{first_line}' timed out after {timeout:g}s")
        self.command = command
        self.timeout = timeout


class TranslationError(FortiGateError):
    """A structured request could not be translated into appliance commands."""


class UnsupportedKind(TranslationError):
    """The address object kind is not one of mac, subnet, fqdn, range."""

    def __init__(self, kind: str):
        super().__init__(f"Unsupported object type: {kind}")
        self.kind = kind


class MalformedValue(TranslationError):
    """A name or value does not match the encoding its kind requires."""
