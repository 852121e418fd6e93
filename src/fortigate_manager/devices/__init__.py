"""FortiGate session and SSH transport."""
from .base import SessionState, ShellTransport
from .fortigate import CommandSerializer, FortiGateSession
from .transport import SSHTransport, classify_connect_error

__all__ = [
    "SessionState",
    "ShellTransport",
    "CommandSerializer",
    "FortiGateSession",
    "SSHTransport",
    "classify_connect_error",
]
