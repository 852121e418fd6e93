"""Base abstractions for the appliance session."""
from abc import ABC, abstractmethod
from enum import Enum

from ..config.settings import ConnectionConfig


class SessionState(str, Enum):
    """Lifecycle state of the management session."""
    DISCONNECTED = "DISCONNECTED"
    CONNECTING = "CONNECTING"
    CONNECTED = "CONNECTED"


class ShellTransport(ABC):
    """A remote shell connection with no knowledge of appliance semantics.

    Only the session controller creates, opens and closes transports.
    """

    @property
    @abstractmethod
    def is_active(self) -> bool:
        """Whether the underlying connection is open."""
        pass

    @abstractmethod
    async def open(self, config: ConnectionConfig) -> None:
        """Connect and authenticate.

        Raises:
            ConnectError: Classified connection failure
        """
        pass

    @abstractmethod
    async def run_line(self, command: str) -> str:
        """Send one line (or multi-line block) and return captured stdout.

        Raises:
            TransportFailure: The channel failed mid-command
        """
        pass

    @abstractmethod
    def close(self) -> None:
        """Release the connection. Never raises; safe to call repeatedly."""
        pass
