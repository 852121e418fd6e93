"""SSH transport for FortiGate appliances.

Technical details:
- Plain paramiko Transport (no SSHClient) so the key-exchange and cipher
  preference lists can be set before negotiation
- Older FortiOS firmware only offers diffie-hellman-group14-sha1 or
  group1-sha1, so those stay on the list after the sha256 variant
- Each command runs in its own exec channel; FortiOS accepts a whole
  `config ... end` block in one exec
- stderr is advisory: FortiOS prints "Unknown action 0" on harmless
  console commands
"""
import asyncio
import errno
import logging
import socket
from typing import Optional

import paramiko

from ..config.settings import ConnectionConfig
from ..errors import ConnectError, ConnectErrorKind, TransportFailure
from .base import ShellTransport

logger = logging.getLogger(__name__)

# Descending preference
KEX_PREFERENCE = (
    "diffie-hellman-group14-sha256",
    "diffie-hellman-group14-sha1",
    "diffie-hellman-group1-sha1",
)
CIPHER_PREFERENCE = (
    "aes128-ctr",
    "aes192-ctr",
    "aes256-ctr",
    "aes128-gcm@openssh.com",
    "aes256-gcm@openssh.com",
)

BENIGN_STDERR = "Unknown action 0"

ERRNO_KINDS = {
    errno.ECONNREFUSED: ConnectErrorKind.REFUSED_OR_FILTERED,
    errno.EHOSTUNREACH: ConnectErrorKind.REFUSED_OR_FILTERED,
    errno.ENETUNREACH: ConnectErrorKind.REFUSED_OR_FILTERED,
    errno.ETIMEDOUT: ConnectErrorKind.TIMEOUT,
}

# Fallback when the error carries no structured code
MESSAGE_KINDS = (
    (("ENOTFOUND", "Name or service not known", "nodename nor servname"), ConnectErrorKind.DNS_FAILURE),
    (("ECONNREFUSED", "Connection refused"), ConnectErrorKind.REFUSED_OR_FILTERED),
    (("ETIMEDOUT", "timed out", "Error reading SSH protocol banner"), ConnectErrorKind.TIMEOUT),
    (("Authentication",), ConnectErrorKind.AUTH_FAILURE),
)


def classify_connect_error(error: BaseException) -> ConnectErrorKind:
    """Map a transport-level exception to a ConnectErrorKind.

    Structured types and errno codes are checked first; message substrings
    only when neither applies.
    """
    if isinstance(error, socket.gaierror):
        return ConnectErrorKind.DNS_FAILURE
    if isinstance(error, paramiko.AuthenticationException):
        return ConnectErrorKind.AUTH_FAILURE
    if isinstance(error, (socket.timeout, TimeoutError, asyncio.TimeoutError)):
        return ConnectErrorKind.TIMEOUT
    if isinstance(error, ConnectionRefusedError):
        return ConnectErrorKind.REFUSED_OR_FILTERED
    if isinstance(error, OSError) and error.errno in ERRNO_KINDS:
        return ERRNO_KINDS[error.errno]

    message = str(error)
    for needles, kind in MESSAGE_KINDS:
        if any(needle in message for needle in needles):
            return kind
    return ConnectErrorKind.OTHER


def _apply_preference(options: paramiko.SecurityOptions, attr: str, preferred: tuple) -> None:
    """Set an algorithm list, dropping names this paramiko build lacks."""
    try:
        setattr(options, attr, preferred)
    except ValueError:
        current = set(getattr(options, attr))
        supported = tuple(name for name in preferred if name in current)
        logger.debug(f"Unsupported {attr} algorithms dropped: {set(preferred) - set(supported)}")
        setattr(options, attr, supported)


class SSHTransport(ShellTransport):
    """Low-level SSH handler for one FortiGate management connection."""

    def __init__(self):
        self._transport: Optional[paramiko.Transport] = None

    @property
    def is_active(self) -> bool:
        return self._transport is not None and self._transport.is_active()

    async def open(self, config: ConnectionConfig) -> None:
        """Establish and authenticate the SSH transport."""
        loop = asyncio.get_running_loop()
        try:
            self._transport = await loop.run_in_executor(None, self._open_blocking, config)
        except Exception as e:
            kind = classify_connect_error(e)
            logger.debug(f"SSH connect to {config.host}:{config.port} failed ({kind.value}): {e!r}")
            raise ConnectError(kind, str(e) or type(e).__name__) from e

    @staticmethod
    def _open_blocking(config: ConnectionConfig) -> paramiko.Transport:
        sock = socket.create_connection((config.host, config.port), timeout=config.timeout)
        transport = paramiko.Transport(sock)
        try:
            transport.banner_timeout = config.timeout
            options = transport.get_security_options()
            _apply_preference(options, "kex", KEX_PREFERENCE)
            _apply_preference(options, "ciphers", CIPHER_PREFERENCE)

            transport.start_client(timeout=config.timeout)
            key = transport.get_remote_server_key()
            logger.debug(f"{config.host} host key {key.get_name()} {key.get_fingerprint().hex()}")

            transport.auth_password(config.username, config.password)
            if not transport.is_authenticated():
                raise paramiko.AuthenticationException("Authentication failed")
        except Exception:
            transport.close()
            raise
        return transport

    async def run_line(self, command: str) -> str:
        """Execute a command (or block) and return stdout."""
        transport = self._transport
        if transport is None or not transport.is_active():
            raise TransportFailure("SSH transport is not open")

        loop = asyncio.get_running_loop()

        def _exec():
            channel = transport.open_session()
            try:
                channel.exec_command(command)
                out = channel.makefile("rb").read().decode("utf-8", errors="ignore")
                err = channel.makefile_stderr("rb").read().decode("utf-8", errors="ignore")
                status = channel.recv_exit_status()
            finally:
                channel.close()
            return out, err, status

        try:
            out, err, status = await loop.run_in_executor(None, _exec)
        except (paramiko.SSHException, EOFError, OSError) as e:
            raise TransportFailure(f"Error executing command: {e}", cause=e) from e

        # -1: the channel closed before the command finished, output is partial
        if status == -1 or not transport.is_active():
            raise TransportFailure(f"Channel closed before the command completed (exit status {status})")

        if err.strip() and BENIGN_STDERR not in err:
            logger.warning(f"SSH stderr: {err.strip()}")
        return out

    def close(self) -> None:
        """Close the transport; errors are logged, never raised."""
        transport, self._transport = self._transport, None
        if transport is None:
            return
        try:
            transport.close()
        except Exception as e:
            logger.debug(f"Error closing SSH transport: {e}")
