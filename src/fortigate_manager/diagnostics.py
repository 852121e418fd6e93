"""Connectivity diagnostics for when the management session cannot be opened.

Three independent checks against the configured host and port, in order:
name resolution, ICMP echo, TCP connect to the SSH port. Each contributes one
line to the report whatever its outcome; the probe itself never raises.
"""
import asyncio
import logging
import socket
import sys
from dataclasses import dataclass, field

from .config.settings import ConnectionConfig

logger = logging.getLogger(__name__)

PING_TIMEOUT = 5.0
PORT_TIMEOUT = 3.0


@dataclass
class DiagnosticReport:
    """Ordered human-readable results of a diagnostics run."""
    success: bool
    results: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"success": self.success, "results": list(self.results)}


class DiagnosticsProbe:
    """Run DNS, ping and port checks against the FortiGate."""

    def __init__(
        self,
        config: ConnectionConfig,
        ping_timeout: float = PING_TIMEOUT,
        port_timeout: float = PORT_TIMEOUT,
    ):
        self.config = config
        self.ping_timeout = ping_timeout
        self.port_timeout = port_timeout

    async def run(self) -> DiagnosticReport:
        """Run all checks. Only a missing host short-circuits with success=False."""
        host, port = self.config.host, self.config.port
        if not host:
            return DiagnosticReport(success=False, results=["No configuration available"])

        logger.info(f"Running connection diagnostics for {host}:{port}")
        results = [f"=== CONNECTION DIAGNOSTICS FOR {host}:{port} ==="]
        results.append(await self.check_dns(host))
        results.append(await self.check_ping(host))
        results.append(await self.check_port(host, port))
        return DiagnosticReport(success=True, results=results)

    async def check_dns(self, host: str) -> str:
        loop = asyncio.get_running_loop()
        try:
            infos = await loop.getaddrinfo(host, None, type=socket.SOCK_STREAM)
        except (socket.gaierror, OSError, UnicodeError) as e:
            return f"1. DNS: FAIL Error: {e}"
        if not infos:
            return f"1. DNS: FAIL {host} did not resolve"
        address = infos[0][4][0]
        return f"1. DNS: OK {host} resolves to {address}"

    @staticmethod
    def ping_command(host: str) -> list[str]:
        count_flag = "-n" if sys.platform == "win32" else "-c"
        return ["ping", count_flag, "1", host]

    async def check_ping(self, host: str) -> str:
        try:
            proc = await asyncio.create_subprocess_exec(
                *self.ping_command(host),
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.DEVNULL,
            )
        except OSError as e:
            logger.debug(f"ping unavailable: {e}")
            return "2. Ping: FAIL"

        try:
            returncode = await asyncio.wait_for(proc.wait(), timeout=self.ping_timeout)
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
            return "2. Ping: FAIL"
        return "2. Ping: OK" if returncode == 0 else "2. Ping: FAIL"

    async def check_port(self, host: str, port: int) -> str:
        try:
            _, writer = await asyncio.wait_for(
                asyncio.open_connection(host, port), timeout=self.port_timeout
            )
        except (asyncio.TimeoutError, OSError) as e:
            logger.debug(f"Port check {host}:{port} failed: {e!r}")
            return f"3. SSH port ({port}): FAIL closed or filtered"
        writer.close()
        try:
            await writer.wait_closed()
        except OSError:
            pass
        return f"3. SSH port ({port}): OK open"
