"""Tests for SSH connect error classification and transport guards."""
import errno
import io
import socket

import paramiko
import pytest

from fortigate_manager.devices.transport import (
    CIPHER_PREFERENCE,
    KEX_PREFERENCE,
    SSHTransport,
    classify_connect_error,
)
from fortigate_manager.config.settings import ConnectionConfig
from fortigate_manager.errors import ConnectError, ConnectErrorKind, TransportFailure


class TestClassifyConnectError:
    """Tests for mapping exceptions to ConnectErrorKind."""

    def test_dns_failure(self):
        error = socket.gaierror(socket.EAI_NONAME, "Name or service not known")
        assert classify_connect_error(error) == ConnectErrorKind.DNS_FAILURE

    def test_auth_failure(self):
        error = paramiko.AuthenticationException("Authentication failed.")
        assert classify_connect_error(error) == ConnectErrorKind.AUTH_FAILURE

    def test_timeout(self):
        assert classify_connect_error(socket.timeout("timed out")) == ConnectErrorKind.TIMEOUT
        assert classify_connect_error(TimeoutError()) == ConnectErrorKind.TIMEOUT

    def test_refused(self):
        error = ConnectionRefusedError(errno.ECONNREFUSED, "Connection refused")
        assert classify_connect_error(error) == ConnectErrorKind.REFUSED_OR_FILTERED

    def test_unreachable_errno(self):
        error = OSError(errno.EHOSTUNREACH, "No route to host")
        assert classify_connect_error(error) == ConnectErrorKind.REFUSED_OR_FILTERED

    def test_banner_message(self):
        error = paramiko.SSHException("Error reading SSH protocol banner")
        assert classify_connect_error(error) == ConnectErrorKind.TIMEOUT

    def test_other(self):
        assert classify_connect_error(ValueError("strange")) == ConnectErrorKind.OTHER


class TestConnectErrorMessages:
    """Tests for the operator-facing messages."""

    def test_each_kind_has_its_message(self):
        assert "resolve" in ConnectError(ConnectErrorKind.DNS_FAILURE).message
        assert "refused" in ConnectError(ConnectErrorKind.REFUSED_OR_FILTERED).message
        assert "timed out" in ConnectError(ConnectErrorKind.TIMEOUT).message
        assert "Authentication" in ConnectError(ConnectErrorKind.AUTH_FAILURE).message

    def test_other_carries_raw_text(self):
        error = ConnectError(ConnectErrorKind.OTHER, "kex negotiation failed")
        assert error.message == "kex negotiation failed"
        assert str(error) == "kex negotiation failed"


class TestSSHTransport:
    """Tests for the transport that need no network."""

    def test_preferences_start_with_strongest(self):
        assert KEX_PREFERENCE[0] == "diffie-hellman-group14-sha256"
        assert "diffie-hellman-group1-sha1" in KEX_PREFERENCE
        assert CIPHER_PREFERENCE[0] == "aes128-ctr"

    def test_new_transport_inactive(self):
        transport = SSHTransport()
        assert not transport.is_active
        transport.close()
        transport.close()

    @pytest.mark.asyncio
    async def test_run_line_without_open(self):
        with pytest.raises(TransportFailure):
            await SSHTransport().run_line("get system status")

    @pytest.mark.asyncio
    async def test_open_wraps_failure(self, monkeypatch):
        def refuse(*args, **kwargs):
            raise ConnectionRefusedError(errno.ECONNREFUSED, "Connection refused")

        monkeypatch.setattr(socket, "create_connection", refuse)
        config = ConnectionConfig(host="192.0.2.1", username="admin", password="x")

        with pytest.raises(ConnectError) as exc_info:
            await SSHTransport().open(config)
        assert exc_info.value.kind == ConnectErrorKind.REFUSED_OR_FILTERED


class FakeChannel:
    """Stands in for a paramiko exec channel."""

    def __init__(self, stdout: bytes, stderr: bytes = b"", status: int = 0):
        self.stdout = stdout
        self.stderr = stderr
        self.status = status
        self.executed = []
        self.closed = False

    def exec_command(self, command):
        self.executed.append(command)

    def makefile(self, mode):
        return io.BytesIO(self.stdout)

    def makefile_stderr(self, mode):
        return io.BytesIO(self.stderr)

    def recv_exit_status(self):
        return self.status

    def close(self):
        self.closed = True


class FakeParamikoTransport:
    def __init__(self, channel):
        self.channel = channel
        self.active = True

    def is_active(self):
        return self.active

    def open_session(self):
        return self.channel

    def close(self):
        self.active = False


class TestRunLine:
    """Tests for command execution over an open transport."""

    def _transport(self, channel):
        transport = SSHTransport()
        transport._transport = FakeParamikoTransport(channel)
        return transport

    @pytest.mark.asyncio
    async def test_returns_stdout(self):
        channel = FakeChannel(b"Hostname: fw01\n", stderr=b"Unknown action 0\n")
        output = await self._transport(channel).run_line("get system status")
        assert output == "Hostname: fw01\n"
        assert channel.executed == ["get system status"]
        assert channel.closed

    @pytest.mark.asyncio
    async def test_channel_closed_mid_write_is_failure(self):
        channel = FakeChannel(b"config firewall address\n", status=-1)
        with pytest.raises(TransportFailure, match="exit status -1"):
            await self._transport(channel).run_line('config firewall address\ndelete "ELS-lab"\nend\n')
        assert channel.closed

    @pytest.mark.asyncio
    async def test_transport_dropped_during_command_is_failure(self):
        channel = FakeChannel(b"", status=0)
        transport = self._transport(channel)

        def drop(command):
            channel.executed.append(command)
            transport._transport.active = False

        channel.exec_command = drop
        with pytest.raises(TransportFailure):
            await transport.run_line("show firewall address")
