"""Tests for SSH target models."""

from datetime import datetime, timedelta
from unittest.mock import MagicMock

from gpcluster.models import CommandResult, PooledConnection, SSHHost


def test_ssh_host_defaults() -> None:
    host = SSHHost(name="sdw1", hostname="10.0.0.2")
    assert host.user == "gpadmin"
    assert host.connection_hostname == "10.0.0.2"
    assert host.connection_port == 22


def test_localhost_uses_loopback() -> None:
    host = SSHHost(name="cdw", hostname="cdw.example.com", port=2222, is_localhost=True)
    assert host.connection_hostname == "127.0.0.1"
    assert host.connection_port == 22


def test_pooled_connection_touch() -> None:
    pooled = PooledConnection(connection=MagicMock())
    pooled.last_used = datetime.now() - timedelta(minutes=5)
    pooled.touch()
    assert datetime.now() - pooled.last_used < timedelta(seconds=5)


def test_pooled_connection_stale() -> None:
    conn = MagicMock()
    conn.is_closed = MagicMock(return_value=True)
    assert PooledConnection(connection=conn).is_stale

    conn.is_closed = False
    assert not PooledConnection(connection=conn).is_stale


def test_command_result_succeeded() -> None:
    assert CommandResult("out", "", 0).succeeded
    assert not CommandResult("", "err", 1).succeeded
