"""Tests for the SSH connection pool."""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import asyncssh
import pytest

from gpcluster.models import Host, Policy, SSHHost
from gpcluster.services import ConnectionPool, Dispatcher, remote_command


@pytest.fixture
def ssh_host() -> SSHHost:
    return SSHHost(name="sdw1", hostname="192.168.1.100", user="gpadmin", port=22)


def _mock_conn() -> AsyncMock:
    conn = AsyncMock()
    conn.is_closed = False
    conn.close = MagicMock()
    return conn


def test_rejects_non_positive_max_size() -> None:
    with pytest.raises(ValueError, match="max_size must be > 0"):
        ConnectionPool(max_size=0)


@pytest.mark.asyncio
async def test_get_connection_creates_new_connection(ssh_host: SSHHost) -> None:
    """First request creates a new SSH connection."""
    pool = ConnectionPool(idle_timeout=60)
    mock_conn = _mock_conn()

    with patch("asyncssh.connect", new_callable=AsyncMock) as mock_connect:
        mock_connect.return_value = mock_conn

        conn = await pool.get_connection(ssh_host)

        assert conn == mock_conn
        mock_connect.assert_called_once_with(
            "192.168.1.100",
            port=22,
            username="gpadmin",
            known_hosts=None,
            client_keys=None,
        )
    await pool.close_all()


@pytest.mark.asyncio
async def test_identity_file_and_localhost(tmp_path) -> None:
    """Identity file is passed as client key, localhost goes to loopback."""
    host = SSHHost(
        name="localhost",
        hostname="localhost",
        port=2222,
        identity_file=str(tmp_path / "id_ed25519"),
        is_localhost=True,
    )
    pool = ConnectionPool(known_hosts="/tmp/known_hosts")

    with patch("asyncssh.connect", new_callable=AsyncMock) as mock_connect:
        mock_connect.return_value = _mock_conn()
        await pool.get_connection(host)

        mock_connect.assert_called_once_with(
            "127.0.0.1",
            port=22,
            username="gpadmin",
            known_hosts="/tmp/known_hosts",
            client_keys=[str(tmp_path / "id_ed25519")],
        )
    await pool.close_all()


@pytest.mark.asyncio
async def test_segments_on_same_machine_share_connection(ssh_host: SSHHost) -> None:
    """Concurrent requests for one host open a single connection."""
    pool = ConnectionPool()

    async def slow_connect(*args, **kwargs):
        await asyncio.sleep(0.02)
        return _mock_conn()

    with patch("asyncssh.connect", side_effect=slow_connect) as mock_connect:
        conns = await asyncio.gather(*(pool.get_connection(ssh_host) for _ in range(5)))

        assert mock_connect.call_count == 1
        assert all(c is conns[0] for c in conns)
    await pool.close_all()


@pytest.mark.asyncio
async def test_stale_connection_replaced(ssh_host: SSHHost) -> None:
    pool = ConnectionPool()
    first, second = _mock_conn(), _mock_conn()

    with patch("asyncssh.connect", new_callable=AsyncMock) as mock_connect:
        mock_connect.side_effect = [first, second]

        assert await pool.get_connection(ssh_host) is first
        first.is_closed = True
        assert await pool.get_connection(ssh_host) is second
        assert mock_connect.call_count == 2
    await pool.close_all()


@pytest.mark.asyncio
async def test_is_closed_method_respected(ssh_host: SSHHost) -> None:
    """asyncssh exposes is_closed() as a method."""
    pool = ConnectionPool()
    conn = _mock_conn()
    conn.is_closed = MagicMock(return_value=False)

    with patch("asyncssh.connect", new_callable=AsyncMock) as mock_connect:
        mock_connect.return_value = conn
        await pool.get_connection(ssh_host)
        await pool.get_connection(ssh_host)

        assert mock_connect.call_count == 1
    await pool.close_all()


@pytest.mark.asyncio
async def test_lru_eviction() -> None:
    pool = ConnectionPool(max_size=2)
    hosts = [SSHHost(name=f"sdw{i}", hostname=f"10.0.0.{i}") for i in range(3)]
    conns = [_mock_conn() for _ in hosts]

    with patch("asyncssh.connect", new_callable=AsyncMock) as mock_connect:
        mock_connect.side_effect = conns
        for host in (hosts[0], hosts[1], hosts[0]):
            async with pool.lease(host):
                pass
        # sdw0 was borrowed last, so sdw1 is least recently used
        await pool.get_connection(hosts[2])

    assert pool.pool_size == 2
    assert set(pool.active_hosts) == {"sdw0", "sdw2"}
    conns[1].close.assert_called_once()
    await pool.close_all()


@pytest.mark.asyncio
async def test_host_key_fallback_when_not_strict(ssh_host: SSHHost) -> None:
    pool = ConnectionPool(known_hosts="/tmp/known_hosts", strict_host_key_checking=False)
    conn = _mock_conn()

    with patch("asyncssh.connect", new_callable=AsyncMock) as mock_connect:
        mock_connect.side_effect = [
            asyncssh.HostKeyNotVerifiable("unknown key"),
            conn,
        ]
        assert await pool.get_connection(ssh_host) is conn
        assert mock_connect.call_args.kwargs["known_hosts"] is None
    await pool.close_all()


@pytest.mark.asyncio
async def test_host_key_error_raised_when_strict(ssh_host: SSHHost) -> None:
    pool = ConnectionPool(known_hosts="/tmp/known_hosts", strict_host_key_checking=True)

    with patch("asyncssh.connect", new_callable=AsyncMock) as mock_connect:
        mock_connect.side_effect = asyncssh.HostKeyNotVerifiable("unknown key")
        with pytest.raises(asyncssh.HostKeyNotVerifiable):
            await pool.get_connection(ssh_host)

    assert pool.pool_size == 0


@pytest.mark.asyncio
async def test_remove_and_close_all(ssh_host: SSHHost) -> None:
    pool = ConnectionPool()
    conn = _mock_conn()

    with patch("asyncssh.connect", new_callable=AsyncMock) as mock_connect:
        mock_connect.return_value = conn
        await pool.get_connection(ssh_host)

    await pool.remove_connection("missing")
    assert pool.pool_size == 1

    await pool.close_all()
    assert pool.pool_size == 0
    conn.close.assert_called_once()


@pytest.mark.asyncio
async def test_idle_connections_cleaned(ssh_host: SSHHost) -> None:
    pool = ConnectionPool(idle_timeout=60)
    conn = _mock_conn()

    with patch("asyncssh.connect", new_callable=AsyncMock) as mock_connect:
        mock_connect.return_value = conn
        await pool.get_connection(ssh_host)
    await pool.release("sdw1", conn)

    pool._entries["sdw1"].last_used = pool._entries["sdw1"].last_used.replace(
        year=2000
    )
    await pool._reap_idle()

    assert pool.pool_size == 0
    conn.close.assert_called_once()
    await pool.close_all()


def _age(pool: ConnectionPool, host_name: str) -> None:
    pooled = pool._entries[host_name]
    pooled.last_used = pooled.last_used.replace(year=2000)


class TestLeases:
    @pytest.mark.asyncio
    async def test_lease_counts(self, ssh_host: SSHHost) -> None:
        pool = ConnectionPool()
        conn = _mock_conn()

        with patch("asyncssh.connect", new_callable=AsyncMock) as mock_connect:
            mock_connect.return_value = conn
            async with pool.lease(ssh_host) as leased:
                assert leased is conn
                await pool.get_connection(ssh_host)
                assert pool._entries["sdw1"].leases == 2
                await pool.release("sdw1", conn)

        assert pool._entries["sdw1"].leases == 0
        assert not pool._entries["sdw1"].in_use
        await pool.close_all()

    @pytest.mark.asyncio
    async def test_release_of_replaced_connection_ignored(
        self, ssh_host: SSHHost
    ) -> None:
        pool = ConnectionPool()
        first, second = _mock_conn(), _mock_conn()

        with patch("asyncssh.connect", new_callable=AsyncMock) as mock_connect:
            mock_connect.side_effect = [first, second]
            await pool.get_connection(ssh_host)
            first.is_closed = True
            await pool.get_connection(ssh_host)

        await pool.release("sdw1", first)
        await pool.release("missing", first)

        assert pool._entries["sdw1"].connection is second
        assert pool._entries["sdw1"].leases == 1
        await pool.close_all()

    @pytest.mark.asyncio
    async def test_reaper_skips_leased_connection(self, ssh_host: SSHHost) -> None:
        pool = ConnectionPool(idle_timeout=60)
        conn = _mock_conn()

        with patch("asyncssh.connect", new_callable=AsyncMock) as mock_connect:
            mock_connect.return_value = conn
            await pool.get_connection(ssh_host)

        _age(pool, "sdw1")
        await pool._reap_idle()

        assert pool.pool_size == 1
        conn.close.assert_not_called()

        await pool.release("sdw1", conn)
        _age(pool, "sdw1")
        await pool._reap_idle()

        assert pool.pool_size == 0
        conn.close.assert_called_once()
        await pool.close_all()

    @pytest.mark.asyncio
    async def test_long_command_outlives_idle_timeout(self, ssh_host: SSHHost) -> None:
        """The background reaper leaves a connection alone while it is leased."""
        pool = ConnectionPool(idle_timeout=1)
        conn = _mock_conn()

        with patch("asyncssh.connect", new_callable=AsyncMock) as mock_connect:
            mock_connect.return_value = conn
            async with pool.lease(ssh_host):
                await asyncio.sleep(2.5)
                conn.close.assert_not_called()
                assert pool.active_hosts == ["sdw1"]

        await pool.close_all()

    @pytest.mark.asyncio
    async def test_eviction_skips_leased_connections(self) -> None:
        pool = ConnectionPool(max_size=1)
        hosts = [SSHHost(name=f"sdw{i}", hostname=f"10.0.0.{i}") for i in range(3)]
        conns = [_mock_conn() for _ in hosts]

        with patch("asyncssh.connect", new_callable=AsyncMock) as mock_connect:
            mock_connect.side_effect = conns
            await pool.get_connection(hosts[0])
            await pool.get_connection(hosts[1])

            # Both leased, so the pool grows instead of closing sdw0
            assert pool.pool_size == 2
            conns[0].close.assert_not_called()

            await pool.release("sdw0", conns[0])
            await pool.get_connection(hosts[2])

        assert set(pool.active_hosts) == {"sdw1", "sdw2"}
        conns[0].close.assert_called_once()
        conns[1].close.assert_not_called()
        await pool.close_all()

    @pytest.mark.asyncio
    async def test_full_pool_does_not_cut_off_slow_host(self) -> None:
        """Fast hosts cycling through a small pool leave the slow one running."""
        pool = ConnectionPool(max_size=2)
        conns: dict[str, AsyncMock] = {}

        async def connect(hostname, **kwargs):
            conn = _mock_conn()
            delay = 0.3 if hostname == "slow" else 0

            async def run(command, check=False):
                await asyncio.sleep(delay)
                result = MagicMock()
                result.stdout = hostname
                result.stderr = "connection closed" if conn.close.called else ""
                result.returncode = 255 if conn.close.called else 0
                result.exit_signal = None
                return result

            conn.run.side_effect = run
            conns[hostname] = conn
            return conn

        hosts = [Host.for_hostname(name) for name in ("slow", "a", "b", "c")]
        op = remote_command(pool, "hostname", timeout=10)

        with patch("asyncssh.connect", side_effect=connect):
            result = await Dispatcher().run(
                hosts, op, Policy(continue_on_error=True, max_concurrency=2)
            )

        assert result.ok
        assert result.outcomes["slow"].output == "slow"
        conns["slow"].close.assert_not_called()
        assert "slow" in pool.active_hosts
        await pool.close_all()
