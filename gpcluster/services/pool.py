"""SSH connections shared by every remote operation of a utility run.

Segments living on the same machine share one connection, so entries are
keyed by SSH host name rather than by dispatch host identifier.

Locking Strategy:
- `_registry_lock`: Guards the `_entries` OrderedDict and `_open_locks`
- Per-machine open locks: Only one coroutine opens or drops the connection
  to a machine at a time, so eight segments on one host share one handshake
- Acquisition order: open lock first, registry lock inside it

Leases:
- `get_connection` hands out a lease; callers give it back with `release`
  once their command has finished, or borrow through `lease()`
- Connections with an outstanding lease are never closed by the idle reaper
  or by eviction, so one host's slow command cannot be cut off by work on
  other hosts

Capacity:
- `_entries` is kept in recency order (move_to_end on every borrow)
- A full pool drops its least recently borrowed idle machine before opening
  a new connection. When every connection is leased the pool grows past
  max_size until leases are returned
"""

import asyncio
import logging
from collections import OrderedDict
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any

import asyncssh

from gpcluster.models import PooledConnection

if TYPE_CHECKING:
    from gpcluster.models import SSHHost

logger = logging.getLogger(__name__)


class ConnectionPool:
    """Bounded set of open SSH connections, one per cluster machine."""

    def __init__(
        self,
        idle_timeout: int = 60,
        max_size: int = 100,
        known_hosts: str | None = None,
        strict_host_key_checking: bool = True,
    ) -> None:
        """Initialize pool.

        Args:
            idle_timeout: Seconds a connection may sit unused before it is closed
            max_size: Most machines connected at once (must be > 0)
            known_hosts: known_hosts file to verify against, None skips checks
            strict_host_key_checking: Refuse machines whose key is not known

        Raises:
            ValueError: If max_size is not positive
        """
        if max_size <= 0:
            raise ValueError(f"max_size must be > 0, got {max_size}")

        self.idle_timeout = idle_timeout
        self.max_size = max_size
        self._entries: OrderedDict[str, PooledConnection] = OrderedDict()
        self._open_locks: dict[str, asyncio.Lock] = {}
        self._registry_lock = asyncio.Lock()
        self._reaper: asyncio.Task[Any] | None = None
        self._known_hosts = known_hosts
        self._strict_host_key = strict_host_key_checking

        if known_hosts is None:
            logger.warning(
                "Connecting to cluster hosts without host key verification. "
                "Point GPCLUSTER_KNOWN_HOSTS at a known_hosts file to enable it."
            )
        logger.debug(
            "Pool ready: up to %d machine(s), idle after %ds", max_size, idle_timeout
        )

    async def _lock_for(self, host_name: str) -> asyncio.Lock:
        async with self._registry_lock:
            return self._open_locks.setdefault(host_name, asyncio.Lock())

    async def _make_room(self) -> None:
        """Drop least recently borrowed idle machines until one slot is free.

        Leased connections are skipped. If only leased connections remain the
        pool goes over max_size rather than cut a running command off. The
        dropped connections are closed after the registry lock is released.
        """
        evicted: list[tuple[str, PooledConnection]] = []
        async with self._registry_lock:
            idle = [name for name, p in self._entries.items() if not p.in_use]
            excess = len(self._entries) - self.max_size + 1
            for host_name in idle[: max(excess, 0)]:
                evicted.append((host_name, self._entries.pop(host_name)))
            size = len(self._entries)

        if size >= self.max_size:
            logger.warning(
                "Pool full (max_size=%d) and every connection is running a "
                "command, growing to %d",
                self.max_size,
                size + 1,
            )
        for host_name, pooled in evicted:
            logger.info(
                "Pool full (max_size=%d), dropping connection to %s",
                self.max_size,
                host_name,
            )
            pooled.connection.close()

    async def _connect(
        self, host: "SSHHost", known_hosts: str | None
    ) -> asyncssh.SSHClientConnection:
        return await asyncssh.connect(
            host.connection_hostname,
            port=host.connection_port,
            username=host.user,
            known_hosts=known_hosts,
            client_keys=[host.identity_file] if host.identity_file else None,
        )

    async def _open(self, host: "SSHHost") -> asyncssh.SSHClientConnection:
        """Connect to a machine under the configured host key policy."""
        logger.info(
            "Opening SSH connection to %s (%s@%s:%d)",
            host.name,
            host.user,
            host.connection_hostname,
            host.connection_port,
        )
        try:
            return await self._connect(host, self._known_hosts)
        except asyncssh.HostKeyNotVerifiable as e:
            if self._strict_host_key:
                logger.error("Host key of %s rejected: %s", host.name, e)
                raise
            logger.warning("Host key of %s unknown, connecting anyway: %s", host.name, e)
            return await self._connect(host, None)

    async def get_connection(self, host: "SSHHost") -> asyncssh.SSHClientConnection:
        """Borrow the machine's connection, opening one if needed.

        Every successful call takes a lease that must be given back with
        `release` once the caller's command has finished.
        """
        async with await self._lock_for(host.name):
            pooled = self._entries.get(host.name)
            if pooled is not None and not pooled.is_stale:
                pooled.touch()
                pooled.leases += 1
                async with self._registry_lock:
                    self._entries.move_to_end(host.name)
                logger.debug(
                    "Reusing connection to %s (%d lease(s))", host.name, pooled.leases
                )
                return pooled.connection

            if pooled is not None:
                logger.info("Connection to %s was closed, reconnecting", host.name)
                async with self._registry_lock:
                    self._entries.pop(host.name, None)

            await self._make_room()
            conn = await self._open(host)
            async with self._registry_lock:
                self._entries[host.name] = PooledConnection(connection=conn, leases=1)
                size = len(self._entries)
            logger.info(
                "Connected to %s (pool_size=%d/%d)", host.name, size, self.max_size
            )

            if self._reaper is None or self._reaper.done():
                self._reaper = asyncio.create_task(self._reap_loop())
            return conn

    async def release(self, host_name: str, connection: Any) -> None:
        """Give back a lease taken by `get_connection`.

        A lease on a connection that has since been replaced or removed is
        ignored.
        """
        async with self._registry_lock:
            pooled = self._entries.get(host_name)
            if pooled is None or pooled.connection is not connection:
                return
            pooled.leases = max(pooled.leases - 1, 0)
            pooled.touch()

    @asynccontextmanager
    async def lease(
        self, host: "SSHHost"
    ) -> AsyncIterator[asyncssh.SSHClientConnection]:
        """Borrow a connection for the duration of the block."""
        conn = await self.get_connection(host)
        try:
            yield conn
        finally:
            await self.release(host.name, conn)

    async def _reap_loop(self) -> None:
        """Close idle connections until the pool is empty."""
        while self._entries:
            await asyncio.sleep(max(self.idle_timeout // 2, 1))
            await self._reap_idle()
        logger.debug("Pool empty, idle reaper exiting")

    async def _reap_idle(self) -> None:
        async with self._registry_lock:
            names = list(self._entries)

        cutoff = datetime.now() - timedelta(seconds=self.idle_timeout)
        for host_name in names:
            async with await self._lock_for(host_name):
                pooled = self._entries.get(host_name)
                if pooled is None:
                    continue
                stale = pooled.is_stale
                if pooled.in_use or (not stale and pooled.last_used >= cutoff):
                    continue
                logger.info(
                    "Closing %s connection to %s",
                    "closed" if stale else "idle",
                    host_name,
                )
                pooled.connection.close()
                async with self._registry_lock:
                    self._entries.pop(host_name, None)

    async def remove_connection(self, host_name: str) -> None:
        """Close and forget the connection to one machine, if there is one."""
        async with await self._lock_for(host_name):
            async with self._registry_lock:
                pooled = self._entries.pop(host_name, None)
            if pooled is None:
                return
            logger.info("Dropping connection to %s", host_name)
            pooled.connection.close()

    async def close_all(self) -> None:
        """Close every connection and stop the idle reaper."""
        async with self._registry_lock:
            names = list(self._entries)

        if names:
            logger.info("Closing %d SSH connection(s)", len(names))
        for host_name in names:
            await self.remove_connection(host_name)

        if self._reaper is not None and not self._reaper.done():
            self._reaper.cancel()

    @property
    def pool_size(self) -> int:
        return len(self._entries)

    @property
    def active_hosts(self) -> list[str]:
        """Machines with an open connection, least recently used first."""
        return list(self._entries)
