"""Dependency container for cluster utilities.

Holds the configuration and the SSH connection pool one utility run needs,
and builds dispatchers wired to them. Nothing here is process-wide.
"""

import logging
from dataclasses import dataclass

from gpcluster.config import Config
from gpcluster.protocols import LoggerSink, LogSink, Operation
from gpcluster.services.dispatcher import Dispatcher
from gpcluster.services.executors import CommandSpec, local_command, remote_command
from gpcluster.services.pool import ConnectionPool
from gpcluster.services.reducer import Reducer


@dataclass
class Dependencies:
    """Container for gpcluster dependencies.

    Example:
        deps = Dependencies.create()
        try:
            result = await deps.dispatcher().run(
                hosts, deps.remote("uptime"), deps.config.policy()
            )
        finally:
            await deps.cleanup()
    """

    config: Config
    _pool: ConnectionPool | None = None

    @classmethod
    def create(cls) -> "Dependencies":
        """Create dependencies with configuration from the environment."""
        return cls.from_config(Config.from_env())

    @classmethod
    def from_config(cls, config: Config) -> "Dependencies":
        """Create dependencies with custom configuration."""
        return cls(config=config)

    @property
    def pool(self) -> ConnectionPool:
        """SSH connection pool, created on first use.

        Local-only utilities never need known_hosts, so host key settings
        are only resolved here.

        Raises:
            FileNotFoundError: If strict host key checking is on and
                known_hosts is missing
        """
        if self._pool is None:
            self._pool = ConnectionPool(
                idle_timeout=self.config.idle_timeout,
                max_size=self.config.max_pool_size,
                known_hosts=self.config.known_hosts_path,
                strict_host_key_checking=self.config.strict_host_key_checking,
            )
        return self._pool

    def dispatcher(self, sink: LogSink | None = None) -> Dispatcher:
        """Dispatcher reporting through `sink` (the gpcluster logger by default)."""
        return Dispatcher(
            sink=sink or LoggerSink(logging.getLogger("gpcluster.dispatch")),
            reducer=Reducer(code=self.config.settings.error_code),
        )

    def remote(self, command: CommandSpec, timeout: int | None = None) -> Operation:
        """Operation running `command` on each host over pooled SSH."""
        return remote_command(
            self.pool,
            command,
            timeout or self.config.command_timeout,
            ssh_hosts=self.config.get_hosts(),
            user=self.config.settings.ssh_user,
        )

    def local(self, command: CommandSpec, timeout: int | None = None) -> Operation:
        """Operation running `command` on this machine once per host."""
        return local_command(command, timeout or self.config.command_timeout)

    async def cleanup(self) -> None:
        """Close all pooled connections."""
        if self._pool is not None:
            await self._pool.close_all()
