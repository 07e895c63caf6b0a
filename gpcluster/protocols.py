"""Protocol interfaces for the capabilities the dispatcher is given.

The dispatch engine never constructs its collaborators. Callers inject:

- an Operation: what to run against one host,
- a LogSink: where per-host failure summaries go,
- an ErrorFactory: how the aggregate error is expressed.

Usage Example:

    from gpcluster.protocols import LoggerSink
    from gpcluster.services import Dispatcher

    async def uptime(host):
        return await some_remote_call(host.hostname)

    dispatcher = Dispatcher(sink=LoggerSink(logging.getLogger("gpstate")))
    result = await dispatcher.run(hosts, uptime, Policy(max_concurrency=8))

    # Or capture log lines in tests
    class ListSink:
        def __init__(self):
            self.lines = []

        def log(self, level, message):
            self.lines.append((level, message))
"""

import logging
from collections.abc import Callable
from typing import Any, Protocol, runtime_checkable

from gpcluster.models import Host, SSHHost

Operation = Callable[[Host], Any]
"""Unit of work run against one host.

May be a coroutine function or a plain callable (run in a worker thread).
Returning an Outcome records it as-is; raising records a failure; any other
return value is recorded as successful output.
"""

ErrorFactory = Callable[[int, BaseException], Exception]
"""Builds the aggregate error from a numeric code and the wrapped cause."""


@runtime_checkable
class LogSink(Protocol):
    """Protocol for the dispatcher's completion-reporting path."""

    def log(self, level: int, message: str) -> None:
        """Emit one formatted message.

        Args:
            level: Severity, using the logging module's numeric levels
            message: Fully formatted message
        """
        ...


class LoggerSink:
    """LogSink backed by a standard library logger."""

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self.logger = logger or logging.getLogger("gpcluster.dispatch")

    def log(self, level: int, message: str) -> None:
        self.logger.log(level, "%s", message)


@runtime_checkable
class SSHConnectionPool(Protocol):
    """Protocol for SSH connection pooling.

    Implementations must provide connection management with
    retry and cleanup capabilities.
    """

    async def get_connection(self, host: SSHHost) -> Any:
        """Get or create connection for host.

        Args:
            host: SSH host configuration

        Returns:
            SSH connection object, leased until `release` is called

        Raises:
            ConnectionError: If unable to connect
        """
        ...

    async def release(self, host_name: str, connection: Any) -> None:
        """Give back the lease taken by `get_connection`.

        Leased connections are never closed for idleness or eviction.
        """
        ...

    async def remove_connection(self, host_name: str) -> None:
        """Remove connection from pool.

        Args:
            host_name: Name of host to remove

        Note:
            Safe to call even if connection doesn't exist.
        """
        ...

    async def close_all(self) -> None:
        """Close all connections in pool."""
        ...


__all__ = [
    "ErrorFactory",
    "LogSink",
    "LoggerSink",
    "Operation",
    "SSHConnectionPool",
]
