"""Services for gpcluster."""

from gpcluster.services.collector import ResultCollector
from gpcluster.services.connection import get_connection_with_retry
from gpcluster.services.dispatcher import Dispatcher
from gpcluster.services.executors import (
    build_command,
    local_command,
    remote_command,
    resolve_ssh_host,
    run_command,
)
from gpcluster.services.pool import ConnectionPool
from gpcluster.services.reducer import Reducer

__all__ = [
    "ConnectionPool",
    "Dispatcher",
    "Reducer",
    "ResultCollector",
    "build_command",
    "get_connection_with_retry",
    "local_command",
    "remote_command",
    "resolve_ssh_host",
    "run_command",
]
