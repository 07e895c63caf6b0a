"""Borrowing a pooled SSH connection with a single reconnect."""

import logging
from typing import TYPE_CHECKING, Any

from gpcluster.errors import HostConnectionError

if TYPE_CHECKING:
    from gpcluster.models import SSHHost
    from gpcluster.protocols import SSHConnectionPool

logger = logging.getLogger(__name__)


async def get_connection_with_retry(
    pool: "SSHConnectionPool",
    ssh_host: "SSHHost",
) -> Any:
    """Borrow a connection, dropping the pooled one and reconnecting on failure.

    Only connection setup is retried. No remote command has run at this
    point, so a second attempt cannot repeat a side effect.

    Raises:
        HostConnectionError: If the reconnect fails too
    """
    try:
        return await pool.get_connection(ssh_host)
    except Exception as first_error:
        logger.warning(
            "Connecting to %s failed (%s), reconnecting once", ssh_host.name, first_error
        )

    try:
        await pool.remove_connection(ssh_host.name)
        conn = await pool.get_connection(ssh_host)
    except Exception as retry_error:
        logger.error("Reconnect to %s failed: %s", ssh_host.name, retry_error)
        raise HostConnectionError(ssh_host.name, retry_error) from retry_error
    logger.info("Reconnected to %s", ssh_host.name)
    return conn
