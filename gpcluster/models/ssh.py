"""SSH targets and pooled connections."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import asyncssh


@dataclass(frozen=True)
class SSHHost:
    """How to reach one cluster machine over SSH.

    Built from an ~/.ssh/config entry, or from a cluster hostname with the
    default admin user.
    """

    name: str
    hostname: str
    user: str = "gpadmin"
    port: int = 22
    identity_file: str | None = None
    is_localhost: bool = False

    @property
    def connection_hostname(self) -> str:
        """Address to dial; the loopback address for this machine."""
        return "127.0.0.1" if self.is_localhost else self.hostname

    @property
    def connection_port(self) -> int:
        # sshd on this machine listens on the standard port
        return 22 if self.is_localhost else self.port


@dataclass
class PooledConnection:
    """An open connection, when it was last borrowed and by how many.

    `leases` counts operations currently running commands over the
    connection. A leased connection is never closed for idleness or to make
    room in the pool.
    """

    connection: "asyncssh.SSHClientConnection"
    last_used: datetime = field(default_factory=datetime.now)
    leases: int = 0

    def touch(self) -> None:
        self.last_used = datetime.now()

    @property
    def in_use(self) -> bool:
        return self.leases > 0

    @property
    def is_stale(self) -> bool:
        """Whether the peer or asyncssh has closed the connection."""
        # asyncssh exposes is_closed() as a method; mocks often set a bool
        is_closed = self.connection.is_closed
        return bool(is_closed() if callable(is_closed) else is_closed)
