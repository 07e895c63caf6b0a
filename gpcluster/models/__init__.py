"""Data models for gpcluster."""

from gpcluster.models.cluster import Cluster, Scope, SegConfig
from gpcluster.models.command import CommandResult
from gpcluster.models.dispatch import DispatchResult, DispatchState, Policy
from gpcluster.models.host import Host, HostRole, host_sort_key
from gpcluster.models.outcome import Outcome, OutcomeKind
from gpcluster.models.ssh import PooledConnection, SSHHost

__all__ = [
    "Cluster",
    "CommandResult",
    "DispatchResult",
    "DispatchState",
    "Host",
    "HostRole",
    "Outcome",
    "OutcomeKind",
    "Policy",
    "PooledConnection",
    "Scope",
    "SegConfig",
    "SSHHost",
    "host_sort_key",
]
