"""Cluster command dispatch for database administration utilities.

Runs one operation across many cluster hosts with bounded concurrency,
records every host's outcome, and reduces them to a single verdict.
"""

from gpcluster.errors import (
    CLUSTER_ERROR_CODE,
    CollectorMisuseError,
    CommandFailedError,
    GpError,
    HostConnectionError,
    HostFailuresError,
    NotAttemptedError,
)
from gpcluster.models import (
    Cluster,
    DispatchResult,
    DispatchState,
    Host,
    HostRole,
    Outcome,
    OutcomeKind,
    Policy,
    Scope,
    SegConfig,
)
from gpcluster.protocols import LoggerSink, LogSink, Operation
from gpcluster.services import Dispatcher, Reducer, ResultCollector

__version__ = "0.1.0"

__all__ = [
    "CLUSTER_ERROR_CODE",
    "Cluster",
    "CollectorMisuseError",
    "CommandFailedError",
    "DispatchResult",
    "DispatchState",
    "Dispatcher",
    "GpError",
    "Host",
    "HostConnectionError",
    "HostFailuresError",
    "HostRole",
    "LogSink",
    "LoggerSink",
    "NotAttemptedError",
    "Operation",
    "Outcome",
    "OutcomeKind",
    "Policy",
    "Reducer",
    "ResultCollector",
    "Scope",
    "SegConfig",
]
