"""Per-host outcome of a dispatched operation."""

from dataclasses import dataclass
from enum import Enum
from typing import Any

from gpcluster.errors import NotAttemptedError


class OutcomeKind(str, Enum):
    """How an operation ended on one host."""

    SUCCESS = "success"
    FAILURE = "failure"
    NOT_ATTEMPTED = "not_attempted"


@dataclass(frozen=True)
class Outcome:
    """Result of running an operation against one host.

    A not-attempted outcome is a failure whose error is a
    `NotAttemptedError`, so "never ran" stays distinguishable from
    "ran and failed".
    """

    host_id: str
    kind: OutcomeKind
    output: Any = None
    error: BaseException | None = None

    @classmethod
    def success(cls, host_id: str, output: Any = None) -> "Outcome":
        return cls(host_id=host_id, kind=OutcomeKind.SUCCESS, output=output)

    @classmethod
    def failure(
        cls, host_id: str, error: BaseException | str, output: Any = None
    ) -> "Outcome":
        if isinstance(error, str):
            error = Exception(error)
        return cls(host_id=host_id, kind=OutcomeKind.FAILURE, output=output, error=error)

    @classmethod
    def not_attempted(cls, host_id: str) -> "Outcome":
        return cls(
            host_id=host_id,
            kind=OutcomeKind.NOT_ATTEMPTED,
            error=NotAttemptedError(host_id),
        )

    @property
    def ok(self) -> bool:
        """Whether the operation succeeded on this host."""
        return self.kind is OutcomeKind.SUCCESS

    @property
    def cancelled(self) -> bool:
        """Whether the host was skipped by a cancelled dispatch."""
        return self.kind is OutcomeKind.NOT_ATTEMPTED

    @property
    def message(self) -> str:
        """Human-readable error message, empty for successes."""
        if self.error is None:
            return ""
        return str(self.error) or type(self.error).__name__
