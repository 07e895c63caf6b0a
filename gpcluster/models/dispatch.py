"""Dispatch policy and aggregate result models."""

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import TYPE_CHECKING

from gpcluster.models.host import host_sort_key
from gpcluster.models.outcome import Outcome

if TYPE_CHECKING:
    from gpcluster.config.settings import Settings

DEFAULT_MAX_CONCURRENCY = 16


@dataclass(frozen=True)
class Policy:
    """How a dispatch reacts to failures and how wide it fans out."""

    continue_on_error: bool = False
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY

    def __post_init__(self) -> None:
        if self.max_concurrency < 1:
            raise ValueError(
                f"max_concurrency must be >= 1, got {self.max_concurrency}"
            )

    @classmethod
    def from_settings(cls, settings: "Settings") -> "Policy":
        """Build the default policy from environment settings."""
        return cls(
            continue_on_error=settings.continue_on_error,
            max_concurrency=settings.max_concurrency,
        )


class DispatchState(str, Enum):
    """Lifecycle of a single dispatch."""

    PENDING = "pending"
    RUNNING = "running"
    ALL_SUCCEEDED = "all_succeeded"
    PARTIAL_FAILURE = "partial_failure"
    TOTAL_FAILURE = "total_failure"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class DispatchResult:
    """Every host's outcome plus the aggregate error, if any host failed."""

    outcomes: Mapping[str, Outcome] = field(
        default_factory=lambda: MappingProxyType({})
    )
    state: DispatchState = DispatchState.ALL_SUCCEEDED
    error: Exception | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.outcomes, MappingProxyType):
            object.__setattr__(self, "outcomes", MappingProxyType(dict(self.outcomes)))

    @property
    def ok(self) -> bool:
        """True when every host succeeded."""
        return all(outcome.ok for outcome in self.outcomes.values())

    @property
    def succeeded(self) -> list[str]:
        return self._ids(lambda o: o.ok)

    @property
    def failed(self) -> list[str]:
        """Hosts whose operation ran and failed."""
        return self._ids(lambda o: not o.ok and not o.cancelled)

    @property
    def not_attempted(self) -> list[str]:
        """Hosts skipped after a fail-fast cancellation."""
        return self._ids(lambda o: o.cancelled)

    def _ids(self, predicate) -> list[str]:  # type: ignore[no-untyped-def]
        return sorted(
            (host_id for host_id, o in self.outcomes.items() if predicate(o)),
            key=host_sort_key,
        )

    def __getitem__(self, host_id: str) -> Outcome:
        return self.outcomes[host_id]

    def __contains__(self, host_id: object) -> bool:
        return host_id in self.outcomes

    def __iter__(self) -> Iterator[str]:
        return iter(self.outcomes)

    def __len__(self) -> int:
        return len(self.outcomes)
