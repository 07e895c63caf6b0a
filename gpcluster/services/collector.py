"""Thread-safe accumulation of per-host outcomes.

Locking Strategy:
- A single `threading.Lock` guards the results dict; each `record()` is one
  critical section and never awaits, so it is safe from event-loop tasks and
  from worker threads alike.
- A host may be recorded exactly once. A second write means the dispatcher
  scheduled the host twice and raises `CollectorMisuseError`.
"""

import logging
import threading
from collections import Counter
from collections.abc import Iterable, Mapping
from types import MappingProxyType

from gpcluster.errors import CollectorMisuseError
from gpcluster.models import Outcome, host_sort_key

logger = logging.getLogger(__name__)


class ResultCollector:
    """Maps host identifier to outcome, each host written exactly once."""

    def __init__(self, expected: Iterable[str]) -> None:
        """Initialize collector.

        Args:
            expected: Identifiers of every host in the dispatch

        Raises:
            ValueError: If an identifier appears more than once
        """
        counts = Counter(expected)
        dupes = sorted((i for i, n in counts.items() if n > 1), key=host_sort_key)
        if dupes:
            raise ValueError(f"Duplicate host identifiers: {', '.join(dupes)}")
        self._expected: frozenset[str] = frozenset(counts)
        self._results: dict[str, Outcome] = {}
        self._lock = threading.Lock()

    def record(self, host_id: str, outcome: Outcome) -> None:
        """Record a host's outcome.

        Raises:
            CollectorMisuseError: If the host is unknown, already recorded,
                or the outcome belongs to another host
        """
        if outcome.host_id != host_id:
            raise CollectorMisuseError(
                f"Outcome for {outcome.host_id!r} recorded under {host_id!r}"
            )
        with self._lock:
            if host_id not in self._expected:
                raise CollectorMisuseError(f"Unexpected host recorded: {host_id!r}")
            if host_id in self._results:
                raise CollectorMisuseError(f"Host recorded twice: {host_id!r}")
            self._results[host_id] = outcome
            remaining = len(self._expected) - len(self._results)
        logger.debug(
            "Recorded %s for %s (%d remaining)", outcome.kind.value, host_id, remaining
        )

    @property
    def pending(self) -> list[str]:
        """Hosts with no recorded outcome yet."""
        with self._lock:
            missing = self._expected.difference(self._results)
        return sorted(missing, key=host_sort_key)

    @property
    def is_complete(self) -> bool:
        with self._lock:
            return len(self._results) == len(self._expected)

    def snapshot(self) -> Mapping[str, Outcome]:
        """Return the complete, read-only mapping.

        Raises:
            CollectorMisuseError: If any expected host is still outstanding
        """
        with self._lock:
            if len(self._results) != len(self._expected):
                missing = sorted(
                    self._expected.difference(self._results), key=host_sort_key
                )
                raise CollectorMisuseError(
                    f"Snapshot requested with {len(missing)} host(s) outstanding: "
                    f"{', '.join(missing)}"
                )
            return MappingProxyType(dict(self._results))

    def __len__(self) -> int:
        with self._lock:
            return len(self._results)
