"""Collapse per-host outcomes into one verdict and one diagnostic."""

import logging
from collections.abc import Mapping

from gpcluster.errors import CLUSTER_ERROR_CODE, GpError, HostFailuresError
from gpcluster.models import DispatchResult, DispatchState, Outcome, host_sort_key
from gpcluster.protocols import ErrorFactory

logger = logging.getLogger(__name__)


def _plural(count: int, word: str) -> str:
    return f"{count} {word}" if count == 1 else f"{count} {word}s"


class Reducer:
    """Turns a dispatch's outcomes into (ok, aggregate error).

    The aggregate error lists every host that ran and failed as
    ``<host>: <message>``, ordered by host identifier, followed by one line
    naming the hosts that were never attempted. Output depends only on the
    outcomes, never on completion order, so reducing twice gives equal
    results.

    Example:
        >>> ok, err = Reducer(code=3).reduce(result)
        >>> if not ok:
        ...     print(err)
        ERROR[3] 1 of 3 hosts failed
        h2: connection refused
    """

    def __init__(
        self,
        code: int = CLUSTER_ERROR_CODE,
        error_factory: ErrorFactory = GpError,
    ) -> None:
        """Initialize reducer.

        Args:
            code: Code given to the aggregate error
            error_factory: Builds the aggregate error from (code, cause)
        """
        self.code = code
        self.error_factory = error_factory

    @staticmethod
    def _outcomes(
        result: DispatchResult | Mapping[str, Outcome],
    ) -> Mapping[str, Outcome]:
        if isinstance(result, DispatchResult):
            return result.outcomes
        return result

    def classify(
        self, result: DispatchResult | Mapping[str, Outcome]
    ) -> DispatchState:
        """Terminal state of a dispatch with these outcomes."""
        outcomes = list(self._outcomes(result).values())
        if all(o.ok for o in outcomes):
            return DispatchState.ALL_SUCCEEDED
        if any(o.cancelled for o in outcomes):
            return DispatchState.CANCELLED
        if not any(o.ok for o in outcomes):
            return DispatchState.TOTAL_FAILURE
        return DispatchState.PARTIAL_FAILURE

    def render(self, outcomes: Mapping[str, Outcome]) -> HostFailuresError | None:
        """Build the combined diagnostic, or None when every host succeeded."""
        ordered = [outcomes[h] for h in sorted(outcomes, key=host_sort_key)]
        failures = tuple(o for o in ordered if not o.ok and not o.cancelled)
        skipped = tuple(o.host_id for o in ordered if o.cancelled)
        if not failures and not skipped:
            return None

        total = len(outcomes)
        header = f"{len(failures)} of {_plural(total, 'host')} failed"
        if skipped:
            header = f"{header}, {len(skipped)} not attempted"

        lines = [header]
        lines.extend(f"{o.host_id}: {o.message}" for o in failures)
        if skipped:
            lines.append(
                f"Not attempted (dispatch cancelled): {', '.join(skipped)}"
            )
        return HostFailuresError("\n".join(lines), failures, skipped)

    def reduce(
        self, result: DispatchResult | Mapping[str, Outcome]
    ) -> tuple[bool, Exception | None]:
        """Reduce outcomes to a pass/fail verdict.

        Args:
            result: DispatchResult or mapping of host id to outcome

        Returns:
            (True, None) when every outcome is a success, otherwise
            (False, aggregate error)
        """
        cause = self.render(self._outcomes(result))
        if cause is None:
            return True, None
        return False, self.error_factory(self.code, cause)
