"""Error types for cluster dispatch.

`GpError` is the error-with-code value handed back to CLIs so they can map a
failed dispatch to a process exit status. The remaining exceptions describe
why an individual host failed, or signal that the dispatcher's own
bookkeeping is broken.
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from gpcluster.models.outcome import Outcome

# Default code for an aggregate cluster failure
CLUSTER_ERROR_CODE = 1


class GpError(Exception):
    """Error carrying a numeric code and the wrapped cause.

    Example:
        >>> err = GpError.new(9999, "unexpected error: %s", "some error")
        >>> str(err)
        'ERROR[9999] unexpected error: some error'
    """

    def __init__(self, code: int, err: BaseException | str) -> None:
        """Initialize error.

        Args:
            code: Numeric error code, interpreted by the caller
            err: Wrapped cause (a plain string is wrapped in an Exception)
        """
        if isinstance(err, str):
            err = Exception(err)
        self.code = int(code)
        self.err = err
        super().__init__(f"ERROR[{self.code}] {err}")

    @classmethod
    def new(cls, code: int, fmt: str, *args: object) -> "GpError":
        """Create an error from a printf-style message."""
        return cls(code, Exception(fmt % args if args else fmt))

    def get_code(self) -> int:
        """Return the numeric error code."""
        return self.code

    def get_err(self) -> BaseException:
        """Return the wrapped cause."""
        return self.err

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, GpError):
            return NotImplemented
        return (
            type(self) is type(other)
            and self.code == other.code
            and type(self.err) is type(other.err)
            and str(self.err) == str(other.err)
        )

    def __hash__(self) -> int:
        return hash((type(self), self.code, str(self.err)))


class HostFailuresError(Exception):
    """Every failing host of one dispatch, rendered as a single message."""

    def __init__(
        self,
        message: str,
        failures: tuple["Outcome", ...],
        not_attempted: tuple[str, ...],
    ) -> None:
        self.failures = failures
        self.not_attempted = not_attempted
        super().__init__(message)

    @property
    def failed_hosts(self) -> tuple[str, ...]:
        """Identifiers of hosts whose operation ran and failed."""
        return tuple(outcome.host_id for outcome in self.failures)


class NotAttemptedError(Exception):
    """Host was skipped because a fail-fast dispatch was cancelled."""

    def __init__(self, host_id: str) -> None:
        self.host_id = host_id
        super().__init__("not attempted: dispatch cancelled before this host started")


class CommandFailedError(Exception):
    """Command exited with a non-zero status."""

    def __init__(self, returncode: int, stderr: str = "") -> None:
        self.returncode = returncode
        self.stderr = stderr
        detail = stderr.strip().splitlines()[-1] if stderr.strip() else ""
        message = f"command exited with code {returncode}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class HostConnectionError(Exception):
    """Failed to establish SSH connection after retry."""

    def __init__(self, host_name: str, original_error: Exception):
        """Initialize connection error.

        Args:
            host_name: Name of the SSH host
            original_error: Original exception that caused the failure
        """
        self.host_name = host_name
        self.original_error = original_error
        super().__init__(f"Cannot connect to {host_name}: {original_error}")


class CollectorMisuseError(RuntimeError):
    """Result bookkeeping was violated (double record, missing host, ...).

    This is never a normal outcome: it means the dispatcher scheduled a host
    twice or lost one, and is raised out of the dispatch.
    """
