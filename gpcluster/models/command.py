"""Command execution data models."""

from dataclasses import dataclass


@dataclass(frozen=True)
class CommandResult:
    """Result of a command executed on one host."""

    output: str
    error: str
    returncode: int

    @property
    def succeeded(self) -> bool:
        """Whether the command exited with status 0."""
        return self.returncode == 0
