"""Shell command safety utilities."""

import shlex


def quote_path(path: str) -> str:
    """Safely quote a path or command string for the remote shell."""
    return shlex.quote(path)


def join_args(args: list[str]) -> str:
    """Join arguments into one shell-safe command line."""
    return shlex.join(args)
