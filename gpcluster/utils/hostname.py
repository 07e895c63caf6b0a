"""Hostname detection utilities for localhost identification."""

import socket


def get_local_hostname() -> str:
    """Hostname of the machine running the dispatch (lowercase)."""
    return socket.gethostname().lower()


def is_localhost_target(target_host: str) -> bool:
    """Check if a cluster hostname refers to this machine.

    A short name matches this machine's FQDN and vice versa,
    case-insensitively.
    """
    if not target_host:
        return False

    target = target_host.lower()
    if target in ("localhost", "127.0.0.1", "::1"):
        return True

    local = get_local_hostname()
    if target == local:
        return True

    # Local FQDN, short target
    if "." in local and target == local.split(".")[0]:
        return True

    # FQDN target, short local name
    return "." in target and target.split(".")[0] == local
