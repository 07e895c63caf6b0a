"""Utilities for gpcluster."""

from gpcluster.utils.console import ColorfulFormatter
from gpcluster.utils.hostname import get_local_hostname, is_localhost_target
from gpcluster.utils.shell import join_args, quote_path

__all__ = [
    "ColorfulFormatter",
    "get_local_hostname",
    "is_localhost_target",
    "join_args",
    "quote_path",
]
