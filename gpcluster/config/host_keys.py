"""SSH host key verification settings."""

import logging
import os
from pathlib import Path

logger = logging.getLogger(__name__)


class HostKeyVerifier:
    """Resolves which known_hosts file SSH connections verify against."""

    def __init__(
        self,
        known_hosts_path: str | None = None,
        strict_checking: bool = True,
    ):
        """Initialize host key verifier.

        Args:
            known_hosts_path: Path to known_hosts file, or "none" to disable
            strict_checking: Reject unknown host keys

        The file is looked up on first use, so utilities that never open an
        SSH connection do not need one.
        """
        self.strict_checking = strict_checking
        self._configured = known_hosts_path
        self._resolved = False
        self._known_hosts: str | None = None

    def _resolve_known_hosts(self, value: str | None) -> str | None:
        if value and value.strip().lower() == "none":
            logger.warning(
                "SSH host key verification disabled (GPCLUSTER_KNOWN_HOSTS=none)"
            )
            return None

        path = Path(os.path.expanduser(value or "~/.ssh/known_hosts"))
        if path.exists():
            return str(path)

        if self.strict_checking:
            raise FileNotFoundError(
                f"SSH host key verification required but known_hosts not found "
                f"at {path}. Add host keys with: ssh-keyscan <hostname> >> {path}, "
                f"or set GPCLUSTER_KNOWN_HOSTS=none to disable verification."
            )
        logger.warning("known_hosts not found at %s, verification disabled", path)
        return None

    def get_known_hosts_path(self) -> str | None:
        """Path to known_hosts, or None if verification is disabled.

        Raises:
            FileNotFoundError: If strict mode and the file is missing
        """
        if not self._resolved:
            self._known_hosts = self._resolve_known_hosts(self._configured)
            self._resolved = True
        return self._known_hosts

    def is_enabled(self) -> bool:
        return self.get_known_hosts_path() is not None
