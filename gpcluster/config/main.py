"""Application configuration.

Delegates to specialized components:
- Settings: GPCLUSTER_* environment variables
- SSHConfigParser: Reads ~/.ssh/config
- HostKeyVerifier: Resolves known_hosts
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from gpcluster.config.host_keys import HostKeyVerifier
from gpcluster.config.parser import SSHConfigParser
from gpcluster.config.settings import Settings
from gpcluster.models import Policy, SSHHost

logger = logging.getLogger(__name__)


def _split_env_list(key: str) -> list[str] | None:
    value = os.getenv(key, "").strip()
    if not value:
        return None
    return [item.strip() for item in value.split(",") if item.strip()]


@dataclass
class Config:
    """Aggregates settings, SSH config and host key policy."""

    settings: Settings
    parser: SSHConfigParser
    host_keys: HostKeyVerifier
    _hosts_cache: dict[str, SSHHost] | None = field(default=None, init=False, repr=False)

    @classmethod
    def from_env(cls, ssh_config_path: Path | str | None = None) -> "Config":
        """Create config from environment.

        Args:
            ssh_config_path: Override for the SSH config location

        Returns:
            Configured instance with all components initialized
        """
        settings = Settings.from_env()
        parser = SSHConfigParser(
            config_path=ssh_config_path or os.getenv("GPCLUSTER_SSH_CONFIG") or None,
            allowlist=_split_env_list("GPCLUSTER_ALLOWLIST"),
            blocklist=_split_env_list("GPCLUSTER_BLOCKLIST"),
        )
        host_keys = HostKeyVerifier(
            known_hosts_path=os.getenv("GPCLUSTER_KNOWN_HOSTS"),
            strict_checking=Settings._get_bool(
                "GPCLUSTER_STRICT_HOST_KEY_CHECKING", True
            ),
        )
        return cls(settings=settings, parser=parser, host_keys=host_keys)

    def get_hosts(self) -> dict[str, SSHHost]:
        """SSH config entries, parsed once and cached."""
        if self._hosts_cache is None:
            self._hosts_cache = self.parser.parse()
        return self._hosts_cache

    def get_host(self, name: str) -> SSHHost | None:
        return self.get_hosts().get(name)

    def policy(
        self,
        continue_on_error: bool | None = None,
        max_concurrency: int | None = None,
    ) -> Policy:
        """Dispatch policy from settings, with optional overrides."""
        return Policy(
            continue_on_error=(
                self.settings.continue_on_error
                if continue_on_error is None
                else continue_on_error
            ),
            max_concurrency=max_concurrency or self.settings.max_concurrency,
        )

    @property
    def command_timeout(self) -> int:
        """Command timeout in seconds."""
        return self.settings.command_timeout

    @property
    def idle_timeout(self) -> int:
        """Connection idle timeout in seconds."""
        return self.settings.idle_timeout

    @property
    def max_pool_size(self) -> int:
        """Maximum connection pool size."""
        return self.settings.max_pool_size

    @property
    def known_hosts_path(self) -> str | None:
        """Path to known_hosts file or None if disabled."""
        return self.host_keys.get_known_hosts_path()

    @property
    def strict_host_key_checking(self) -> bool:
        """Whether to reject unknown host keys."""
        return self.host_keys.strict_checking
