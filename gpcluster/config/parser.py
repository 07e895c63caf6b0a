"""SSH config file parser.

Reads ~/.ssh/config so segment hosts can be reached with the user, port and
identity file the operator already configured for them.
"""

import logging
import os
import re
from pathlib import Path

from gpcluster.models import SSHHost
from gpcluster.utils.hostname import is_localhost_target

logger = logging.getLogger(__name__)

_HOST_LINE = re.compile(r"^Host\s+(.+)$", re.IGNORECASE)
_KEY_VALUE = re.compile(r"^(\w+)\s*=?\s*(.+)$")


class SSHConfigParser:
    """Parser for SSH config files.

    Supports allowlist/blocklist filtering. Wildcard patterns only
    contribute defaults (``Host *``) and never become hosts themselves.
    """

    def __init__(
        self,
        config_path: Path | str | None = None,
        allowlist: list[str] | None = None,
        blocklist: list[str] | None = None,
    ):
        """Initialize SSH config parser.

        Args:
            config_path: Path to SSH config file (default: ~/.ssh/config)
            allowlist: Only include these hosts (if set)
            blocklist: Exclude these hosts
        """
        if config_path is None:
            config_path = Path.home() / ".ssh" / "config"

        self.config_path = Path(config_path)
        self.allowlist = set(allowlist) if allowlist else None
        self.blocklist = set(blocklist) if blocklist else set()

    def parse(self) -> dict[str, SSHHost]:
        """Parse SSH config and return host definitions.

        Returns:
            Dictionary mapping host alias to SSHHost objects
        """
        if not self.config_path.exists():
            logger.warning("SSH config not found: %s", self.config_path)
            return {}

        try:
            content = self.config_path.read_text()
        except OSError as e:
            logger.warning("Cannot read SSH config %s: %s", self.config_path, e)
            return {}

        # (aliases, options) per Host block, in file order
        blocks: list[tuple[list[str], dict[str, str]]] = []
        global_defaults: dict[str, str] = {}

        for raw in content.splitlines():
            line = raw.strip()
            if not line or line.startswith("#"):
                continue

            host_match = _HOST_LINE.match(line)
            if host_match:
                blocks.append((host_match.group(1).split(), {}))
                continue

            kv_match = _KEY_VALUE.match(line)
            if not kv_match or not blocks:
                continue

            key = kv_match.group(1).lower()
            value = kv_match.group(2).strip()
            if key == "identityfile":
                value = os.path.expanduser(value)

            aliases, options = blocks[-1]
            if any(self._is_pattern(a) for a in aliases):
                if "*" in aliases:
                    global_defaults.setdefault(key, value)
                continue
            options.setdefault(key, value)

        hosts: dict[str, SSHHost] = {}
        for aliases, options in blocks:
            for alias in aliases:
                if self._is_pattern(alias) or not self._is_host_allowed(alias):
                    continue
                hosts[alias] = self._build_host(alias, {**global_defaults, **options})

        logger.info("Parsed %d hosts from %s", len(hosts), self.config_path)
        return hosts

    @staticmethod
    def _is_pattern(alias: str) -> bool:
        return "*" in alias or "?" in alias or alias.startswith("!")

    @staticmethod
    def _build_host(alias: str, options: dict[str, str]) -> SSHHost:
        hostname = options.get("hostname", alias)
        try:
            port = int(options.get("port", "22"))
        except ValueError:
            logger.warning("Invalid port for %s: %s, using 22", alias, options["port"])
            port = 22
        return SSHHost(
            name=alias,
            hostname=hostname,
            user=options.get("user", "gpadmin"),
            port=port,
            identity_file=options.get("identityfile"),
            is_localhost=is_localhost_target(alias),
        )

    def _is_host_allowed(self, name: str) -> bool:
        """Check if host passes allowlist/blocklist filters.

        Args:
            name: Host name to check

        Returns:
            True if host is allowed
        """
        if self.allowlist:
            return name in self.allowlist
        return name not in self.blocklist
