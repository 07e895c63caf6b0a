"""Configuration for gpcluster.

- Config: Aggregates all components
- Settings: GPCLUSTER_* environment variables
- SSHConfigParser: Parses ~/.ssh/config files
- HostKeyVerifier: Resolves known_hosts for SSH connections
"""

from gpcluster.config.host_keys import HostKeyVerifier
from gpcluster.config.main import Config
from gpcluster.config.parser import SSHConfigParser
from gpcluster.config.settings import Settings

__all__ = ["Config", "HostKeyVerifier", "SSHConfigParser", "Settings"]
