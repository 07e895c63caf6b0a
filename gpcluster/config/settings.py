"""Settings from GPCLUSTER_* environment variables."""

import logging
import os
from dataclasses import dataclass, field

from gpcluster.errors import CLUSTER_ERROR_CODE
from gpcluster.models.dispatch import DEFAULT_MAX_CONCURRENCY

logger = logging.getLogger(__name__)

DEFAULT_LOG_DIR = "~/gpAdminLogs"


def _default_ssh_user() -> str:
    return os.getenv("USER") or "gpadmin"


@dataclass
class Settings:
    """Settings shared by every cluster utility.

    Handles parsing, validation, and defaults for all env vars.
    """

    # Dispatch policy
    max_concurrency: int = field(default=DEFAULT_MAX_CONCURRENCY)
    continue_on_error: bool = field(default=False)
    error_code: int = field(default=CLUSTER_ERROR_CODE)

    # Commands
    command_timeout: int = field(default=60)

    # SSH
    ssh_user: str = field(default_factory=_default_ssh_user)
    idle_timeout: int = field(default=60)
    max_pool_size: int = field(default=100)

    # Logging
    log_level: str = field(default="INFO")
    log_colors: bool = field(default=True)
    log_dir: str | None = field(default=DEFAULT_LOG_DIR)
    log_file_level: str = field(default="DEBUG")

    @classmethod
    def from_env(cls) -> "Settings":
        """Load settings from environment variables.

        Returns:
            Settings instance with values from environment
        """
        return cls(
            max_concurrency=cls._get_positive_int(
                "GPCLUSTER_MAX_CONCURRENCY", DEFAULT_MAX_CONCURRENCY
            ),
            continue_on_error=cls._get_bool("GPCLUSTER_CONTINUE_ON_ERROR", False),
            error_code=cls._get_int("GPCLUSTER_ERROR_CODE", CLUSTER_ERROR_CODE),
            command_timeout=cls._get_positive_int("GPCLUSTER_COMMAND_TIMEOUT", 60),
            ssh_user=os.getenv("GPCLUSTER_SSH_USER") or _default_ssh_user(),
            idle_timeout=cls._get_positive_int("GPCLUSTER_IDLE_TIMEOUT", 60),
            max_pool_size=cls._get_positive_int("GPCLUSTER_MAX_POOL_SIZE", 100),
            log_level=os.getenv("GPCLUSTER_LOG_LEVEL", "INFO").upper(),
            log_colors=cls._get_bool("GPCLUSTER_LOG_COLORS", True),
            log_dir=cls._get_log_dir(),
            log_file_level=os.getenv("GPCLUSTER_LOG_FILE_LEVEL", "DEBUG").upper(),
        )

    @staticmethod
    def _get_int(key: str, default: int) -> int:
        """Get integer from environment.

        Args:
            key: Environment variable key
            default: Default value if not set or invalid

        Returns:
            Integer value from environment or default
        """
        value = os.getenv(key)
        if value is None or not value.strip():
            return default

        try:
            return int(value)
        except ValueError:
            logger.warning("Invalid int for %s: %s, using default %d", key, value, default)
            return default

    @classmethod
    def _get_positive_int(cls, key: str, default: int) -> int:
        value = cls._get_int(key, default)
        if value <= 0:
            logger.warning("%s must be > 0, got %d. Using default: %d", key, value, default)
            return default
        return value

    @staticmethod
    def _get_log_dir() -> str | None:
        """Log file directory, None when GPCLUSTER_LOG_DIR is "none"."""
        value = (os.getenv("GPCLUSTER_LOG_DIR") or "").strip() or DEFAULT_LOG_DIR
        if value.lower() in ("none", "off", "false"):
            return None
        return value

    @staticmethod
    def _get_bool(key: str, default: bool) -> bool:
        """Get boolean from environment.

        Args:
            key: Environment variable key
            default: Default value if not set

        Returns:
            Boolean value from environment or default
        """
        value = os.getenv(key)
        if value is None or not value.strip():
            return default
        return value.strip().lower() in ("1", "true", "yes", "on")
