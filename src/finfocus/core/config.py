# src/finfocus/core/config.py

import logging
import os
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

# Load environment variables from a .env file located in the project root
dotenv_path = os.path.join(os.path.dirname(__file__), "..", "..", "..", ".env")
load_dotenv(dotenv_path=dotenv_path)


def _env_bool(key: str, default: str = "False") -> bool:
    return os.getenv(key, default).lower() in ("true", "1", "t", "y", "yes")


def _env_list(key: str) -> List[str]:
    raw = os.getenv(key, "")
    return [item.strip() for item in raw.split(",") if item.strip()]


class Config:
    """
    Handles the application's configuration by loading values from environment variables.
    """

    # --- Logging variables ---
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # --- Filesystem layout ---
    FINFOCUS_HOME = os.getenv("FINFOCUS_HOME", str(Path.home() / ".finfocus"))
    PLUGIN_DIR = os.getenv("FINFOCUS_PLUGIN_DIR", "")

    # --- Plugin process supervision ---
    # Seconds to wait for a freshly spawned plugin to accept connections.
    PLUGIN_BIND_TIMEOUT = float(os.getenv("FINFOCUS_PLUGIN_BIND_TIMEOUT", "10"))
    # Larger bind budget for plugins known to start slowly (and for CI runners).
    PLUGIN_SLOW_BIND_TIMEOUT = float(os.getenv("FINFOCUS_PLUGIN_SLOW_BIND_TIMEOUT", "30"))
    SLOW_START_PLUGINS = _env_list("FINFOCUS_SLOW_START_PLUGINS")
    PLUGIN_POLL_INTERVAL = float(os.getenv("FINFOCUS_PLUGIN_POLL_INTERVAL", "0.1"))
    PLUGIN_PORT_RETRIES = int(os.getenv("FINFOCUS_PLUGIN_PORT_RETRIES", "5"))
    PLUGIN_SHUTDOWN_GRACE = float(os.getenv("FINFOCUS_PLUGIN_SHUTDOWN_GRACE", "2"))
    ANALYZER_MODE = _env_bool("FINFOCUS_ANALYZER_MODE")

    # --- Plugin RPC timeouts ---
    PLUGIN_INFO_TIMEOUT = float(os.getenv("FINFOCUS_PLUGIN_INFO_TIMEOUT", "5"))
    PLUGIN_DRY_RUN_TIMEOUT = float(os.getenv("FINFOCUS_PLUGIN_DRY_RUN_TIMEOUT", "10"))
    PLUGIN_CALL_TIMEOUT = float(os.getenv("FINFOCUS_PLUGIN_CALL_TIMEOUT", "30"))
    PLUGIN_CONNECT_TIMEOUT = float(os.getenv("FINFOCUS_PLUGIN_CONNECT_TIMEOUT", "2"))

    # --- Dispatch ---
    PLUGIN_CONCURRENCY = int(os.getenv("FINFOCUS_PLUGIN_CONCURRENCY", "4"))

    # --- Compatibility checks ---
    SKIP_VERSION_CHECK = _env_bool("FINFOCUS_SKIP_VERSION_CHECK")
    STRICT_PLUGIN_COMPATIBILITY = _env_bool("FINFOCUS_STRICT_PLUGIN_COMPATIBILITY")

    # --- Cost defaults ---
    DEFAULT_CURRENCY = os.getenv("FINFOCUS_DEFAULT_CURRENCY", "USD")
    DEFAULT_UTILIZATION = float(os.getenv("FINFOCUS_DEFAULT_UTILIZATION", "0.5"))
    HOURS_PER_MONTH = 730.0

    USER_AGENT = os.getenv("FINFOCUS_USER_AGENT", "finfocus-core")

    # AWS_REGION / AWS_DEFAULT_REGION are resolved at access time so tests and
    # callers changing the environment see the current value. They are only
    # ever consumed through ProviderDefaults, scoped to the aws provider.
    @property
    def AWS_REGION(self) -> Optional[str]:
        return os.getenv("AWS_REGION") or os.getenv("AWS_DEFAULT_REGION") or None

    @property
    def IS_CI(self) -> bool:
        return os.getenv("CI", "").lower() == "true"

    @property
    def plugin_dir(self) -> Path:
        """Directory holding installed plugins (``<home>/plugins`` unless overridden)."""
        if self.PLUGIN_DIR:
            return Path(self.PLUGIN_DIR)
        return Path(self.FINFOCUS_HOME) / "plugins"

    def bind_timeout_for(self, plugin_name: str) -> float:
        """
        Returns the bind timeout for a plugin, widening it for slow-starting
        plugins and CI environments.
        """
        if self.IS_CI or plugin_name in self.SLOW_START_PLUGINS:
            return max(self.PLUGIN_BIND_TIMEOUT, self.PLUGIN_SLOW_BIND_TIMEOUT)
        return self.PLUGIN_BIND_TIMEOUT

    def validate_instance(self):
        if self.PLUGIN_BIND_TIMEOUT <= 0:
            raise ValueError("FINFOCUS_PLUGIN_BIND_TIMEOUT must be positive.")
        if self.PLUGIN_POLL_INTERVAL <= 0:
            raise ValueError("FINFOCUS_PLUGIN_POLL_INTERVAL must be positive.")
        if self.PLUGIN_CONCURRENCY < 1:
            raise ValueError("FINFOCUS_PLUGIN_CONCURRENCY must be at least 1.")
        if not 0.0 <= self.DEFAULT_UTILIZATION <= 1.0:
            raise ValueError("FINFOCUS_DEFAULT_UTILIZATION must be between 0.0 and 1.0.")
        if self.SKIP_VERSION_CHECK and self.STRICT_PLUGIN_COMPATIBILITY:
            logging.getLogger(__name__).warning(
                "FINFOCUS_SKIP_VERSION_CHECK is set; strict plugin compatibility will not be enforced."
            )


# Instantiate the config to be imported by other modules
config = Config()
config.validate_instance()
